"""Tests for research models: enums, citations, questions and sessions."""

import pytest

from research_rounds.core.research.models import (
    CitationResult,
    Priority,
    QuestionCategory,
    ResearchQuestion,
    ResearchSession,
    RoundOutcome,
    extract_domain,
    extract_keywords,
)


class TestPriority:
    """Tests for Priority ordering and parsing."""

    def test_rank_is_total(self):
        """HIGH > MEDIUM > LOW."""
        assert Priority.HIGH.rank > Priority.MEDIUM.rank > Priority.LOW.rank

    def test_parse_free_text(self):
        """Labels are case and whitespace insensitive."""
        assert Priority.parse(" High ") is Priority.HIGH

    def test_parse_unknown(self):
        """Unknown labels raise ValueError."""
        with pytest.raises(ValueError):
            Priority.parse("urgent")


class TestQuestionCategory:
    """Tests for QuestionCategory.parse."""

    @pytest.mark.parametrize("label", ["Case-Study", "case study", "CASE_STUDY"])
    def test_parse_variants(self, label):
        """Spaces and underscores normalize to hyphens."""
        assert QuestionCategory.parse(label) is QuestionCategory.CASE_STUDY

    def test_parse_unknown(self):
        """Unknown categories raise ValueError."""
        with pytest.raises(ValueError):
            QuestionCategory.parse("mystery")


class TestCitationResult:
    """Tests for CitationResult."""

    def test_relevance_clamped(self):
        """Scores outside [0, 1] are clamped on construction and assignment."""
        citation = CitationResult(title="t", url="https://a.org", relevance_score=3.0)
        assert citation.relevance_score == 1.0
        citation.relevance_score = -1
        assert citation.relevance_score == 0.0

    def test_domain_derived(self):
        """Domain is derived from the URL without www."""
        assert CitationResult(title="t", url="https://WWW.Example.com/path").domain == "example.com"

    def test_explicit_domain_kept(self):
        """An explicit domain is not overwritten."""
        assert CitationResult(title="t", url="https://a.org", domain="mirror.org").domain == "mirror.org"

    def test_is_valid(self):
        """Blank title or url makes a citation invalid."""
        assert CitationResult(title="t", url="https://a.org").is_valid
        assert not CitationResult(title="  ", url="https://a.org").is_valid
        assert not CitationResult(title=None, url=None).is_valid

    def test_extract_domain_edge_cases(self):
        """Empty or host-less URLs give an empty domain."""
        assert extract_domain("") == ""
        assert extract_domain("not a url") == ""


class TestResearchQuestion:
    """Tests for ResearchQuestion."""

    def test_defaults(self):
        """New questions are GENERAL, MEDIUM and not researched."""
        question = ResearchQuestion(text="What is Rust?")
        assert question.category is QuestionCategory.GENERAL
        assert question.priority is Priority.MEDIUM
        assert question.id.startswith("rq-")
        question.mark_researched()
        assert question.researched

    def test_keywords(self):
        """Keywords drop short words, stop words and punctuation."""
        question = ResearchQuestion(text="How does Rust's borrow checker work with async code?")
        assert question.keywords() == ["rusts", "borrow", "checker", "work", "async", "code"]

    def test_extract_keywords_dedupes(self):
        """Repeated words appear once in first-seen order."""
        assert extract_keywords("Kafka streams and kafka topics") == ["kafka", "streams", "topics"]


class TestResearchSession:
    """Tests for ResearchSession."""

    def test_cancel_is_idempotent(self):
        """Cancelling twice keeps the session cancelled."""
        session = ResearchSession(query="rust")
        session.cancel()
        session.cancel()
        assert session.cancelled

    def test_blank_query_rejected(self):
        """Sessions need a non-empty query."""
        with pytest.raises(ValueError):
            ResearchSession(query="")

    def test_round_outcome_skipped(self):
        """An outcome with an error is a skipped round."""
        assert RoundOutcome(round_number=1, error="boom").skipped
        assert not RoundOutcome(round_number=1).skipped
