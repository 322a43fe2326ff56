"""Tests for question parsing, normalization and the query set generator."""

from unittest.mock import patch

import pytest

from research_rounds.core.research.models import Priority, QuestionCategory, ResearchSession
from research_rounds.core.research.workflows.rounds.questions import (
    QuerySetGenerator,
    emergency_questions,
    infer_category,
    is_valid_question_text,
    normalize_question_text,
    parse_questions,
    template_questions,
)

STRUCTURED = """
QUESTION: How do vector databases index high-dimensional embeddings?
CATEGORY: Technical
PRIORITY: High
RATIONALE: Indexing drives query latency.

QUESTION: What benchmarks compare vector databases at scale?
CATEGORY: Performance
PRIORITY: Low
RATIONALE: Needed for selection.

QUESTION: Which teams have migrated to vector databases in production?
CATEGORY: Mystery
PRIORITY: Urgent
"""


class TestNormalize:
    """Tests for question normalization and validation."""

    def test_normalize(self):
        """Lowercase, collapsed whitespace, punctuation except ? removed."""
        assert normalize_question_text("  What's   NEW in Rust-1.80?  ") == "whats new in rust180?"

    def test_normalize_empty(self):
        """None normalizes to empty string."""
        assert normalize_question_text(None) == ""

    @pytest.mark.parametrize(
        ("text", "valid"),
        [
            ("What is Rust?", True),
            ("Too short", False),
            ("1234567890?", False),
            ("x" * 301, False),
            (None, False),
        ],
    )
    def test_validity(self, text, valid):
        """Questions need 10-300 characters and a letter."""
        assert is_valid_question_text(text) is valid


class TestParseQuestions:
    """Tests for the parsing cascade."""

    def test_structured_blocks(self):
        """QUESTION blocks carry category, priority and rationale."""
        questions = parse_questions(STRUCTURED)
        assert len(questions) == 3
        first = questions[0]
        assert first.text == "How do vector databases index high-dimensional embeddings?"
        assert first.category is QuestionCategory.TECHNICAL
        assert first.priority is Priority.HIGH
        assert first.rationale == "Indexing drives query latency."
        assert questions[1].priority is Priority.LOW

    def test_unknown_labels_fall_back(self):
        """Unknown category and priority labels become GENERAL and MEDIUM."""
        third = parse_questions(STRUCTURED)[2]
        assert third.category is QuestionCategory.GENERAL
        assert third.priority is Priority.MEDIUM

    def test_numbered_list(self):
        """Numbered lines ending in ? are parsed when no blocks exist."""
        raw = "Here you go:\n1. How to build a Rust web server?\n2) What is the performance of Tokio?\n3. Not a question."
        questions = parse_questions(raw)
        assert [q.text for q in questions] == [
            "How to build a Rust web server?",
            "What is the performance of Tokio?",
        ]
        assert questions[0].category is QuestionCategory.IMPLEMENTATION
        assert questions[1].category is QuestionCategory.PERFORMANCE

    def test_bullet_list(self):
        """Bullet lines are the third strategy."""
        raw = "- What are examples of Rust in embedded systems?\n* Why is Rust memory safe by default?"
        assert len(parse_questions(raw)) == 2

    def test_free_sentences(self):
        """Question sentences inside prose are the last resort."""
        raw = "Consider this. What architecture does Kafka use internally? Also think about cost."
        questions = parse_questions(raw)
        assert [q.text for q in questions] == ["What architecture does Kafka use internally?"]

    def test_duplicates_collapsed(self):
        """Questions equal after normalization are parsed once."""
        raw = "1. What is Rust ownership?\n2. what is  rust ownership?\n"
        assert len(parse_questions(raw)) == 1

    def test_garbage(self):
        """Unparseable or empty text yields no questions."""
        assert parse_questions("") == []
        assert parse_questions("no questions here at all.") == []


class TestTemplates:
    """Tests for template and emergency questions."""

    @pytest.mark.parametrize("round_number", [1, 2, 3, 4, 7])
    def test_template_questions_per_round(self, round_number):
        """Each round has four templates mentioning the query."""
        questions = template_questions("Rust", round_number)
        assert len(questions) == 4
        assert all("Rust" in q.text for q in questions)

    def test_late_rounds_share_templates(self):
        """Rounds after the third reuse one template set."""
        assert [q.text for q in template_questions("x", 4)] == [q.text for q in template_questions("x", 9)]

    def test_emergency_questions(self):
        """Emergency set has four base questions plus one round-specific one."""
        questions = emergency_questions("Rust", 2)
        assert len(questions) == 5
        assert questions[-1].category is QuestionCategory.TECHNICAL
        assert questions[0].priority is Priority.HIGH

    @pytest.mark.parametrize(
        ("text", "category"),
        [
            ("How to implement a cache?", QuestionCategory.IMPLEMENTATION),
            ("What metrics matter?", QuestionCategory.PERFORMANCE),
            ("Rust versus Go?", QuestionCategory.ANALYSIS),
            ("Any case study?", QuestionCategory.CASE_STUDY),
            ("What architecture is used?", QuestionCategory.TECHNICAL),
            ("What is Rust?", QuestionCategory.OVERVIEW),
        ],
    )
    def test_infer_category(self, text, category):
        """Keywords select the category."""
        assert infer_category(text) is category


class TestQuerySetGenerator:
    """Tests for QuerySetGenerator.generate."""

    @pytest.mark.asyncio
    async def test_generated_questions_used(self, fake_text_provider):
        """Parsed provider questions are returned, capped at max_questions."""
        provider = fake_text_provider([STRUCTURED])
        generator = QuerySetGenerator(provider, max_questions=2)
        questions = await generator.generate(ResearchSession(query="vector databases"), 1)
        assert len(questions) == 2
        assert questions[0].category is QuestionCategory.TECHNICAL
        assert "vector databases" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_prompt_mentions_gaps(self, fake_text_provider):
        """Gap hints are included in the prompt."""
        provider = fake_text_provider([STRUCTURED])
        await QuerySetGenerator(provider).generate(
            ResearchSession(query="vector databases"), 2, ["Limited recent sources"]
        )
        assert "Limited recent sources" in provider.prompts[0]
        assert "Round: 2 of 4" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_provider_error_falls_back_to_templates(self, fake_text_provider):
        """Generation failure uses the round templates and is audited."""
        provider = fake_text_provider(error=RuntimeError("model down"))
        generator = QuerySetGenerator(provider)
        with patch("research_rounds.core.research.workflows.rounds.questions.audit_log") as mock_audit:
            questions = await generator.generate(ResearchSession(query="Rust"), 1)
        assert [q.text for q in questions] == [q.text for q in template_questions("Rust", 1)]
        mock_audit.assert_called_once()
        assert mock_audit.call_args.args[0] == "text_generation_fallback"

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back(self, fake_text_provider):
        """An empty completion is treated as a failure."""
        generator = QuerySetGenerator(fake_text_provider([""]))
        questions = await generator.generate(ResearchSession(query="Rust"), 3)
        assert len(questions) == 4

    @pytest.mark.asyncio
    async def test_no_provider_uses_templates(self):
        """Template-only mode needs no provider."""
        questions = await QuerySetGenerator().generate(ResearchSession(query="Rust"), 2)
        assert [q.text for q in questions] == [q.text for q in template_questions("Rust", 2)]

    @pytest.mark.asyncio
    async def test_too_few_new_questions_topped_up(self, fake_text_provider):
        """A single new generated question is topped up with templates."""
        provider = fake_text_provider(["QUESTION: What is the history of the Rust language?"])
        questions = await QuerySetGenerator(provider).generate(ResearchSession(query="Rust"), 1)
        assert questions[0].text == "What is the history of the Rust language?"
        assert len(questions) == 5

    @pytest.mark.asyncio
    async def test_processed_questions_filtered(self):
        """Questions already processed are not planned again."""
        session = ResearchSession(query="Rust")
        templates = template_questions("Rust", 1)
        session.processed_questions = {normalize_question_text(q.text) for q in templates[:3]}
        questions = await QuerySetGenerator().generate(session, 1)
        assert [q.text for q in questions] == [templates[3].text]

    @pytest.mark.asyncio
    async def test_emergency_when_templates_exhausted(self):
        """Emergency questions fill in once templates were all processed."""
        session = ResearchSession(query="Rust")
        session.processed_questions = {normalize_question_text(q.text) for q in template_questions("Rust", 1)}
        questions = await QuerySetGenerator().generate(session, 1)
        assert len(questions) == 5
        assert questions[-1].text == "What is the basic introduction and overview of Rust?"

    @pytest.mark.asyncio
    async def test_everything_processed_returns_empty(self):
        """Nothing new at all yields an empty list."""
        session = ResearchSession(query="Rust")
        session.processed_questions = {
            normalize_question_text(q.text)
            for q in template_questions("Rust", 1) + emergency_questions("Rust", 1)
        }
        assert await QuerySetGenerator().generate(session, 1) == []
