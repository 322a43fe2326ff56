"""Query set generation: candidate research questions for each round.

The generator asks the text generation provider for a batch of distinct
questions, parses whatever format comes back, and drops anything already
planned in an earlier round. When generation fails, returns nothing, or
returns too few new questions, round-specific template questions fill the
set; emergency questions are the last resort.

Parsing cascade (first one that yields questions wins):
    1. ``QUESTION:/CATEGORY:/PRIORITY:/RATIONALE:`` blocks
    2. Numbered list lines ending in "?"
    3. Bullet list lines ending in "?"
    4. Any capitalised sentence ending in "?"
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from research_rounds.core.errors.research import TextGenerationError
from research_rounds.core.observability import audit_log
from research_rounds.core.research.models.enums import Priority, QuestionCategory
from research_rounds.core.research.models.questions import ResearchQuestion
from research_rounds.core.research.models.session import ResearchSession
from research_rounds.core.research.providers.base import TextGenerationProvider

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 300

# =============================================================================
# Text helpers
# =============================================================================

_WHITESPACE = re.compile(r"\s+")
_NORMALIZE_STRIP = re.compile(r"[^a-z0-9\s?]")
_HAS_LETTER = re.compile(r"[A-Za-z]")
_BLOCK_START = re.compile(r"^\s*(?:[-*•]\s*|\d+[.)]\s*)?\**\s*(?:question|q\d*)\s*\**\s*:", re.IGNORECASE)
_FIELD = re.compile(r"^\s*[-*•]?\s*\**\s*(question|q\d*|category|priority|rationale)\s*\**\s*:\s*(.*)$", re.IGNORECASE)
_NUMBERED = re.compile(r"^\s*\d+[.)]\s*(.+?)\s*$", re.MULTILINE)
_BULLET = re.compile(r"^\s*[-*•]\s*(.+?)\s*$", re.MULTILINE)
_QUESTION_SENTENCE = re.compile(r"([A-Z][^.?!\n]*\?)")


def normalize_question_text(text: Optional[str]) -> str:
    """Canonical form used to detect repeated questions.

    Lowercased, whitespace collapsed, and everything except letters,
    digits, whitespace and "?" removed.
    """
    if not text:
        return ""
    collapsed = _WHITESPACE.sub(" ", text.lower().strip())
    return _NORMALIZE_STRIP.sub("", collapsed)


def is_valid_question_text(text: Optional[str]) -> bool:
    if not text:
        return False
    trimmed = text.strip()
    return MIN_QUESTION_LENGTH <= len(trimmed) <= MAX_QUESTION_LENGTH and bool(_HAS_LETTER.search(trimmed))


def infer_category(text: str) -> QuestionCategory:
    """Guess a category from keywords in the question text."""
    lower = text.lower()
    if any(k in lower for k in ("implement", "how to", "build")):
        return QuestionCategory.IMPLEMENTATION
    if any(k in lower for k in ("performance", "speed", "metric")):
        return QuestionCategory.PERFORMANCE
    if any(k in lower for k in ("compare", "versus", "alternative")):
        return QuestionCategory.ANALYSIS
    if any(k in lower for k in ("example", "case", "study")):
        return QuestionCategory.CASE_STUDY
    if any(k in lower for k in ("technical", "architecture", "detail")):
        return QuestionCategory.TECHNICAL
    return QuestionCategory.OVERVIEW


def _parse_category(label: str) -> QuestionCategory:
    try:
        return QuestionCategory.parse(label)
    except ValueError:
        logger.debug("Unknown question category '%s', using general", label)
        return QuestionCategory.GENERAL


def _parse_priority(label: str) -> Priority:
    try:
        return Priority.parse(label)
    except ValueError:
        logger.debug("Unknown priority '%s', using medium", label)
        return Priority.MEDIUM


# =============================================================================
# Parsing
# =============================================================================


def _parse_block(lines: Sequence[str]) -> Optional[ResearchQuestion]:
    text: Optional[str] = None
    category = QuestionCategory.GENERAL
    priority = Priority.MEDIUM
    rationale = ""

    for line in lines:
        match = _FIELD.match(line)
        if match:
            key, value = match.group(1).lower(), match.group(2).strip().strip("*").strip()
            if not value:
                continue
            if key == "category":
                category = _parse_category(value)
            elif key == "priority":
                priority = _parse_priority(value)
            elif key == "rationale":
                rationale = value
            else:
                text = value
        elif text is None and line.strip().endswith("?") and len(line.strip()) > MIN_QUESTION_LENGTH:
            text = line.strip()

    if text is None or not is_valid_question_text(text):
        return None
    return ResearchQuestion(text=text, category=category, priority=priority, rationale=rationale)


def parse_structured_questions(raw: str) -> list[ResearchQuestion]:
    """Parse ``QUESTION:`` blocks with optional CATEGORY/PRIORITY/RATIONALE lines."""
    blocks: list[list[str]] = []
    for line in raw.splitlines():
        if _BLOCK_START.match(line):
            blocks.append([line])
        elif blocks and line.strip():
            blocks[-1].append(line)

    questions = []
    for block in blocks:
        question = _parse_block(block)
        if question is not None:
            questions.append(question)
    return questions


def _parse_by_pattern(raw: str, pattern: re.Pattern[str], min_length: int = MIN_QUESTION_LENGTH) -> list[ResearchQuestion]:
    questions = []
    for match in pattern.finditer(raw):
        text = match.group(1).strip()
        if text.endswith("?") and len(text) >= min_length and is_valid_question_text(text):
            questions.append(ResearchQuestion(text=text, category=infer_category(text)))
    return questions


def parse_questions(raw: Optional[str]) -> list[ResearchQuestion]:
    """Parse generated text into questions, de-duplicated by normalized text."""
    if not raw or not raw.strip():
        return []

    for strategy in (
        parse_structured_questions,
        lambda r: _parse_by_pattern(r, _NUMBERED),
        lambda r: _parse_by_pattern(r, _BULLET),
        lambda r: _parse_by_pattern(r, _QUESTION_SENTENCE, min_length=16),
    ):
        parsed = strategy(raw)
        if parsed:
            return unique_questions(parsed)
    return []


def unique_questions(
    questions: Iterable[ResearchQuestion],
    exclude: Optional[set[str]] = None,
) -> list[ResearchQuestion]:
    """Keep the first of each normalized question text, skipping ``exclude``."""
    seen = set(exclude or ())
    unique = []
    for question in questions:
        key = normalize_question_text(question.text)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique


# =============================================================================
# Templates
# =============================================================================

ROUND_TEMPLATES: dict[int, tuple[str, ...]] = {
    1: (
        "What are the fundamental principles and core concepts of {query}?",
        "How does {query} work in practice and what are the key mechanisms?",
        "What are the primary benefits and advantages of implementing {query}?",
        "What are the essential requirements and prerequisites for {query}?",
    ),
    2: (
        "What are the detailed technical implementation approaches for {query}?",
        "What performance characteristics and metrics should be considered for {query}?",
        "What common challenges and limitations are associated with {query}?",
        "What tools and technologies are typically used with {query}?",
    ),
    3: (
        "What are notable real-world case studies and success stories of {query}?",
        "How does {query} compare to alternative approaches and solutions?",
        "What are the current industry trends and emerging developments in {query}?",
        "What lessons learned and best practices exist for {query}?",
    ),
}
LATE_ROUND_TEMPLATES: tuple[str, ...] = (
    "What comprehensive analysis and expert insights exist about {query}?",
    "What future directions and potential developments are expected for {query}?",
    "What are the strategic considerations for adopting {query}?",
    "What comprehensive evaluation criteria should be applied to {query}?",
)


def template_questions(query: str, round_number: int) -> list[ResearchQuestion]:
    templates = ROUND_TEMPLATES.get(round_number, LATE_ROUND_TEMPLATES)
    questions = []
    for template in templates:
        text = template.format(query=query)
        questions.append(ResearchQuestion(text=text, category=infer_category(text), rationale="template"))
    return questions


def emergency_questions(query: str, round_number: int) -> list[ResearchQuestion]:
    """Last-resort questions that need nothing but the query text."""
    topic = query.strip() or "research topic"
    specs = [
        (f"What are the essential concepts and fundamentals that define {topic}?", QuestionCategory.OVERVIEW, Priority.HIGH),
        (f"What are the practical implementation approaches and methodologies for {topic}?", QuestionCategory.IMPLEMENTATION, Priority.HIGH),
        (f"What are the current trends, developments, and future outlook for {topic}?", QuestionCategory.ANALYSIS, Priority.MEDIUM),
        (f"What are the key benefits, challenges, and considerations when working with {topic}?", QuestionCategory.ANALYSIS, Priority.MEDIUM),
    ]
    if round_number == 1:
        specs.append((f"What is the basic introduction and overview of {topic}?", QuestionCategory.OVERVIEW, Priority.HIGH))
    elif round_number == 2:
        specs.append((f"What are the technical details and specifications for {topic}?", QuestionCategory.TECHNICAL, Priority.MEDIUM))
    elif round_number == 3:
        specs.append((f"What are real-world examples and use cases of {topic}?", QuestionCategory.CASE_STUDY, Priority.MEDIUM))
    else:
        specs.append((f"What comprehensive analysis and insights exist about {topic}?", QuestionCategory.ANALYSIS, Priority.LOW))
    return [ResearchQuestion(text=t, category=c, priority=p, rationale="emergency") for t, c, p in specs]


# =============================================================================
# Generator
# =============================================================================


class QuerySetGenerator:
    """Produces the candidate questions for one research round.

    Args:
        text_provider: Text generation backend, or None for template-only mode
        max_questions: Questions kept per round
        min_questions_to_proceed: Below this many new generated questions,
            template questions are added
        max_rounds: Total round budget (mentioned in the prompt)
    """

    def __init__(
        self,
        text_provider: Optional[TextGenerationProvider] = None,
        *,
        max_questions: int = 6,
        min_questions_to_proceed: int = 2,
        max_rounds: int = 4,
    ):
        self.text_provider = text_provider
        self.max_questions = max_questions
        self.min_questions_to_proceed = min_questions_to_proceed
        self.max_rounds = max_rounds

    def build_prompt(
        self,
        session: ResearchSession,
        round_number: int,
        gap_hints: Sequence[str] = (),
    ) -> str:
        lines = [
            f'Generate {self.max_questions} DISTINCT research questions for: "{session.query}"',
            "",
            "RESEARCH CONTEXT:",
            f"- Round: {round_number} of {self.max_rounds}",
            f"- Sources collected: {len(session.citations)}",
            f"- Previous insights: {len(session.insights)}",
        ]
        if session.explored_topics:
            lines.append(f"- Already explored: {', '.join(sorted(session.explored_topics)[:5])}")
        if gap_hints:
            lines.append(f"- Known gaps: {'; '.join(gap_hints)}")
        lines += [
            "",
            "REQUIREMENTS:",
            "1. Each question must be UNIQUE and DISTINCT",
            "2. Focus on different aspects: technical, practical, theoretical, comparative",
            "3. Avoid duplicating explored topics",
            "4. Each question should end with '?'",
            "",
            "FORMAT EACH QUESTION AS:",
            "QUESTION: [Your unique research question ending with ?]",
            "CATEGORY: [Implementation/Performance/Analysis/Case-Study/Technical/Overview]",
            "PRIORITY: [High/Medium/Low]",
            "RATIONALE: [Why this question matters]",
        ]
        return "\n".join(lines)

    async def _generate_with_provider(
        self,
        session: ResearchSession,
        round_number: int,
        gap_hints: Sequence[str],
    ) -> list[ResearchQuestion]:
        if self.text_provider is None:
            return []
        provider_name = self.text_provider.get_provider_name()
        try:
            raw = await self.text_provider.complete(self.build_prompt(session, round_number, gap_hints))
            if not raw or not raw.strip():
                raise TextGenerationError(provider_name, "empty completion")
            parsed = parse_questions(raw)
            if not parsed:
                raise TextGenerationError(provider_name, "no questions could be parsed from completion")
            return parsed
        except Exception as e:
            logger.warning("Question generation failed for round %d, using templates: %s", round_number, e)
            audit_log(
                "text_generation_fallback",
                session_id=session.id,
                round=round_number,
                provider=provider_name,
                error=str(e),
            )
            return []

    async def generate(
        self,
        session: ResearchSession,
        round_number: int,
        gap_hints: Sequence[str] = (),
    ) -> list[ResearchQuestion]:
        """Return up to ``max_questions`` questions not yet processed in this session.

        Never raises for provider failures; may return an empty list when
        every candidate (templates included) was already processed.
        """
        processed = session.processed_questions
        questions = unique_questions(
            await self._generate_with_provider(session, round_number, gap_hints),
            exclude=processed,
        )

        if len(questions) < self.min_questions_to_proceed:
            logger.info(
                "Only %d new generated questions for round %d, adding template questions",
                len(questions),
                round_number,
            )
            planned = processed | {normalize_question_text(q.text) for q in questions}
            questions += unique_questions(template_questions(session.query, round_number), exclude=planned)

        if not questions:
            questions = unique_questions(emergency_questions(session.query, round_number), exclude=processed)

        selected = questions[: self.max_questions]
        logger.info("Planned %d questions for round %d", len(selected), round_number)
        return selected
