"""Rule-based extraction of candidate tasks from free-form messages."""

import re
from dataclasses import dataclass
from enum import Enum

from task_assist.logging_utils import get_logger

from .config import (
    CONTEXT_WINDOW_CHARS,
    DATE_MATCH_CONFIDENCE,
    MAX_CANDIDATES_PER_MESSAGE,
    MAX_TASK_TEXT_LENGTH,
    MIN_CONFIDENCE_THRESHOLD,
    MIN_TASK_TEXT_LENGTH,
)
from .models import ExtractedDate, PotentialTask, TaskCategory

logger = get_logger(__name__)


class RuleKind(str, Enum):
    """Intent behind an extraction rule."""

    OBLIGATION = "obligation"
    REMINDER = "reminder"
    COMMUNICATION = "communication"
    PLANNING = "planning"
    DEADLINE = "deadline"


class DeadlineAdjustment(str, Enum):
    """Kind of deadline change suggested by conversation cues."""

    POSTPONE = "postpone"
    URGENT = "urgent"
    EXTEND = "extend"
    ADVANCE = "advance"


@dataclass(frozen=True)
class ExtractionRule:
    """A tagged phrase pattern. task_group captures the task span."""

    kind: RuleKind
    pattern: re.Pattern[str]
    task_group: int = 1
    date_group: int | None = None


# Captures never cross a sentence boundary.
_SPAN = r"([^.!?\n]+?)"
_END = r"(?=[.!?\n]|$)"


def _phrase_rule(kind: RuleKind, prefix: str) -> ExtractionRule:
    return ExtractionRule(kind, re.compile(rf"\b{prefix}\s+{_SPAN}{_END}", re.IGNORECASE))


def _deadline_rule(keyword: str) -> ExtractionRule:
    return ExtractionRule(
        RuleKind.DEADLINE,
        re.compile(rf"{_SPAN}\s+{keyword}\s+{_SPAN}{_END}", re.IGNORECASE),
        task_group=1,
        date_group=2,
    )


# Applied in order; a later match that overlaps an earlier one is skipped.
EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    _phrase_rule(RuleKind.OBLIGATION, r"I need to"),
    _phrase_rule(RuleKind.OBLIGATION, r"I should"),
    _phrase_rule(RuleKind.OBLIGATION, r"I have to"),
    _phrase_rule(RuleKind.OBLIGATION, r"I must"),
    _phrase_rule(RuleKind.REMINDER, r"remember to"),
    _phrase_rule(RuleKind.REMINDER, r"don['’]?t forget to"),
    _phrase_rule(RuleKind.REMINDER, r"make sure to"),
    _phrase_rule(RuleKind.COMMUNICATION, r"call"),
    _phrase_rule(RuleKind.COMMUNICATION, r"email"),
    _phrase_rule(RuleKind.COMMUNICATION, r"text"),
    _phrase_rule(RuleKind.COMMUNICATION, r"follow up (?:with|on)"),
    _phrase_rule(RuleKind.COMMUNICATION, r"contact"),
    _phrase_rule(RuleKind.PLANNING, r"plan(?: to)?"),
    _phrase_rule(RuleKind.PLANNING, r"schedule"),
    _phrase_rule(RuleKind.PLANNING, r"organize"),
    _deadline_rule("by"),
    _deadline_rule("before"),
    _deadline_rule("due"),
)

_TRAILING_DEADLINE = re.compile(r"^(.*?)\s+(?:by|before|due)\s+(.+)$", re.IGNORECASE)

ACTION_WORDS = (
    "call", "email", "send", "complete", "finish", "submit", "review", "prepare",
    "organize", "schedule", "book", "cancel", "update", "create", "write",
)
_ACTION_PATTERN = re.compile(rf"\b(?:{'|'.join(ACTION_WORDS)})\b", re.IGNORECASE)

VAGUE_WORDS = ("something", "things", "stuff", "maybe", "probably", "might")
_VAGUE_PATTERN = re.compile(rf"\b(?:{'|'.join(VAGUE_WORDS)})\b", re.IGNORECASE)

_PROPER_NOUN = re.compile(r"^[A-Z][a-z]+")

CATEGORY_PATTERNS: dict[TaskCategory, tuple[re.Pattern[str], ...]] = {
    TaskCategory.WORK: (
        re.compile(
            r"\b(meeting|call|email|report|presentation|deadline|project|client|boss|"
            r"manager|team|office|work|business|proposal|budget|invoice|contract|"
            r"spreadsheet|document|review|approve)\b"
        ),
        re.compile(
            r"\b(monday|tuesday|wednesday|thursday|friday|9am|10am|11am|1pm|2pm|3pm|"
            r"4pm|5pm|conference|zoom|teams|slack)\b"
        ),
    ),
    TaskCategory.PERSONAL: (
        re.compile(
            r"\b(doctor|dentist|appointment|family|friend|home|house|car|insurance|bank|"
            r"grocery|shopping|vacation|holiday|birthday|anniversary|personal|health|"
            r"medical|gym|exercise)\b"
        ),
        re.compile(
            r"\b(mom|dad|sister|brother|spouse|wife|husband|kid|child|parent|relative|"
            r"weekend|saturday|sunday)\b"
        ),
    ),
    TaskCategory.CREATIVE: (
        re.compile(
            r"\b(write|writing|blog|article|story|book|creative|design|art|music|photo|"
            r"video|painting|drawing|craft|hobby|learn|study|course|practice|skill|"
            r"guitar|piano)\b"
        ),
        re.compile(
            r"\b(portfolio|website|brand|logo|content|social media|instagram|youtube|"
            r"podcast|newsletter|journal)\b"
        ),
    ),
    TaskCategory.ADMINISTRATIVE: (
        re.compile(
            r"\b(file|filing|organize|clean|declutter|sort|archive|backup|update|renew|"
            r"register|application|form|tax|taxes|bill|payment|subscription|account|"
            r"password|setup|install)\b"
        ),
        re.compile(
            r"\b(paperwork|documentation|license|permit|registration|certificate|"
            r"insurance|legal|finance|financial|administrative|admin|maintenance)\b"
        ),
    ),
}

_PERSONAL_TIME = re.compile(r"\b(weekend|evening|after work|personal time)\b")

_MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|"
    "november|december"
)
_DURATION_UNIT = r"(?!\s*(?:h|hrs?|hours?|m|mins?|minutes?)\b)"

DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(today|tomorrow|tonight)\b", re.IGNORECASE),
    re.compile(r"\b(this week|next week|end of (?:the )?week)\b", re.IGNORECASE),
    re.compile(
        r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.IGNORECASE
    ),
    re.compile(r"\b(\d{4}-\d{1,2}-\d{1,2})\b"),
    re.compile(r"\b(\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b"),
    re.compile(rf"\b(\d{{1,2}}-\d{{1,2}}(?:-\d{{2,4}})?)\b{_DURATION_UNIT}"),
    re.compile(rf"\b(\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{_MONTHS}))\b", re.IGNORECASE),
    re.compile(rf"\b((?:{_MONTHS})\s+\d{{1,2}}(?:st|nd|rd|th)?)\b", re.IGNORECASE),
)

DEADLINE_ADJUSTMENT_PATTERNS: tuple[tuple[DeadlineAdjustment, re.Pattern[str]], ...] = (
    (
        DeadlineAdjustment.POSTPONE,
        re.compile(r"\b(postpone|delay|push back|move to|reschedule)", re.IGNORECASE),
    ),
    (
        DeadlineAdjustment.URGENT,
        re.compile(r"\b(urgent|asap|immediately|rush|priority)", re.IGNORECASE),
    ),
    (
        DeadlineAdjustment.EXTEND,
        re.compile(r"(can['’]?t make it|won['’]?t finish|need more time)", re.IGNORECASE),
    ),
    (
        DeadlineAdjustment.ADVANCE,
        re.compile(r"\b(ahead of schedule|early|ready now)\b", re.IGNORECASE),
    ),
)

CATEGORY_INFO: dict[TaskCategory, dict[str, str]] = {
    TaskCategory.WORK: {"icon": "💼", "name": "Work", "color": "#3b82f6"},
    TaskCategory.PERSONAL: {"icon": "🏠", "name": "Personal", "color": "#10b981"},
    TaskCategory.CREATIVE: {"icon": "🎨", "name": "Creative", "color": "#8b5cf6"},
    TaskCategory.ADMINISTRATIVE: {"icon": "📋", "name": "Admin", "color": "#f59e0b"},
    TaskCategory.GENERAL: {"icon": "📝", "name": "General", "color": "#64748b"},
}


class TaskExtractor:
    """
    Extracts candidate tasks from message text.

    Pure and stateless: every method depends only on its arguments, so one
    instance can be shared freely.
    """

    def __init__(self, rules: tuple[ExtractionRule, ...] = EXTRACTION_RULES) -> None:
        """
        Initialize the extractor.

        Args:
            rules: Ordered extraction rule table
        """
        self._rules = rules

    def extract_potential_tasks(self, text: str) -> list[PotentialTask]:
        """
        Extract candidate tasks from a message.

        Args:
            text: Message content

        Returns:
            At most three candidates with confidence above the threshold,
            highest confidence first
        """
        if not text or not text.strip():
            return []

        candidates: list[PotentialTask] = []
        claimed: list[tuple[int, int]] = []
        seen: set[str] = set()

        for rule in self._rules:
            for match in rule.pattern.finditer(text):
                start, end = match.span()
                if self._overlaps(start, end, claimed):
                    continue

                span = (match.group(rule.task_group) or "").strip()
                date_context = text
                if rule.date_group is not None:
                    date_context = match.group(rule.date_group) or ""
                else:
                    split = _TRAILING_DEADLINE.match(span)
                    if split and self.extract_date_from_context(split.group(2)):
                        span, date_context = split.group(1).strip(), split.group(2)

                if not (MIN_TASK_TEXT_LENGTH <= len(span) <= MAX_TASK_TEXT_LENGTH):
                    continue

                claimed.append((start, end))
                cleaned = self.clean_task_text(span)
                key = cleaned.lower()
                if key in seen:
                    continue
                seen.add(key)

                candidate = PotentialTask(
                    text=cleaned,
                    original_match=match.group(0),
                    confidence=self.calculate_confidence(cleaned),
                    context=text[max(0, start - CONTEXT_WINDOW_CHARS) : end + CONTEXT_WINDOW_CHARS],
                    extracted_date=self.extract_date_from_context(date_context),
                    rule_kind=rule.kind.value,
                )
                logger.trace(  # type: ignore[attr-defined]
                    f"Rule {rule.kind.value} matched '{cleaned}' "
                    f"(confidence={candidate.confidence:.2f})"
                )
                candidates.append(candidate)

        results = sorted(
            (c for c in candidates if c.confidence > MIN_CONFIDENCE_THRESHOLD),
            key=lambda c: c.confidence,
            reverse=True,
        )[:MAX_CANDIDATES_PER_MESSAGE]

        logger.debug(
            f"Extracted {len(results)} of {len(candidates)} candidate tasks from message"
        )
        return results

    @staticmethod
    def _overlaps(start: int, end: int, claimed: list[tuple[int, int]]) -> bool:
        return any(start < c_end and c_start < end for c_start, c_end in claimed)

    @staticmethod
    def clean_task_text(text: str) -> str:
        """Strip a leading 'to'/'that', collapse whitespace, capitalize."""
        cleaned = re.sub(r"^(?:to|that)\s+", "", text.strip(), flags=re.IGNORECASE)
        cleaned = re.sub(r"\s+", " ", cleaned).strip()
        return cleaned[:1].upper() + cleaned[1:]

    @staticmethod
    def calculate_confidence(text: str) -> float:
        """
        Heuristic 0-1 confidence that text is an actionable task.

        Args:
            text: Cleaned task text

        Returns:
            Score clamped to [0, 1]
        """
        confidence = 0.5

        if _ACTION_PATTERN.search(text):
            confidence += 0.3

        # Proper-noun heuristic: a capitalized word after the first word.
        if any(_PROPER_NOUN.match(word) for word in text.split()[1:]):
            confidence += 0.2

        if _VAGUE_PATTERN.search(text):
            confidence -= 0.2

        if len(text) < 10:
            confidence -= 0.2
        if len(text) > 100:
            confidence -= 0.1

        return round(max(0.0, min(1.0, confidence)), 2)

    @staticmethod
    def categorize_task(text: str, context: str = "") -> TaskCategory:
        """
        Pick a category by keyword match counts.

        Args:
            text: Task text
            context: Surrounding message text

        Returns:
            The strictly highest-scoring category, or general on ties/no match
        """
        combined = f"{text} {context}".lower()
        scores = {
            category: sum(len(pattern.findall(combined)) for pattern in patterns)
            for category, patterns in CATEGORY_PATTERNS.items()
        }

        best = max(scores.values())
        if best == 0:
            return TaskCategory.GENERAL
        leaders = [category for category, score in scores.items() if score == best]
        if len(leaders) > 1:
            return TaskCategory.GENERAL

        top = leaders[0]
        if top == TaskCategory.WORK and _PERSONAL_TIME.search(combined):
            if scores[TaskCategory.PERSONAL] > 0:
                return TaskCategory.PERSONAL
            return TaskCategory.GENERAL
        return top

    @staticmethod
    def extract_date_from_context(context: str | None) -> ExtractedDate | None:
        """Find the first date-like expression in context. Never raises."""
        if not context or not isinstance(context, str):
            return None

        for pattern in DATE_PATTERNS:
            match = pattern.search(context)
            if match:
                return ExtractedDate(raw=match.group(1), confidence=DATE_MATCH_CONFIDENCE)
        return None

    @staticmethod
    def detect_deadline_adjustment(text: str) -> DeadlineAdjustment | None:
        """Detect cues that an existing deadline should move."""
        if not text:
            return None
        for adjustment, pattern in DEADLINE_ADJUSTMENT_PATTERNS:
            if pattern.search(text):
                return adjustment
        return None

    @staticmethod
    def get_category_info(category: TaskCategory | str) -> dict[str, str]:
        """Display name, icon and color for a category."""
        try:
            return dict(CATEGORY_INFO[TaskCategory(category)])
        except ValueError:
            return dict(CATEGORY_INFO[TaskCategory.GENERAL])
