"""Task template detection and similarity search against stored tasks."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from .config import (
    CATEGORY_MATCH_BONUS,
    CONTEXT_RELEVANCE_THRESHOLD,
    DEFAULT_RELATED_TASKS_LIMIT,
    MAX_TEMPLATE_SUGGESTIONS,
    RELATED_SIMILARITY_THRESHOLD,
    SIMILAR_CONTENT_THRESHOLD,
)
from .extractor import TaskExtractor
from .models import RelatedTask, TaskCategory, TaskStatus, TaskTemplate

if TYPE_CHECKING:
    from .task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateTrigger:
    """Trigger pattern, relevance keywords and the template they select."""

    pattern: re.Pattern[str]
    keywords: tuple[str, ...]
    template: TaskTemplate


TASK_TEMPLATES: tuple[TemplateTrigger, ...] = (
    TemplateTrigger(
        pattern=re.compile(
            r"\b(meeting|call|zoom|teams|conference|discuss|sync|standup|kickoff|"
            r"review meeting)\b"
        ),
        keywords=("meeting", "call", "zoom", "discuss", "sync", "conference"),
        template=TaskTemplate(
            type="meeting",
            name="Meeting Preparation",
            icon="👥",
            description="Prepare for a meeting or call",
            subtasks=(
                "Review agenda or talking points",
                "Prepare materials or documents",
                "Set up meeting room or video call",
                "Send calendar invite with details",
                "Follow up with action items afterward",
            ),
            estimated_time="30-45 minutes prep + meeting time",
            category=TaskCategory.WORK,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(email|call|phone|text|send|contact|reach out|follow up|reply|respond)\b"
        ),
        keywords=("email", "call", "send", "contact", "follow up", "reply"),
        template=TaskTemplate(
            type="communication",
            name="Communication Task",
            icon="📧",
            description="Send email or contact someone",
            subtasks=(
                "Draft the message",
                "Review and edit for clarity",
                "Add any necessary attachments",
                "Send the communication",
                "Set reminder for follow-up if needed",
            ),
            estimated_time="10-20 minutes",
            category=TaskCategory.WORK,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(research|investigate|analyze|study|explore|learn|find out|look into)\b"
        ),
        keywords=("research", "investigate", "analyze", "study", "explore"),
        template=TaskTemplate(
            type="research",
            name="Research Project",
            icon="🔍",
            description="Research or investigate a topic",
            subtasks=(
                "Define research questions or goals",
                "Identify reliable sources",
                "Gather and review information",
                "Take notes and organize findings",
                "Summarize conclusions or next steps",
            ),
            estimated_time="1-3 hours depending on scope",
            category=TaskCategory.WORK,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(r"\b(buy|purchase|order|shop|get|pick up|grocery|store)\b"),
        keywords=("buy", "purchase", "order", "shop", "get", "grocery"),
        template=TaskTemplate(
            type="shopping",
            name="Purchase Task",
            icon="🛒",
            description="Buy or obtain something",
            subtasks=(
                "Research options and prices",
                "Check reviews or recommendations",
                "Compare vendors or stores",
                "Make the purchase",
                "Confirm delivery or pickup",
            ),
            estimated_time="20-60 minutes",
            category=TaskCategory.PERSONAL,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(appointment|schedule|book|doctor|dentist|haircut|service)\b"
        ),
        keywords=("appointment", "schedule", "book", "doctor", "dentist"),
        template=TaskTemplate(
            type="appointment",
            name="Appointment Booking",
            icon="📅",
            description="Schedule an appointment",
            subtasks=(
                "Check your calendar for availability",
                "Contact the provider to schedule",
                "Add appointment to calendar",
                "Set reminder before appointment",
                "Prepare any needed documents",
            ),
            estimated_time="10-15 minutes to schedule",
            category=TaskCategory.PERSONAL,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(write|draft|create|design|blog|article|document|proposal)\b"
        ),
        keywords=("write", "draft", "create", "blog", "article", "document"),
        template=TaskTemplate(
            type="writing",
            name="Writing Project",
            icon="✍️",
            description="Create written content",
            subtasks=(
                "Outline key points or structure",
                "Write first draft",
                "Review and edit content",
                "Check formatting and style",
                "Share or publish as needed",
            ),
            estimated_time="1-4 hours depending on length",
            category=TaskCategory.CREATIVE,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(organize|file|sort|clean|update|renew|register|apply|form|paperwork)\b"
        ),
        keywords=("organize", "file", "sort", "clean", "update", "form"),
        template=TaskTemplate(
            type="administrative",
            name="Administrative Task",
            icon="📋",
            description="Handle paperwork or organization",
            subtasks=(
                "Gather required documents",
                "Fill out necessary forms",
                "Review for accuracy",
                "Submit or file appropriately",
                "Keep copies for records",
            ),
            estimated_time="30-90 minutes",
            category=TaskCategory.ADMINISTRATIVE,
        ),
    ),
    TemplateTrigger(
        pattern=re.compile(
            r"\b(learn|practice|study|course|tutorial|skill|train|improve)\b"
        ),
        keywords=("learn", "practice", "study", "course", "skill", "tutorial"),
        template=TaskTemplate(
            type="learning",
            name="Learning Session",
            icon="📚",
            description="Learn or practice a skill",
            subtasks=(
                "Set specific learning goals",
                "Find quality resources or materials",
                "Dedicate focused time to practice",
                "Take notes on key concepts",
                "Apply what you learned practically",
            ),
            estimated_time="30 minutes - 2 hours per session",
            category=TaskCategory.PERSONAL,
        ),
    ),
)

STOP_WORDS = frozenset(
    """
    the a an and or but in on at to for of with by from up about into through
    during before after above below between among within without against upon
    beneath beside beyond except since until unless although because however
    therefore thus moreover furthermore nevertheless nonetheless meanwhile
    otherwise instead accordingly consequently subsequently previously currently
    recently immediately eventually finally initially basically generally
    specifically particularly especially mainly primarily essentially actually
    really quite very too so such even just only also still yet already again
    once twice always never often sometimes usually frequently rarely
    occasionally constantly continuously regularly normally typically commonly
    """.split()
)

_NON_WORD = re.compile(r"[^\w\s]")


class TemplateMatcher:
    """
    Detects applicable task templates and finds related stored tasks.

    Template detection is pure. Similarity search reads the task store (when
    one is supplied) and never writes to it.
    """

    def __init__(
        self,
        store: "TaskStore | None" = None,
        templates: tuple[TemplateTrigger, ...] = TASK_TEMPLATES,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the matcher.

        Args:
            store: Task store used for similarity search
            templates: Ordered template trigger table
            clock: Source of the current time
        """
        self._store = store
        self._templates = templates
        self._clock = clock
        self._keywords = {trigger.template.type: trigger.keywords for trigger in templates}

    def detect_task_templates(self, text: str, context: str = "") -> list[TaskTemplate]:
        """
        Detect templates that apply to a task.

        Args:
            text: Task text
            context: Surrounding message text

        Returns:
            Up to two templates, most relevant first (ties keep detection order)
        """
        combined = f"{text} {context}".lower()
        matched = [
            trigger.template for trigger in self._templates if trigger.pattern.search(combined)
        ]
        # sorted() is stable, so equal scores keep detection order
        ranked = sorted(
            matched,
            key=lambda template: self.calculate_template_relevance(template, combined),
            reverse=True,
        )
        return ranked[:MAX_TEMPLATE_SUGGESTIONS]

    def calculate_template_relevance(self, template: TaskTemplate, text: str) -> int:
        """Count the template type's keywords present in text."""
        lowered = text.lower()
        return sum(1 for keyword in self.get_template_keywords(template.type) if keyword in lowered)

    def get_template_keywords(self, template_type: str) -> tuple[str, ...]:
        return self._keywords.get(template_type, ())

    def get_template(self, template_type: str) -> TaskTemplate | None:
        """Look up a template by type."""
        for trigger in self._templates:
            if trigger.template.type == template_type:
                return trigger.template
        return None

    @staticmethod
    def extract_keywords(text: str) -> list[str]:
        """Lower-cased tokens longer than two characters, minus stop words."""
        words = _NON_WORD.sub(" ", (text or "").lower()).split()
        return [word for word in words if len(word) > 2 and word not in STOP_WORDS]

    @staticmethod
    def calculate_similarity(words1: list[str], words2: list[str]) -> float:
        """Jaccard similarity of two token lists."""
        if not words1 or not words2:
            return 0.0
        set1, set2 = set(words1), set(words2)
        return len(set1 & set2) / len(set1 | set2)

    def find_related_tasks(
        self,
        text: str,
        category: TaskCategory | str | None,
        limit: int = DEFAULT_RELATED_TASKS_LIMIT,
    ) -> list[RelatedTask]:
        """
        Find open stored tasks similar to a candidate.

        Args:
            text: Candidate task text
            category: Candidate category
            limit: Maximum number of results

        Returns:
            Related tasks by combined score, highest first
        """
        if self._store is None:
            return []

        task_words = self.extract_keywords(text)
        related: list[RelatedTask] = []

        for task in self._store.get_all_tasks():
            if task.status == TaskStatus.COMPLETED:
                continue

            similarity = self.calculate_similarity(
                task_words, self.extract_keywords(f"{task.title} {task.description}")
            )
            category_match = category is not None and task.category == category

            if similarity > RELATED_SIMILARITY_THRESHOLD or category_match:
                if similarity > SIMILAR_CONTENT_THRESHOLD:
                    reason = "Similar content"
                elif category_match:
                    reason = "Same category"
                else:
                    reason = "Related keywords"
                related.append(
                    RelatedTask(
                        task=task,
                        similarity=similarity + (CATEGORY_MATCH_BONUS if category_match else 0.0),
                        reason=reason,
                    )
                )

        related.sort(key=lambda rt: rt.similarity, reverse=True)
        return related[:limit]

    def find_tasks_related_to_context(
        self, context_text: str, folio_id: str | None = None, limit: int = 3
    ) -> list[RelatedTask]:
        """
        Score open tasks against recent conversation context.

        Scoring: keyword similarity x100, +20 same folio, +10 same category,
        +30/+15/+5 when due within 1/3/7 days. Tasks scoring at least 30 are
        returned, best first, with a `similarity` holding the raw score.
        """
        if self._store is None or not context_text:
            return []

        now = self._clock()
        context_words = self.extract_keywords(context_text)
        context_category = TaskExtractor.categorize_task(context_text)
        results: list[RelatedTask] = []

        for task in self._store.get_all_tasks():
            if task.status == TaskStatus.COMPLETED:
                continue

            similarity = self.calculate_similarity(
                context_words, self.extract_keywords(f"{task.title} {task.description}")
            )
            score = similarity * 100
            reasons: list[str] = []
            if similarity > RELATED_SIMILARITY_THRESHOLD:
                reasons.append("Similar content")

            if folio_id is not None and task.folio_id == folio_id:
                score += 20
                reasons.append("Same conversation")

            if task.category == context_category:
                score += 10
                reasons.append("Related category")

            if task.due_date is not None:
                days_until_due = (task.due_date - now).total_seconds() / 86400
                if days_until_due <= 0:
                    reasons.append("Overdue")
                elif days_until_due <= 1:
                    reasons.append("Due soon")
                elif days_until_due <= 7:
                    reasons.append("Due this week")

                if days_until_due <= 1:
                    score += 30
                elif days_until_due <= 3:
                    score += 15
                elif days_until_due <= 7:
                    score += 5

            if score >= CONTEXT_RELEVANCE_THRESHOLD:
                results.append(
                    RelatedTask(
                        task=task,
                        similarity=round(score, 2),
                        reason=reasons[0] if reasons else "Related keywords",
                        reasons=reasons,
                    )
                )

        results.sort(key=lambda rt: rt.similarity, reverse=True)
        logger.debug(f"Found {len(results)} tasks relevant to conversation context")
        return results[:limit]
