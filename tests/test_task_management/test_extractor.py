"""Tests for rule-based task extraction."""

import pytest

from task_assist.task_management.extractor import (
    EXTRACTION_RULES,
    DeadlineAdjustment,
    RuleKind,
    TaskExtractor,
)
from task_assist.task_management.models import TaskCategory


@pytest.fixture
def extractor() -> TaskExtractor:
    """Create an extractor with the default rule table."""
    return TaskExtractor()


@pytest.mark.unit
class TestExtractPotentialTasks:
    """Test candidate extraction from messages."""

    def test_budget_call_message(self, extractor: TaskExtractor) -> None:
        """Test the obligation + deadline message yields a single candidate."""
        tasks = extractor.extract_potential_tasks(
            "I need to call Bob about the budget by Friday."
        )

        assert len(tasks) == 1
        assert tasks[0].text.lower() == "call bob about the budget"
        assert tasks[0].rule_kind == RuleKind.OBLIGATION.value
        assert tasks[0].extracted_date is not None
        assert tasks[0].extracted_date.raw == "Friday"
        assert tasks[0].extracted_date.confidence == 0.7

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "Hello there, how was your weekend?",
            "I need to call Bob. Remember to email Alice the report. "
            "Don't forget to book flights to Berlin. I should review the contract. "
            "I must submit the invoice to Acme.",
            "maybe something",
            "call x",
        ],
    )
    def test_results_are_capped_filtered_and_sorted(
        self, extractor: TaskExtractor, text: str
    ) -> None:
        """Test at most three results, all above threshold, sorted descending."""
        tasks = extractor.extract_potential_tasks(text)

        assert len(tasks) <= 3
        assert all(0.3 < task.confidence <= 1.0 for task in tasks)
        confidences = [task.confidence for task in tasks]
        assert confidences == sorted(confidences, reverse=True)

    def test_many_candidates_are_capped_at_three(self, extractor: TaskExtractor) -> None:
        """Test that a message with five tasks returns only three."""
        tasks = extractor.extract_potential_tasks(
            "I need to call Bob. Remember to email Alice the report. "
            "Don't forget to book flights to Berlin. I should review the contract. "
            "I must submit the invoice to Acme."
        )

        assert len(tasks) == 3

    def test_duplicates_removed_case_insensitively(self, extractor: TaskExtractor) -> None:
        """Test the same task mentioned twice is returned once."""
        tasks = extractor.extract_potential_tasks(
            "I need to email Sarah the notes. Remember to Email sarah the notes."
        )

        texts = [task.text.lower() for task in tasks]
        assert texts.count("email sarah the notes") == 1

    def test_overlapping_rules_do_not_duplicate(self, extractor: TaskExtractor) -> None:
        """Test a span claimed by an obligation rule is not re-extracted as a call."""
        tasks = extractor.extract_potential_tasks("I should call the dentist tomorrow.")

        assert len(tasks) == 1
        assert tasks[0].text == "Call the dentist tomorrow"

    def test_deadline_rule_extracts_task_and_date(self, extractor: TaskExtractor) -> None:
        """Test 'X due Y' captures the task and the date separately."""
        tasks = extractor.extract_potential_tasks("The quarterly report for Acme due 3/15.")

        assert len(tasks) == 1
        assert tasks[0].rule_kind == RuleKind.DEADLINE.value
        assert tasks[0].text == "The quarterly report for Acme"
        assert tasks[0].extracted_date is not None
        assert tasks[0].extracted_date.raw == "3/15"

    def test_trailing_clause_without_date_is_kept(self, extractor: TaskExtractor) -> None:
        """Test 'by' followed by something that is not a date stays in the task."""
        tasks = extractor.extract_potential_tasks("I need to send the file by email.")

        assert len(tasks) == 1
        assert tasks[0].text == "Send the file by email"

    def test_too_short_spans_are_rejected(self, extractor: TaskExtractor) -> None:
        """Test captured spans under four characters are dropped."""
        assert extractor.extract_potential_tasks("I must go.") == []

    def test_captures_stay_within_sentence(self, extractor: TaskExtractor) -> None:
        """Test a capture ends at the sentence boundary."""
        tasks = extractor.extract_potential_tasks(
            "Remember to submit the timesheet. The weather is nice."
        )

        assert tasks[0].text == "Submit the timesheet"

    def test_context_window_surrounds_match(self, extractor: TaskExtractor) -> None:
        """Test candidate context includes text around the match."""
        text = "Lots of preamble here. I need to review the Henderson proposal."
        tasks = extractor.extract_potential_tasks(text)

        assert "preamble" in tasks[0].context
        assert tasks[0].original_match.startswith("I need to")

    def test_rule_table_is_ordered_by_intent(self) -> None:
        """Test the rule table keeps obligation rules first and deadlines last."""
        kinds = [rule.kind for rule in EXTRACTION_RULES]

        assert kinds[0] == RuleKind.OBLIGATION
        assert kinds[-1] == RuleKind.DEADLINE
        assert {RuleKind.REMINDER, RuleKind.COMMUNICATION, RuleKind.PLANNING} <= set(kinds)


@pytest.mark.unit
class TestCleanTaskText:
    """Test candidate text cleanup."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("to buy milk", "Buy milk"),
            ("that we ship it", "We ship it"),
            ("  call   the   bank ", "Call the bank"),
            ("already Clean", "Already Clean"),
        ],
    )
    def test_clean_task_text(self, raw: str, expected: str) -> None:
        """Test leading filler removal, whitespace collapse and capitalization."""
        assert TaskExtractor.clean_task_text(raw) == expected


@pytest.mark.unit
class TestCalculateConfidence:
    """Test confidence heuristics."""

    def test_action_word_and_proper_noun(self) -> None:
        """Test both bonuses reach the maximum."""
        assert TaskExtractor.calculate_confidence("Call Bob about the budget") == 1.0

    def test_action_word_only(self) -> None:
        """Test an action verb adds 0.3 to the base."""
        assert TaskExtractor.calculate_confidence("Send the weekly notes") == 0.8

    @pytest.mark.parametrize(
        "text,expected",
        [("Callum wants the notes", 0.5), ("Emailing Alice is slow", 0.7)],
    )
    def test_action_word_must_be_whole_word(self, text: str, expected: float) -> None:
        """Test words that only start with an action verb get no bonus."""
        assert TaskExtractor.calculate_confidence(text) == expected

    def test_plain_text_scores_base(self) -> None:
        """Test text without signals keeps the base score."""
        assert TaskExtractor.calculate_confidence("Water the plants") == 0.5

    def test_vague_word_penalty(self) -> None:
        """Test vague wording lowers confidence."""
        assert TaskExtractor.calculate_confidence("Look into something later") == 0.3

    def test_short_text_penalty(self) -> None:
        """Test text under ten characters is penalized."""
        assert TaskExtractor.calculate_confidence("Tidy up") == 0.3

    def test_long_text_penalty(self) -> None:
        """Test text over a hundred characters is penalized."""
        text = "Water the plants " + "and the garden " * 7
        assert len(text) > 100
        assert TaskExtractor.calculate_confidence(text) == 0.4

    def test_clamped_to_zero(self) -> None:
        """Test confidence never drops below zero."""
        assert TaskExtractor.calculate_confidence("maybe") >= 0.0


@pytest.mark.unit
class TestCategorizeTask:
    """Test keyword categorization."""

    def test_client_budget_call_is_work(self) -> None:
        """Test a client budget call is categorized as work."""
        assert (
            TaskExtractor.categorize_task("Call the client about the budget report", "")
            == TaskCategory.WORK
        )

    def test_personal_keywords(self) -> None:
        """Test personal keywords win."""
        assert TaskExtractor.categorize_task("Book the dentist appointment") == TaskCategory.PERSONAL

    def test_creative_keywords(self) -> None:
        """Test creative keywords win."""
        assert TaskExtractor.categorize_task("Write a blog article") == TaskCategory.CREATIVE

    def test_administrative_keywords(self) -> None:
        """Test administrative keywords win."""
        assert TaskExtractor.categorize_task("Renew the license paperwork") == (
            TaskCategory.ADMINISTRATIVE
        )

    def test_no_keywords_is_general(self) -> None:
        """Test no matches fall back to general."""
        assert TaskExtractor.categorize_task("Water the plants") == TaskCategory.GENERAL

    def test_tie_is_general(self) -> None:
        """Test equal top scores resolve to general."""
        assert TaskExtractor.categorize_task("meeting about the gym") == TaskCategory.GENERAL

    def test_work_on_personal_time_with_personal_score(self) -> None:
        """Test work winning on personal time becomes personal."""
        assert (
            TaskExtractor.categorize_task("Finish the client report and budget", "with family this weekend")
            == TaskCategory.PERSONAL
        )

    def test_work_on_personal_time_without_personal_score(self) -> None:
        """Test work winning on personal time without personal keywords becomes general."""
        assert (
            TaskExtractor.categorize_task("Review the client report", "this evening")
            == TaskCategory.GENERAL
        )


@pytest.mark.unit
class TestExtractDateFromContext:
    """Test date expression detection."""

    @pytest.mark.parametrize(
        "context,raw",
        [
            ("do it today please", "today"),
            ("Tomorrow works", "Tomorrow"),
            ("before next week", "next week"),
            ("on Monday morning", "Monday"),
            ("deadline 2025-03-12", "2025-03-12"),
            ("due 12/25", "12/25"),
            ("on 12 March", "12 March"),
            ("by March 3rd", "March 3rd"),
        ],
    )
    def test_recognized_dates(self, context: str, raw: str) -> None:
        """Test recognized formats return the raw match with fixed confidence."""
        result = TaskExtractor.extract_date_from_context(context)

        assert result is not None
        assert result.raw == raw
        assert result.confidence == 0.7

    @pytest.mark.parametrize("context", ["", None, "no dates here", "takes 1-3 hours"])
    def test_no_date_returns_none(self, context: str | None) -> None:
        """Test unmatched input returns None instead of raising."""
        assert TaskExtractor.extract_date_from_context(context) is None


@pytest.mark.unit
class TestDeadlineAdjustmentAndCategoryInfo:
    """Test deadline cue detection and category display info."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Can we postpone the review?", DeadlineAdjustment.POSTPONE),
            ("This is urgent now", DeadlineAdjustment.URGENT),
            ("I can't make it by Friday", DeadlineAdjustment.EXTEND),
            ("We're ahead of schedule", DeadlineAdjustment.ADVANCE),
            ("Nothing to see", None),
        ],
    )
    def test_detect_deadline_adjustment(
        self, text: str, expected: DeadlineAdjustment | None
    ) -> None:
        """Test deadline adjustment cues."""
        assert TaskExtractor.detect_deadline_adjustment(text) == expected

    def test_category_info(self) -> None:
        """Test known and unknown categories return display info."""
        assert TaskExtractor.get_category_info("work")["name"] == "Work"
        assert TaskExtractor.get_category_info("unknown")["name"] == "General"
