"""Tests for keyword heuristics."""

from datetime import datetime, timedelta

import pytest

from taskwise.core.heuristics import (
    basic_text_enhancement,
    categorize_by_keyword,
    clean_voice_transcript,
    due_date_urgency_score,
    estimate_by_keyword,
    extract_due_date,
    fallback_note_analysis,
    fallback_note_search,
    fallback_task_draft,
    fallback_voice_note,
    keyword_urgency_score,
    priority_by_keyword,
)
from taskwise.models import EnrichmentSource, NoteRecord, Priority


class TestCategorizeByKeyword:
    """Test keyword categorization."""

    def test_health_keywords(self):
        """Test dentist appointments land in health."""
        result = categorize_by_keyword("Emergency dentist appointment ASAP for severe pain")
        assert result.category == "health"
        assert result.confidence == 0.7

    def test_shopping_keywords(self):
        """Test grocery runs land in shopping."""
        result = categorize_by_keyword("Buy groceries tomorrow")
        assert result.category == "shopping"

    def test_first_matching_category_wins(self):
        """Test table order decides between matching categories."""
        # "meeting" (work) and "doctor" (health) both match
        result = categorize_by_keyword("Meeting about the doctor schedule")
        assert result.category == "work"

    def test_unmatched_text_is_general(self):
        """Test unmatched text falls back to general with low confidence."""
        result = categorize_by_keyword("Water the plants")
        assert result.category == "general"
        assert result.confidence == 0.3

    def test_matching_is_case_insensitive(self):
        """Test uppercase keywords still match."""
        assert categorize_by_keyword("PAY THE INSURANCE").category == "finance"

    @pytest.mark.parametrize(
        "text,category",
        [
            ("Book flight to Paris", "travel"),
            ("Hotel booking", "travel"),
            ("Finish homework", "education"),
            ("Read a book on statistics", "education"),
            ("Team meetings all week", "work"),
        ],
    )
    def test_keywords_match_whole_words(self, text, category):
        """Test keywords inside longer words do not decide the category."""
        assert categorize_by_keyword(text).category == category


class TestPriorityByKeyword:
    """Test keyword and due-date priority scoring."""

    def test_urgent_keywords_are_high(self, fixed_now):
        """Test urgent wording yields high priority."""
        result = priority_by_keyword(
            "Emergency dentist appointment ASAP for severe pain", now=fixed_now
        )
        assert result.priority == Priority.HIGH
        assert result.matched_keywords == ["asap", "emergency"]

    def test_due_tomorrow_without_urgency_is_medium(self, fixed_now):
        """Test a one-day due date alone stays in the medium band."""
        result = priority_by_keyword(
            "Buy groceries", fixed_now + timedelta(days=1), fixed_now
        )
        assert result.priority == Priority.MEDIUM
        assert result.score == 0.7

    def test_low_urgency_wording_is_low(self, fixed_now):
        """Test 'sometime' style wording drops to low."""
        result = priority_by_keyword("Maybe reorganize the garage sometime", now=fixed_now)
        assert result.priority == Priority.LOW
        assert result.score == 0.3

    def test_plain_text_is_medium(self, fixed_now):
        """Test text with no signals sits at the base score."""
        result = priority_by_keyword("Water the plants", now=fixed_now)
        assert result.priority == Priority.MEDIUM
        assert result.score == 0.5
        assert result.matched_keywords == []

    def test_due_within_three_days_adds_less(self, fixed_now):
        """Test a three-day due date gives the smaller boost."""
        result = priority_by_keyword("Water the plants", fixed_now + timedelta(days=2), fixed_now)
        assert result.score == 0.6

    def test_naive_due_date_is_treated_as_utc(self, fixed_now):
        """Test naive datetimes compare against an aware now."""
        naive_due = fixed_now.replace(tzinfo=None) + timedelta(hours=5)
        result = priority_by_keyword("Water the plants", naive_due, fixed_now)
        assert result.score == 0.7

    @pytest.mark.parametrize(
        "text,due_offset",
        [
            ("urgent: renew passport", None),
            ("urgent but maybe optional", None),
            ("deadline for the report", timedelta(days=30)),
            ("critical bug, fix immediately", timedelta(days=-2)),
        ],
    )
    def test_urgent_keyword_always_high(self, fixed_now, text, due_offset):
        """Test any urgent keyword puts the task in the high band."""
        due = fixed_now + due_offset if due_offset else None
        assert priority_by_keyword(text, due, fixed_now).priority == Priority.HIGH

    @pytest.mark.parametrize("text", ["Brush the dog", "Unimportant paperwork"])
    def test_urgent_keyword_inside_word_is_ignored(self, fixed_now, text):
        """Test words that merely contain an urgent keyword stay medium."""
        result = priority_by_keyword(text, now=fixed_now)
        assert result.priority == Priority.MEDIUM
        assert result.matched_keywords == []
        assert keyword_urgency_score(text) == 0.5

    def test_confidence_scales_with_margin(self, fixed_now):
        """Test scores far from a band edge get more confidence."""
        near_edge = priority_by_keyword("urgent", now=fixed_now)
        far_from_edge = priority_by_keyword("urgent", fixed_now + timedelta(hours=1), fixed_now)
        assert far_from_edge.confidence > near_edge.confidence
        assert 0.4 <= near_edge.confidence <= 0.7
        assert far_from_edge.confidence == 0.7


class TestUrgencyScores:
    """Test the sub-scores used by combined prioritization."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("urgent fix", 0.9),
            ("needed soon", 0.6),
            ("optional cleanup", 0.2),
            ("read a novel", 0.5),
        ],
    )
    def test_keyword_urgency_score(self, text, expected):
        """Test keyword tiers map to fixed scores."""
        assert keyword_urgency_score(text) == expected

    @pytest.mark.parametrize(
        "offset,expected",
        [
            (timedelta(hours=-1), 1.0),
            (timedelta(hours=2), 0.9),
            (timedelta(hours=48), 0.7),
            (timedelta(hours=100), 0.5),
            (timedelta(hours=200), 0.3),
        ],
    )
    def test_due_date_urgency_score(self, fixed_now, offset, expected):
        """Test due-date proximity tiers."""
        assert due_date_urgency_score(fixed_now + offset, fixed_now) == expected

    def test_no_due_date(self, fixed_now):
        """Test missing due date scores low."""
        assert due_date_urgency_score(None, fixed_now) == 0.3


class TestEstimateByKeyword:
    """Test the duration tier table."""

    @pytest.mark.parametrize(
        "text,minutes",
        [
            ("Call mom", 15),
            ("Review pull request", 60),
            ("Research competitors", 180),
            ("Water flowers", 30),
        ],
    )
    def test_tiers(self, text, minutes):
        """Test quick, medium, long and default tiers."""
        assert estimate_by_keyword(text) == minutes


class TestExtractDueDate:
    """Test relative date resolution."""

    def test_relative_phrases(self, fixed_now):
        """Test today, tomorrow and next week."""
        assert extract_due_date("do it today", fixed_now) == fixed_now
        assert extract_due_date("do it tomorrow", fixed_now) == fixed_now + timedelta(days=1)
        assert extract_due_date("next week", fixed_now) == fixed_now + timedelta(days=7)

    def test_weekday_names(self, fixed_now):
        """Test weekday names resolve to the next such day."""
        # fixed_now is a Wednesday
        assert extract_due_date("by friday", fixed_now) == fixed_now + timedelta(days=2)
        assert extract_due_date("on wednesday", fixed_now) == fixed_now + timedelta(days=7)

    def test_no_date(self, fixed_now):
        """Test text without a date phrase."""
        assert extract_due_date("clean the desk", fixed_now) is None


class TestFallbackTaskDraft:
    """Test the fallback parse of free text."""

    def test_groceries_tomorrow(self, fixed_now):
        """Test the grocery scenario end to end."""
        draft = fallback_task_draft("Buy groceries tomorrow", fixed_now)
        assert draft.title == "Buy groceries tomorrow"
        assert draft.description == ""
        assert draft.category == "shopping"
        assert draft.priority == Priority.MEDIUM
        assert draft.due_date == fixed_now + timedelta(days=1)
        assert draft.source == EnrichmentSource.HEURISTIC_FALLBACK

    def test_long_text_is_truncated(self, fixed_now):
        """Test titles are truncated and the full text kept as description."""
        text = "Write the quarterly summary for the board including all regional figures"
        draft = fallback_task_draft(text, fixed_now)
        assert draft.title.endswith("...")
        assert len(draft.title) <= 53
        assert draft.description == text


class TestVoiceAndNoteFallbacks:
    """Test the text-processing fallbacks."""

    def test_clean_voice_transcript(self):
        """Test filler words and extra spaces are removed."""
        assert clean_voice_transcript("um so I like need to uh call the bank") == (
            "so I need to call the bank"
        )

    def test_fallback_voice_note(self):
        """Test the voice note fallback result."""
        result = fallback_voice_note("um call the dentist")
        assert result.cleaned_text == "call the dentist"
        assert result.suggested_title == "call the dentist"
        assert result.word_count == 4
        assert result.confidence == 0.7
        assert result.source == EnrichmentSource.HEURISTIC_FALLBACK

    def test_fallback_voice_note_with_only_fillers(self):
        """Test a transcript of only filler words still gets a title."""
        result = fallback_voice_note("um uh")
        assert result.cleaned_text == ""
        assert result.suggested_title == "Voice note"

    def test_basic_text_enhancement(self):
        """Test sentence capitalization and final punctuation."""
        assert basic_text_enhancement("hello there. how are you") == (
            "Hello there. How are you."
        )

    def test_fallback_note_analysis(self):
        """Test the basic note analysis."""
        analysis = fallback_note_analysis(
            "Project kickoff notes", "We agreed on scope and the first milestone date"
        )
        assert analysis.suggested_category == "work"
        assert analysis.suggested_tags == ["project", "kickoff", "notes"]
        assert analysis.complexity == "simple"
        assert analysis.reading_time == 1
        assert analysis.source == EnrichmentSource.HEURISTIC_FALLBACK

    def test_fallback_note_search_ranks_by_score(self):
        """Test title, content and tag matches add up."""
        notes = [
            NoteRecord(id="a", title="Budget plan", content="numbers"),
            NoteRecord(id="b", title="Groceries", content="budget for food", tags=["budget"]),
            NoteRecord(id="c", title="Holiday", content="beach"),
        ]
        hits = fallback_note_search("budget", notes)
        assert [hit.note.id for hit in hits] == ["b", "a"]
        assert hits[0].relevance_score == 1.0
        assert hits[1].relevance_score == 0.8

    def test_fallback_note_search_blank_query(self):
        """Test a blank query matches nothing."""
        assert fallback_note_search("  ", [NoteRecord(title="x")]) == []
