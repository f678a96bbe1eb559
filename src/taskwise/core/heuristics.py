"""Keyword and rule based fallbacks for every AI feature.

Everything here is pure: no I/O, and any dependency on the current time is
passed in as ``now``.
"""

import re
from datetime import datetime, timedelta, timezone

from ..models import (
    DEFAULT_CATEGORY,
    CategoryPrediction,
    EnrichmentSource,
    NoteAnalysis,
    NoteRecord,
    NoteSearchHit,
    ParsedTaskDraft,
    Priority,
    PriorityAssessment,
    TaskType,
    VoiceNoteResult,
    utc_now,
)

# Ordered: the first category with a matching keyword wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...], float], ...] = (
    (
        "work",
        ("work", "job", "office", "meeting", "project", "client", "business",
         "report", "presentation", "email"),
        0.7,
    ),
    (
        "health",
        ("doctor", "hospital", "medicine", "health", "appointment", "dentist",
         "therapy", "gym", "exercise", "checkup"),
        0.7,
    ),
    (
        "finance",
        ("bank", "money", "payment", "bill", "budget", "insurance", "tax",
         "invoice"),
        0.7,
    ),
    ("travel", ("flight", "hotel", "vacation", "trip", "booking", "travel"), 0.6),
    (
        "education",
        ("study", "course", "learn", "homework", "exam", "research", "book"),
        0.6,
    ),
    (
        "shopping",
        ("buy", "shop", "store", "purchase", "grocery", "groceries", "market",
         "order"),
        0.7,
    ),
    (
        "household",
        ("clean", "repair", "maintenance", "organize", "laundry", "dishes"),
        0.6,
    ),
    ("entertainment", ("movie", "game", "party", "concert", "show", "fun"), 0.5),
    ("personal", ("family", "friend", "personal", "home", "call", "visit"), 0.5),
)
UNMATCHED_CATEGORY_CONFIDENCE = 0.3

URGENT_KEYWORDS = (
    "urgent", "asap", "emergency", "critical", "deadline", "important", "rush",
    "immediately",
)
MODERATE_KEYWORDS = ("soon", "priority", "needed", "required", "must")
LOW_URGENCY_KEYWORDS = (
    "sometime", "eventually", "when possible", "low priority", "nice to have",
    "optional", "maybe",
)

# priority_by_keyword scoring
BASE_PRIORITY_SCORE = 0.5
URGENT_KEYWORD_BOOST = 0.3
LOW_KEYWORD_PENALTY = 0.2
DUE_WITHIN_DAY_BOOST = 0.2
DUE_WITHIN_THREE_DAYS_BOOST = 0.1
HEURISTIC_HIGH_THRESHOLD = 0.7
HEURISTIC_LOW_THRESHOLD = 0.4
MIN_HEURISTIC_CONFIDENCE = 0.4
MAX_MARGIN_BONUS = 0.3

QUICK_KEYWORDS = ("call", "email", "text", "quick", "check", "send")
MEDIUM_KEYWORDS = ("meeting", "review", "plan", "write", "create", "update")
LONG_KEYWORDS = ("research", "develop", "design", "analyze", "report", "study")
QUICK_MINUTES = 15
MEDIUM_MINUTES = 60
LONG_MINUTES = 180
DEFAULT_MINUTES = 30

FALLBACK_TITLE_LENGTH = 50
FALLBACK_DRAFT_CONFIDENCE = 0.3
FALLBACK_VOICE_CONFIDENCE = 0.7
FILLER_WORDS = re.compile(r"\b(um|uh|like|you know|actually)\b", re.IGNORECASE)
WORDS_PER_MINUTE = 200

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
)


def as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hours_until(due_date: datetime, now: datetime) -> float:
    return (as_aware(due_date) - as_aware(now)).total_seconds() / 3600


# Whole words only, allowing simple plural and verb endings
KEYWORD_SUFFIXES = r"(?:s|es|ed|ing)?"


def _has_keyword(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}{KEYWORD_SUFFIXES}\b", text) is not None


def _matches_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(_has_keyword(text, keyword) for keyword in keywords)


def _truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def categorize_by_keyword(text: str) -> CategoryPrediction:
    """Return the first category with a whole-word keyword match in the text."""
    lowered = text.lower()
    for category, keywords, confidence in CATEGORY_KEYWORDS:
        if _matches_any(lowered, keywords):
            return CategoryPrediction(category=category, confidence=confidence)
    return CategoryPrediction(
        category=DEFAULT_CATEGORY, confidence=UNMATCHED_CATEGORY_CONFIDENCE
    )


def _margin_confidence(score: float) -> float:
    """Confidence grows with the distance from the nearest band edge."""
    if score > HEURISTIC_HIGH_THRESHOLD:
        margin = score - HEURISTIC_HIGH_THRESHOLD
    elif score < HEURISTIC_LOW_THRESHOLD:
        margin = HEURISTIC_LOW_THRESHOLD - score
    else:
        margin = min(score - HEURISTIC_LOW_THRESHOLD, HEURISTIC_HIGH_THRESHOLD - score)
    return round(MIN_HEURISTIC_CONFIDENCE + min(max(margin, 0.0), MAX_MARGIN_BONUS), 4)


def priority_by_keyword(
    text: str, due_date: datetime | None = None, now: datetime | None = None
) -> PriorityAssessment:
    """Score urgency from keywords and due-date proximity."""
    lowered = text.lower()
    score = BASE_PRIORITY_SCORE

    matched = [keyword for keyword in URGENT_KEYWORDS if _has_keyword(lowered, keyword)]
    if matched:
        score += URGENT_KEYWORD_BOOST
    elif _matches_any(lowered, LOW_URGENCY_KEYWORDS):
        score -= LOW_KEYWORD_PENALTY

    if due_date is not None:
        days = _hours_until(due_date, now or utc_now()) / 24
        if days <= 1:
            score += DUE_WITHIN_DAY_BOOST
        elif days <= 3:
            score += DUE_WITHIN_THREE_DAYS_BOOST

    score = round(score, 4)
    if score > HEURISTIC_HIGH_THRESHOLD:
        priority = Priority.HIGH
    elif score < HEURISTIC_LOW_THRESHOLD:
        priority = Priority.LOW
    else:
        priority = Priority.MEDIUM

    return PriorityAssessment(
        priority=priority,
        confidence=_margin_confidence(score),
        score=score,
        matched_keywords=matched,
    )


def keyword_urgency_score(text: str) -> float:
    """Urgency implied by wording alone, in [0, 1]."""
    lowered = text.lower()
    if _matches_any(lowered, URGENT_KEYWORDS):
        return 0.9
    if _matches_any(lowered, MODERATE_KEYWORDS):
        return 0.6
    if _matches_any(lowered, LOW_URGENCY_KEYWORDS):
        return 0.2
    return 0.5


def due_date_urgency_score(due_date: datetime | None, now: datetime | None = None) -> float:
    """Urgency implied by how soon the task is due, in [0, 1]."""
    if due_date is None:
        return 0.3
    hours = _hours_until(due_date, now or utc_now())
    if hours < 0:
        return 1.0
    if hours < 24:
        return 0.9
    if hours < 72:
        return 0.7
    if hours < 168:
        return 0.5
    return 0.3


def estimate_by_keyword(text: str) -> int:
    """Minutes for a task, from a three-tier verb table."""
    lowered = text.lower()
    if _matches_any(lowered, QUICK_KEYWORDS):
        return QUICK_MINUTES
    if _matches_any(lowered, MEDIUM_KEYWORDS):
        return MEDIUM_MINUTES
    if _matches_any(lowered, LONG_KEYWORDS):
        return LONG_MINUTES
    return DEFAULT_MINUTES


def extract_due_date(text: str, now: datetime | None = None) -> datetime | None:
    """Resolve simple relative date phrases against ``now``."""
    now = now or utc_now()
    lowered = text.lower()
    if "tomorrow" in lowered:
        return now + timedelta(days=1)
    if "today" in lowered or "tonight" in lowered:
        return now
    if "next week" in lowered:
        return now + timedelta(days=7)
    for index, name in enumerate(WEEKDAYS):
        if re.search(rf"\b{name}\b", lowered):
            days_ahead = (index - now.weekday()) % 7 or 7
            return now + timedelta(days=days_ahead)
    return None


def fallback_task_draft(text: str, now: datetime | None = None) -> ParsedTaskDraft:
    """Build a draft from raw text when no model output is usable."""
    text = text.strip()
    title = _truncate(text, FALLBACK_TITLE_LENGTH)
    description = text if title != text else ""
    due_date = extract_due_date(text, now)
    category = categorize_by_keyword(text)
    priority = priority_by_keyword(text, due_date, now)
    return ParsedTaskDraft(
        title=title,
        description=description,
        due_date=due_date,
        type=TaskType.TASK,
        estimated_minutes=estimate_by_keyword(text),
        category=category.category,
        priority=priority.priority,
        confidence=FALLBACK_DRAFT_CONFIDENCE,
        source=EnrichmentSource.HEURISTIC_FALLBACK,
    )


def clean_voice_transcript(text: str) -> str:
    """Strip filler words and collapse whitespace."""
    cleaned = FILLER_WORDS.sub("", text)
    cleaned = re.sub(r"\s+([,.!?])", r"\1", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def fallback_voice_note(text: str) -> VoiceNoteResult:
    """Clean a transcription without a model."""
    cleaned = clean_voice_transcript(text)
    return VoiceNoteResult(
        cleaned_text=cleaned,
        suggested_title=_truncate(cleaned, FALLBACK_TITLE_LENGTH) or "Voice note",
        word_count=len(text.split()),
        confidence=FALLBACK_VOICE_CONFIDENCE,
        detected_topics=[DEFAULT_CATEGORY],
        improvements="Basic cleaning applied - removed filler words and extra spaces",
        original_length=len(text),
        cleaned_length=len(cleaned),
        source=EnrichmentSource.HEURISTIC_FALLBACK,
    )


def basic_text_enhancement(text: str) -> str:
    """Capitalize sentences and make sure the text ends with punctuation."""
    text = text.strip()
    if not text:
        return text
    enhanced = text[0].upper() + text[1:]
    enhanced = re.sub(
        r"([.!?])\s*([a-z])",
        lambda match: f"{match.group(1)} {match.group(2).upper()}",
        enhanced,
    )
    if not re.search(r"[.!?]$", enhanced):
        enhanced += "."
    return enhanced


def fallback_note_analysis(title: str, content: str) -> NoteAnalysis:
    """Summarize a note by truncation and word counts."""
    word_count = len(content.split())
    if word_count > 500:
        complexity = "complex"
    elif word_count > 200:
        complexity = "medium"
    else:
        complexity = "simple"

    return NoteAnalysis(
        summary=_truncate(content, 100),
        suggested_category=categorize_by_keyword(f"{title} {content}").category,
        suggested_tags=title.lower().split()[:3],
        key_points=[_truncate(content, 50)] if content else [],
        reading_time=max(1, -(-word_count // WORDS_PER_MINUTE)),
        complexity=complexity,
        insights="AI analysis not available - using basic text analysis",
        source=EnrichmentSource.HEURISTIC_FALLBACK,
    )


def fallback_note_search(query: str, notes: list[NoteRecord]) -> list[NoteSearchHit]:
    """Rank notes by plain substring matches on title, content and tags."""
    needle = query.lower().strip()
    if not needle:
        return []

    hits = []
    for note in notes:
        score = 0.0
        if needle in note.title.lower():
            score += 0.8
        if needle in note.content.lower():
            score += 0.6
        if any(needle in tag.lower() for tag in note.tags):
            score += 0.4
        if score > 0:
            hits.append(
                NoteSearchHit(
                    note=note,
                    relevance_score=round(score, 4),
                    relevance_reason="Basic text matching",
                    matched_content=_truncate(note.content, 100),
                )
            )
    return sorted(hits, key=lambda hit: hit.relevance_score, reverse=True)
