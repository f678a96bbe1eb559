"""Pydantic models for the taskwise enrichment pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnrichmentSource(str, Enum):
    """Which path produced a result."""

    EXTERNAL_AI = "external-ai"
    HEURISTIC_FALLBACK = "heuristic-fallback"


class TaskType(str, Enum):
    """Kind of item a parsed draft describes."""

    TASK = "task"
    EVENT = "event"
    REMINDER = "reminder"


class TaskStatus(str, Enum):
    """Status of a persisted task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class AIProvider(str, Enum):
    """Supported generative text providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


DEFAULT_CATEGORY = "general"

TASK_CATEGORIES = (
    "work",
    "personal",
    "health",
    "finance",
    "education",
    "shopping",
    "travel",
    "entertainment",
    "household",
    "emergency",
)


def normalize_category(value: Any) -> str:
    """Map a free-form category onto the closed set, defaulting to general."""
    if not isinstance(value, str):
        return DEFAULT_CATEGORY
    category = value.strip().lower()
    return category if category in TASK_CATEGORIES else DEFAULT_CATEGORY


class EnrichmentRequest(BaseModel):
    """Input for task enrichment."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="", max_length=2000)
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("title must not be blank")
        return stripped

    @field_validator("description", mode="before")
    @classmethod
    def description_default(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def text(self) -> str:
        """Title and description joined for keyword matching."""
        return f"{self.title} {self.description}".strip()

    class Config:
        frozen = True


class EnrichmentResult(BaseModel):
    """Normalized enrichment record for a task draft."""

    category: str = DEFAULT_CATEGORY
    category_confidence: float = Field(..., ge=0.0, le=1.0)
    priority: Priority = Priority.MEDIUM
    priority_confidence: float = Field(..., ge=0.0, le=1.0)
    estimated_minutes: int = Field(..., ge=0)
    reasoning: str | None = None
    source: EnrichmentSource
    processed_at: datetime = Field(default_factory=utc_now)

    @field_validator("category")
    @classmethod
    def category_in_closed_set(cls, v: str) -> str:
        if v != DEFAULT_CATEGORY and v not in TASK_CATEGORIES:
            raise ValueError(f"unknown category: {v}")
        return v

    class Config:
        frozen = True


class CategoryPrediction(BaseModel):
    """A single category guess with its confidence."""

    category: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class PriorityAssessment(BaseModel):
    """Priority decision with the score that produced it."""

    priority: Priority
    confidence: float = Field(..., ge=0.0, le=1.0)
    score: float
    matched_keywords: list[str] = Field(default_factory=list)


class ClassificationResult(BaseModel):
    """Zero-shot classification output, labels ordered by score."""

    labels: list[str]
    scores: list[float]

    @property
    def top(self) -> tuple[str, float] | None:
        if not self.labels:
            return None
        return self.labels[0], self.scores[0]


class SentimentResult(BaseModel):
    """Top sentiment label plus the full label distribution."""

    label: str
    score: float = Field(..., ge=0.0, le=1.0)
    distribution: dict[str, float] = Field(default_factory=dict)


class ParsedTaskDraft(BaseModel):
    """Structured task produced from free text."""

    title: str = Field(..., min_length=1)
    description: str = ""
    due_date: datetime | None = None
    type: TaskType = TaskType.TASK
    estimated_minutes: int = Field(default=30, ge=0)
    category: str = DEFAULT_CATEGORY
    priority: Priority = Priority.MEDIUM
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    reasoning: str | None = None
    source: EnrichmentSource = EnrichmentSource.HEURISTIC_FALLBACK


class TaskRecord(BaseModel):
    """Read-only view of a task handed over by the persistence layer."""

    id: str | None = Field(default=None, alias="_id")
    title: str
    description: str = ""
    category: str | None = None
    priority: str | None = None
    status: str = TaskStatus.PENDING.value
    due_date: datetime | None = Field(default=None, alias="dueDate")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    estimated_minutes: int | None = Field(default=None, alias="estimatedTime")

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("description", mode="before")
    @classmethod
    def description_default(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    class Config:
        populate_by_name = True


class NoteRecord(BaseModel):
    """Read-only view of a note handed over by the persistence layer."""

    id: str | None = Field(default=None, alias="_id")
    title: str
    content: str = ""
    category: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    class Config:
        populate_by_name = True


class UserPatternSummary(BaseModel):
    """Aggregated history of a user's tasks.

    ``weekly_category_presence`` is keyed by ``datetime.weekday()`` of the
    creation time: 0 is Monday and 6 is Sunday.
    """

    weekly_category_presence: dict[int, set[str]] = Field(
        default_factory=dict, description="Weekday (0 = Monday) to categories created that day"
    )
    category_frequency: dict[str, int] = Field(default_factory=dict)
    completion_durations: dict[str, list[int]] = Field(
        default_factory=dict, description="Milliseconds from creation to completion"
    )


class NoteAnalysis(BaseModel):
    """Summary and classification of a note."""

    summary: str
    sentiment: Literal["positive", "negative", "neutral"] = "neutral"
    mood: str = "calm"
    suggested_category: str = DEFAULT_CATEGORY
    suggested_tags: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)
    reading_time: int = Field(default=1, ge=0, description="Minutes")
    complexity: Literal["simple", "medium", "complex"] = "simple"
    insights: str = ""
    connections: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    source: EnrichmentSource = EnrichmentSource.HEURISTIC_FALLBACK


class VoiceNoteResult(BaseModel):
    """Cleaned-up voice transcription."""

    cleaned_text: str
    suggested_title: str
    word_count: int = Field(..., ge=0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    detected_topics: list[str] = Field(default_factory=list)
    improvements: str = ""
    original_length: int = Field(..., ge=0)
    cleaned_length: int = Field(..., ge=0)
    source: EnrichmentSource = EnrichmentSource.HEURISTIC_FALLBACK
    processed_at: datetime = Field(default_factory=utc_now)


class NoteSearchHit(BaseModel):
    """A note matched by a search query."""

    note: NoteRecord
    relevance_score: float = Field(..., ge=0.0)
    relevance_reason: str
    matched_content: str = ""


class BatchTaskAnalysis(BaseModel):
    """Per-task outcome of a batch re-analysis."""

    task_id: str | None
    title: str
    current_category: str | None = None
    current_priority: str | None = None
    suggested_category: str
    category_confidence: float
    suggested_priority: Priority
    priority_confidence: float
    should_update_category: bool = False
    should_update_priority: bool = False
    source: EnrichmentSource


class TaskInsights(BaseModel):
    """Distribution overview of a task list with textual insights."""

    total_tasks: int = Field(..., ge=0)
    category_distribution: dict[str, int] = Field(default_factory=dict)
    priority_distribution: dict[str, int] = Field(default_factory=dict)
    total_estimated_minutes: int = 0
    average_estimated_minutes: float = 0.0
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    source: EnrichmentSource = EnrichmentSource.HEURISTIC_FALLBACK


class Suggestion(BaseModel):
    """Actionable suggestion derived from a user's task list."""

    type: Literal["urgent_task", "pattern_suggestion", "overdue_analysis"]
    message: str
    recommendation: str | None = None
    confidence: float | None = None
    tasks: list[TaskRecord] = Field(default_factory=list)
    suggested_categories: list[str] = Field(default_factory=list)


class StreamEvent(BaseModel):
    """Event emitted while a streamed parse is in flight."""

    kind: Literal["chunk", "complete"]
    text: str = ""
    full_text: str = ""
    draft: ParsedTaskDraft | None = None
