"""Main service for AI task and note enrichment."""

import asyncio
import logging
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from ..core.config import AppConfig, get_app_config
from ..core.exceptions import EnrichmentError, IncompleteResponse, InvalidRequest
from ..core.heuristics import (
    basic_text_enhancement,
    categorize_by_keyword,
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
from ..core.patterns import (
    analyze_patterns,
    average_completion_minutes,
    build_distribution,
    day_name,
    overdue_tasks,
    simple_insights,
)
from ..models import (
    DEFAULT_CATEGORY,
    BatchTaskAnalysis,
    EnrichmentRequest,
    EnrichmentResult,
    EnrichmentSource,
    NoteAnalysis,
    NoteRecord,
    NoteSearchHit,
    ParsedTaskDraft,
    Priority,
    StreamEvent,
    Suggestion,
    TaskInsights,
    TaskRecord,
    TaskType,
    UserPatternSummary,
    VoiceNoteResult,
    normalize_category,
    utc_now,
)
from .client import AIAdapter, AIClientAdapter
from .parser import extract_json, validate_required_fields
from .prompts import (
    CATEGORY_LABELS,
    note_analysis_prompt,
    note_search_prompt,
    streaming_parse_prompt,
    task_enrichment_prompt,
    task_insights_prompt,
    task_parsing_prompt,
    transcription_enhancement_prompt,
    voice_note_prompt,
)

logger = logging.getLogger(__name__)

STREAM_END_MARKER = "[DONE]"

# Expected urgency contributed by each sentiment label
SENTIMENT_URGENCY = {"negative": 0.7, "neutral": 0.3, "positive": 0.1}

PRIORITY_ALIASES = {"urgent": Priority.HIGH, "critical": Priority.HIGH}

DEFAULT_ANALYSIS_TYPES = ["summary", "sentiment", "categorization", "keywords"]
PATTERN_SUGGESTION_CONFIDENCE = 0.8
URGENT_SUGGESTION_SAMPLE = 3
OVERDUE_SUGGESTION_SAMPLE = 3
INSIGHT_SAMPLE_SIZE = 10


def _coerce_priority(value: Any) -> Priority:
    """Map a model's priority word onto ``Priority``."""
    if not isinstance(value, str):
        raise IncompleteResponse(f"Priority is not a string: {value!r}")
    word = value.strip().lower()
    if word in PRIORITY_ALIASES:
        return PRIORITY_ALIASES[word]
    try:
        return Priority(word)
    except ValueError as e:
        raise IncompleteResponse(f"Unknown priority: {value!r}") from e


def _coerce_minutes(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    minutes = int(number)
    return minutes if minutes >= 0 else None


def _coerce_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _coerce_confidence(value: Any, default: float) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(confidence):
        return default
    return min(max(confidence, 0.0), 1.0)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


class EnrichmentService:
    """Attaches category, priority and time estimates to tasks and notes.

    Every operation tries the external AI adapter first and degrades to the
    keyword heuristics when the adapter is unavailable or its output is
    unusable. Only blank input raises; AI failures never reach the caller.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        adapter: AIAdapter | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or get_app_config()
        self.adapter = adapter or AIClientAdapter(self.config.ai, sleep=sleep)
        self._clock = clock
        self._sleep = sleep

    @property
    def scoring(self):
        return self.config.scoring

    @staticmethod
    def _require_text(text: str | None, field: str = "text") -> str:
        if text is None or not text.strip():
            raise InvalidRequest(f"{field} must not be blank")
        return text.strip()

    # Task enrichment

    async def enrich_task(
        self,
        request: EnrichmentRequest,
        user_patterns: UserPatternSummary | None = None,
    ) -> EnrichmentResult:
        """
        Enrich a task with category, priority and a time estimate.

        Args:
            request: Validated task draft
            user_patterns: Optional history used for duration estimates

        Returns:
            EnrichmentResult tagged with the path that produced it
        """
        if not self.adapter.generation_available:
            logger.info("AI unavailable, using keyword heuristics for %r", request.title)
            return self._heuristic_enrichment(request, user_patterns)

        try:
            return await self._ai_enrichment(request, user_patterns)
        except EnrichmentError as e:
            logger.warning("AI enrichment failed, falling back to heuristics: %s", e)
        except Exception:
            logger.exception("Unexpected error during AI enrichment")
        return self._heuristic_enrichment(request, user_patterns)

    async def _ai_enrichment(
        self, request: EnrichmentRequest, user_patterns: UserPatternSummary | None
    ) -> EnrichmentResult:
        due = request.due_date.isoformat() if request.due_date else None
        raw = await self.adapter.generate_structured(
            task_enrichment_prompt(request.title, request.description, due)
        )
        data = validate_required_fields(extract_json(raw).unwrap(), ["category", "priority"])

        category = normalize_category(data["category"])
        priority = _coerce_priority(data["priority"])
        minutes = _coerce_minutes(data.get("estimatedMinutes"))
        if minutes is None:
            minutes = self.estimate_duration(
                request.title, request.description, category, user_patterns
            )

        reasoning = data.get("reasoning")
        return EnrichmentResult(
            category=category,
            category_confidence=self.scoring.ai_confidence,
            priority=priority,
            priority_confidence=self.scoring.ai_confidence,
            estimated_minutes=minutes,
            reasoning=str(reasoning) if reasoning else None,
            source=EnrichmentSource.EXTERNAL_AI,
            processed_at=self._clock(),
        )

    def _heuristic_enrichment(
        self, request: EnrichmentRequest, user_patterns: UserPatternSummary | None
    ) -> EnrichmentResult:
        category = categorize_by_keyword(request.text)
        priority = priority_by_keyword(request.text, request.due_date, self._clock())
        return EnrichmentResult(
            category=category.category,
            category_confidence=category.confidence,
            priority=priority.priority,
            priority_confidence=priority.confidence,
            estimated_minutes=self.estimate_duration(
                request.title, request.description, category.category, user_patterns
            ),
            reasoning="Keyword-based analysis (AI unavailable)",
            source=EnrichmentSource.HEURISTIC_FALLBACK,
            processed_at=self._clock(),
        )

    async def categorize_and_prioritize(
        self,
        title: str,
        description: str = "",
        due_date: datetime | None = None,
    ) -> EnrichmentResult:
        """Classify and score urgency with the inference models.

        Classification and sentiment run concurrently; each term falls back to
        its keyword counterpart on its own.
        """
        title = self._require_text(title, "title")
        text = f"{title} {description or ''}".strip()
        now = self._clock()

        classification = sentiment = None
        if self.adapter.inference_available:
            classification, sentiment = await asyncio.gather(
                self.adapter.classify(text, list(CATEGORY_LABELS)),
                self.adapter.sentiment(text),
                return_exceptions=True,
            )
            if isinstance(classification, BaseException):
                logger.warning("Classification failed, using keywords: %s", classification)
                classification = None
            if isinstance(sentiment, BaseException):
                logger.warning("Sentiment failed, using keywords: %s", sentiment)
                sentiment = None

        top = classification.top if classification is not None else None
        if top is not None:
            label, score = top
            category = CATEGORY_LABELS.get(label, normalize_category(label))
            category_confidence = min(max(score, 0.0), 1.0)
        else:
            keyword_category = categorize_by_keyword(text)
            category = keyword_category.category
            category_confidence = keyword_category.confidence

        keyword_score = keyword_urgency_score(text)
        if sentiment is not None:
            sentiment_score = sum(
                SENTIMENT_URGENCY.get(label, 0.0) * probability
                for label, probability in (
                    sentiment.distribution or {sentiment.label: sentiment.score}
                ).items()
            )
        else:
            sentiment_score = keyword_score
        date_score = due_date_urgency_score(due_date, now)

        score = round(
            self.scoring.sentiment_weight * sentiment_score
            + self.scoring.keyword_weight * keyword_score
            + self.scoring.due_date_weight * date_score,
            4,
        )
        if score > self.scoring.high_threshold:
            priority = Priority.HIGH
        elif score < self.scoring.low_threshold:
            priority = Priority.LOW
        else:
            priority = Priority.MEDIUM

        if sentiment is not None:
            priority_confidence = self.scoring.sentiment_priority_confidence
        else:
            priority_confidence = priority_by_keyword(text, due_date, now).confidence

        any_ai = classification is not None or sentiment is not None
        return EnrichmentResult(
            category=category,
            category_confidence=round(category_confidence, 4),
            priority=priority,
            priority_confidence=priority_confidence,
            estimated_minutes=self.estimate_duration(title, description, category),
            reasoning=(
                f"score={score} (sentiment={round(sentiment_score, 4)}, "
                f"keywords={keyword_score}, due={date_score})"
            ),
            source=(
                EnrichmentSource.EXTERNAL_AI if any_ai else EnrichmentSource.HEURISTIC_FALLBACK
            ),
            processed_at=now,
        )

    def estimate_duration(
        self,
        title: str,
        description: str = "",
        category: str | None = None,
        user_patterns: UserPatternSummary | None = None,
    ) -> int:
        """Historical average for the category, else the keyword tier table."""
        historical = average_completion_minutes(user_patterns, category)
        if historical is not None:
            return historical
        return estimate_by_keyword(f"{title} {description or ''}")

    # Natural language parsing

    async def parse_natural_language_task(self, text: str) -> ParsedTaskDraft:
        """Turn free text into a structured task draft."""
        text = self._require_text(text)
        now = self._clock()
        if not self.adapter.generation_available:
            return fallback_task_draft(text, now)

        try:
            raw = await self.adapter.generate_structured(
                task_parsing_prompt(text, now.date().isoformat())
            )
        except EnrichmentError as e:
            logger.warning("Task parsing failed, using fallback draft: %s", e)
            return fallback_task_draft(text, now)
        return self._draft_from_text(raw, text, now)

    async def parse_natural_language_task_streaming(
        self, text: str
    ) -> AsyncIterator[StreamEvent]:
        """Stream the model's reasoning, then emit one completed draft.

        Chunks are accumulated until the end marker or the end of the stream
        and parsed once; a failed stream still completes with a fallback draft.
        """
        text = self._require_text(text)
        now = self._clock()
        chunks: list[str] = []

        if self.adapter.generation_available:
            try:
                async for chunk in self.adapter.stream_text(
                    streaming_parse_prompt(text, now.date().isoformat())
                ):
                    if STREAM_END_MARKER in chunk:
                        head = chunk.split(STREAM_END_MARKER, 1)[0]
                        if head:
                            chunks.append(head)
                            yield StreamEvent(kind="chunk", text=head)
                        break
                    chunks.append(chunk)
                    yield StreamEvent(kind="chunk", text=chunk)
            except EnrichmentError as e:
                logger.warning("Streaming parse failed after %d chunks: %s", len(chunks), e)

        full_text = "".join(chunks)
        yield StreamEvent(
            kind="complete",
            full_text=full_text,
            draft=self._draft_from_text(full_text, text, now),
        )

    def _draft_from_text(self, raw: str, text: str, now: datetime) -> ParsedTaskDraft:
        """Build a draft from model output, or the fallback draft if unusable."""
        parsed = extract_json(raw)
        if not parsed.is_ok:
            logger.warning("Unusable task parse response: %s", parsed.error)
            return fallback_task_draft(text, now)

        data = parsed.value
        try:
            validate_required_fields(data, ["title"])
            priority = (
                _coerce_priority(data["urgency"])
                if data.get("urgency")
                else priority_by_keyword(text, None, now).priority
            )
            due_date = _coerce_datetime(data.get("dueDate"))
            if due_date is None:
                due_date = extract_due_date(text, now)
            try:
                task_type = TaskType(str(data.get("type", "task")).lower())
            except ValueError:
                task_type = TaskType.TASK
            minutes = _coerce_minutes(data.get("estimatedDuration"))
            reasoning = data.get("reasoning")
            return ParsedTaskDraft(
                title=str(data["title"]).strip(),
                description=str(data.get("description") or ""),
                due_date=due_date,
                type=task_type,
                estimated_minutes=minutes if minutes is not None else estimate_by_keyword(text),
                category=normalize_category(data.get("category")),
                priority=priority,
                confidence=self.scoring.ai_confidence,
                reasoning=str(reasoning) if reasoning else None,
                source=EnrichmentSource.EXTERNAL_AI,
            )
        except (EnrichmentError, ValidationError) as e:
            logger.warning("Incomplete task parse response: %s", e)
            return fallback_task_draft(text, now)

    # Notes

    async def analyze_note(
        self, title: str, content: str, analysis_types: list[str] | None = None
    ) -> NoteAnalysis:
        """Summarize and classify a note."""
        title = self._require_text(title, "title")
        content = content or ""
        if not self.adapter.generation_available:
            return fallback_note_analysis(title, content)

        try:
            raw = await self.adapter.generate_structured(
                note_analysis_prompt(title, content, analysis_types or DEFAULT_ANALYSIS_TYPES)
            )
            data = validate_required_fields(extract_json(raw).unwrap(), ["summary"])
            reading_time = _coerce_minutes(data.get("readingTime"))
            return NoteAnalysis(
                summary=str(data["summary"]),
                sentiment=str(data.get("sentiment", "neutral")).lower(),
                mood=str(data.get("mood") or "calm"),
                suggested_category=normalize_category(data.get("suggestedCategory")),
                suggested_tags=_string_list(data.get("suggestedTags")),
                key_points=_string_list(data.get("keyPoints")),
                reading_time=reading_time if reading_time is not None else 1,
                complexity=str(data.get("complexity", "simple")).lower(),
                insights=str(data.get("insights") or ""),
                connections=_string_list(data.get("connections")),
                confidence=self.scoring.ai_confidence,
                source=EnrichmentSource.EXTERNAL_AI,
            )
        except (EnrichmentError, ValidationError) as e:
            logger.warning("Note analysis failed, using basic analysis: %s", e)
            return fallback_note_analysis(title, content)

    async def process_voice_note(
        self, transcription: str, language: str = "en"
    ) -> VoiceNoteResult:
        """Clean up a voice transcription and suggest a title."""
        transcription = self._require_text(transcription, "transcription")
        if not self.adapter.generation_available:
            return fallback_voice_note(transcription)

        try:
            raw = await self.adapter.generate_structured(
                voice_note_prompt(transcription, language)
            )
            data = validate_required_fields(extract_json(raw).unwrap(), ["cleanedText"])
            cleaned = str(data["cleanedText"]).strip()
            return VoiceNoteResult(
                cleaned_text=cleaned,
                suggested_title=str(data.get("suggestedTitle") or "Voice note"),
                word_count=len(transcription.split()),
                confidence=_coerce_confidence(
                    data.get("confidence"), self.scoring.ai_confidence
                ),
                detected_topics=_string_list(data.get("detectedTopics")),
                improvements=str(data.get("improvements") or ""),
                original_length=len(transcription),
                cleaned_length=len(cleaned),
                source=EnrichmentSource.EXTERNAL_AI,
                processed_at=self._clock(),
            )
        except (EnrichmentError, ValidationError) as e:
            logger.warning("Voice note processing failed, using basic cleaning: %s", e)
            return fallback_voice_note(transcription)

    async def enhance_transcription(self, text: str) -> str:
        """Punctuate and capitalize a raw transcription."""
        text = self._require_text(text)
        if not self.adapter.generation_available:
            return basic_text_enhancement(text)

        try:
            enhanced = await self.adapter.generate_structured(
                transcription_enhancement_prompt(text)
            )
        except EnrichmentError as e:
            logger.warning("Transcription enhancement failed: %s", e)
            return basic_text_enhancement(text)

        enhanced = (enhanced or "").strip().strip('"').strip()
        return enhanced or basic_text_enhancement(text)

    async def search_notes(self, query: str, notes: list[NoteRecord]) -> list[NoteSearchHit]:
        """Rank notes by relevance to ``query``, most relevant first."""
        query = self._require_text(query, "query")
        if not notes:
            return []
        if not self.adapter.generation_available:
            return fallback_note_search(query, notes)

        # Notes without an id are addressed by position
        by_id = {note.id or str(index): note for index, note in enumerate(notes)}
        summaries = [
            {
                "id": note_id,
                "title": note.title,
                "content": note.content[:200],
                "category": note.category,
                "tags": note.tags,
            }
            for note_id, note in by_id.items()
        ]

        try:
            raw = await self.adapter.generate_structured(note_search_prompt(query, summaries))
            results = extract_json(raw).unwrap().get("results")
            if not isinstance(results, list):
                raise IncompleteResponse("Search response has no results list")
        except EnrichmentError as e:
            logger.warning("Semantic search failed, using text matching: %s", e)
            return fallback_note_search(query, notes)

        hits = []
        for item in results:
            if not isinstance(item, dict):
                continue
            note = by_id.get(str(item.get("noteId")))
            if note is None:
                continue
            hits.append(
                NoteSearchHit(
                    note=note,
                    relevance_score=_coerce_confidence(item.get("relevanceScore"), 0.0),
                    relevance_reason=str(item.get("relevanceReason") or "Semantic match"),
                    matched_content=str(item.get("matchedContent") or ""),
                )
            )
        return sorted(hits, key=lambda hit: hit.relevance_score, reverse=True)

    # Task lists

    async def analyze_batch(self, tasks: list[TaskRecord]) -> list[BatchTaskAnalysis]:
        """Re-classify up to ``batch_limit`` tasks and flag suggested updates."""
        limit = self.config.ai.batch_limit
        if len(tasks) > limit:
            logger.info("Batch of %d tasks truncated to %d", len(tasks), limit)

        threshold = self.scoring.recommendation_threshold
        results = []
        for index, task in enumerate(tasks[:limit]):
            if not task.title.strip():
                logger.debug("Skipping task %s with blank title", task.id)
                continue
            if index and self.adapter.inference_available:
                await self._sleep(self.config.ai.batch_delay)

            analysis = await self.categorize_and_prioritize(
                task.title, task.description, task.due_date
            )
            results.append(
                BatchTaskAnalysis(
                    task_id=task.id,
                    title=task.title,
                    current_category=task.category,
                    current_priority=task.priority,
                    suggested_category=analysis.category,
                    category_confidence=analysis.category_confidence,
                    suggested_priority=analysis.priority,
                    priority_confidence=analysis.priority_confidence,
                    should_update_category=(
                        analysis.category_confidence > threshold
                        and analysis.category != task.category
                    ),
                    should_update_priority=(
                        analysis.priority_confidence > threshold
                        and analysis.priority.value != task.priority
                    ),
                    source=analysis.source,
                )
            )
        return results

    async def generate_insights(self, tasks: list[TaskRecord]) -> TaskInsights:
        """Distribution overview of ``tasks`` with AI or rule-based insights."""
        distribution = build_distribution(tasks)
        if not tasks:
            return distribution.model_copy(update={"insights": ["No tasks to analyze"]})

        if self.adapter.generation_available:
            samples = [
                f"- {task.title} ({task.category or DEFAULT_CATEGORY}, "
                f"{task.priority or 'medium'})"
                for task in tasks[:INSIGHT_SAMPLE_SIZE]
            ]
            try:
                raw = await self.adapter.generate_structured(
                    task_insights_prompt(
                        distribution.total_tasks,
                        distribution.category_distribution,
                        distribution.priority_distribution,
                        distribution.average_estimated_minutes,
                        samples,
                    )
                )
                data = extract_json(raw).unwrap()
                insights = _string_list(data.get("insights"))
                if insights:
                    return distribution.model_copy(
                        update={
                            "insights": insights,
                            "recommendations": _string_list(data.get("recommendations")),
                            "source": EnrichmentSource.EXTERNAL_AI,
                        }
                    )
                logger.warning("Insights response carried no insights")
            except EnrichmentError as e:
                logger.warning("AI insights failed, using rule-based insights: %s", e)

        return distribution.model_copy(update={"insights": simple_insights(distribution)})

    async def generate_suggestions(
        self, tasks: list[TaskRecord], now: datetime | None = None
    ) -> list[Suggestion]:
        """Urgent tasks, the weekday habit for today, and overdue work."""
        now = now or self._clock()
        suggestions = []

        incomplete = [task for task in tasks if not task.is_completed and task.title.strip()]
        for task in incomplete[:URGENT_SUGGESTION_SAMPLE]:
            analysis = await self.categorize_and_prioritize(
                task.title, task.description, task.due_date
            )
            if (
                analysis.priority == Priority.HIGH
                and analysis.priority_confidence > self.scoring.recommendation_threshold
            ):
                suggestions.append(
                    Suggestion(
                        type="urgent_task",
                        message=f"'{task.title}' appears to be urgent",
                        recommendation="Consider prioritizing this task",
                        confidence=analysis.priority_confidence,
                        tasks=[task],
                    )
                )

        summary = analyze_patterns(tasks)
        today = now.weekday()
        usual = sorted(summary.weekly_category_presence.get(today, set()))
        if usual:
            suggestions.append(
                Suggestion(
                    type="pattern_suggestion",
                    message=f"You usually work on {', '.join(usual)} tasks on {day_name(today)}s",
                    confidence=PATTERN_SUGGESTION_CONFIDENCE,
                    suggested_categories=usual,
                )
            )

        overdue = overdue_tasks(tasks, now)
        if overdue:
            suggestions.append(
                Suggestion(
                    type="overdue_analysis",
                    message=f"{len(overdue)} overdue tasks need attention",
                    recommendation="Consider rescheduling or breaking down these tasks",
                    tasks=overdue[:OVERDUE_SUGGESTION_SAMPLE],
                )
            )

        return suggestions
