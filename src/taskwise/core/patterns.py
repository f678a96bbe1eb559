"""Pattern analysis over a user's task history."""

from collections import defaultdict
from datetime import datetime

from ..models import (
    DEFAULT_CATEGORY,
    TaskInsights,
    TaskRecord,
    UserPatternSummary,
    utc_now,
)
from .heuristics import as_aware

DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

UNCATEGORIZED_DURATION_KEY = "other"


def day_name(weekday: int) -> str:
    """Name for a ``datetime.weekday()`` index (0 = Monday)."""
    return DAY_NAMES[weekday]


def analyze_patterns(tasks: list[TaskRecord]) -> UserPatternSummary:
    """Aggregate weekday/category presence, frequencies and completion times.

    Single pass, no ordering assumptions: the same task list always yields an
    equal summary.
    """
    weekly: dict[int, set[str]] = defaultdict(set)
    frequency: dict[str, int] = defaultdict(int)
    durations: dict[str, list[int]] = defaultdict(list)

    for task in tasks:
        if task.created_at and task.category:
            weekly[task.created_at.weekday()].add(task.category)

        if task.category:
            frequency[task.category] += 1

        if task.is_completed and task.created_at and task.updated_at:
            elapsed = as_aware(task.updated_at) - as_aware(task.created_at)
            key = task.category or UNCATEGORIZED_DURATION_KEY
            durations[key].append(int(elapsed.total_seconds() * 1000))

    # Sorted so summaries built from reordered input serialize identically
    return UserPatternSummary(
        weekly_category_presence={day: weekly[day] for day in sorted(weekly)},
        category_frequency={key: frequency[key] for key in sorted(frequency)},
        completion_durations={key: sorted(durations[key]) for key in sorted(durations)},
    )


def average_completion_minutes(
    summary: UserPatternSummary | None, category: str | None
) -> int | None:
    """Mean historical completion time for a category, in whole minutes."""
    if summary is None or not category:
        return None
    samples = summary.completion_durations.get(category)
    if not samples:
        return None
    return round(sum(samples) / len(samples) / 60000)


def overdue_tasks(tasks: list[TaskRecord], now: datetime | None = None) -> list[TaskRecord]:
    """Incomplete tasks whose due date has passed."""
    now = as_aware(now or utc_now())
    return [
        task
        for task in tasks
        if task.due_date and as_aware(task.due_date) < now and not task.is_completed
    ]


def build_distribution(tasks: list[TaskRecord]) -> TaskInsights:
    """Count categories and priorities and total the time estimates."""
    categories: dict[str, int] = defaultdict(int)
    priorities: dict[str, int] = defaultdict(int)
    total_minutes = 0

    for task in tasks:
        categories[task.category or DEFAULT_CATEGORY] += 1
        priorities[task.priority or "medium"] += 1
        if task.estimated_minutes:
            total_minutes += task.estimated_minutes

    return TaskInsights(
        total_tasks=len(tasks),
        category_distribution=dict(categories),
        priority_distribution=dict(priorities),
        total_estimated_minutes=total_minutes,
        average_estimated_minutes=total_minutes / len(tasks) if tasks else 0.0,
    )


def simple_insights(insights: TaskInsights) -> list[str]:
    """Rule-based observations about a task distribution."""
    messages = []

    if insights.category_distribution:
        top_category, count = max(
            insights.category_distribution.items(), key=lambda item: item[1]
        )
        messages.append(f"Most tasks are in {top_category} category ({count} tasks)")

    high_count = insights.priority_distribution.get("high", 0)
    if high_count > insights.total_tasks * 0.3:
        messages.append(
            f"High number of high-priority tasks ({high_count}) - consider delegation"
        )

    if insights.average_estimated_minutes > 60:
        messages.append(
            f"Tasks average {round(insights.average_estimated_minutes)} minutes"
            " - consider breaking down larger tasks"
        )

    return messages
