"""Prompt templates and label tables for the external AI services."""

import json

from ..models import TASK_CATEGORIES

MAX_PROMPT_TEXT = 2000

# Zero-shot labels read better as phrases than as bare category names
CATEGORY_LABELS = {
    "work and professional tasks": "work",
    "personal and family matters": "personal",
    "health and medical": "health",
    "finance and money": "finance",
    "education and learning": "education",
    "shopping and errands": "shopping",
    "travel and transportation": "travel",
    "entertainment and leisure": "entertainment",
    "household and maintenance": "household",
    "emergency and urgent matters": "emergency",
}

_CATEGORY_CHOICES = "|".join(TASK_CATEGORIES)


def sanitize(text: str, limit: int = MAX_PROMPT_TEXT) -> str:
    """Keep user text from closing the quoted block it is embedded in."""
    return text.replace('"', "'")[:limit]


TASK_ENRICHMENT_PROMPT = """
You are an expert task categorization and planning assistant. Analyze the task below.

Title: "{title}"
Description: "{description}"
Due date: {due_date}

PRIORITY GUIDELINES:
- low: nice to have, no deadline pressure
- medium: important but flexible timing
- high: time sensitive or urgent ("ASAP", "urgent", "emergency", "deadline")

Return ONLY a valid JSON object with these exact fields:
{{
  "category": "{categories}",
  "priority": "low|medium|high",
  "estimatedMinutes": number,
  "reasoning": "Brief explanation of your analysis"
}}

Respond with ONLY the JSON object:"""

TASK_PARSING_PROMPT = """
You are an intelligent task parser. Analyze the following natural language text and extract structured task information.

Today is {today}.
Consider urgency indicators like: "ASAP", "urgent", "emergency", "immediately", "rush", "critical"
Consider time indicators like: "today", "tomorrow", "next week", "Monday", "by 5pm", "deadline"
Consider context clues for categorization.

Text: "{text}"

Extract and return ONLY a valid JSON object with these exact fields:
{{
  "title": "Brief, clear task title",
  "description": "Additional details if any, empty string if none",
  "dueDate": "ISO date string if time mentioned, null otherwise",
  "type": "task|event|reminder",
  "estimatedDuration": number (minutes),
  "urgency": "low|medium|high",
  "category": "{categories}",
  "reasoning": "Brief explanation of your analysis"
}}

Respond with ONLY the JSON object:"""

STREAMING_PARSE_PROMPT = """Parse this task step by step: "{text}"

Today is {today}.

Think through:
1. What is the main action?
2. What category does this belong to ({categories})?
3. How urgent is this based on language used?
4. When should this be done?

Then provide the final JSON structure with the fields title, description,
dueDate, type, estimatedDuration, urgency, category and reasoning."""

NOTE_ANALYSIS_PROMPT = """
You are an intelligent note analysis assistant. Analyze the following note and provide comprehensive insights.

Title: "{title}"
Content: "{content}"

Provide analysis for: {analysis_types}

Return ONLY a valid JSON object with these exact fields:
{{
  "summary": "Brief 2-3 sentence summary of the note",
  "sentiment": "positive|negative|neutral",
  "mood": "excited|calm|frustrated|focused|creative|analytical|stressed|optimistic",
  "suggestedCategory": "{categories}",
  "suggestedTags": ["tag1", "tag2", "tag3"],
  "keyPoints": ["important point 1", "important point 2"],
  "readingTime": number,
  "complexity": "simple|medium|complex",
  "insights": "Additional insights or recommendations",
  "connections": ["potential connections to other topics"]
}}

Respond with ONLY the JSON object:"""

VOICE_NOTE_PROMPT = """
You are a voice note processing specialist. Clean up and enhance the following transcribed voice note.

Original transcription: "{text}"
Language: {language}

Your tasks:
1. Fix grammar, punctuation, and formatting
2. Remove filler words (um, uh, like, you know, etc.)
3. Structure the content with proper paragraphs
4. Preserve the speaker's intent and meaning
5. Suggest a concise title for the note

Return ONLY a valid JSON object:
{{
  "cleanedText": "Cleaned and formatted version of the transcription",
  "suggestedTitle": "A concise title for this note",
  "confidence": number_0_to_1,
  "detectedTopics": ["topic1", "topic2"],
  "improvements": "Brief description of what was improved"
}}

Respond with ONLY the JSON object:"""

TRANSCRIPTION_ENHANCEMENT_PROMPT = """
Add proper punctuation, capitalization, and formatting to this voice transcription while preserving the original meaning:

"{text}"

Rules:
- Add periods, commas, question marks, exclamation points
- Capitalize proper nouns and sentence beginnings
- Break into logical paragraphs if needed
- Remove excessive filler words
- Keep the natural speaking tone

Return only the enhanced text without quotes or additional formatting:"""

NOTE_SEARCH_PROMPT = """
You are a semantic search expert. Find the most relevant notes for the given query.

Query: "{query}"

Available Notes:
{notes}

Analyze semantic similarity, context, and relevance.

Return ONLY a valid JSON object:
{{
  "results": [
    {{
      "noteId": "note_id",
      "relevanceScore": number_0_to_1,
      "relevanceReason": "Why this note is relevant",
      "matchedContent": "Specific content that matches"
    }}
  ]
}}

Sort by relevanceScore (highest first). Respond with ONLY the JSON object:"""

TASK_INSIGHTS_PROMPT = """
Analyze this task data and provide insights:

Total tasks: {total}
Categories: {categories}
Priorities: {priorities}
Average time estimate: {average} minutes

Sample tasks:
{samples}

Provide insights and recommendations in this JSON format:
{{
  "insights": ["insight 1", "insight 2"],
  "recommendations": ["recommendation 1", "recommendation 2"]
}}"""


def task_enrichment_prompt(title: str, description: str, due_date: str | None) -> str:
    return TASK_ENRICHMENT_PROMPT.format(
        title=sanitize(title),
        description=sanitize(description),
        due_date=due_date or "none",
        categories=_CATEGORY_CHOICES,
    )


def task_parsing_prompt(text: str, today: str) -> str:
    return TASK_PARSING_PROMPT.format(
        text=sanitize(text), today=today, categories=_CATEGORY_CHOICES
    )


def streaming_parse_prompt(text: str, today: str) -> str:
    return STREAMING_PARSE_PROMPT.format(
        text=sanitize(text), today=today, categories=_CATEGORY_CHOICES
    )


def note_analysis_prompt(title: str, content: str, analysis_types: list[str]) -> str:
    return NOTE_ANALYSIS_PROMPT.format(
        title=sanitize(title),
        content=sanitize(content, 6000),
        analysis_types=", ".join(analysis_types),
        categories=_CATEGORY_CHOICES,
    )


def voice_note_prompt(text: str, language: str) -> str:
    return VOICE_NOTE_PROMPT.format(text=sanitize(text, 6000), language=language)


def transcription_enhancement_prompt(text: str) -> str:
    return TRANSCRIPTION_ENHANCEMENT_PROMPT.format(text=sanitize(text, 6000))


def note_search_prompt(query: str, note_summaries: list[dict]) -> str:
    return NOTE_SEARCH_PROMPT.format(
        query=sanitize(query), notes=json.dumps(note_summaries, indent=2)
    )


def task_insights_prompt(
    total: int,
    categories: dict[str, int],
    priorities: dict[str, int],
    average: float,
    samples: list[str],
) -> str:
    return TASK_INSIGHTS_PROMPT.format(
        total=total,
        categories=json.dumps(categories),
        priorities=json.dumps(priorities),
        average=round(average, 1),
        samples="\n".join(samples),
    )
