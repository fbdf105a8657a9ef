"""Prompt templates for the Gemini calls."""

from __future__ import annotations

from chapterizer.pipeline_config import FormatMode

SEGMENTATION_PROMPT = """\
You are an expert in analyzing audio content. Your task is to process the given \
audio file and generate a structured summary of its key topics. The total duration \
of the audio file is {duration} seconds. Please ensure that all timestamps in your \
response are within this duration.

Format every topic and subtopic exactly like this, one per line:

**Topic 1: <topic title>**
* <M:SS>-<M:SS> **<subtopic title>:** <one sentence description>
"""

TRANSCRIPTION_PROMPT = (
    "Transcribe the following audio. If the audio is not in English, please "
    "transcribe it and then translate the transcription to English."
)

CUSTOM_QUERY_PROMPT = "Transcribe the following audio and answer the question: {query}"

_STRUCTURED_RULES = """\
Return strictly valid JSON with the following shape:
{{
  "segments": [
    {{ "title": string, "startSeconds": number, "endSeconds": number, "summary": string }}
  ]
}}
Rules:
- startSeconds < endSeconds
- Prefer 3 to 12 segments depending on content length
- Titles should be short nouns or phrases
- summary is 1-2 sentences, helpful and specific
- Output ONLY the JSON, no markdown, no commentary.
Target video: {url}"""

STRUCTURED_FROM_URL_PROMPT = (
    "You are given a YouTube URL. Analyze the content and propose a concise outline "
    "of the most useful subtopics with precise timestamps (in seconds from the start). "
    + _STRUCTURED_RULES
)

STRUCTURED_FROM_TRANSCRIPT_PROMPT = (
    "You are given a YouTube video and its transcript with timestamps. Using ONLY the "
    "transcript, propose a concise outline of the most useful subtopics with precise "
    "timestamps (in seconds from the start). "
    + _STRUCTURED_RULES
    + "\nTranscript (timestamped, may be truncated):\n---\n{transcript}\n---"
)

SHORT_TITLES_PROMPT = """\
You are given {count} subtopic descriptions{course}.
For each description, output a concise, unique short title only, with these rules:
- Max {max_length} characters
- Title case where appropriate
- No numbering or quotes
- Avoid duplicates; if two are similar, make them distinct
Return strictly valid JSON in this shape:
{{ "titles": [ string, ... ] }}
Descriptions:
{descriptions}"""

_FORMAT_ACTIONS = {
    FormatMode.BRIEF: "Please format and **briefly summarize** the following text",
    FormatMode.DETAIL: "Please format and **add detail to** the following text",
    FormatMode.ORIGINAL: "Please format the following text",
}

FORMAT_PAGES_PROMPT = """\
{action} from pages {start}-{end} of a document into clean, well-structured markdown. \
Follow these instructions carefully:

- **Content & Structure:**
  - The text may contain repeating headers and footers on each page. Remove these.
  - Preserve the original sequence of paragraphs and content.
  - Correct any spelling mistakes.
  - Split PascalCase words into separate words (e.g., "PascalCase" becomes "Pascal Case").
  - Do not add any introductory or concluding text that is not part of the original content.

- **Styling & Formatting:**
  - Use markdown headings (#, ##, ###) for titles and subtitles.
  - Use bold (**text**) for emphasis on key terms and file names.
  - Use inline code formatting (`code`) for variable names and short code snippets.
  - Format multi-line code blocks with appropriate language identifiers.
  - Preserve lists and format them correctly as bulleted or numbered lists.
  - Format notes as markdown blockquotes (>).

- **Brief vs. Detail:**
  - If asked to **brief**, provide a concise summary, keeping the essence and key points.
  - If asked to **add detail**, expand on the content.
  - If just asked to **format**, keep the original content length and meaning.

- **Output:**
  - Do not include page numbers in the output.
  - Ensure the output is only valid markdown.

Here is the text from pages {start}-{end}:
---
{text}"""


def segmentation_prompt(duration_seconds: int | None) -> str:
    return SEGMENTATION_PROMPT.format(duration=duration_seconds or 0)


def structured_prompt(url: str, transcript: str | None = None, custom_prompt: str | None = None) -> str:
    if transcript:
        prompt = STRUCTURED_FROM_TRANSCRIPT_PROMPT.format(url=url, transcript=transcript)
    else:
        prompt = STRUCTURED_FROM_URL_PROMPT.format(url=url)
    if custom_prompt and custom_prompt.strip():
        prompt += f"\nAdditional instructions: {custom_prompt.strip()}"
    return prompt


def format_pages_prompt(mode: FormatMode, start_page: int, end_page: int, text: str) -> str:
    return FORMAT_PAGES_PROMPT.format(
        action=_FORMAT_ACTIONS[mode], start=start_page, end=end_page, text=text
    )
