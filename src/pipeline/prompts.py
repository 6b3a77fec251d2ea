# src/pipeline/prompts.py - v1
"""Prompt templates for the generation agents.

Templates are plain str.format strings; literal JSON braces are doubled.
"""

from __future__ import annotations

SCRIPT_SYSTEM = (
    "You are an experienced programming teacher who records short narrated "
    "videos explaining source code. Respond only with valid JSON."
)

SCRIPT_PROMPT = """Write the narration script for a video explaining the {source_language} code below.

Narration language: {target_language}
Target length: about {target_words} words ({target_minutes} minutes spoken).
Code size: {line_count} lines, {function_count} functions, {class_count} classes.
Analyzer summary: {summary}

{mode_instruction}

Return JSON:
{{"title": "...", "sections": [{{"heading": "...", "narration": "..."}}]}}

CODE:
{code}
"""

FULL_NARRATION = (
    "Walk through the code in reading order: purpose first, then each "
    "significant block, then how the pieces fit together."
)

SUMMARY_NARRATION = (
    "The file is too long to narrate line by line. Give a file-level "
    "summary instead: overall purpose, the main components and how they "
    "interact, and the two or three most important details."
)

FLOWCHART_SYSTEM = (
    "You turn source code into control-flow diagrams. Respond only with valid JSON."
)

FLOWCHART_PROMPT = """Draw the control flow of the {source_language} code below as a flowchart.

Use node kinds: start, end, process, decision, io.
Exactly one node of kind "start" with id "start" and one of kind "end" with id "end".
Label decision edges "yes"/"no" (or the case value). Keep labels under 60 characters.

Return JSON:
{{"nodes": [{{"id": "...", "label": "...", "kind": "..."}}],
 "edges": [{{"source": "...", "target": "...", "label": null}}]}}

CODE:
{code}
"""

EXAMPLES_SYSTEM = (
    "You translate code between programming languages idiomatically. "
    "Respond only with valid JSON."
)

EXAMPLES_PROMPT = """Show how the {source_language} code below would be written in {count} other popular programming languages.

Write each explanation in {target_language}, one or two sentences on what differs from the original.

Return JSON:
{{"examples": [{{"language": "...", "code": "...", "explanation": "..."}}]}}

CODE:
{code}
"""

QA_SYSTEM = (
    "You answer questions about a piece of code that was just explained to "
    "the user in a video. Base your answer on the code and the explanation. "
    "Answer in plain text, concisely."
)

QA_PROMPT = """CODE ({source_language}):
{code}

EXPLANATION TRANSCRIPT:
{transcript}
{extra_context}
CONVERSATION SO FAR:
{history}

QUESTION:
{question}
"""


def fence(code: str, language: str = "") -> str:
    """Wrap code in a markdown fence."""
    return f"```{language}\n{code}\n```"
