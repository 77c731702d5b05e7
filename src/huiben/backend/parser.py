"""
Prompt segmentation for the embedded host.

Characters are written as @name mentions. The prompt is split into clauses at
sentence punctuation; each clause, with its mentions removed, becomes one
segment classified by keyword.
"""

import re

from huiben.backend.keywords import detect_segment_type
from huiben.core.models import CharacterRef, ParsedPrompt, PromptSegment
from huiben.utils.exceptions import ValidationError

CHARACTER_PATTERN = re.compile(r"@(\w+)")
_CLAUSE_PATTERN = re.compile(r"[^。！？；!?;.\n]+")
_STRIP_CHARS = " \t\r，,、：:"


def extract_character_names(prompt: str) -> list[str]:
    """Unique @mention names in order of first appearance."""
    names: list[str] = []
    for match in CHARACTER_PATTERN.finditer(prompt):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def parse_prompt(prompt: str) -> ParsedPrompt:
    """
    Split prompt into classified segments and collect its characters.

    Segment offsets delimit the clause within the original prompt; the
    segment content is the clause without its mentions.

    Raises:
        ValidationError: If prompt is empty
    """
    if not prompt or not prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")

    segments: list[PromptSegment] = []
    for match in _CLAUSE_PATTERN.finditer(prompt):
        clause = match.group()
        content = CHARACTER_PATTERN.sub("", clause).strip(_STRIP_CHARS)
        if not content:
            continue
        start = match.start() + len(clause) - len(clause.lstrip(_STRIP_CHARS))
        end = match.end() - (len(clause) - len(clause.rstrip(_STRIP_CHARS)))
        segments.append(PromptSegment(detect_segment_type(content), content, start, end))

    return ParsedPrompt(
        original=prompt,
        segments=tuple(segments),
        characters=tuple(CharacterRef(name) for name in extract_character_names(prompt)),
    )
