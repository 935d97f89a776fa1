"""
Structure Extractor
--------------------
Finds heading-like lines in plain text so the chunker can carve the document
into sections and tag every chunk with the heading it lives under.

Detection policy, applied to each line after trimming:

  1. Leading marker: one or more '#' + whitespace, a numbered item
     ('<digits>.' + whitespace) or a short '<Capitalized phrase>:' prefix,
     and the text after the marker contains at least one word character.
  2. All-caps: non-empty, under 100 characters, and equal to its own
     upper-cased form.

Rule 2 also fires on short emphatic lines ("NOTE THIS!") and on lines with no
letters at all ("2024", "---"). That behaviour is kept as observed; callers
that need stricter detection can post-filter the markers.
"""
from __future__ import annotations

import re

from docrank.chunking.schemas import HeadingMarker, Section

MAX_HEADING_CHARS = 100

_MARKER_RE = re.compile(
    r"^(?:"
    r"(?P<hashes>#+)\s+"                 # Markdown '#', '##', ...
    r"|\d+\.\s+"                         # Numbered '1. ', '12. '
    r"|[A-Z][\w ]{0,48}:"                # Short capitalised label 'Note:'
    r")(?P<rest>.*)$"
)
_WORD_RE = re.compile(r"\w")


def is_heading(line: str) -> bool:
    """Return True if the (untrimmed) line looks like a heading."""
    return _heading_text(line.strip()) is not None


def _heading_text(stripped: str) -> str | None:
    """Heading text for a trimmed line, or None when the line is body text."""
    if not stripped:
        return None

    match = _MARKER_RE.match(stripped)
    if match and _WORD_RE.search(match.group("rest")):
        if match.group("hashes"):
            return match.group("rest").strip()
        return stripped

    if len(stripped) < MAX_HEADING_CHARS and stripped == stripped.upper():
        return stripped.lstrip("#").strip() or stripped

    return None


def extract_structure(text: str) -> list[HeadingMarker]:
    """
    Return heading positions over the line-indexed text (text.split("\\n")).

    An empty list means the document has no detectable structure and should
    be treated as a single unheaded section.
    """
    markers: list[HeadingMarker] = []
    for line_index, line in enumerate(text.split("\n")):
        heading = _heading_text(line.strip())
        if heading is not None:
            markers.append(HeadingMarker(text=heading, line_index=line_index))
    return markers


def build_sections(lines: list[str], headings: list[HeadingMarker]) -> list[Section]:
    """
    Turn heading positions into contiguous sections.

    Each section runs from its heading line to the line before the next
    heading (or the end of the document). Lines before the first heading
    form an unheaded preamble section when any of them is non-blank.
    """
    if not headings:
        return []

    sections: list[Section] = []
    first = headings[0].line_index
    if any(line.strip() for line in lines[:first]):
        sections.append(Section(section_index=0, heading=None, start_line=0, end_line=first - 1))

    for i, marker in enumerate(headings):
        end = headings[i + 1].line_index - 1 if i + 1 < len(headings) else len(lines) - 1
        sections.append(
            Section(
                section_index=len(sections),
                heading=marker.text,
                start_line=marker.line_index,
                end_line=end,
            )
        )
    return sections
