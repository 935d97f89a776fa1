"""
Chunk schema - the atomic unit that gets scored and selected.

Chunks are produced once per document load and then read by many concurrent
queries, so the models are frozen: a query can hold references to them
without worrying about another thread mutating their fields.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HeadingMarker(BaseModel):
    """A heading-like line found by the structure extractor."""

    model_config = ConfigDict(frozen=True)

    text: str                            # Heading text, leading '#' markers removed
    line_index: int                      # 0-based index into text.split("\n")


class Section(BaseModel):
    """A heading-delimited (or coarse, for unheaded documents) run of lines."""

    model_config = ConfigDict(frozen=True)

    section_index: int
    heading: Optional[str] = None
    start_line: int                      # Inclusive
    end_line: int                        # Inclusive


class Chunk(BaseModel):
    """
    A bounded fragment of the source document.

    Positional fields locate the chunk inside its section so a caller can
    cite it ("Usage, paragraphs 2-4") or reconstruct document order.
    """

    model_config = ConfigDict(frozen=True)

    # Identity
    chunk_id: str                        # "{doc_id}:{chunk_index}"
    doc_id: str                          # Checksum prefix of the parent document
    chunk_index: int                     # Monotonic position in the document

    # Content
    text: str
    token_count: int = 0

    # Provenance
    heading: Optional[str] = None        # Owning section's heading
    section_index: int = 0
    start_line: int = 0
    end_line: int = 0
    paragraph_start: int = 0             # Paragraph range within the section (inclusive)
    paragraph_end: int = 0
    sentence_start: Optional[int] = None  # Sentence range within the paragraph
    sentence_end: Optional[int] = None

    # Flags
    is_sentence_chunk: bool = False
    oversized: bool = Field(
        default=False,
        description="Single atomic unit larger than max_chunk_tokens",
    )
