"""
Core Pydantic schemas for docrank.

SourceDocument is the loaded reference text; ScoredChunk and SelectionResult
are the per-query views handed to the prompt builder.  Query-scoped models
hold chunks by reference to the frozen Chunk objects of a corpus snapshot.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from docrank.chunking.schemas import Chunk
from docrank.utils.helpers import content_checksum, document_id


# --- Documents ----------------------------------------------------------------

class SourceDocument(BaseModel):
    """The raw reference text as produced by the document loader."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str                          # File path, URL or "inline"
    content: str
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def checksum(self) -> str:
        """SHA-256 of content - a changed checksum triggers a corpus rebuild."""
        return content_checksum(self.content)

    @computed_field
    @property
    def doc_id(self) -> str:
        return document_id(self.content)

    @computed_field
    @property
    def char_count(self) -> int:
        return len(self.content)


# --- Scoring ------------------------------------------------------------------

class SignalScores(BaseModel):
    """Unweighted value of each relevance signal for one chunk."""

    model_config = ConfigDict(frozen=True)

    keyword: float = 0.0
    tfidf: float = 0.0
    fuzzy: float = 0.0
    phrase: float = 0.0
    heading: float = 0.0


class ScoredChunk(BaseModel):
    """A chunk with its relevance to one query."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(ge=0.0)
    token_count: int
    signals: SignalScores = Field(default_factory=SignalScores)


# --- Selection ----------------------------------------------------------------

class SelectionStatus(str, Enum):
    MATCHED = "matched"                  # At least one positive-score chunk selected
    FALLBACK = "fallback"                # Nothing matched; random sample returned
    EMPTY = "empty"                      # No candidates at all (empty document/query)


class SelectionResult(BaseModel):
    """Ordered chunks chosen for one query, plus the realised token total."""

    chunks: list[ScoredChunk] = Field(default_factory=list)
    total_tokens: int = 0
    budget: int = 0
    max_chunks: int = 0
    status: SelectionStatus = SelectionStatus.EMPTY

    @classmethod
    def empty(cls, budget: int = 0, max_chunks: int = 0) -> "SelectionResult":
        return cls(budget=budget, max_chunks=max_chunks, status=SelectionStatus.EMPTY)

    @property
    def has_relevant_content(self) -> bool:
        return self.status == SelectionStatus.MATCHED

    @property
    def headings(self) -> list[str]:
        """Distinct section headings of the selected chunks, in selection order."""
        seen: list[str] = []
        for scored in self.chunks:
            heading = scored.chunk.heading
            if heading and heading not in seen:
                seen.append(heading)
        return seen

    @property
    def texts(self) -> list[str]:
        return [scored.chunk.text for scored in self.chunks]
