"""
Versioned Chunk Store
----------------------
Owns the chunk corpus of the loaded document and publishes it as immutable,
versioned snapshots.

  publish()   chunks the document and builds CorpusStats under an exclusive
              lock, then swaps the current snapshot reference in one step.
  snapshot()  returns the current snapshot without locking.

A query grabs one snapshot at its start and scores against it for its whole
lifetime; a concurrent rebuild publishes version K+1 without touching the
chunks or statistics the in-flight query sees (copy-on-write).
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from docrank.chunking.chunker import SectionChunker
from docrank.chunking.schemas import Chunk
from docrank.retrieval.scorer import CorpusStats
from docrank.schemas import SourceDocument


@dataclass(frozen=True)
class CorpusSnapshot:
    """One published, read-only version of the chunk corpus."""

    version: int
    doc_id: str
    source: str
    checksum: str
    chunks: tuple[Chunk, ...]
    stats: CorpusStats
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return sum(c.token_count for c in self.chunks)

    @property
    def headings(self) -> tuple[str, ...]:
        """Distinct chunk headings in document order."""
        return tuple(dict.fromkeys(c.heading for c in self.chunks if c.heading))


class ChunkStore:
    """
    Holds the current CorpusSnapshot for one document.

    Usage:
        store = ChunkStore(SectionChunker(max_chunk_tokens=512))
        store.publish(document)
        snap = store.snapshot()
    """

    def __init__(self, chunker: Optional[SectionChunker] = None) -> None:
        self.chunker = chunker or SectionChunker()
        self._lock = threading.Lock()
        self._snapshot: Optional[CorpusSnapshot] = None
        self._version = 0

    def snapshot(self) -> Optional[CorpusSnapshot]:
        """The current snapshot, or None if nothing has been published."""
        return self._snapshot

    @property
    def version(self) -> int:
        current = self._snapshot
        return current.version if current else 0

    def publish(self, document: SourceDocument) -> CorpusSnapshot:
        """Chunk the document and publish it as the next snapshot version."""
        with self._lock:
            chunks = tuple(self.chunker.chunk(document.content, doc_id=document.doc_id))
            stats = CorpusStats.build(chunks)
            self._version += 1
            snap = CorpusSnapshot(
                version=self._version,
                doc_id=document.doc_id,
                source=document.source,
                checksum=document.checksum,
                chunks=chunks,
                stats=stats,
            )
            self._snapshot = snap

        logger.info(
            f"[ChunkStore] Published v{snap.version} | {document.source} | "
            f"{len(chunks)} chunks | {snap.total_tokens:,} tokens"
        )
        return snap

    def publish_if_changed(self, document: SourceDocument) -> CorpusSnapshot:
        """Publish only when the document content differs from the current snapshot."""
        current = self._snapshot
        if current is not None and current.checksum == document.checksum:
            logger.debug(f"[ChunkStore] {document.source} unchanged; keeping v{current.version}")
            return current
        return self.publish(document)

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
        logger.debug("[ChunkStore] Cleared")
