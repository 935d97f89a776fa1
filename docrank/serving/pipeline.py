"""
Context Retrieval Pipeline
---------------------------
Orchestrates one query against the loaded reference document:

    user query
        |
        v
    ChunkStore.snapshot()        (lazy load + chunk on first use)
        |
        v
    reserved_prompt_tokens()     (system prompt + wrapper + fragment framing)
        |
        v
    RelevanceScorer              (keyword / tf-idf / fuzzy / phrase / heading)
        |
        v
    BudgetedSelector             (token budget + chunk cap, seeded fallback)
        |
        v
    RetrievalResult              (selection + snapshot version + timings)

The retrieve() method is decorated with @traceable so LangSmith captures the
whole chain in a single trace when credentials are configured.
"""
from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from typing import Optional

from langsmith import traceable
from loguru import logger

from docrank.chunking.chunker import SectionChunker
from docrank.chunking.tokenizer import TokenCounter
from docrank.config import Settings
from docrank.generation.context import build_user_message, reserved_prompt_tokens
from docrank.loading.loader import DocumentLoader
from docrank.retrieval.scorer import RelevanceScorer, ScoringWeights
from docrank.retrieval.selector import (
    BudgetedSelector,
    compute_token_budget,
    max_chunks_for_query,
)
from docrank.retrieval.store import ChunkStore, CorpusSnapshot
from docrank.schemas import SelectionResult, SourceDocument


# ---------------------------------------------------------------------------
# Result schema
# ---------------------------------------------------------------------------

@dataclass
class RetrievalResult:
    """
    Output of a single retrieval.

    Timing fields are in milliseconds.  chunking_ms is non-zero only when the
    call had to load and chunk the document first.
    """

    query: str
    selection: SelectionResult
    snapshot_version: int = 0
    reserved_tokens: int = 0

    chunking_ms: float = 0.0
    scoring_ms: float = 0.0
    selection_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.chunking_ms + self.scoring_ms + self.selection_ms

    def to_dict(self) -> dict:
        sel = self.selection
        return {
            "query": self.query,
            "status": sel.status.value,
            "snapshot_version": self.snapshot_version,
            "tokens": {
                "selected": sel.total_tokens,
                "budget": sel.budget,
                "reserved": self.reserved_tokens,
            },
            "max_chunks": sel.max_chunks,
            "chunks": [
                {
                    "chunk_id": s.chunk.chunk_id,
                    "chunk_index": s.chunk.chunk_index,
                    "heading": s.chunk.heading,
                    "score": round(s.score, 4),
                    "token_count": s.token_count,
                    "signals": s.signals.model_dump(),
                }
                for s in sel.chunks
            ],
            "latency_ms": {
                "chunking": round(self.chunking_ms, 1),
                "scoring": round(self.scoring_ms, 1),
                "selection": round(self.selection_ms, 1),
                "total": round(self.total_ms, 1),
            },
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ContextPipeline:
    """
    End-to-end context retrieval for one reference document.

    Usage:
        pipeline = ContextPipeline(load_settings())
        result = pipeline.retrieve("how do I run the tool")
        for scored in result.selection.chunks:
            print(scored.chunk.heading, scored.score)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ChunkStore] = None,
        loader: Optional[DocumentLoader] = None,
        counter: Optional[TokenCounter] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or Settings()
        cfg = self.settings

        self.counter = counter or TokenCounter(
            strategy=cfg.chunking.tokenizer,
            encoding_name=cfg.chunking.encoding,
        )
        self.store = store or ChunkStore(
            SectionChunker(
                max_chunk_tokens=cfg.chunking.max_chunk_tokens,
                coarse_section_tokens=cfg.chunking.coarse_section_tokens,
                counter=self.counter,
                sentence_splitter=cfg.chunking.sentence_splitter,
                max_workers=cfg.max_workers,
            )
        )
        self.loader = loader or DocumentLoader(
            local_path=cfg.document.local_path,
            remote_url=cfg.document.remote_url,
            prefer=cfg.document.prefer,
            timeout=cfg.document.timeout,
        )
        self.scorer = RelevanceScorer(
            weights=ScoringWeights(
                keyword=cfg.scoring.keyword_weight,
                tfidf=cfg.scoring.tfidf_weight,
                fuzzy=cfg.scoring.fuzzy_weight,
                phrase=cfg.scoring.phrase_weight,
                heading=cfg.scoring.heading_weight,
            ),
            fuzzy_threshold=cfg.scoring.fuzzy_threshold,
            heading_bonus=cfg.scoring.heading_bonus,
            max_workers=cfg.max_workers,
        )
        self.selector = BudgetedSelector(
            fallback_size=cfg.selection.fallback_size,
            seed=cfg.selection.fallback_seed,
            rng=rng,
        )
        self._load_lock = threading.Lock()

        logger.info(
            f"[ContextPipeline] Ready | tokenizer={cfg.chunking.tokenizer} | "
            f"max_chunk_tokens={cfg.chunking.max_chunk_tokens} | "
            f"window={cfg.selection.context_window:,}"
        )

    # --- Corpus ----------------------------------------------------------------

    def load_document(self, document: SourceDocument) -> CorpusSnapshot:
        """Chunk and publish `document`; a no-op when its content is unchanged."""
        return self.store.publish_if_changed(document)

    def ensure_loaded(self) -> CorpusSnapshot:
        """Return the current snapshot, loading the document through the loader if needed."""
        snap = self.store.snapshot()
        if snap is not None:
            return snap
        # Concurrent cold queries wait for a single load.
        with self._load_lock:
            snap = self.store.snapshot()
            if snap is not None:
                return snap
            return self.load_document(self.loader.load())

    # --- Query -----------------------------------------------------------------

    @traceable(name="docrank_retrieve", run_type="retriever")
    def retrieve(self, query: str, context_window: Optional[int] = None) -> RetrievalResult:
        """
        Select the chunks most relevant to `query`.

        Args:
            query:          Raw user query.
            context_window: Model context window in tokens (defaults to
                            settings.selection.context_window).

        Returns:
            RetrievalResult; a blank query yields an EMPTY selection.

        Raises:
            DocumentUnavailableError: nothing loaded and no source available.
        """
        sel_cfg = self.settings.selection
        window = context_window if context_window is not None else sel_cfg.context_window

        t0 = time.perf_counter()
        loaded_before = self.store.snapshot() is not None
        snap = self.ensure_loaded()
        chunking_ms = 0.0 if loaded_before else (time.perf_counter() - t0) * 1000

        cap = max_chunks_for_query(
            self.counter.count(query),
            sel_cfg.min_chunks,
            sel_cfg.max_chunks,
            sel_cfg.tokens_per_step,
        )
        reserved = reserved_prompt_tokens(query, self.counter, cap, snap.headings)
        budget = compute_token_budget(window, reserved, sel_cfg.budget_fraction)

        if not query.strip():
            logger.info("[ContextPipeline] Blank query -> empty selection")
            return RetrievalResult(
                query=query,
                selection=SelectionResult.empty(budget=budget),
                snapshot_version=snap.version,
                reserved_tokens=reserved,
                chunking_ms=chunking_ms,
            )

        t1 = time.perf_counter()
        scored = self.scorer.score(query, snap.chunks, snap.stats)
        scoring_ms = (time.perf_counter() - t1) * 1000

        t2 = time.perf_counter()
        selection = self.selector.select(scored, budget, cap)
        selection_ms = (time.perf_counter() - t2) * 1000

        logger.info(
            f"[ContextPipeline] v{snap.version} | {selection.status.value} | "
            f"{len(selection.chunks)} chunks | {selection.total_tokens}/{budget} tokens | "
            f"scoring={scoring_ms:.1f}ms selection={selection_ms:.1f}ms"
        )
        return RetrievalResult(
            query=query,
            selection=selection,
            snapshot_version=snap.version,
            reserved_tokens=reserved,
            chunking_ms=chunking_ms,
            scoring_ms=scoring_ms,
            selection_ms=selection_ms,
        )

    def build_prompt(self, query: str, context_window: Optional[int] = None) -> str:
        """Retrieve for `query` and render the user message carrying the context."""
        result = self.retrieve(query, context_window)
        return build_user_message(query, result.selection)
