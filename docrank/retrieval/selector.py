"""
Budgeted Selector
------------------
Turns a list of scored chunks into the context handed to the prompt builder.

Policy:
  1. Sort by descending score; ties keep document order (chunk_index).
  2. Walk the ranking, skipping non-positive scores, until either the chunk
     cap is reached or the next chunk would overflow the token budget.
     An over-budget FIRST chunk is still taken, alone, so a positive match
     always yields some context.
  3. If nothing scored above zero, return a small random sample (score 0)
     drawn from a seeded random.Random so the fallback is reproducible.

Budget and cap helpers:
  - compute_token_budget(): ~65% of the model context window minus whatever
    the prompt preamble and query already consume.
  - max_chunks_for_query(): a monotonic, saturating cap - short queries get
    2-3 chunks, long ones up to 8.
"""
from __future__ import annotations

import math
import random
from typing import Optional, Sequence

from loguru import logger

from docrank.schemas import ScoredChunk, SelectionResult, SelectionStatus

BUDGET_FRACTION = 0.65
MIN_CHUNKS = 2
MAX_CHUNKS = 8
TOKENS_PER_STEP = 8          # Query tokens per extra chunk allowed
FALLBACK_SIZE = 2
FALLBACK_SEED = 0


def compute_token_budget(
    context_window: int,
    reserved_tokens: int = 0,
    fraction: float = BUDGET_FRACTION,
) -> int:
    """Tokens available for retrieved context: floor(window * fraction) - reserved, >= 0."""
    return max(0, math.floor(context_window * fraction) - reserved_tokens)


def max_chunks_for_query(
    query_tokens: int,
    min_chunks: int = MIN_CHUNKS,
    max_chunks: int = MAX_CHUNKS,
    tokens_per_step: int = TOKENS_PER_STEP,
) -> int:
    """Chunk cap that grows with query length and saturates at max_chunks."""
    steps = max(0, query_tokens) // max(1, tokens_per_step)
    return min(max_chunks, min_chunks + steps)


class BudgetedSelector:
    """
    Greedy, deterministic chunk selection under a token budget.

    Args:
        fallback_size: Chunks returned when nothing matches (default: 2).
        seed:          Seed for the fallback sample (ignored if rng is given).
        rng:           Injected random.Random; use for reproducible tests.
    """

    def __init__(
        self,
        fallback_size: int = FALLBACK_SIZE,
        seed: Optional[int] = FALLBACK_SEED,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.fallback_size = fallback_size
        self.seed = seed
        self._rng = rng

    def select(
        self,
        scored_chunks: Sequence[ScoredChunk],
        target_token_budget: int,
        max_chunk_count: int,
    ) -> SelectionResult:
        """
        Pick the best chunks that fit the budget.

        Returns:
            SelectionResult with status MATCHED, FALLBACK (nothing scored above
            zero) or EMPTY (no candidates).
        """
        if not scored_chunks or max_chunk_count <= 0:
            logger.info("[Selector] No candidates -> empty selection")
            return SelectionResult.empty(budget=target_token_budget, max_chunks=max_chunk_count)

        ranked = sorted(scored_chunks, key=lambda s: (-s.score, s.chunk.chunk_index))
        positive = [s for s in ranked if s.score > 0]

        if not positive:
            return self._fallback(scored_chunks, target_token_budget, max_chunk_count)

        selected, total = self._take_within_budget(positive, target_token_budget, max_chunk_count)
        logger.info(
            f"[Selector] {len(selected)}/{len(positive)} positive chunks selected | "
            f"{total}/{target_token_budget} tokens | cap={max_chunk_count} | "
            f"top score: {selected[0].score:.3f}"
        )
        return SelectionResult(
            chunks=selected,
            total_tokens=total,
            budget=target_token_budget,
            max_chunks=max_chunk_count,
            status=SelectionStatus.MATCHED,
        )

    # --- Internals -------------------------------------------------------------

    @staticmethod
    def _take_within_budget(
        candidates: Sequence[ScoredChunk],
        budget: int,
        cap: int,
    ) -> tuple[list[ScoredChunk], int]:
        selected: list[ScoredChunk] = []
        total = 0
        for candidate in candidates:
            if len(selected) >= cap:
                break
            if total + candidate.token_count > budget:
                if not selected:
                    # Oversized first candidate: take it alone.
                    selected.append(candidate)
                    total = candidate.token_count
                break
            selected.append(candidate)
            total += candidate.token_count
        return selected, total

    def _fallback(
        self,
        scored_chunks: Sequence[ScoredChunk],
        budget: int,
        cap: int,
    ) -> SelectionResult:
        rng = self._rng if self._rng is not None else random.Random(self.seed)
        pool = sorted(scored_chunks, key=lambda s: s.chunk.chunk_index)
        size = min(self.fallback_size, cap, len(pool))
        # Scores are non-negative, so every fallback candidate already scores 0.
        sample = rng.sample(pool, size)
        selected, total = self._take_within_budget(sample, budget, cap)
        logger.info(
            f"[Selector] No positive scores -> random fallback of {len(selected)} chunk(s) "
            f"| {total}/{budget} tokens"
        )
        return SelectionResult(
            chunks=selected,
            total_tokens=total,
            budget=budget,
            max_chunks=cap,
            status=SelectionStatus.FALLBACK,
        )
