"""
Token Counter
--------------
Every size decision in docrank (chunk packing, per-chunk accounting, the
selection budget) goes through a single counter.

Strategies:
  - tiktoken  -- exact BPE count for a named encoding (cl100k_base default)
  - heuristic -- ceil(len(text) / 4), the classic 4-chars-per-token estimate

The exact strategy degrades to the heuristic whenever the encoding cannot be
loaded (offline machine, missing BPE file) or a single encode call fails.
Counting never raises.

Counts are memoised per distinct string with a bounded LRU cache; the cache is
thread-safe, so one counter can be shared by concurrent chunking / scoring.
"""
from __future__ import annotations

import math
import threading
from functools import lru_cache
from typing import Literal

import tiktoken
from loguru import logger

TokenizerStrategy = Literal["tiktoken", "heuristic"]

DEFAULT_ENCODING = "cl100k_base"
CHARS_PER_TOKEN = 4
CACHE_SIZE = 65_536


def heuristic_token_count(text: str) -> int:
    """Approximate token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenCounter:
    """
    Deterministic token counter with silent fallback.

    Usage:
        counter = TokenCounter()                       # tiktoken, cl100k_base
        counter = TokenCounter(strategy="heuristic")   # no external resources
        n = counter.count("some text")
    """

    def __init__(
        self,
        strategy: TokenizerStrategy = "tiktoken",
        encoding_name: str = DEFAULT_ENCODING,
        cache_size: int = CACHE_SIZE,
    ) -> None:
        if strategy not in ("tiktoken", "heuristic"):
            raise ValueError(f"Unknown tokenizer strategy: {strategy!r}")
        self.strategy: TokenizerStrategy = strategy
        self.encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None
        self._degraded = strategy == "heuristic"
        self._load_lock = threading.Lock()
        self._cached_count = lru_cache(maxsize=cache_size)(self._count_uncached)

    @property
    def strategy_in_use(self) -> TokenizerStrategy:
        """Effective strategy after any degradation."""
        return "heuristic" if self._degraded else "tiktoken"

    def count(self, text: str) -> int:
        """Return the token count of `text` (>= 0)."""
        if not text:
            return 0
        return self._cached_count(text)

    def cache_info(self):
        return self._cached_count.cache_info()

    def clear_cache(self) -> None:
        self._cached_count.cache_clear()

    # --- Internals ------------------------------------------------------------

    def _count_uncached(self, text: str) -> int:
        encoding = self._get_encoding()
        if encoding is None:
            return heuristic_token_count(text)
        try:
            return len(encoding.encode(text, disallowed_special=()))
        except Exception as exc:
            logger.debug(f"[Tokenizer] encode failed ({exc}); using heuristic for {len(text)} chars")
            return heuristic_token_count(text)

    def _get_encoding(self) -> tiktoken.Encoding | None:
        if self._degraded:
            return None
        if self._encoding is not None:
            return self._encoding
        with self._load_lock:
            if self._encoding is None and not self._degraded:
                try:
                    self._encoding = tiktoken.get_encoding(self.encoding_name)
                    logger.debug(f"[Tokenizer] Loaded tiktoken encoding '{self.encoding_name}'")
                except Exception as exc:
                    self._degraded = True
                    logger.warning(
                        f"[Tokenizer] tiktoken encoding '{self.encoding_name}' unavailable "
                        f"({exc}); falling back to ceil(len/4) heuristic"
                    )
        return self._encoding


_DEFAULT_COUNTER: TokenCounter | None = None


def count_tokens(text: str) -> int:
    """Count tokens with the shared default counter (tiktoken, cl100k_base)."""
    global _DEFAULT_COUNTER
    if _DEFAULT_COUNTER is None:
        _DEFAULT_COUNTER = TokenCounter()
    return _DEFAULT_COUNTER.count(text)
