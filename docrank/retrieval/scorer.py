"""
Relevance Scorer
-----------------
Scores every chunk of a corpus against a query with five independent lexical
signals, combined as a weighted sum (all matching is case-insensitive):

  keyword  (x1.0)  whole-word hits of each query word longer than 3 chars
  tfidf    (x2.0)  sum over query tokens of tf(term, chunk) * idf(term)
                   with idf = 1 + ln(N / (1 + df)) over the chunk corpus
  fuzzy    (x1.5)  for each (query term, distinct chunk term) pair, both at
                   least 4 chars, whose similarity exceeds 0.85: add the
                   excess (similarity - 0.85).  Default metric: Jaro-Winkler
  phrase   (x3.0)  literal occurrences of the whole query string
  heading  (x2.0)  +5 per query word found in the chunk's section heading

Per-corpus statistics (term counts, document frequencies, fuzzy vocabulary)
are built once by CorpusStats.build() and only read while scoring.  Fuzzy
similarities are resolved once per query against the vocabulary, before the
per-chunk fan-out, so scoring is a pure function of (query, chunk, stats):
results are bit-for-bit identical whether chunks are scored serially or on
the thread pool.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Protocol, Sequence

from loguru import logger
from rapidfuzz.distance import JaroWinkler

from docrank.chunking.schemas import Chunk
from docrank.schemas import ScoredChunk, SignalScores
from docrank.utils.helpers import ordered_map

_TOKEN_RE = re.compile(r"\w+")
_NON_WORD_RE = re.compile(r"\W+")

MIN_KEYWORD_CHARS = 4        # Query words must be longer than 3 chars
MIN_FUZZY_CHARS = 4          # Both sides of a fuzzy pair need >= 4 chars
FUZZY_THRESHOLD = 0.85
HEADING_BONUS = 5.0
PARALLEL_THRESHOLD = 256     # Below this many chunks, scoring stays serial


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens."""
    return _TOKEN_RE.findall(text.lower())


def query_keywords(query: str) -> list[str]:
    """Query words longer than 3 characters (duplicates kept)."""
    return [w for w in _NON_WORD_RE.split(query.lower()) if len(w) >= MIN_KEYWORD_CHARS]


# --- Pluggable pieces ------------------------------------------------------------

@dataclass(frozen=True)
class ScoringWeights:
    keyword: float = 1.0
    tfidf: float = 2.0
    fuzzy: float = 1.5
    phrase: float = 3.0
    heading: float = 2.0


class FuzzyMatcher(Protocol):
    """Anything that rates two strings in [0, 1]."""

    def similarity(self, a: str, b: str) -> float:
        ...


class JaroWinklerMatcher:
    """Jaro-Winkler similarity via rapidfuzz."""

    def __init__(self, prefix_weight: float = 0.1) -> None:
        self.prefix_weight = prefix_weight

    def similarity(self, a: str, b: str) -> float:
        return JaroWinkler.similarity(a, b, prefix_weight=self.prefix_weight)


# --- Corpus statistics -------------------------------------------------------------

@dataclass(frozen=True)
class CorpusStats:
    """Read-only lexical statistics of one chunk corpus."""

    chunk_ids: tuple[str, ...]
    term_counts: tuple[Mapping[str, int], ...]
    long_terms: tuple[tuple[str, ...], ...]   # Sorted distinct terms >= MIN_FUZZY_CHARS
    doc_freq: Mapping[str, int]
    vocabulary: tuple[str, ...]               # Sorted union of long_terms

    @property
    def n_chunks(self) -> int:
        return len(self.chunk_ids)

    @classmethod
    def build(cls, chunks: Sequence[Chunk]) -> "CorpusStats":
        term_counts: list[Mapping[str, int]] = []
        long_terms: list[tuple[str, ...]] = []
        doc_freq: Counter[str] = Counter()

        for chunk in chunks:
            counts = Counter(tokenize(chunk.text))
            term_counts.append(MappingProxyType(dict(counts)))
            long_terms.append(tuple(sorted(t for t in counts if len(t) >= MIN_FUZZY_CHARS)))
            doc_freq.update(counts.keys())

        vocabulary = tuple(sorted({t for terms in long_terms for t in terms}))
        logger.debug(
            f"[Scorer] Corpus stats | {len(chunks)} chunks | "
            f"{len(doc_freq)} terms | fuzzy vocabulary {len(vocabulary)}"
        )
        return cls(
            chunk_ids=tuple(c.chunk_id for c in chunks),
            term_counts=tuple(term_counts),
            long_terms=tuple(long_terms),
            doc_freq=MappingProxyType(dict(doc_freq)),
            vocabulary=vocabulary,
        )

    def idf(self, term: str) -> float:
        """1 + ln(N / (1 + df)); always positive for N >= 1."""
        return 1.0 + math.log(self.n_chunks / (1 + self.doc_freq.get(term, 0)))

    def matches(self, chunks: Sequence[Chunk]) -> bool:
        return self.chunk_ids == tuple(c.chunk_id for c in chunks)


@dataclass(frozen=True)
class _QueryProfile:
    """Everything about a query that does not depend on the chunk being scored."""

    phrase: str
    keywords: tuple[str, ...]
    tfidf_terms: tuple[tuple[str, float], ...]  # (token, idf) per query token
    fuzzy_weights: Mapping[str, float]          # vocabulary term -> summed excess


# --- Scorer ----------------------------------------------------------------------

class RelevanceScorer:
    """
    Multi-signal lexical relevance scorer.

    Usage:
        scorer = RelevanceScorer()
        stats = CorpusStats.build(chunks)          # once per corpus version
        scored = scorer.score("how do I run the tool", chunks, stats)
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        matcher: Optional[FuzzyMatcher] = None,
        fuzzy_threshold: float = FUZZY_THRESHOLD,
        heading_bonus: float = HEADING_BONUS,
        max_workers: int = 1,
        parallel_threshold: int = PARALLEL_THRESHOLD,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.matcher: FuzzyMatcher = matcher or JaroWinklerMatcher()
        self.fuzzy_threshold = fuzzy_threshold
        self.heading_bonus = heading_bonus
        self.max_workers = max(1, max_workers)
        self.parallel_threshold = parallel_threshold

    def score(
        self,
        query: str,
        chunks: Sequence[Chunk],
        stats: Optional[CorpusStats] = None,
    ) -> list[ScoredChunk]:
        """
        Score every chunk against the query.

        Args:
            query:  Raw user query.
            chunks: The chunk corpus, in document order.
            stats:  Precomputed CorpusStats for exactly these chunks; built on
                    the fly when omitted or stale.

        Returns:
            ScoredChunks parallel to `chunks` (same order, same length).
        """
        if not chunks:
            return []
        if stats is None or not stats.matches(chunks):
            if stats is not None:
                logger.warning("[Scorer] Corpus stats do not match chunks; rebuilding")
            stats = CorpusStats.build(chunks)

        profile = self._profile(query, stats)
        workers = self.max_workers if len(chunks) >= self.parallel_threshold else 1
        scored = ordered_map(
            lambda pos: self._score_one(profile, chunks[pos], stats, pos),
            range(len(chunks)),
            workers,
        )

        positive = sum(1 for s in scored if s.score > 0)
        top = max((s.score for s in scored), default=0.0)
        logger.debug(
            f"[Scorer] Query {query[:60]!r} | {len(chunks)} chunks | "
            f"{positive} positive | top score {top:.3f} | workers={workers}"
        )
        return scored

    # --- Internals -------------------------------------------------------------

    def _profile(self, query: str, stats: CorpusStats) -> _QueryProfile:
        tokens = tokenize(query)
        fuzzy_terms = sorted({t for t in tokens if len(t) >= MIN_FUZZY_CHARS})
        return _QueryProfile(
            phrase=query.strip().lower(),
            keywords=tuple(query_keywords(query)),
            tfidf_terms=tuple((t, stats.idf(t)) for t in tokens),
            fuzzy_weights=MappingProxyType(self._fuzzy_weights(fuzzy_terms, stats.vocabulary)),
        )

    def _fuzzy_weights(self, query_terms: list[str], vocabulary: Sequence[str]) -> dict[str, float]:
        """Summed (similarity - threshold) of each vocabulary term over all query terms."""
        weights: dict[str, float] = {}
        if not query_terms:
            return weights
        for term in vocabulary:
            excess = 0.0
            for q in query_terms:
                sim = self.matcher.similarity(q, term)
                if sim > self.fuzzy_threshold:
                    excess += sim - self.fuzzy_threshold
            if excess > 0.0:
                weights[term] = excess
        return weights

    def _score_one(
        self,
        profile: _QueryProfile,
        chunk: Chunk,
        stats: CorpusStats,
        pos: int,
    ) -> ScoredChunk:
        counts = stats.term_counts[pos]

        keyword = float(sum(counts.get(w, 0) for w in profile.keywords))
        tfidf = sum(counts.get(term, 0) * idf for term, idf in profile.tfidf_terms)
        fuzzy = sum(profile.fuzzy_weights.get(t, 0.0) for t in stats.long_terms[pos])
        phrase = float(chunk.text.lower().count(profile.phrase)) if profile.phrase else 0.0

        heading = 0.0
        if chunk.heading and profile.keywords:
            heading_terms = set(tokenize(chunk.heading))
            heading = self.heading_bonus * sum(1 for w in profile.keywords if w in heading_terms)

        w = self.weights
        total = (
            w.keyword * keyword
            + w.tfidf * tfidf
            + w.fuzzy * fuzzy
            + w.phrase * phrase
            + w.heading * heading
        )
        return ScoredChunk(
            chunk=chunk,
            score=max(0.0, total),
            token_count=chunk.token_count,
            signals=SignalScores(
                keyword=keyword,
                tfidf=tfidf,
                fuzzy=fuzzy,
                phrase=phrase,
                heading=heading,
            ),
        )
