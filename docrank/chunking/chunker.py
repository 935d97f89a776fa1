"""
docrank - Section Chunker
--------------------------
Splits a plain-text reference document into bounded, metadata-tagged chunks.

Strategy (per document):
  1. SECTIONS   -- heading positions from the structure extractor delimit
                   sections.  A document without headings is cut into coarse
                   ~25k-token sections at paragraph boundaries instead.
  2. PARAGRAPHS -- each section is split on blank lines; empty paragraphs are
                   discarded.
  3. PACKING    -- consecutive paragraphs are packed greedily while the token
                   count of the joined text stays within max_chunk_tokens.
  4. SENTENCES  -- a paragraph that alone exceeds the limit is split at
                   sentence boundaries and packed the same way; those chunks
                   are flagged is_sentence_chunk.

Nothing is ever dropped to honour the limit: a single sentence (or an
unsplittable paragraph) larger than max_chunk_tokens becomes its own chunk
flagged `oversized`.

Sections are independent, so they may be chunked on a thread pool; results
are merged back in section order before chunk indices are assigned.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

import nltk
from loguru import logger

from docrank.chunking.schemas import Chunk, Section
from docrank.chunking.structure import build_sections, extract_structure
from docrank.chunking.tokenizer import TokenCounter
from docrank.utils.helpers import document_id, ordered_map

# ── Constants ─────────────────────────────────────────────────────────────────

MAX_CHUNK_TOKENS = 2_000          # Default per-chunk ceiling
COARSE_SECTION_TOKENS = 25_000    # Section size for documents without headings
PARAGRAPH_SEP = "\n\n"
SENTENCE_SEP = " "

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")

SentenceSplitter = Literal["regex", "nltk"]

_punkt_checked = False


def _ensure_punkt() -> None:
    """Fetch the punkt sentence model once, if it is not installed yet."""
    global _punkt_checked
    if _punkt_checked:
        return
    _punkt_checked = True
    for resource in ("punkt_tab", "punkt"):
        try:
            nltk.data.find(f"tokenizers/{resource}")
        except LookupError:
            try:
                nltk.download(resource, quiet=True)
            except Exception as exc:
                logger.warning(f"[Chunker] Could not download nltk '{resource}': {exc}")


def split_sentences(text: str, method: SentenceSplitter = "regex") -> list[str]:
    """
    Split text into sentences.

    'regex' breaks on whitespace following '.', '!' or '?'.  'nltk' uses the
    punkt tokenizer and falls back to the regex when punkt is unavailable.
    """
    if method == "nltk":
        _ensure_punkt()
        try:
            sentences = nltk.sent_tokenize(text)
        except Exception as exc:
            logger.debug(f"[Chunker] punkt unavailable ({exc}); using regex splitter")
            sentences = _SENTENCE_BOUNDARY_RE.split(text)
    else:
        sentences = _SENTENCE_BOUNDARY_RE.split(text)
    return [s.strip() for s in sentences if s.strip()]


@dataclass(frozen=True)
class Paragraph:
    text: str
    start_line: int
    end_line: int


def split_paragraphs(lines: list[str], start_line: int, end_line: int) -> list[Paragraph]:
    """Blank-line separated paragraphs of lines[start_line..end_line] (inclusive)."""
    paragraphs: list[Paragraph] = []
    block: list[str] = []
    block_start = start_line

    for idx in range(start_line, end_line + 1):
        line = lines[idx]
        if line.strip():
            if not block:
                block_start = idx
            block.append(line)
        elif block:
            paragraphs.append(Paragraph("\n".join(block).strip(), block_start, idx - 1))
            block = []

    if block:
        paragraphs.append(Paragraph("\n".join(block).strip(), block_start, end_line))
    return paragraphs


@dataclass
class _Draft:
    """Chunk fields known before the chunk's global index is assigned."""

    text: str
    token_count: int
    section: Section
    start_line: int
    end_line: int
    paragraph_start: int
    paragraph_end: int
    sentence_start: Optional[int] = None
    sentence_end: Optional[int] = None
    is_sentence_chunk: bool = False
    oversized: bool = False


# ── Main Chunker ──────────────────────────────────────────────────────────────

class SectionChunker:
    """
    Section-, paragraph- and sentence-aware chunker.

    Usage:
        chunker = SectionChunker(max_chunk_tokens=512)
        chunks = chunker.chunk(document_text)
    """

    def __init__(
        self,
        max_chunk_tokens: int = MAX_CHUNK_TOKENS,
        coarse_section_tokens: int = COARSE_SECTION_TOKENS,
        counter: Optional[TokenCounter] = None,
        sentence_splitter: SentenceSplitter = "regex",
        max_workers: int = 1,
    ) -> None:
        if max_chunk_tokens <= 0:
            raise ValueError("max_chunk_tokens must be positive")
        self.max_chunk_tokens = max_chunk_tokens
        self.coarse_section_tokens = coarse_section_tokens
        self.counter = counter or TokenCounter()
        self.sentence_splitter = sentence_splitter
        self.max_workers = max(1, max_workers)

    def chunk(
        self,
        text: str,
        max_chunk_tokens: Optional[int] = None,
        doc_id: Optional[str] = None,
    ) -> list[Chunk]:
        """
        Chunk a document.

        Args:
            text:             Raw document text.
            max_chunk_tokens: Per-call override of the chunk ceiling.
            doc_id:           Identifier baked into chunk ids (defaults to a
                              content checksum prefix, so ids are stable).

        Returns:
            Chunks in document order; [] for an empty document.
        """
        if not text or not text.strip():
            logger.debug("[Chunker] Empty document -> 0 chunks")
            return []

        limit = max_chunk_tokens or self.max_chunk_tokens
        doc_id = doc_id or document_id(text)
        lines = text.split("\n")
        sections = self.partition(text, lines)

        drafts_by_section = ordered_map(
            lambda section: self._chunk_section(lines, section, limit),
            sections,
            self.max_workers,
        )

        chunks: list[Chunk] = []
        for drafts in drafts_by_section:
            for draft in drafts:
                index = len(chunks)
                chunks.append(
                    Chunk(
                        chunk_id=f"{doc_id}:{index}",
                        doc_id=doc_id,
                        chunk_index=index,
                        text=draft.text,
                        token_count=draft.token_count,
                        heading=draft.section.heading,
                        section_index=draft.section.section_index,
                        start_line=draft.start_line,
                        end_line=draft.end_line,
                        paragraph_start=draft.paragraph_start,
                        paragraph_end=draft.paragraph_end,
                        sentence_start=draft.sentence_start,
                        sentence_end=draft.sentence_end,
                        is_sentence_chunk=draft.is_sentence_chunk,
                        oversized=draft.oversized,
                    )
                )

        sentence_chunks = sum(1 for c in chunks if c.is_sentence_chunk)
        oversized = sum(1 for c in chunks if c.oversized)
        logger.debug(
            f"[Chunker] {doc_id} | {len(sections)} section(s) | limit={limit} | "
            f"{len(chunks)} chunk(s) (sentence-level: {sentence_chunks}, oversized: {oversized})"
        )
        return chunks

    def partition(self, text: str, lines: Optional[list[str]] = None) -> list[Section]:
        """Sections from headings, or coarse sections when there are none."""
        lines = lines if lines is not None else text.split("\n")
        sections = build_sections(lines, extract_structure(text))
        if sections:
            return sections
        return self._coarse_sections(lines)

    # --- Sections -------------------------------------------------------------

    def _coarse_sections(self, lines: list[str]) -> list[Section]:
        """Group paragraphs of an unheaded document into ~coarse_section_tokens sections."""
        paragraphs = split_paragraphs(lines, 0, len(lines) - 1)
        groups: list[list[Paragraph]] = []
        current: list[Paragraph] = []
        current_tokens = 0

        for para in paragraphs:
            tokens = self.counter.count(para.text)
            if current and current_tokens + tokens > self.coarse_section_tokens:
                groups.append(current)
                current, current_tokens = [], 0
            current.append(para)
            current_tokens += tokens
        if current:
            groups.append(current)

        return [
            Section(
                section_index=i,
                heading=None,
                start_line=group[0].start_line,
                end_line=group[-1].end_line,
            )
            for i, group in enumerate(groups)
        ]

    def _chunk_section(self, lines: list[str], section: Section, limit: int) -> list[_Draft]:
        paragraphs = split_paragraphs(lines, section.start_line, section.end_line)
        drafts: list[_Draft] = []
        current: list[tuple[int, Paragraph]] = []
        current_tokens = 0

        def flush() -> None:
            nonlocal current, current_tokens
            if not current:
                return
            drafts.append(
                _Draft(
                    text=PARAGRAPH_SEP.join(p.text for _, p in current),
                    token_count=current_tokens,
                    section=section,
                    start_line=current[0][1].start_line,
                    end_line=current[-1][1].end_line,
                    paragraph_start=current[0][0],
                    paragraph_end=current[-1][0],
                )
            )
            current, current_tokens = [], 0

        for p_idx, para in enumerate(paragraphs):
            para_tokens = self.counter.count(para.text)
            if para_tokens > limit:
                flush()
                drafts.extend(self._sentence_drafts(section, p_idx, para, para_tokens, limit))
                continue

            if not current:
                current, current_tokens = [(p_idx, para)], para_tokens
                continue

            candidate = PARAGRAPH_SEP.join([*(p.text for _, p in current), para.text])
            candidate_tokens = self.counter.count(candidate)
            if candidate_tokens > limit:
                flush()
                current, current_tokens = [(p_idx, para)], para_tokens
            else:
                current.append((p_idx, para))
                current_tokens = candidate_tokens

        flush()
        return drafts

    def _sentence_drafts(
        self,
        section: Section,
        p_idx: int,
        para: Paragraph,
        para_tokens: int,
        limit: int,
    ) -> list[_Draft]:
        """Pack the sentences of an oversized paragraph into sentence-level chunks."""
        sentences = split_sentences(para.text, self.sentence_splitter)
        if len(sentences) <= 1:
            return [
                _Draft(
                    text=para.text,
                    token_count=para_tokens,
                    section=section,
                    start_line=para.start_line,
                    end_line=para.end_line,
                    paragraph_start=p_idx,
                    paragraph_end=p_idx,
                    oversized=True,
                )
            ]

        drafts: list[_Draft] = []
        group: list[str] = []
        group_start = 0
        group_tokens = 0

        def emit(end: int) -> None:
            drafts.append(
                _Draft(
                    text=SENTENCE_SEP.join(group),
                    token_count=group_tokens,
                    section=section,
                    start_line=para.start_line,
                    end_line=para.end_line,
                    paragraph_start=p_idx,
                    paragraph_end=p_idx,
                    sentence_start=group_start,
                    sentence_end=end,
                    is_sentence_chunk=True,
                    oversized=group_tokens > limit,
                )
            )

        for s_idx, sentence in enumerate(sentences):
            if not group:
                group, group_start, group_tokens = [sentence], s_idx, self.counter.count(sentence)
                continue
            candidate_tokens = self.counter.count(SENTENCE_SEP.join([*group, sentence]))
            if candidate_tokens > limit:
                emit(s_idx - 1)
                group, group_start, group_tokens = [sentence], s_idx, self.counter.count(sentence)
            else:
                group.append(sentence)
                group_tokens = candidate_tokens

        if group:
            emit(len(sentences) - 1)
        return drafts

