"""Shared fixtures for the docrank test suite."""
from __future__ import annotations

from typing import Optional

import pytest
from loguru import logger

from docrank.chunking.schemas import Chunk
from docrank.chunking.tokenizer import TokenCounter
from docrank.config import ChunkingSettings, Settings
from docrank.schemas import ScoredChunk, SourceDocument

SETUP_USAGE_DOC = """\
# Setup
Install the tool with pip.

Configure your API key in the settings file.

# Usage
Run the tool from the command line.

Pass the help flag to see every option."""

UNHEADED_DOC = "\n\n".join(
    f"paragraph {i} talks about topic number {i} in plain lower case words." for i in range(12)
)


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    # CLI commands add sinks bound to the runner's streams; drop them between tests.
    logger.remove()


@pytest.fixture
def counter() -> TokenCounter:
    """ceil(len/4) counter; no BPE download needed."""
    return TokenCounter(strategy="heuristic")


@pytest.fixture
def settings() -> Settings:
    return Settings(chunking=ChunkingSettings(tokenizer="heuristic"), max_workers=2)


@pytest.fixture
def setup_usage_doc() -> SourceDocument:
    return SourceDocument(source="inline", content=SETUP_USAGE_DOC)


class StaticLoader:
    """Loader stand-in that always returns the same document."""

    def __init__(self, content: str = SETUP_USAGE_DOC) -> None:
        self.content = content
        self.calls = 0

    def load(self) -> SourceDocument:
        self.calls += 1
        return SourceDocument(source="inline", content=self.content)


def make_chunk(index: int, text: str, heading: Optional[str] = None, token_count: Optional[int] = None) -> Chunk:
    return Chunk(
        chunk_id=f"doc:{index}",
        doc_id="doc",
        chunk_index=index,
        text=text,
        token_count=token_count if token_count is not None else len(text) // 4 + 1,
        heading=heading,
    )


def make_scored(index: int, score: float, tokens: int = 10) -> ScoredChunk:
    return ScoredChunk(
        chunk=make_chunk(index, f"chunk {index}", token_count=tokens),
        score=score,
        token_count=tokens,
    )
