"""Tests for prompt/context assembly."""

from conftest import make_chunk
from docrank.generation.context import (
    build_context_block,
    build_user_message,
    framing_tokens,
    reserved_prompt_tokens,
    sources_section,
)
from docrank.generation.prompts import FALLBACK_NOTICE, NO_CONTEXT_NOTICE, USER_MESSAGE_TEMPLATE
from docrank.schemas import ScoredChunk, SelectionResult, SelectionStatus


def _selection(status=SelectionStatus.MATCHED):
    chunks = [
        ScoredChunk(chunk=make_chunk(1, "Run the tool.", heading="Usage"), score=3.0, token_count=4),
        ScoredChunk(chunk=make_chunk(0, "Preface text."), score=1.0, token_count=4),
    ]
    return SelectionResult(chunks=chunks, total_tokens=8, budget=100, max_chunks=2, status=status)


class TestContextBlock:
    def test_empty_selection(self):
        empty = SelectionResult.empty()
        assert build_context_block(empty) == NO_CONTEXT_NOTICE
        assert sources_section(empty) == ""

    def test_fragments_are_numbered_in_selection_order(self):
        block = build_context_block(_selection())
        assert block.index("[1] Usage\nRun the tool.") < block.index("[2] (untitled section)\nPreface text.")
        assert not block.startswith(FALLBACK_NOTICE)

    def test_fallback_is_flagged(self):
        block = build_context_block(_selection(SelectionStatus.FALLBACK))
        assert block.startswith(FALLBACK_NOTICE)

    def test_sources_section(self):
        # Unheaded chunks are left out of the list.
        assert sources_section(_selection()) == "## Sources\n* Usage"


class TestUserMessage:
    def test_message_layout(self):
        message = build_user_message("how do I run the tool", _selection())
        assert message.startswith("Documentation context:\n[1] Usage")
        assert "User query: how do I run the tool" in message
        assert message.endswith("Format your response with proper markdown for readability.")

    def test_reserved_tokens_grow_with_query(self, counter):
        short = reserved_prompt_tokens("run", counter)
        long = reserved_prompt_tokens("run " * 50, counter)
        assert 0 < short < long

    def test_reserved_tokens_include_fragment_framing(self, counter):
        bare = reserved_prompt_tokens("run", counter)
        framed = reserved_prompt_tokens("run", counter, max_chunks=2, headings=["Usage"])
        assert framed - bare == framing_tokens(2, counter, ["Usage"])
        assert reserved_prompt_tokens("run", counter, max_chunks=8) > framed


class TestFraming:
    def test_zero_fragments(self, counter):
        assert framing_tokens(0, counter, ["Usage"]) == 0

    def test_longest_heading_sets_the_allowance(self, counter):
        short = framing_tokens(2, counter, ["Usage"])
        long = framing_tokens(2, counter, ["Usage", "Configuring the command line client in detail"])
        assert long > short

    def test_covers_rendered_framing(self, counter):
        selection = _selection(SelectionStatus.FALLBACK)
        rendered = counter.count(build_user_message("run", selection))
        scaffold = counter.count(USER_MESSAGE_TEMPLATE.format(context="", query="run"))
        chunk_tokens = sum(counter.count(s.chunk.text) for s in selection.chunks)
        allowance = framing_tokens(2, counter, ["Usage"])
        assert rendered <= scaffold + chunk_tokens + allowance
