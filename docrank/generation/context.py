"""
Context builder
----------------
Formats a SelectionResult for the LLM request:

  - build_context_block()     numbered fragments [1]..[N] with their heading
  - sources_section()         "Sources" list of the distinct headings used
  - build_user_message()      the single instructional user message
  - framing_tokens()          allowance for fragment numbering, headings and
                              separators around up to N fragments
  - reserved_prompt_tokens()  tokens the prompt costs before any chunk text is
                              added, used to size the selection budget
"""
from __future__ import annotations

from typing import Iterable

from docrank.chunking.tokenizer import TokenCounter
from docrank.generation.prompts import (
    FALLBACK_NOTICE,
    FRAGMENT_TEMPLATE,
    NO_CONTEXT_NOTICE,
    SOURCE_LINE_TEMPLATE,
    SOURCES_HEADER,
    SYSTEM_PROMPT,
    UNTITLED_SECTION,
    USER_MESSAGE_TEMPLATE,
)
from docrank.schemas import SelectionResult, SelectionStatus

FRAGMENT_SEP = "\n\n---\n\n"


def build_context_block(selection: SelectionResult) -> str:
    """Number each selected chunk and join them into one context string."""
    if not selection.chunks:
        return NO_CONTEXT_NOTICE

    parts = [
        FRAGMENT_TEMPLATE.format(
            index=i,
            heading=scored.chunk.heading or UNTITLED_SECTION,
            text=scored.chunk.text,
        )
        for i, scored in enumerate(selection.chunks, start=1)
    ]
    context = FRAGMENT_SEP.join(parts)
    if selection.status == SelectionStatus.FALLBACK:
        context = f"{FALLBACK_NOTICE}\n\n{context}"
    return context


def sources_section(selection: SelectionResult) -> str:
    """Markdown "Sources" section listing the distinct headings used; "" when there are none."""
    headings = selection.headings
    if not headings:
        return ""
    return "\n".join([SOURCES_HEADER, *(SOURCE_LINE_TEMPLATE.format(heading=h) for h in headings)])


def build_user_message(query: str, selection: SelectionResult) -> str:
    return USER_MESSAGE_TEMPLATE.format(context=build_context_block(selection), query=query)


def framing_tokens(max_chunks: int, counter: TokenCounter, headings: Iterable[str] = ()) -> int:
    """
    Upper bound on the tokens build_context_block() adds around the chunk text.

    Covers the "[N] heading" line and separator of every fragment plus the
    fallback notice, sized for the longest heading the fragments may carry.

    Args:
        max_chunks: Most fragments the context can hold.
        counter:    TokenCounter used for the selection.
        headings:   Headings present in the corpus.

    Returns:
        0 when max_chunks is 0.
    """
    if max_chunks <= 0:
        return 0
    label = counter.count(FRAGMENT_TEMPLATE.format(index=max_chunks, heading="", text=""))
    longest = max((counter.count(h) for h in headings), default=0)
    header = label + max(longest, counter.count(UNTITLED_SECTION))
    notice = counter.count(f"{FALLBACK_NOTICE}\n\n")
    return notice + max_chunks * (header + counter.count(FRAGMENT_SEP))


def reserved_prompt_tokens(
    query: str,
    counter: TokenCounter,
    max_chunks: int = 0,
    headings: Iterable[str] = (),
) -> int:
    """Tokens used by the system prompt, the message wrapper and the fragment framing."""
    scaffold = USER_MESSAGE_TEMPLATE.format(context="", query=query)
    return (
        counter.count(SYSTEM_PROMPT)
        + counter.count(scaffold)
        + framing_tokens(max_chunks, counter, headings)
    )
