"""
Prompt templates used when embedding selected chunks into an LLM request.

Keeping templates in a separate module makes them easy to iterate on
without touching selection logic.
"""

# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are a documentation assistant specialized in answering questions based on \
the provided documentation. Focus exclusively on the documentation content when \
answering questions. If the information isn't clearly stated in the documentation, \
acknowledge this limitation rather than making assumptions.

RULES:
- Format responses with markdown: ## for headings, * for bullet points, **text** for bold.
- Use numbered lists for steps or processes.
- Be concise but thorough.
- End every response with a "Sources" section listing each [N] fragment used.
"""

# ---------------------------------------------------------------------------
# User message carrying the retrieved context
# ---------------------------------------------------------------------------

USER_MESSAGE_TEMPLATE = """\
Documentation context:
{context}

User query: {query}

Please answer the query based on the provided documentation context. \
Format your response with proper markdown for readability."""

# ---------------------------------------------------------------------------
# Fragment / citation lines
# ---------------------------------------------------------------------------

FRAGMENT_TEMPLATE = "[{index}] {heading}\n{text}"
SOURCES_HEADER = "## Sources"
SOURCE_LINE_TEMPLATE = "* {heading}"
UNTITLED_SECTION = "(untitled section)"

# ---------------------------------------------------------------------------
# Fallback notices
# ---------------------------------------------------------------------------

NO_CONTEXT_NOTICE = "No documentation available for this query."

FALLBACK_NOTICE = (
    "Note: no fragment matched the query directly; the excerpts below are a "
    "general sample of the documentation."
)
