"""
docrank - CLI Entry Point
--------------------------
Developer commands for inspecting how a document is chunked and ranked.

Usage:
    python -m docrank.main structure docs/llm-full.txt
    python -m docrank.main chunk docs/llm-full.txt --max-tokens 512 --json
    python -m docrank.main chunk docs/llm-full.txt --out chunks.json
    python -m docrank.main query "how do I run the tool" --doc docs/llm-full.txt
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from docrank.chunking.chunker import SectionChunker
from docrank.chunking.structure import build_sections, extract_structure
from docrank.chunking.tokenizer import TokenCounter
from docrank.config import load_settings
from docrank.generation.context import build_user_message, sources_section
from docrank.loading.loader import DocumentLoader, DocumentUnavailableError
from docrank.schemas import SelectionStatus
from docrank.utils.helpers import dumps_json, save_json, truncate_text
from docrank.utils.logger import setup_logger

app = typer.Typer(
    name="docrank",
    help="Lexical chunking and relevance ranking for a reference document",
    add_completion=False,
)
console = Console()


class TokenizerChoice(str, Enum):
    tiktoken = "tiktoken"
    heuristic = "heuristic"


# --- Helpers ------------------------------------------------------------------

def _read_document(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]Document not found: {path}[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8", errors="replace")


# --- Commands -----------------------------------------------------------------

@app.command()
def structure(
    path: Path = typer.Argument(..., help="Document to analyse"),
) -> None:
    """Show the headings detected in a document and the sections they open."""
    text = _read_document(path)
    lines = text.split("\n")
    headings = extract_structure(text)
    sections = build_sections(lines, headings)

    if not headings:
        console.print("[yellow]No headings detected.[/yellow]")
        return

    table = Table("Section", "Line", "Heading", "Lines", box=box.SIMPLE, header_style="bold dim")
    for section in sections:
        table.add_row(
            str(section.section_index),
            str(section.start_line + 1),
            section.heading or "[dim](preamble)[/dim]",
            str(section.end_line - section.start_line + 1),
        )
    console.print(table)
    console.print(f"[dim]{len(headings)} headings | {len(sections)} sections | {len(lines)} lines[/dim]")


@app.command()
def chunk(
    path: Path = typer.Argument(..., help="Document to chunk"),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", "-m", min=1, help="Chunk ceiling in tokens (default from config)"
    ),
    tokenizer: Optional[TokenizerChoice] = typer.Option(
        None, "--tokenizer", help="Token counting strategy (default from config)"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config YAML"),
    json_out: bool = typer.Option(False, "--json", help="Print chunks as JSON"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write chunks as JSON to FILE"),
) -> None:
    """Split a document into chunks and summarise them."""
    settings = load_settings(config)
    setup_logger(settings.logging.level, settings.logging.file)

    text = _read_document(path)
    counter = TokenCounter(
        strategy=tokenizer.value if tokenizer else settings.chunking.tokenizer,
        encoding_name=settings.chunking.encoding,
    )
    chunker = SectionChunker(
        max_chunk_tokens=max_tokens or settings.chunking.max_chunk_tokens,
        coarse_section_tokens=settings.chunking.coarse_section_tokens,
        counter=counter,
        sentence_splitter=settings.chunking.sentence_splitter,
        max_workers=settings.max_workers,
    )
    chunks = chunker.chunk(text)
    records = [c.model_dump() for c in chunks]

    if out:
        save_json(records, out)
        logger.info(f"[CLI] Wrote {len(records)} chunks to {out}")
    if json_out:
        console.print_json(dumps_json(records))
        return

    table = Table("#", "Heading", "Tokens", "Lines", "Flags", "Preview", box=box.SIMPLE, header_style="bold dim")
    for c in chunks:
        flags = []
        if c.is_sentence_chunk:
            flags.append("sentences")
        if c.oversized:
            flags.append("[red]oversized[/red]")
        table.add_row(
            str(c.chunk_index),
            (c.heading or "-")[:40],
            str(c.token_count),
            f"{c.start_line + 1}-{c.end_line + 1}",
            ",".join(flags),
            truncate_text(c.text.replace("\n", " "), 60),
        )
    console.print(table)
    console.print(
        f"[dim]{len(chunks)} chunks | {sum(c.token_count for c in chunks):,} tokens | "
        f"tokenizer={counter.strategy_in_use} | max={chunker.max_chunk_tokens}[/dim]"
    )


@app.command()
def query(
    query_text: str = typer.Argument(..., metavar="QUERY", help="Question to rank chunks for"),
    doc: Optional[Path] = typer.Option(
        None, "--doc", "-d", help="Document path (default: document.local_path from config)"
    ),
    context_window: Optional[int] = typer.Option(
        None, "--context-window", "-w", min=1, help="Model context window in tokens"
    ),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", "-m", min=1, help="Chunk ceiling in tokens"
    ),
    tokenizer: Optional[TokenizerChoice] = typer.Option(
        None, "--tokenizer", help="Token counting strategy (default from config)"
    ),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config YAML"),
    show_prompt: bool = typer.Option(
        False, "--show-prompt", help="Print the user message that would be sent to the model"
    ),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Rank the document's chunks for QUERY and show the budgeted selection."""
    from docrank.serving.pipeline import ContextPipeline

    settings = load_settings(config)
    setup_logger(settings.logging.level, settings.logging.file)

    if max_tokens:
        settings.chunking.max_chunk_tokens = max_tokens
    if tokenizer:
        settings.chunking.tokenizer = tokenizer.value

    loader = None
    if doc is not None:
        loader = DocumentLoader(local_path=doc, timeout=settings.document.timeout)

    pipeline = ContextPipeline(settings, loader=loader)
    try:
        result = pipeline.retrieve(query_text, context_window=context_window)
    except DocumentUnavailableError as exc:
        console.print(f"[red]Document unavailable:[/red] {exc}")
        raise typer.Exit(1)

    if json_out:
        console.print_json(dumps_json(result.to_dict()))
        return

    selection = result.selection
    status_style = {
        SelectionStatus.MATCHED: "green",
        SelectionStatus.FALLBACK: "yellow",
        SelectionStatus.EMPTY: "red",
    }[selection.status]

    table = Table(
        "No.", "Chunk", "Heading", "Score", "Tokens", "kw", "tfidf", "fuzzy", "phrase", "head",
        box=box.SIMPLE,
        header_style="bold dim",
    )
    for i, s in enumerate(selection.chunks, start=1):
        sig = s.signals
        table.add_row(
            str(i),
            str(s.chunk.chunk_index),
            (s.chunk.heading or "-")[:40],
            f"{s.score:.2f}",
            str(s.token_count),
            f"{sig.keyword:g}",
            f"{sig.tfidf:.2f}",
            f"{sig.fuzzy:.2f}",
            f"{sig.phrase:g}",
            f"{sig.heading:g}",
        )
    console.print(table)

    sources = sources_section(selection)
    if sources:
        console.print(Markdown(sources))

    if show_prompt:
        console.print(
            Panel(
                build_user_message(query_text, selection),
                title="[bold]User message[/bold]",
                border_style="cyan",
                expand=True,
            )
        )

    console.print(
        f"[{status_style}]{selection.status.value}[/{status_style}] "
        f"[dim]| v{result.snapshot_version} | {selection.total_tokens:,}/{selection.budget:,} tokens "
        f"| cap={selection.max_chunks} | reserved={result.reserved_tokens} "
        f"| total={result.total_ms:.0f}ms[/dim]"
    )


if __name__ == "__main__":
    app()
