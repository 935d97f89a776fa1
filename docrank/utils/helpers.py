"""Shared utility functions used across docrank."""
from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Sequence, TypeVar

import orjson

T = TypeVar("T")
R = TypeVar("R")


# --- Text Utilities -----------------------------------------------------------

def content_checksum(text: str) -> str:
    """SHA-256 of the text - used to detect document changes."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def document_id(text: str) -> str:
    """Short, stable identifier for a document's content."""
    return content_checksum(text)[:16]


def truncate_text(text: str, max_chars: int = 300) -> str:
    """Truncate text for display purposes."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


# --- JSON ---------------------------------------------------------------------

def dumps_json(data: Any, indent: bool = True) -> str:
    """Serialise data to a JSON string using orjson."""
    option = orjson.OPT_NON_STR_KEYS
    if indent:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(data, option=option).decode("utf-8")


def save_json(data: Any, path: str | Path) -> None:
    """Serialise data to a JSON file using orjson (fast, handles datetime/UUID)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS))


def load_json(path: str | Path) -> Any:
    """Load JSON data from file."""
    with open(Path(path), "rb") as f:
        return orjson.loads(f.read())


# --- Concurrency --------------------------------------------------------------

def ordered_map(fn: Callable[[T], R], items: Sequence[T], max_workers: int = 1) -> list[R]:
    """
    Apply fn to every item, on a thread pool when max_workers > 1.

    Results always come back in input order.
    """
    if max_workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(fn, items))
