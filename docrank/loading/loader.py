"""
Document Loader
----------------
Fetches the reference document from a local file and/or a remote URL.

Sources are tried in the configured preference order; if the preferred one
is missing or unreachable the other is used as a fallback.  An empty file is
still a document: it loads and simply yields no chunks.  Remote fetches go
through httpx with tenacity retries (3 attempts, exponential backoff).
Retrying belongs here, at the I/O edge - the chunking and ranking core never
retries.
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Literal, Optional

import httpx
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from docrank.schemas import SourceDocument

_HEADERS = {"User-Agent": "docrank/1.0"}


class DocumentUnavailableError(RuntimeError):
    """No configured source produced the document."""


class DocumentLoader:
    """
    Loads a SourceDocument from disk or over HTTP.

    Args:
        local_path: Path to a UTF-8 text file.
        remote_url: URL serving the raw text.
        prefer:     Which source to try first ("local" or "remote").
        timeout:    HTTP timeout in seconds.
    """

    def __init__(
        self,
        local_path: Optional[str | Path] = None,
        remote_url: Optional[str] = None,
        prefer: Literal["local", "remote"] = "local",
        timeout: float = 30.0,
    ) -> None:
        self.local_path = Path(local_path) if local_path else None
        self.remote_url = remote_url
        self.prefer = prefer
        self.timeout = timeout

    def load(self) -> SourceDocument:
        """Return the document from the first source that can be read."""
        attempts: list[tuple[str, Callable[[], SourceDocument]]] = []
        if self.local_path is not None:
            attempts.append(("local", self._load_local))
        if self.remote_url:
            attempts.append(("remote", self._load_remote))
        if self.prefer == "remote":
            attempts.sort(key=lambda a: a[0] != "remote")

        if not attempts:
            raise DocumentUnavailableError("No document source configured")

        errors: list[str] = []
        for name, attempt in attempts:
            try:
                doc = attempt()
                logger.info(
                    f"[Loader] Loaded {doc.source} ({name}) | {doc.char_count:,} chars | "
                    f"~{doc.char_count // 4:,} tokens"
                )
                return doc
            except (OSError, httpx.HTTPError) as exc:
                errors.append(f"{name}: {exc}")
                logger.warning(f"[Loader] {name} source failed: {exc}")

        raise DocumentUnavailableError("; ".join(errors))

    # --- Sources ----------------------------------------------------------------

    def _load_local(self) -> SourceDocument:
        path = self.local_path
        if path is None or not path.exists():
            raise FileNotFoundError(f"Document not found: {path}")
        text = path.read_text(encoding="utf-8", errors="replace")
        if not text.strip():
            logger.warning(f"[Loader] Document is empty: {path}")
        return SourceDocument(source=str(path), content=text)

    def _load_remote(self) -> SourceDocument:
        text = self._fetch(self.remote_url)
        if not text.strip():
            logger.warning(f"[Loader] Remote document is empty: {self.remote_url}")
        return SourceDocument(source=self.remote_url, content=text)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _fetch(self, url: str) -> str:
        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            resp = client.get(url, headers=_HEADERS)
            resp.raise_for_status()
            return resp.text
