"""
Configuration
--------------
Settings live in config/config.yaml and are validated into pydantic models.
A .env file (python-dotenv) and the following environment variables override
the file:

    DOCRANK_DOC_PATH        document.local_path
    DOCRANK_DOC_URL         document.remote_url
    DOCRANK_LOG_LEVEL       logging.level
    DOCRANK_CONTEXT_WINDOW  selection.context_window
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


class ChunkingSettings(BaseModel):
    max_chunk_tokens: int = Field(default=2_000, gt=0)
    coarse_section_tokens: int = Field(default=25_000, gt=0)
    tokenizer: Literal["tiktoken", "heuristic"] = "tiktoken"
    encoding: str = "cl100k_base"
    sentence_splitter: Literal["regex", "nltk"] = "regex"


class ScoringSettings(BaseModel):
    keyword_weight: float = Field(default=1.0, ge=0)
    tfidf_weight: float = Field(default=2.0, ge=0)
    fuzzy_weight: float = Field(default=1.5, ge=0)
    phrase_weight: float = Field(default=3.0, ge=0)
    heading_weight: float = Field(default=2.0, ge=0)
    fuzzy_threshold: float = Field(default=0.85, ge=0, lt=1)
    heading_bonus: float = Field(default=5.0, ge=0)


class SelectionSettings(BaseModel):
    context_window: int = Field(default=200_000, gt=0)
    budget_fraction: float = Field(default=0.65, gt=0, le=1)
    min_chunks: int = Field(default=2, ge=1)
    max_chunks: int = Field(default=8, ge=1)
    tokens_per_step: int = Field(default=8, ge=1)
    fallback_size: int = Field(default=2, ge=0)
    fallback_seed: Optional[int] = 0


class DocumentSettings(BaseModel):
    local_path: Optional[str] = "data/llm-full.txt"
    remote_url: Optional[str] = None
    prefer: Literal["local", "remote"] = "local"
    timeout: float = Field(default=30.0, gt=0)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class Settings(BaseModel):
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    document: DocumentSettings = Field(default_factory=DocumentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    max_workers: int = Field(default_factory=lambda: min(8, os.cpu_count() or 1), ge=1)


def _load_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _apply_env_overrides(raw: dict) -> dict:
    overrides = {
        ("document", "local_path"): os.getenv("DOCRANK_DOC_PATH"),
        ("document", "remote_url"): os.getenv("DOCRANK_DOC_URL"),
        ("logging", "level"): os.getenv("DOCRANK_LOG_LEVEL"),
        ("selection", "context_window"): os.getenv("DOCRANK_CONTEXT_WINDOW"),
    }
    for (section, key), value in overrides.items():
        if value:
            raw.setdefault(section, {})[key] = value
    return raw


def load_settings(path: Optional[str | Path] = None) -> Settings:
    """
    Load settings from YAML (defaults to config/config.yaml) plus env overrides.

    A missing file yields the built-in defaults.  Invalid values raise
    pydantic.ValidationError.
    """
    load_dotenv()
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    raw: dict = {}
    if config_path.exists():
        raw = _load_yaml(config_path)
        logger.debug(f"[Config] Loaded {config_path}")
    elif path:
        logger.warning(f"[Config] {config_path} not found; using defaults")

    return Settings.model_validate(_apply_env_overrides(raw))
