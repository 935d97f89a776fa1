"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from docrank.config import Settings, load_settings

ENV_VARS = ("DOCRANK_DOC_PATH", "DOCRANK_DOC_URL", "DOCRANK_LOG_LEVEL", "DOCRANK_CONTEXT_WINDOW")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "nope.yaml")
        assert settings.chunking.max_chunk_tokens == 2000
        assert settings.selection.budget_fraction == 0.65
        assert settings.selection.min_chunks == 2
        assert settings.selection.max_chunks == 8
        assert settings.scoring.fuzzy_threshold == 0.85

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "chunking:\n  max_chunk_tokens: 512\n  tokenizer: heuristic\n"
            "selection:\n  context_window: 8000\n",
            encoding="utf-8",
        )
        settings = load_settings(path)
        assert settings.chunking.max_chunk_tokens == 512
        assert settings.chunking.tokenizer == "heuristic"
        assert settings.selection.context_window == 8000
        assert settings.scoring.phrase_weight == 3.0

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCRANK_CONTEXT_WINDOW", "4096")
        monkeypatch.setenv("DOCRANK_DOC_PATH", "other/doc.txt")
        settings = load_settings(tmp_path / "nope.yaml")
        assert settings.selection.context_window == 4096
        assert settings.document.local_path == "other/doc.txt"

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("selection:\n  budget_fraction: 2.5\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_settings(path)

    def test_unknown_tokenizer_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"chunking": {"tokenizer": "bytes"}})
