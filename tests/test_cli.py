"""Tests for the docrank CLI."""

import orjson
import pytest
from typer.testing import CliRunner

from conftest import SETUP_USAGE_DOC
from docrank.main import app
from docrank.utils.helpers import load_json

runner = CliRunner()


@pytest.fixture
def doc_path(tmp_path):
    path = tmp_path / "doc.txt"
    path.write_text(SETUP_USAGE_DOC, encoding="utf-8")
    return path


@pytest.fixture
def quiet_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("chunking:\n  tokenizer: heuristic\nlogging:\n  level: ERROR\n", encoding="utf-8")
    return str(path)


class TestStructure:
    def test_lists_headings(self, doc_path):
        result = runner.invoke(app, ["structure", str(doc_path)])
        assert result.exit_code == 0
        assert "Setup" in result.stdout
        assert "Usage" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["structure", str(tmp_path / "missing.txt")])
        assert result.exit_code == 1


class TestChunk:
    def test_json_output(self, doc_path, quiet_config):
        result = runner.invoke(app, ["chunk", str(doc_path), "--json", "--config", quiet_config])
        assert result.exit_code == 0
        chunks = orjson.loads(result.stdout)
        assert [c["heading"] for c in chunks] == ["Setup", "Usage"]

    def test_writes_out_file(self, doc_path, quiet_config, tmp_path):
        out = tmp_path / "chunks.json"
        result = runner.invoke(
            app, ["chunk", str(doc_path), "--max-tokens", "12", "--out", str(out), "--config", quiet_config]
        )
        assert result.exit_code == 0
        assert len(load_json(out)) == 4

    def test_tokenizer_choice(self, doc_path, quiet_config):
        result = runner.invoke(
            app, ["chunk", str(doc_path), "--tokenizer", "heuristic", "--json", "--config", quiet_config]
        )
        assert result.exit_code == 0
        assert len(orjson.loads(result.stdout)) == 2

    def test_unknown_tokenizer_is_a_usage_error(self, doc_path, quiet_config):
        result = runner.invoke(app, ["chunk", str(doc_path), "--tokenizer", "foo", "--config", quiet_config])
        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)

    def test_negative_max_tokens_is_a_usage_error(self, doc_path, quiet_config):
        result = runner.invoke(app, ["chunk", str(doc_path), "--max-tokens", "-5", "--config", quiet_config])
        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)


class TestQuery:
    def test_json_output(self, doc_path, quiet_config):
        result = runner.invoke(
            app, ["query", "how do I run the tool", "--doc", str(doc_path), "--json", "--config", quiet_config]
        )
        assert result.exit_code == 0
        data = orjson.loads(result.stdout)
        assert data["status"] == "matched"
        assert data["chunks"][0]["heading"] == "Usage"

    def test_table_output(self, doc_path, quiet_config):
        result = runner.invoke(
            app, ["query", "how do I run the tool", "--doc", str(doc_path), "--config", quiet_config, "--show-prompt"]
        )
        assert result.exit_code == 0
        assert "matched" in result.stdout
        assert "User query" in result.stdout

    def test_missing_document(self, tmp_path, quiet_config):
        result = runner.invoke(
            app, ["query", "anything", "--doc", str(tmp_path / "missing.txt"), "--config", quiet_config]
        )
        assert result.exit_code == 1

    def test_invalid_options_are_usage_errors(self, doc_path, quiet_config):
        base = ["query", "anything", "--doc", str(doc_path), "--config", quiet_config]
        for extra in (["--tokenizer", "foo"], ["--max-tokens", "-5"], ["--context-window", "0"]):
            result = runner.invoke(app, [*base, *extra])
            assert result.exit_code == 2
            assert isinstance(result.exception, SystemExit)

    def test_empty_document(self, tmp_path, quiet_config):
        path = tmp_path / "empty.txt"
        path.write_text("", encoding="utf-8")
        result = runner.invoke(
            app, ["query", "how do I run the tool", "--doc", str(path), "--json", "--config", quiet_config]
        )
        assert result.exit_code == 0
        data = orjson.loads(result.stdout)
        assert data["status"] == "empty"
        assert data["chunks"] == []
