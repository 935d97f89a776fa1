"""Tests for the token counter."""

import pytest

from docrank.chunking import tokenizer as tokenizer_module
from docrank.chunking.tokenizer import TokenCounter, heuristic_token_count


class _WordEncoding:
    """Fake tiktoken encoding: one token per whitespace-separated word."""

    def encode(self, text, disallowed_special=()):
        return text.split()


class _BrokenEncoding:
    def encode(self, text, disallowed_special=()):
        raise RuntimeError("boom")


class TestHeuristic:
    def test_rounds_up(self):
        assert heuristic_token_count("abcd") == 1
        assert heuristic_token_count("abcde") == 2
        assert heuristic_token_count("") == 0

    def test_counter_uses_heuristic(self, counter):
        assert counter.count("a" * 17) == 5
        assert counter.strategy_in_use == "heuristic"

    def test_empty_text_is_zero(self, counter):
        assert counter.count("") == 0


class TestTokenCounter:
    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            TokenCounter(strategy="bytes")

    def test_uses_loaded_encoding(self, monkeypatch):
        monkeypatch.setattr(tokenizer_module.tiktoken, "get_encoding", lambda name: _WordEncoding())
        counter = TokenCounter()
        assert counter.count("one two three") == 3
        assert counter.strategy_in_use == "tiktoken"

    def test_degrades_when_encoding_unavailable(self, monkeypatch):
        def fail(name):
            raise OSError("offline")

        monkeypatch.setattr(tokenizer_module.tiktoken, "get_encoding", fail)
        counter = TokenCounter()
        assert counter.count("abcdefgh") == 2
        assert counter.strategy_in_use == "heuristic"

    def test_single_encode_failure_falls_back(self, monkeypatch):
        monkeypatch.setattr(tokenizer_module.tiktoken, "get_encoding", lambda name: _BrokenEncoding())
        counter = TokenCounter()
        assert counter.count("abcdefgh") == 2
        # Encoding loaded fine; only that call degraded.
        assert counter.strategy_in_use == "tiktoken"

    def test_counts_are_cached(self, counter):
        counter.count("repeated text")
        counter.count("repeated text")
        assert counter.cache_info().hits >= 1
        counter.clear_cache()
        assert counter.cache_info().currsize == 0

    def test_module_level_count_tokens(self, monkeypatch):
        monkeypatch.setattr(tokenizer_module, "_DEFAULT_COUNTER", None)
        monkeypatch.setattr(tokenizer_module.tiktoken, "get_encoding", lambda name: _WordEncoding())
        assert tokenizer_module.count_tokens("four words right here") == 4
        assert tokenizer_module.count_tokens("") == 0

    def test_deterministic(self, counter):
        text = "The same input always yields the same count."
        assert counter.count(text) == counter.count(text) == heuristic_token_count(text)
