"""Tests for split_long_message."""

import pytest

from diffpilot.bot.formatting import split_long_message


def test_empty_text_gives_placeholder():
    assert split_long_message("") == ["(empty)"]


def test_short_text_single_chunk():
    assert split_long_message("hello\nworld") == ["hello\nworld"]


def test_splits_on_line_boundaries():
    text = "\n".join(["a" * 4] * 5)  # 24 chars
    chunks = split_long_message(text, max_length=10)

    assert chunks == ["aaaa\naaaa", "aaaa\naaaa", "aaaa"]
    assert "\n".join(chunks) == text


def test_long_line_hard_split():
    chunks = split_long_message("x" * 25, max_length=10)
    assert chunks == ["x" * 10, "x" * 10, "x" * 5]


def test_default_limit_is_telegram_size():
    chunks = split_long_message("y" * 9000)
    assert [len(c) for c in chunks] == [4000, 4000, 1000]


def test_invalid_limit():
    with pytest.raises(ValueError):
        split_long_message("text", max_length=0)
