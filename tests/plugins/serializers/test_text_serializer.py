# tests/plugins/serializers/test_text_serializer.py
"""Tests for the newline-delimited text serializer."""

from __future__ import annotations

import io

import pytest

from shardpipe.plugins.sentinels import END_OF_STREAM
from shardpipe.plugins.serializers.text import TextLineSerializer, iter_tokens


def _encode_all(elements: list[object], encoding: str = "utf-8") -> bytes:
    serializer = TextLineSerializer()
    raw = io.BytesIO()
    writer = serializer.open_writer(raw, encoding=encoding)
    for element in elements:
        serializer.encode(element, writer)
    writer.flush()
    return raw.getvalue()


def _decode_all(data: bytes, encoding: str = "utf-8") -> list[str]:
    serializer = TextLineSerializer()
    reader = serializer.open_reader(io.BytesIO(data), encoding=encoding)
    lines = []
    while (item := serializer.decode(reader)) is not END_OF_STREAM:
        lines.append(item)
    return lines


class TestTextEncode:
    """Encoding renders str(element) plus one newline."""

    def test_name(self) -> None:
        assert TextLineSerializer.name == "text"

    def test_elements_rendered_with_trailing_newline(self) -> None:
        assert _encode_all([1, "two", 3.5]) == b"1\ntwo\n3.5\n"

    def test_no_newline_translation_on_write(self) -> None:
        """Exactly one '\\n' per element regardless of platform."""
        assert _encode_all(["a"]) == b"a\n"

    def test_control_characters_pass_through(self) -> None:
        assert _encode_all(["\u0001"]) == b"\x01\n"

    def test_configured_encoding_is_used(self) -> None:
        data = _encode_all(["foobar"], encoding="utf-32")
        # utf-32 writes a BOM once, then four bytes per character
        assert len(data) == 4 + 4 * len("foobar\n")
        assert data.decode("utf-32") == "foobar\n"


class TestTextDecode:
    """Decoding yields lines without terminators until END_OF_STREAM."""

    def test_empty_stream_is_end_of_stream(self) -> None:
        assert _decode_all(b"") == []

    def test_lines_are_stripped(self) -> None:
        assert _decode_all(b"1\n2\n3\n") == ["1", "2", "3"]

    def test_final_line_without_newline_is_returned(self) -> None:
        assert _decode_all(b"a\nb") == ["a", "b"]

    def test_crlf_and_lone_cr_terminate_lines(self) -> None:
        assert _decode_all(b"a\r\nb\rc\n") == ["a", "b", "c"]

    def test_empty_lines_are_preserved(self) -> None:
        assert _decode_all(b"\n\nx\n") == ["", "", "x"]

    def test_decode_after_end_keeps_returning_end(self) -> None:
        serializer = TextLineSerializer()
        reader = serializer.open_reader(io.BytesIO(b"x\n"), encoding="utf-8")
        assert serializer.decode(reader) == "x"
        assert serializer.decode(reader) is END_OF_STREAM
        assert serializer.decode(reader) is END_OF_STREAM

    def test_non_default_encoding_round_trips(self) -> None:
        data = _encode_all(["foobar", "ünïcode"], encoding="utf-32")
        assert _decode_all(data, encoding="utf-32") == ["foobar", "ünïcode"]

    def test_invalid_bytes_raise(self) -> None:
        with pytest.raises(UnicodeDecodeError):
            _decode_all(b"\xff\xfe\xfd\n", encoding="utf-8")


class TestIterTokens:
    """Tokenizing mode splits lines on whitespace, outside the strategy."""

    def test_tokens_across_lines(self) -> None:
        assert list(iter_tokens(["  2  file.txt", "3\tb"])) == ["2", "file.txt", "3", "b"]

    def test_blank_lines_yield_nothing(self) -> None:
        assert list(iter_tokens(["", "   ", "x"])) == ["x"]

    def test_lazy(self) -> None:
        def lines():
            yield "a b"
            raise AssertionError("should not be pulled")

        tokens = iter_tokens(lines())
        assert next(tokens) == "a"
        assert next(tokens) == "b"
