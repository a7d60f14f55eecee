"""
Unit tests for core/subtitle.py - SRT codec adapter
"""
import pytest

from core.models import Entry
from core.subtitle import (
    SubtitleFormatError,
    is_valid_timecode,
    parse_sequence,
    serialize_sequence,
)


class TestParseSequence:
    """Test SRT parsing."""

    def test_parse(self, sample_srt):
        entries = parse_sequence(sample_srt)

        assert [e.id for e in entries] == [1, 2, 3]
        assert entries[0].timecode == "00:00:01,000 --> 00:00:02,500"
        assert entries[1].text == "How are you?\nI'm fine."

    def test_ids_follow_position(self):
        raw = (
            "7\n00:00:01,000 --> 00:00:02,000\nA\n\n"
            "7\n00:00:03,000 --> 00:00:04,000\nB\n"
        )
        assert [e.id for e in parse_sequence(raw)] == [1, 2]

    def test_crlf_input(self):
        raw = "1\r\n00:00:01,000 --> 00:00:02,000\r\nHello\r\n"
        assert parse_sequence(raw)[0].text == "Hello"

    def test_empty_input(self):
        assert parse_sequence("") == []

    def test_garbage_raises(self):
        with pytest.raises(SubtitleFormatError):
            parse_sequence("this is not a subtitle file")


class TestSerializeSequence:
    """Test SRT composition."""

    def test_serialize_keeps_timing_and_text(self, sample_srt):
        entries = parse_sequence(sample_srt)
        translated = [e.with_text(e.text.upper()) for e in entries]

        output = serialize_sequence(translated)

        assert output.startswith("1\n00:00:01,000 --> 00:00:02,500\nHELLO THERE.\n")
        assert parse_sequence(output) == translated

    def test_invalid_timecode_raises(self):
        with pytest.raises(SubtitleFormatError):
            serialize_sequence([Entry(1, "soon", "Hello")])


class TestTimecodes:
    """Test timecode validation."""

    @pytest.mark.parametrize("value,valid", [
        ("00:00:01,000 --> 00:00:02,000", True),
        ("0:00:01.000 --> 0:00:02.000", True),
        ("00:00:01 --> 00:00:02", False),
        ("", False),
    ])
    def test_is_valid_timecode(self, value, valid):
        assert is_valid_timecode(value) is valid
