"""
Unit tests for core/formatting.py - request formatters and response parsers
"""
import pytest

from config.constants import CONTEXT_SECTION_HEADER, ENTRIES_SECTION_HEADER
from core.formatting import (
    ContextLine,
    NumberedListFormatter,
    TaggedSegmentFormatter,
    TimestampFormatter,
    clean_translated_text,
    detect_formatter,
    extract_entries_section,
    get_formatter,
)
from core.models import Batch, Entry, FormatMode


@pytest.fixture
def batch():
    return Batch.from_entries([
        Entry(1, "00:00:01,000 --> 00:00:02,500", "Hello there."),
        Entry(2, "00:00:03,000 --> 00:00:05,000", "How are you?\nI'm fine."),
        Entry(3, "00:00:06,000 --> 00:00:07,000", "- Goodbye!"),
    ])


class TestHelpers:
    """Test module-level helpers."""

    def test_clean_removes_embedded_timecodes(self):
        assert clean_translated_text("00:00:01,000 --> 00:00:02,000\nBonjour") == "Bonjour"

    def test_clean_normalizes_line_endings(self):
        assert clean_translated_text("  A\r\nB  ") == "A\nB"

    def test_extract_strips_code_fences(self):
        assert extract_entries_section("```text\n1. A\n```") == "1. A"

    def test_extract_drops_context_section(self):
        raw = f"{CONTEXT_SECTION_HEADER}\n- old line\n\n{ENTRIES_SECTION_HEADER}\n1. New"
        assert extract_entries_section(raw) == "1. New"

    def test_get_formatter_by_mode(self):
        assert isinstance(get_formatter(FormatMode.PLAIN), NumberedListFormatter)
        assert isinstance(get_formatter(FormatMode.TIMESTAMP), TimestampFormatter)
        assert isinstance(get_formatter(FormatMode.TAGGED), TaggedSegmentFormatter)

    def test_detect_formatter(self):
        assert detect_formatter('<seg id="1">A</seg>').mode == FormatMode.TAGGED
        assert detect_formatter("1\n00:00:01,000 --> 00:00:02,000\nA").mode == FormatMode.TIMESTAMP
        assert detect_formatter("1. A").mode == FormatMode.PLAIN


class TestNumberedListFormatter:
    """Test the plain numbered-list format."""

    def test_render_uses_local_numbering(self, batch):
        formatter = NumberedListFormatter()
        sub = batch.slice(1, 3)
        assert formatter.format(sub) == "1. How are you?\nI'm fine.\n\n2. - Goodbye!"

    def test_parse_blocks(self):
        entries = NumberedListFormatter().parse("1. Bonjour.\n\n2. Ça va ?\nÇa va.")
        assert [(e.index, e.text) for e in entries] == [(0, "Bonjour."), (1, "Ça va ?\nÇa va.")]

    def test_parse_keeps_dialogue_dash(self):
        entries = NumberedListFormatter().parse("3. - Au revoir !")
        assert entries[0].index == 2
        assert entries[0].text == "- Au revoir !"

    def test_parse_without_blank_lines(self):
        entries = NumberedListFormatter().parse("1. A\n2. B\n3. C")
        assert [e.text for e in entries] == ["A", "B", "C"]

    def test_numbered_line_inside_entry_stays_with_entry(self):
        formatter = NumberedListFormatter()
        entries = [
            Entry(1, "00:00:01,000 --> 00:00:02,000", "Rules:\n2. Never talk"),
            Entry(2, "00:00:03,000 --> 00:00:04,000", "OK"),
        ]
        content = formatter.format(Batch.from_entries(entries))

        parsed = formatter.parse(content)

        assert [(e.index, e.text) for e in parsed] == [(0, "Rules:\n2. Never talk"), (1, "OK")]

    def test_run_together_entries_split_only_without_own_block(self):
        entries = NumberedListFormatter().parse("1. A\n2. B\n\n3. C\n4. x\n\n4. D")
        assert [(e.index, e.text) for e in entries] == [(0, "A"), (1, "B"), (2, "C\n4. x"), (3, "D")]

    def test_parse_ignores_preamble(self):
        entries = NumberedListFormatter().parse("Here is the translation:\n\n1. A\n\n2. B")
        assert [e.index for e in entries] == [0, 1]

    def test_context_never_parsed_as_entries(self, batch):
        formatter = NumberedListFormatter()
        context = [ContextLine("1. Earlier line", "Ligne précédente")]
        content = formatter.format(batch, context)

        assert CONTEXT_SECTION_HEADER in content
        assert [e.text for e in formatter.parse(content)] == [e.text for e in batch.entries]

    def test_prompt_contains_count(self):
        prompt = NumberedListFormatter().build_instructions("French", 12)
        assert "French" in prompt
        assert "EXACTLY 12" in prompt


class TestTimestampFormatter:
    """Test the SRT-like timestamp format."""

    def test_render(self, batch):
        rendered = TimestampFormatter().format(batch.slice(0, 1))
        assert rendered == "1\n00:00:01,000 --> 00:00:02,500\nHello there."

    def test_parse_keeps_valid_timecode(self):
        entries = TimestampFormatter().parse("1\n00:00:01,000 --> 00:00:02,600\nBonjour.")
        assert entries[0].timecode == "00:00:01,000 --> 00:00:02,600"
        assert entries[0].text == "Bonjour."

    def test_parse_drops_broken_timecode(self):
        entries = TimestampFormatter().parse("1\n00:00:01 --> soon\nBonjour.")
        assert entries[0].timecode is None
        assert entries[0].text == "Bonjour."

    def test_parse_numbered_text_block(self):
        entries = TimestampFormatter().parse("2. Salut")
        assert entries[0].index == 1
        assert entries[0].text == "Salut"


class TestTaggedSegmentFormatter:
    """Test the tagged segment format."""

    def test_render(self, batch):
        rendered = TaggedSegmentFormatter().format(batch.slice(0, 1))
        assert rendered == '<seg id="1">Hello there.</seg>'

    def test_parse_out_of_order(self):
        entries = TaggedSegmentFormatter().parse('<seg id="2">B</seg>\n<seg id="1">A</seg>')
        assert [(e.index, e.text) for e in entries] == [(1, "B"), (0, "A")]

    def test_context_rendered_as_ctx(self, batch):
        content = TaggedSegmentFormatter().format(batch, [ContextLine("Before")])
        assert "<ctx>Before</ctx>" in content
        assert len(TaggedSegmentFormatter().parse(content)) == 3


class TestBuildInstructions:
    """Test prompt construction."""

    def test_custom_instructions_substitute_language(self):
        prompt = NumberedListFormatter().build_instructions(
            "German", 5, instructions="Translate into {target_language}, keep it casual."
        )
        assert prompt.startswith("Translate into German, keep it casual.")
        assert "EXACTLY 5" in prompt
        assert "CRITICAL RULES" not in prompt

    def test_softened_prompt(self):
        formatter = TaggedSegmentFormatter()
        normal = formatter.build_instructions("Spanish", 3)
        softened = formatter.build_instructions("Spanish", 3, softened=True)
        assert softened.startswith(normal)
        assert "accessibility" in softened
