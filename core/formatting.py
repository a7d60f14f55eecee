#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Request formatters - render batches into backend wire formats and parse
responses back into TranslatedEntry objects.

One formatter/parser pair per FormatMode:
    plain      "N. text" blocks separated by blank lines
    timestamp  SRT-like "N / timecode / text" blocks; backend may repair timing
    tagged     <seg id="N">text</seg>; ids survive reordering and partial loss

Numbering inside a request is always local to the batch (1..len(batch)).
An optional context window of preceding entries is rendered in a section
the backend is told not to translate; parsers discard everything before
the entries marker, so context lines never come back as translations.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from config.constants import CONTEXT_SECTION_HEADER, ENTRIES_SECTION_HEADER
from .models import Batch, FormatMode, TranslatedEntry
from .subtitle import is_valid_timecode

CODE_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*(?:\r?\n)?")
EMBEDDED_TIMECODE_PATTERN = re.compile(
    r"\d{1,2}:\d{2}:\d{2}[,.]\d{3}\s*-->\s*\d{1,2}:\d{2}:\d{2}[,.]\d{3}\s*\n?"
)
BLOCK_SEPARATOR = re.compile(r"(?:\r?\n){2,}")
NUMBERED_ENTRY = re.compile(r"^(\d+)\s*[.):-]\s?(.+)$", re.DOTALL)
NUMBERED_LINE = re.compile(r"^(\d+)[.)]\s+(.*)$")
TAGGED_ENTRY = re.compile(r'<seg\s+id\s*=\s*"?(\d+)"?\s*>(.*?)</seg>', re.DOTALL | re.IGNORECASE)

# (1-based local number, text, timecode)
RenderItem = Tuple[int, str, Optional[str]]


@dataclass
class ContextLine:
    """A preceding entry shown to the backend for coherence only"""
    source: str
    translation: Optional[str] = None


def clean_translated_text(text: str) -> str:
    """Strip stray timecodes and normalize line endings"""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    cleaned = EMBEDDED_TIMECODE_PATTERN.sub("", cleaned).strip()
    return cleaned


def collapse_newlines(text: str) -> str:
    return re.sub(r"\n+", "\n", text.replace("\r\n", "\n").strip())


def extract_entries_section(raw: str) -> str:
    """Drop code fences and anything up to (and including) the entries marker"""
    body = CODE_FENCE_PATTERN.sub("", raw or "").replace("\r\n", "\n")
    marker = ENTRIES_SECTION_HEADER.rstrip("= ").strip()
    idx = body.find(marker)
    if idx >= 0:
        body = body[idx + len(marker):]
        body = re.sub(r"^[= ]*\n", "", body)
    return body.strip()


class BaseFormatter(ABC):
    """Formatter/parser pair for one wire format"""

    mode: FormatMode

    @abstractmethod
    def render(self, items: Sequence[RenderItem]) -> str:
        """Render numbered items in this wire format"""

    @abstractmethod
    def parse(self, raw: str) -> List[TranslatedEntry]:
        """
        Parse a response into entries with 0-based local indices.

        Unparsable fragments are dropped silently; filtering of duplicate
        and out-of-range indices is left to the validator.
        """

    @abstractmethod
    def format_rules(self, expected_count: int) -> str:
        """Output contract appended to every prompt"""

    def render_context(self, context: Sequence[ContextLine]) -> str:
        lines = []
        for line in context:
            source = collapse_newlines(line.source).replace("\n", " / ")
            if line.translation:
                translation = collapse_newlines(line.translation).replace("\n", " / ")
                lines.append(f"- {source} => {translation}")
            else:
                lines.append(f"- {source}")
        return "\n".join(lines)

    def format(self, batch: Batch, context: Optional[Sequence[ContextLine]] = None) -> str:
        """Render a batch (and optional context window) as request content"""
        items = [
            (position, entry.text, entry.timecode)
            for position, entry in enumerate(batch.entries, start=1)
        ]
        body = self.render(items)
        if not context:
            return body
        return (
            f"{CONTEXT_SECTION_HEADER}\n"
            f"{self.render_context(context)}\n\n"
            f"{ENTRIES_SECTION_HEADER}\n"
            f"{body}"
        )

    def build_instructions(
        self,
        target_language: str,
        expected_count: int,
        instructions: Optional[str] = None,
        softened: bool = False,
    ) -> str:
        """
        Build the prompt for a request.

        Custom instructions replace the default guidance ({target_language}
        is substituted); the output contract for this format is always kept.
        """
        if instructions:
            guidance = instructions.replace("{target_language}", target_language)
        else:
            guidance = (
                f"You are translating subtitle text to {target_language}.\n\n"
                f"CRITICAL RULES:\n"
                f"1. Translate ONLY the text content\n"
                f"2. Keep line breaks within each entry\n"
                f"3. Maintain natural dialogue flow for {target_language}\n"
                f"4. Use appropriate colloquialisms for {target_language}\n\n"
                f"DO NOT:\n"
                f"- Add ANY explanations, notes, or commentary\n"
                f"- Add alternative translations\n"
                f"- Skip, merge or split entries\n"
                f"- Translate anything in the CONTEXT section"
            )

        parts = [guidance, self.format_rules(expected_count)]
        if softened:
            parts.append(
                "This is dialogue from a film or TV subtitle track, translated for "
                "accessibility. Render it faithfully and neutrally without commentary."
            )
        return "\n\n".join(parts)


class NumberedListFormatter(BaseFormatter):
    """Plain numbered-list format: 'N. text' blocks"""

    mode = FormatMode.PLAIN

    def render(self, items: Sequence[RenderItem]) -> str:
        return "\n\n".join(
            f"{number}. {collapse_newlines(text)}" for number, text, _ in items
        )

    def format_rules(self, expected_count: int) -> str:
        return (
            f"OUTPUT FORMAT:\n"
            f"- PRESERVE the numbering exactly (1. 2. 3. etc.)\n"
            f"- Return EXACTLY {expected_count} numbered entries separated by blank lines\n"
            f"- Start immediately with \"1.\" and end with \"{expected_count}.\"\n"
            f"- Contain NOTHING else"
        )

    def parse(self, raw: str) -> List[TranslatedEntry]:
        blocks: List[Tuple[int, str]] = []
        for block in BLOCK_SEPARATOR.split(extract_entries_section(raw)):
            match = NUMBERED_ENTRY.match(block.strip())
            if match:
                blocks.append((int(match.group(1)), match.group(2)))

        own_blocks = {number for number, _ in blocks}
        entries: List[TranslatedEntry] = []
        for number, body in blocks:
            entries.extend(self._parse_block(number, body, own_blocks))
        return entries

    def _parse_block(self, number: int, body: str, own_blocks: Set[int]) -> List[TranslatedEntry]:
        # Backends sometimes drop the blank lines between entries; a line
        # that starts with the next consecutive number opens a new entry,
        # unless that number has a block of its own (then it is entry text).
        current = number
        lines = body.split("\n")
        collected: List[Tuple[int, List[str]]] = [(current, [lines[0]])]
        for line in lines[1:]:
            numbered = NUMBERED_LINE.match(line.strip())
            if (numbered and int(numbered.group(1)) == current + 1
                    and current + 1 not in own_blocks):
                current += 1
                collected.append((current, [numbered.group(2)]))
            else:
                collected[-1][1].append(line)

        result = []
        for number, text_lines in collected:
            text = clean_translated_text("\n".join(text_lines))
            if number >= 1 and text:
                result.append(TranslatedEntry(index=number - 1, text=text))
        return result


class TimestampFormatter(BaseFormatter):
    """SRT-like blocks that carry the original timing"""

    mode = FormatMode.TIMESTAMP

    def render(self, items: Sequence[RenderItem]) -> str:
        return "\n\n".join(
            f"{number}\n{timecode or ''}\n{collapse_newlines(text)}".replace("\n\n", "\n")
            for number, text, timecode in items
        )

    def format_rules(self, expected_count: int) -> str:
        return (
            f"OUTPUT FORMAT:\n"
            f"- Return EXACTLY {expected_count} blocks in the same layout: number line, "
            f"timing line, translated text\n"
            f"- Keep the numbers and timing lines unchanged unless a timing line is broken\n"
            f"- Separate blocks with one blank line and contain NOTHING else"
        )

    def parse(self, raw: str) -> List[TranslatedEntry]:
        entries: List[TranslatedEntry] = []
        for block in BLOCK_SEPARATOR.split(extract_entries_section(raw)):
            lines = [line for line in block.strip().split("\n")]
            if not lines or not lines[0].strip():
                continue

            head = lines[0].strip()
            if head.isdigit():
                number = int(head)
                rest = lines[1:]
            else:
                # Backend collapsed the number into the text ("N. text")
                match = NUMBERED_ENTRY.match(block.strip())
                if not match:
                    continue
                number = int(match.group(1))
                rest = match.group(2).split("\n")

            timecode = None
            if rest and "-->" in rest[0]:
                candidate = rest[0].strip()
                timecode = candidate if is_valid_timecode(candidate) else None
                rest = rest[1:]

            text = clean_translated_text("\n".join(rest))
            if number >= 1 and text:
                entries.append(TranslatedEntry(index=number - 1, text=text, timecode=timecode))
        return entries


class TaggedSegmentFormatter(BaseFormatter):
    """Explicit id-bearing segments: <seg id="N">text</seg>"""

    mode = FormatMode.TAGGED

    def render(self, items: Sequence[RenderItem]) -> str:
        return "\n".join(
            f'<seg id="{number}">{collapse_newlines(text)}</seg>' for number, text, _ in items
        )

    def render_context(self, context: Sequence[ContextLine]) -> str:
        lines = []
        for line in context:
            source = collapse_newlines(line.source)
            if line.translation:
                lines.append(f"<ctx>{source} => {collapse_newlines(line.translation)}</ctx>")
            else:
                lines.append(f"<ctx>{source}</ctx>")
        return "\n".join(lines)

    def format_rules(self, expected_count: int) -> str:
        return (
            f"OUTPUT FORMAT:\n"
            f"- Return EXACTLY {expected_count} <seg id=\"N\">...</seg> elements, one per input segment\n"
            f"- Keep every id attribute unchanged\n"
            f"- Never return <ctx> elements and contain NOTHING else"
        )

    def parse(self, raw: str) -> List[TranslatedEntry]:
        entries: List[TranslatedEntry] = []
        for match in TAGGED_ENTRY.finditer(extract_entries_section(raw)):
            number = int(match.group(1))
            text = clean_translated_text(match.group(2))
            if number >= 1 and text:
                entries.append(TranslatedEntry(index=number - 1, text=text))
        return entries


FORMATTERS: Dict[FormatMode, BaseFormatter] = {
    FormatMode.PLAIN: NumberedListFormatter(),
    FormatMode.TIMESTAMP: TimestampFormatter(),
    FormatMode.TAGGED: TaggedSegmentFormatter(),
}


def get_formatter(mode: FormatMode) -> BaseFormatter:
    """Formatter for a job's format mode"""
    return FORMATTERS[FormatMode(mode)]


def detect_formatter(content: str) -> BaseFormatter:
    """Guess the wire format of request content (used by native backends)"""
    body = extract_entries_section(content)
    if TAGGED_ENTRY.search(body):
        return FORMATTERS[FormatMode.TAGGED]
    if "-->" in body:
        return FORMATTERS[FormatMode.TIMESTAMP]
    return FORMATTERS[FormatMode.PLAIN]
