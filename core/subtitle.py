"""
SRT codec adapter.

Parsing and composing the subtitle container is delegated to the `srt`
library; this module only converts between its Subtitle objects and the
engine's Entry sequence.
"""

import re
from typing import Iterable, List

import srt

from .models import Entry

TIMECODE_PATTERN = re.compile(
    r"^\s*(\d{1,2}:\d{2}:\d{2}[,.]\d{1,3})\s*-->\s*(\d{1,2}:\d{2}:\d{2}[,.]\d{1,3})\s*$"
)


class SubtitleFormatError(ValueError):
    """Raised when the input cannot be read as SRT"""


def format_timecode(subtitle: srt.Subtitle) -> str:
    return (
        f"{srt.timedelta_to_srt_timestamp(subtitle.start)} --> "
        f"{srt.timedelta_to_srt_timestamp(subtitle.end)}"
    )


def is_valid_timecode(value: str) -> bool:
    """True if value looks like 'HH:MM:SS,mmm --> HH:MM:SS,mmm'"""
    return bool(value) and TIMECODE_PATTERN.match(value) is not None


def parse_sequence(raw: str) -> List[Entry]:
    """
    Parse SRT text into entries.

    Ids are reassigned by position so that id == position holds even when
    the source file skips or repeats indices.
    """
    try:
        subtitles = list(srt.parse(raw.replace("\r\n", "\n")))
    except srt.SRTParseError as e:
        raise SubtitleFormatError(f"Invalid SRT input: {e}") from e

    return [
        Entry(id=position, timecode=format_timecode(sub), text=sub.content.strip())
        for position, sub in enumerate(subtitles, start=1)
    ]


def serialize_sequence(entries: Iterable[Entry]) -> str:
    """Compose entries back into SRT text"""
    subtitles = []
    for entry in entries:
        match = TIMECODE_PATTERN.match(entry.timecode or "")
        if not match:
            raise SubtitleFormatError(f"Entry {entry.id} has an invalid timecode: {entry.timecode!r}")
        start, end = (part.replace(".", ",") for part in match.groups())
        subtitles.append(
            srt.Subtitle(
                index=entry.id,
                start=srt.srt_timestamp_to_timedelta(start),
                end=srt.srt_timestamp_to_timedelta(end),
                content=entry.text,
            )
        )
    return srt.compose(subtitles, reindex=False)
