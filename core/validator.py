#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ResponseValidator - Parse a backend response and check it against the
request shape.

Parsing never raises on malformed content: unparsable fragments are
dropped, duplicate indices keep their first occurrence, and indices beyond
the batch are truncated. The report records what was expected, what came
back and which positions are still missing, so the recovery step can
decide what to do.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from config.logging_config import get_logger
from .errors import SchemaMismatchError
from .formatting import BaseFormatter
from .models import TranslatedEntry

logger = get_logger(__name__)


@dataclass
class ParseReport:
    """Result of parsing and validating one response"""
    expected: int
    received: int = 0
    entries: Dict[int, TranslatedEntry] = field(default_factory=dict)
    duplicates: int = 0
    out_of_range: int = 0

    @property
    def missing_indices(self) -> List[int]:
        return [i for i in range(self.expected) if i not in self.entries]

    @property
    def missing_count(self) -> int:
        return self.expected - len(self.entries)

    @property
    def mismatch(self) -> bool:
        return self.received != self.expected or self.missing_count > 0

    def to_error(self, provider: str = "") -> SchemaMismatchError:
        return SchemaMismatchError(self.expected, self.received, provider=provider)

    def to_dict(self) -> Dict:
        return {
            "expected": self.expected,
            "received": self.received,
            "aligned": len(self.entries),
            "missing": self.missing_count,
            "duplicates": self.duplicates,
            "out_of_range": self.out_of_range,
        }


class ResponseValidator:
    """Parses responses with the job's formatter and validates alignment"""

    def __init__(self, formatter: BaseFormatter):
        self.formatter = formatter

    def parse(self, raw: str, expected_count: int) -> ParseReport:
        """
        Parse a raw response into a ParseReport.

        Args:
            raw: Response text from the backend
            expected_count: Number of entries sent in the request

        Returns:
            ParseReport with entries keyed by 0-based index
        """
        report = ParseReport(expected=expected_count)
        parsed = self.formatter.parse(raw or "")
        report.received = len(parsed)

        for entry in parsed:
            if entry.index < 0 or entry.index >= expected_count:
                report.out_of_range += 1
                continue
            if entry.index in report.entries:
                report.duplicates += 1
                continue
            report.entries[entry.index] = entry

        if report.mismatch:
            logger.warning(
                f"Entry count mismatch: expected {expected_count}, received {report.received} "
                f"({len(report.entries)} aligned, {report.duplicates} duplicates, "
                f"{report.out_of_range} out of range)"
            )
        return report
