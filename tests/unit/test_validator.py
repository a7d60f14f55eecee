"""
Unit tests for core/validator.py - ResponseValidator
"""
from core.errors import SchemaMismatchError
from core.formatting import NumberedListFormatter, TaggedSegmentFormatter
from core.validator import ResponseValidator


class TestResponseValidator:
    """Test parsing and alignment checks."""

    def test_exact_match(self):
        report = ResponseValidator(NumberedListFormatter()).parse("1. A\n\n2. B", 2)

        assert not report.mismatch
        assert report.missing_indices == []
        assert [report.entries[i].text for i in sorted(report.entries)] == ["A", "B"]

    def test_missing_entry(self):
        report = ResponseValidator(NumberedListFormatter()).parse("1. A\n\n3. C", 3)

        assert report.mismatch
        assert report.received == 2
        assert report.missing_indices == [1]
        assert report.missing_count == 1

    def test_duplicates_keep_first_occurrence(self):
        report = ResponseValidator(NumberedListFormatter()).parse("1. A\n\n2. B\n\n2. B again", 2)

        assert report.duplicates == 1
        assert report.entries[1].text == "B"
        assert report.mismatch  # received 3 for 2

    def test_out_of_range_truncated(self):
        report = ResponseValidator(TaggedSegmentFormatter()).parse(
            '<seg id="1">A</seg><seg id="2">B</seg><seg id="9">Z</seg>', 2
        )

        assert report.out_of_range == 1
        assert sorted(report.entries) == [0, 1]
        assert report.missing_count == 0

    def test_garbage_response_never_raises(self):
        report = ResponseValidator(NumberedListFormatter()).parse("I cannot help with that.", 4)

        assert report.received == 0
        assert report.missing_indices == [0, 1, 2, 3]

    def test_empty_response(self):
        report = ResponseValidator(NumberedListFormatter()).parse(None, 1)
        assert report.missing_count == 1

    def test_report_to_error_and_dict(self):
        report = ResponseValidator(NumberedListFormatter()).parse("1. A", 3)

        error = report.to_error("openai")
        assert isinstance(error, SchemaMismatchError)
        assert error.expected == 3
        assert error.received == 1
        assert report.to_dict()["missing"] == 2
