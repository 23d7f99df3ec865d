"""Unit tests for core entities.

Tests cover the AnalysisResult invariants, confidence parsing and the
RawImage/NormalizedImage helpers.
"""
from dataclasses import FrozenInstanceError

import pytest

from digitscan.core.entities import (
    AnalysisResult, Classification, Confidence, DetectedDigit, NormalizedImage, RawImage,
    UNKNOWN_NUMBER,
)


class TestConfidence:
    """Test suite for Confidence parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("High", Confidence.HIGH),
        ("high", Confidence.HIGH),
        ("  MEDIUM ", Confidence.MEDIUM),
        ("low", Confidence.LOW),
    ])
    def test_parse_is_case_insensitive(self, value, expected):
        assert Confidence.parse(value) is expected

    @pytest.mark.parametrize("value", [None, "", "certain", 0.9, ["High"]])
    def test_unrecognised_labels_are_low(self, value):
        assert Confidence.parse(value) is Confidence.LOW


class TestAnalysisResult:
    """Test suite for AnalysisResult entity."""

    def test_single_digit_result(self):
        result = AnalysisResult(
            classification=Classification.SINGLE,
            identified_number="7",
            digits=(DetectedDigit("7", Confidence.HIGH),),
            raw_response="7",
        )

        assert result.identified_number == "7"
        assert not result.is_unknown

    def test_unknown_factory(self):
        result = AnalysisResult.unknown("a cat")

        assert result.classification is Classification.UNKNOWN
        assert result.identified_number == UNKNOWN_NUMBER
        assert result.digits == ()
        assert result.raw_response == "a cat"
        assert result.is_unknown

    def test_result_immutability(self):
        result = AnalysisResult.unknown("")

        with pytest.raises(FrozenInstanceError):
            result.identified_number = "1"

    def test_empty_identified_number_rejected(self):
        with pytest.raises(ValueError):
            AnalysisResult(Classification.UNKNOWN, "", ())

    def test_multiple_requires_more_than_one_digit(self):
        with pytest.raises(ValueError):
            AnalysisResult(Classification.MULTIPLE, "4", (DetectedDigit("4"),))

    def test_single_rejects_several_digits(self):
        with pytest.raises(ValueError):
            AnalysisResult(Classification.SINGLE, "42",
                           (DetectedDigit("4"), DetectedDigit("2")))

    def test_unknown_rejects_digits(self):
        with pytest.raises(ValueError):
            AnalysisResult(Classification.UNKNOWN, UNKNOWN_NUMBER, (DetectedDigit("4"),))

    def test_digits_required_unless_unknown(self):
        with pytest.raises(ValueError):
            AnalysisResult(Classification.SINGLE, "4", ())

    def test_to_dict_wire_shape(self):
        result = AnalysisResult(
            classification=Classification.MULTIPLE,
            identified_number="42",
            digits=(DetectedDigit("4", Confidence.HIGH), DetectedDigit("2", Confidence.MEDIUM)),
            raw_response="{}",
        )

        assert result.to_dict() == {
            "classification": "multiple",
            "identifiedNumber": "42",
            "digits": [
                {"value": "4", "confidence": "High"},
                {"value": "2", "confidence": "Medium"},
            ],
            "rawResponse": "{}",
        }


class TestRawImage:
    """Test suite for RawImage."""

    def test_size_is_byte_length(self):
        assert RawImage(content=b"abc", mime_type="image/png").size == 3

    @pytest.mark.parametrize("name,expected", [
        ("digits.png", "image/png"),
        ("digits.JPG", "image/jpeg"),
        ("digits.webp", "image/webp"),
        ("digits.gif", "image/gif"),
        ("digits", "application/octet-stream"),
    ])
    def test_from_path_infers_mime_type(self, temp_dir, name, expected):
        path = temp_dir / name
        path.write_bytes(b"\x00\x01")

        raw = RawImage.from_path(path)

        assert raw.mime_type == expected
        assert raw.filename == name
        assert raw.content == b"\x00\x01"

    def test_from_path_explicit_mime_type(self, temp_dir):
        path = temp_dir / "upload.bin"
        path.write_bytes(b"\xff")

        assert RawImage.from_path(path, mime_type="image/jpeg").mime_type == "image/jpeg"


class TestNormalizedImage:
    """Test suite for NormalizedImage."""

    def test_longest_edge(self):
        assert NormalizedImage(data=b"", width=300, height=1000).longest_edge == 1000

    def test_defaults_to_jpeg(self):
        assert NormalizedImage(data=b"\xff\xd8jpeg", width=1, height=1).mime_type == "image/jpeg"
