"""
Unit tests for the progress value codec (nephra.review.progress).

Usage:
    pytest backend/tests/test_progress_codec.py -v
"""

import pytest

from nephra.review.errors import ReviewValidationError
from nephra.review.progress import (
    coerce_percent,
    decode_progress,
    encode_progress,
    round_half_up,
)


class TestDecodeProgress:
    def test_encode_then_decode_with_notes_recovers_percent(self):
        for percent in range(0, 101):
            assert decode_progress(encode_progress(percent), True) == max(1, min(100, percent))

    def test_legacy_sentinel_without_notes_reads_one(self):
        assert decode_progress(1, False) == 1

    def test_one_with_notes_reads_hundred(self):
        assert decode_progress(1, True) == 100
        assert decode_progress(1.0, True) == 100

    def test_absent_value_reads_one(self):
        assert decode_progress(None, False) == 1
        assert decode_progress(None, True) == 1

    def test_value_above_one_is_already_percent(self):
        assert decode_progress(45, True) == 45
        assert decode_progress(45, False) == 45

    def test_fraction_is_scaled(self):
        assert decode_progress(0.45, True) == 45

    def test_zero_is_shown_as_one(self):
        assert decode_progress(0, True) == 1

    def test_legacy_percent_above_hundred_is_clamped(self):
        assert decode_progress(250, True) == 100

    def test_half_rounds_up(self):
        assert decode_progress(12.5, True) == 13
        assert decode_progress(0.125, True) == 13

    def test_numeric_string_is_accepted(self):
        assert decode_progress("0.3", True) == 30

    def test_garbage_reads_as_absent(self):
        assert decode_progress("n/a", True) == 1
        assert decode_progress(float("nan"), True) == 1
        assert decode_progress(True, True) == 1


class TestEncodeProgress:
    def test_percent_becomes_fraction(self):
        assert encode_progress(45) == pytest.approx(0.45)

    def test_out_of_range_is_clamped(self):
        assert encode_progress(-10) == 0.0
        assert encode_progress(180) == 1.0

    def test_result_always_in_unit_interval(self):
        for percent in (-5, 0, 0.5, 33.3, 99.9, 100, 1e6):
            assert 0.0 <= encode_progress(percent) <= 1.0


class TestCoercePercent:
    def test_numbers_and_numeric_strings(self):
        assert coerce_percent(40) == 40.0
        assert coerce_percent(40.5) == 40.5
        assert coerce_percent(" 75 ") == 75.0

    @pytest.mark.parametrize("value", [None, True, "abc", "", [], {}, float("inf")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ReviewValidationError) as exc_info:
            coerce_percent(value)
        assert exc_info.value.field == "percent"


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
