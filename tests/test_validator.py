"""
Tests for the plate grammar, confusion variants and token classification.
"""

import pytest

from plate_extractor.config import MAX_VARIANTS
from plate_extractor.models import TokenShape
from plate_extractor.validator import PlateValidator


class TestIsPlate:
    @pytest.mark.parametrize("text", ["KA51AK4247", "KA05A1234", "KA01MX0001"])
    def test_valid(self, text):
        assert PlateValidator.is_plate(text)

    @pytest.mark.parametrize(
        "text",
        ["MH12AB1234", "KA5AK4247", "KA51ABC4247", "KA51AK424", "KA51AK42477", "XKA51AK4247", "ka51ak4247"],
    )
    def test_invalid(self, text):
        assert not PlateValidator.is_plate(text)


class TestGenerateVariants:
    def test_includes_token_first(self):
        variants = PlateValidator.generate_variants("KAO5")
        assert variants[0] == "KAO5"
        assert "KA05" in variants

    def test_all_subsets_when_under_cap(self):
        assert sorted(PlateValidator.generate_variants("KAO5")) == sorted(["KAO5", "KA05", "KAOS", "KA0S"])

    def test_no_confusable_characters(self):
        assert PlateValidator.generate_variants("KAMX") == ["KAMX"]

    def test_single_swaps_before_pairs(self):
        variants = PlateValidator.generate_variants("O1")
        assert variants == ["O1", "01", "OI", "0I"]

    @pytest.mark.parametrize("k", [1, 3, 5, 6, 8])
    def test_count_is_min_of_subsets_and_cap(self, k):
        token = "KA" + "0" * k
        variants = PlateValidator.generate_variants(token)
        assert len(variants) == min(2 ** k, MAX_VARIANTS)
        assert len(set(variants)) == len(variants)

    def test_custom_limit(self):
        assert len(PlateValidator.generate_variants("0000", limit=3)) == 3

    def test_only_first_ten_positions_toggled(self):
        token = "0" * 12
        variants = PlateValidator.generate_variants(token, limit=10_000)
        assert len(variants) == 2 ** 10
        assert all(v.endswith("00") for v in variants)

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            PlateValidator.generate_variants("KA", limit=0)


class TestResolve:
    def test_direct(self):
        assert PlateValidator.resolve("KA51AK4247") == "KA51AK4247"

    def test_through_variant(self):
        assert PlateValidator.resolve("KAO5AB1234") == "KA05AB1234"

    def test_unresolvable(self):
        assert PlateValidator.resolve("MH12AB1234") is None


class TestClassify:
    def test_primary_shapes(self):
        assert PlateValidator.classify("KA", 0).shape is TokenShape.KA_LITERAL
        assert PlateValidator.classify("KA51", 0).shape is TokenShape.DISTRICT
        assert PlateValidator.classify("KA51AK", 0).shape is TokenShape.DISTRICT_SERIES
        assert PlateValidator.classify("AK4247", 0).shape is TokenShape.SERIES_NUMBER
        assert PlateValidator.classify("AK", 0).shape is TokenShape.SERIES
        assert PlateValidator.classify("51", 0).shape is TokenShape.TWO_DIGITS
        assert PlateValidator.classify("4247", 0).shape is TokenShape.FOUR_DIGITS
        assert PlateValidator.classify("KA51AK4247", 0).shape is TokenShape.FULL_PLATE
        assert PlateValidator.classify("HELLO", 0).shape is TokenShape.OTHER

    def test_variant_readings(self):
        token = PlateValidator.classify("KAO5", 3)
        assert token.shape is TokenShape.OTHER
        assert token.index == 3
        assert token.reading(TokenShape.DISTRICT) == "KA05"
        assert token.reading(TokenShape.FULL_PLATE) is None

    def test_digit_reading_of_letters(self):
        token = PlateValidator.classify("42A7", 0)
        assert token.reading(TokenShape.FOUR_DIGITS) is None
        assert PlateValidator.classify("4Z47", 0).reading(TokenShape.FOUR_DIGITS) == "4247"
