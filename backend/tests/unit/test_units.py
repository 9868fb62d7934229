"""Tests for token unit conversions."""

from decimal import Decimal

from sts_helper.core.units import ONE_TOKEN, format_tokens, from_base_units, to_base_units


class TestUnits:
    def test_to_base_units(self):
        assert to_base_units(Decimal("1.5")) == 15 * 10 ** 17
        assert to_base_units(3) == 3 * ONE_TOKEN
        assert to_base_units("2", decimals=6) == 2_000_000

    def test_to_base_units_truncates(self):
        """Digits beyond the token precision are dropped, not rounded."""
        assert to_base_units("0.0000000000000000019") == 1
        assert to_base_units(Decimal("-1.0000000000000000019")) == -ONE_TOKEN - 1

    def test_large_values_exact(self):
        """uint256-sized amounts survive the conversion."""
        big = 2 ** 255 + 12345
        assert to_base_units(from_base_units(big)) == big

    def test_from_base_units(self):
        assert from_base_units(ONE_TOKEN // 4) == Decimal("0.25")
        assert from_base_units(1_500_000, decimals=6) == Decimal("1.5")

    def test_format_tokens(self):
        assert format_tokens(15 * 10 ** 17) == "1.5"
        assert format_tokens(100 * ONE_TOKEN) == "100"
        assert format_tokens(0) == "0"
