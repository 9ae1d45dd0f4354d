"""
Dosing calculator tests.

Covers ``poolops.services.dosing``:
    - in-range readings (boundaries inclusive)
    - increase / decrease quantities and linear scaling with pool volume
    - half-up rounding to two decimals
    - unsupported direction, incomplete configuration, missing measurement
    - number coercion
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from poolops.core.exceptions import IncompleteConfiguration
from poolops.services.dosing import (
    DIRECTION_UNSUPPORTED,
    INCOMPLETE_CONFIGURATION,
    MISSING_MEASUREMENT,
    Direction,
    recommend,
    require_adjustment,
    to_decimal,
)


def _ph(**overrides):
    fields = dict(
        value_min=Decimal("7.2"),
        value_max=Decimal("7.6"),
        value_target=Decimal("7.4"),
        product_increase="Acid Up",
        dosage_increase=Decimal("1.0"),
        increment_increase=Decimal("0.2"),
        product_decrease="pH Down",
        dosage_decrease=Decimal("0.5"),
        increment_decrease=Decimal("0.1"),
        reference_volume=Decimal("10"),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestInRange:
    @pytest.mark.parametrize("value", ["7.2", "7.4", "7.6", "7.35"])
    def test_in_range_has_no_product(self, value):
        rec = recommend(_ph(), Decimal(value), Decimal("50"))
        assert rec.in_range is True
        assert rec.product is None
        assert rec.quantity is None
        assert rec.error is None
        assert rec.message == "Within ideal range"

    def test_in_range_needs_no_pool_volume(self):
        rec = recommend(_ph(), Decimal("7.4"), None)
        assert rec.in_range is True


class TestAdjustment:
    def test_ph_scenario(self):
        """pH 7.0 in a 50 m³ pool with 1.0 per 0.2 per 10 m³ → 10.00 Acid Up."""
        rec = recommend(_ph(), Decimal("7.0"), Decimal("50"))
        assert rec.direction is Direction.INCREASE
        assert rec.product == "Acid Up"
        assert rec.quantity == Decimal("10.00")
        assert rec.is_adjustable
        assert rec.message == "Add 10.00 kg of Acid Up"

    def test_quantity_scales_linearly_with_pool_volume(self):
        small = recommend(_ph(), Decimal("7.0"), Decimal("25"))
        large = recommend(_ph(), Decimal("7.0"), Decimal("100"))
        assert small.quantity == Decimal("5.00")
        assert large.quantity == Decimal("20.00")

    def test_decrease_uses_decrease_recipe(self):
        rec = recommend(_ph(), Decimal("8.0"), Decimal("50"))
        assert rec.direction is Direction.DECREASE
        assert rec.product == "pH Down"
        # |7.4 - 8.0| / 0.1 * 0.5 * 50/10
        assert rec.quantity == Decimal("15.00")

    def test_rounds_half_up(self):
        definition = _ph(dosage_increase=Decimal("0.0625"))
        rec = recommend(definition, Decimal("7.0"), Decimal("10"))
        assert rec.quantity == Decimal("0.13")

    def test_accepts_plain_numbers_and_strings(self):
        rec = recommend(_ph(), "7.0", 50)
        assert rec.quantity == Decimal("10.00")


class TestCannotAdjust:
    def test_missing_decrease_recipe_is_direction_unsupported(self):
        definition = _ph(product_decrease=None)
        rec = recommend(definition, Decimal("8.0"), Decimal("50"))
        assert rec.error == DIRECTION_UNSUPPORTED
        assert rec.direction is Direction.DECREASE
        assert rec.product is None
        assert not rec.is_adjustable
        assert rec.message == "Cannot decrease this parameter"

    def test_zero_increment_is_direction_unsupported(self):
        definition = _ph(increment_increase=Decimal("0"))
        rec = recommend(definition, Decimal("7.0"), Decimal("50"))
        assert rec.error == DIRECTION_UNSUPPORTED

    @pytest.mark.parametrize("field", ["value_min", "value_max", "value_target", "reference_volume"])
    def test_missing_required_field_is_incomplete(self, field):
        rec = recommend(_ph(**{field: None}), Decimal("7.0"), Decimal("50"))
        assert rec.error == INCOMPLETE_CONFIGURATION
        assert rec.missing == (field,)
        assert rec.message.startswith("Incomplete configuration")

    def test_non_positive_reference_volume_is_incomplete(self):
        rec = recommend(_ph(reference_volume=Decimal("0")), Decimal("7.0"), Decimal("50"))
        assert rec.error == INCOMPLETE_CONFIGURATION
        assert rec.missing == ("reference_volume",)

    @pytest.mark.parametrize("volume", [None, Decimal("0"), Decimal("-5")])
    def test_bad_pool_volume_is_incomplete(self, volume):
        rec = recommend(_ph(), Decimal("7.0"), volume)
        assert rec.error == INCOMPLETE_CONFIGURATION
        assert rec.missing == ("pool_volume",)

    def test_missing_measurement(self):
        rec = recommend(_ph(), None, Decimal("50"))
        assert rec.error == MISSING_MEASUREMENT
        assert rec.message == "No measurement recorded"


class TestRequireAdjustment:
    def test_raises_on_incomplete_configuration(self):
        rec = recommend(_ph(value_target=None), Decimal("7.0"), Decimal("50"))
        with pytest.raises(IncompleteConfiguration) as exc:
            require_adjustment(rec, "pH")
        assert exc.value.parameter_name == "pH"
        assert exc.value.missing == ["value_target"]

    def test_passes_through_other_outcomes(self):
        rec = recommend(_ph(product_decrease=None), Decimal("8.0"), Decimal("50"))
        assert require_adjustment(rec, "pH") is rec


class TestToDecimal:
    def test_comma_decimal_separator(self):
        assert to_decimal("7,5") == Decimal("7.5")

    def test_blank_is_none(self):
        assert to_decimal("") is None
        assert to_decimal(None) is None

    @pytest.mark.parametrize("value", ["abc", True, "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_recommendation_to_dict(self):
        d = recommend(_ph(), Decimal("7.0"), Decimal("50")).to_dict()
        assert d["product"] == "Acid Up"
        assert d["quantity"] == "10.00"
        assert d["direction"] == "increase"
        assert d["in_range"] is False
