"""
Dosing Calculator: chemical correction for one measured parameter.

Pure arithmetic, no database access. Given a ParameterDefinition (or any
object exposing the same attributes), the measured value and the pool volume,
``recommend`` answers one of:

  - in range           → nothing to add
  - adjustable         → product + quantity (kg, 2 decimals)
  - direction unsupported → the recipe for that direction is missing
  - incomplete configuration / missing measurement → cannot compute

Formula:
    quantity = round2(|target - current| / increment * dosage
                      * (pool_volume / reference_volume))

Usage:
    from poolops.services.dosing import recommend

    rec = recommend(definition, Decimal("7.0"), Decimal("50"))
    rec.product, rec.quantity   # ("Acid Up", Decimal("10.00"))
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from poolops.core.exceptions import IncompleteConfiguration

TWO_PLACES = Decimal("0.01")

INCOMPLETE_CONFIGURATION = "incomplete configuration"
DIRECTION_UNSUPPORTED = "direction unsupported"
MISSING_MEASUREMENT = "missing measurement"

_REQUIRED_FIELDS = ("value_min", "value_max", "value_target", "reference_volume")


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


@dataclass(frozen=True)
class Recommendation:
    """Outcome of a dosing calculation."""
    in_range: bool = False
    direction: Direction | None = None
    product: str | None = None
    quantity: Decimal | None = None
    error: str | None = None
    missing: tuple[str, ...] = ()

    @property
    def is_adjustable(self) -> bool:
        return self.error is None and not self.in_range and self.product is not None

    @property
    def message(self) -> str:
        if self.in_range:
            return "Within ideal range"
        if self.is_adjustable:
            return f"Add {self.quantity} kg of {self.product}"
        if self.error == DIRECTION_UNSUPPORTED:
            return f"Cannot {self.direction.value} this parameter"
        if self.error == MISSING_MEASUREMENT:
            return "No measurement recorded"
        return f"Incomplete configuration: {', '.join(self.missing) or 'unknown field'}"

    def to_dict(self) -> dict:
        return {
            "in_range": self.in_range,
            "direction": self.direction.value if self.direction else None,
            "product": self.product,
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "error": self.error,
            "missing": list(self.missing),
            "message": self.message,
        }


def to_decimal(value) -> Decimal | None:
    """Coerce a number-ish value to Decimal. ``None`` and ``""`` stay None.

    Raises:
        ValueError: if the value is not numeric.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip().replace(",", "."))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round2(value: Decimal) -> Decimal:
    """Round half-up to two decimals."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _incomplete(*fields: str) -> Recommendation:
    return Recommendation(error=INCOMPLETE_CONFIGURATION, missing=tuple(fields))


def _recipe(definition, direction: Direction):
    suffix = direction.value
    return (
        getattr(definition, f"product_{suffix}", None),
        to_decimal(getattr(definition, f"dosage_{suffix}", None)),
        to_decimal(getattr(definition, f"increment_{suffix}", None)),
    )


def recommend(definition, current, pool_volume) -> Recommendation:
    """Compute the correction needed to bring *current* back to target.

    Args:
        definition: ParameterDefinition-like object.
        current: Measured value (Decimal, number or numeric string).
        pool_volume: Client pool volume in m³.

    Returns:
        Recommendation. Configuration problems are reported through
        ``error``, never raised.
    """
    current = to_decimal(current)
    if current is None:
        return Recommendation(error=MISSING_MEASUREMENT)

    missing = [f for f in _REQUIRED_FIELDS if getattr(definition, f, None) is None]
    if missing:
        return _incomplete(*missing)

    value_min = to_decimal(definition.value_min)
    value_max = to_decimal(definition.value_max)
    target = to_decimal(definition.value_target)

    if value_min <= current <= value_max:
        return Recommendation(in_range=True)

    reference_volume = to_decimal(definition.reference_volume)
    if reference_volume <= 0:
        return _incomplete("reference_volume")
    volume = to_decimal(pool_volume)
    if volume is None or volume <= 0:
        return _incomplete("pool_volume")

    direction = Direction.INCREASE if current < target else Direction.DECREASE
    product, dosage, increment = _recipe(definition, direction)
    if not product or not dosage or not increment:
        return Recommendation(direction=direction, error=DIRECTION_UNSUPPORTED)

    quantity = abs(target - current) / increment * dosage * (volume / reference_volume)
    return Recommendation(direction=direction, product=product, quantity=round2(quantity))


def require_adjustment(recommendation: Recommendation, parameter_name: str) -> Recommendation:
    """Raise IncompleteConfiguration when the recommendation could not be computed."""
    if recommendation.error == INCOMPLETE_CONFIGURATION:
        raise IncompleteConfiguration(parameter_name, list(recommendation.missing))
    return recommendation
