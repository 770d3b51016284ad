"""
Money: fixed-point currency in centavos.

Every amount the engines touch is an integer number of centavos
(1/100 of a Real). Floats never enter the arithmetic path:

- Sums and differences are plain integer operations
- Percentages go through Decimal and are rounded back to a whole
  centavo with ROUND_HALF_UP (half away from zero)
- Conversion to reais happens only for display

Money values are non-negative unless a caller explicitly asks for a
signed delta (e.g. savings between two regimes).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable, Union

from pydantic_core import core_schema

from .errors import NegativeResult, ValidationError

# Type alias for values accepted as a rate or a major-unit amount
Numeric = Union[int, float, str, Decimal]

CENTAVOS_PER_REAL = 100


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats are converted through their string form to keep the
    representation the caller typed (0.1 stays 0.1).
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError("Boolean is not a numeric value", value=value)
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid numeric value: {value!r}", value=str(value)) from e


def round_centavos(value: Decimal) -> int:
    """Round a Decimal amount of centavos to a whole centavo, half away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, order=True)
class Money:
    """
    Amount of Brazilian Reais stored as integer centavos.

    Examples:
        >>> Money(120_000_00).multiply_by_rate("0.05")
        Money(centavos=600000)
        >>> Money.from_major("10.005")
        Money(centavos=1001)
    """

    centavos: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.centavos, bool) or not isinstance(self.centavos, int):
            raise ValidationError(
                "Money must be an integer number of centavos",
                value=repr(self.centavos),
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_major(cls, value: Numeric) -> "Money":
        """Build from an amount in reais (e.g. "1234.56")."""
        return cls(round_centavos(to_decimal(value) * CENTAVOS_PER_REAL))

    @classmethod
    def sum(cls, values: Iterable["Money"]) -> "Money":
        total = 0
        for value in values:
            total += value.centavos
        return cls(total)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, other: "Money") -> "Money":
        return Money(self.centavos + other.centavos)

    def subtract(self, other: "Money", allow_negative: bool = False) -> "Money":
        """
        Subtract another amount.

        Raises:
            NegativeResult: If the result is negative and allow_negative is False
        """
        result = self.centavos - other.centavos
        if result < 0 and not allow_negative:
            raise NegativeResult(
                f"Subtracting {other} from {self} would be negative",
                minuend=self.centavos,
                subtrahend=other.centavos,
            )
        return Money(result)

    def subtract_floor(self, other: "Money") -> "Money":
        """Subtract, flooring the result at zero."""
        return Money(max(0, self.centavos - other.centavos))

    def multiply_by_rate(self, rate: Numeric) -> "Money":
        """Multiply by a fraction (0.15 = 15%), rounded to the nearest centavo."""
        return Money(round_centavos(Decimal(self.centavos) * to_decimal(rate)))

    def multiply(self, factor: int) -> "Money":
        return Money(self.centavos * factor)

    def divide(self, parts: int) -> "Money":
        """Split into equal parts, rounded to the nearest centavo."""
        if parts <= 0:
            raise ValidationError("Cannot divide money into zero or negative parts", parts=parts)
        return Money(round_centavos(Decimal(self.centavos) / Decimal(parts)))

    def ratio_to(self, other: "Money") -> Decimal:
        """This amount as a fraction of another (0 when the other is zero)."""
        if other.centavos == 0:
            return Decimal("0")
        return Decimal(self.centavos) / Decimal(other.centavos)

    def compare(self, other: "Money") -> int:
        """Three-way comparison: -1, 0 or 1."""
        return (self.centavos > other.centavos) - (self.centavos < other.centavos)

    def __add__(self, other: Any) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Any) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    # ------------------------------------------------------------------
    # Inspection / display
    # ------------------------------------------------------------------

    @property
    def is_zero(self) -> bool:
        return self.centavos == 0

    @property
    def is_negative(self) -> bool:
        return self.centavos < 0

    def to_major_units(self) -> Decimal:
        """Amount in reais. Display only; never feed back into arithmetic."""
        return (Decimal(self.centavos) / CENTAVOS_PER_REAL).quantize(Decimal("0.01"))

    def format_brl(self) -> str:
        """Format as R$ 1.234,56."""
        sign = "-" if self.centavos < 0 else ""
        reais, cents = divmod(abs(self.centavos), CENTAVOS_PER_REAL)
        grouped = f"{reais:,}".replace(",", ".")
        return f"{sign}R$ {grouped},{cents:02d}"

    def __str__(self) -> str:
        return self.format_brl()

    # ------------------------------------------------------------------
    # Pydantic integration
    # ------------------------------------------------------------------

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        from_int = core_schema.no_info_after_validator_function(
            cls, core_schema.int_schema(strict=True)
        )
        return core_schema.json_or_python_schema(
            json_schema=from_int,
            python_schema=core_schema.union_schema(
                [core_schema.is_instance_schema(cls), from_int]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.centavos
            ),
        )
