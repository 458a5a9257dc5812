from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Any, Iterable, Union

MINOR_UNITS = 100


@dataclass(frozen=True, order=True)
class Money:
    """Fixed-point amount in minor units (cents). Never backed by a float."""

    minor: int = 0

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"Money requires an integer number of minor units, got {self.minor!r}")

    @classmethod
    def from_major(cls, value: Union[Decimal, str, int]) -> "Money":
        """Convert a major-unit amount, rounding half-to-even to the nearest minor unit."""
        if isinstance(value, float):
            raise TypeError("Money cannot be built from a float; pass a Decimal or a string")
        from .errors import InvalidAmount

        try:
            cents = (Decimal(value) * MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
            return cls(int(cents))
        except (InvalidOperation, ValueError) as exc:
            # Garbage strings, NaN and infinities
            raise InvalidAmount(f"Not a monetary amount: {value!r}") from exc

    @classmethod
    def total(cls, amounts: Iterable["Money"]) -> "Money":
        return cls(sum(a.minor for a in amounts))

    def to_decimal(self) -> Decimal:
        return Decimal(self.minor) / MINOR_UNITS

    def is_zero(self) -> bool:
        return self.minor == 0

    def is_positive(self) -> bool:
        return self.minor > 0

    def is_negative(self) -> bool:
        return self.minor < 0

    def split(self, parts: int) -> list["Money"]:
        """
        Split into `parts` shares that add up exactly to this amount.

        The remainder is handed out one minor unit at a time starting with
        the first share, so earlier shares are never smaller than later ones.
        Negative amounts are split by magnitude and negated.
        """
        if parts <= 0:
            raise ValueError("parts must be > 0")
        sign = -1 if self.minor < 0 else 1
        base, remainder = divmod(abs(self.minor), parts)
        return [Money(sign * (base + (1 if i < remainder else 0))) for i in range(parts)]

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor)

    def __mul__(self, factor: int) -> "Money":
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.minor * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "Money":
        return Money(-self.minor)

    def __abs__(self) -> "Money":
        return Money(abs(self.minor))

    def __bool__(self) -> bool:
        return self.minor != 0

    def __str__(self) -> str:
        sign = "-" if self.minor < 0 else ""
        major, cents = divmod(abs(self.minor), MINOR_UNITS)
        return f"{sign}{major}.{cents:02d}"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any):
        from pydantic_core import core_schema

        from_int = core_schema.no_info_after_validator_function(cls, core_schema.int_schema())
        return core_schema.json_or_python_schema(
            json_schema=from_int,
            python_schema=core_schema.union_schema([
                core_schema.is_instance_schema(cls),
                from_int,
            ]),
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda m: m.minor, return_schema=core_schema.int_schema()
            ),
        )


ZERO = Money(0)
