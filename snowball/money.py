"""Exact currency amounts.

Money pairs a ``Decimal`` amount with an ISO 4217 currency code and always
holds the amount at the currency's minor unit. Binary floats are refused at
every entry point. Construction never rounds: an amount with more precision
than the minor unit is an error, so every rounding point in the engine is an
explicit ``multiply``/``divide`` call with a named rounding mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Final, Iterable

from .errors import ConfigurationError, CurrencyMismatchError

__all__ = ["MINOR_UNITS", "Money", "ROUND_DOWN", "ROUND_HALF_EVEN", "ROUND_HALF_UP", "to_decimal"]

MINOR_UNITS: Final[dict[str, int]] = {
    "CZK": 2,
    "EUR": 2,
    "GBP": 2,
    "USD": 2,
}

_CURRENCY_SYMBOLS: Final[dict[str, str]] = {
    "CZK": "Kč",
    "EUR": "€",
    "GBP": "£",
    "USD": "$",
}


def to_decimal(value: Decimal | int | str, field: str = "value") -> Decimal:
    """Convert an exact scalar to Decimal, refusing floats."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{field}: floats are not accepted for money arithmetic, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"{field}: invalid decimal {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field}: non-finite decimal {value!r}")
    return result


def _quantum(currency: str) -> Decimal:
    places = MINOR_UNITS.get(currency)
    if places is None:
        raise ConfigurationError(f"Unsupported currency {currency!r}", rule="money", context={"currency": currency})
    return Decimal(1).scaleb(-places)


@dataclass(frozen=True, slots=True)
class Money:
    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        amount = to_decimal(self.amount, "amount")
        quantum = _quantum(self.currency)
        quantized = amount.quantize(quantum)
        if quantized != amount:
            raise ValueError(f"amount {amount} has more precision than {self.currency} minor unit; round explicitly")
        object.__setattr__(self, "amount", quantized)

    @classmethod
    def of(cls, amount: Decimal | int | str, currency: str) -> Money:
        return cls(amount=to_decimal(amount, "amount"), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount=Decimal(0), currency=currency)

    @classmethod
    def rounded(cls, value: Decimal, currency: str, rounding: str) -> Money:
        """Round an exact intermediate result to the minor unit."""
        return cls(amount=to_decimal(value).quantize(_quantum(currency), rounding=rounding), currency=currency)

    @classmethod
    def total(cls, items: Iterable[Money], currency: str) -> Money:
        result = cls.zero(currency)
        for item in items:
            result = result + item
        return result

    @classmethod
    def from_json(cls, value: str | int, currency: str) -> Money:
        return cls.of(value, currency)

    def to_json(self) -> str:
        return str(self.amount)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def _check(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount >= other.amount

    def multiply(self, rate: Decimal | int | str, rounding: str) -> Money:
        """Multiply by an exact rate and round to the minor unit with ``rounding``."""
        product = self.amount * to_decimal(rate, "rate")
        return Money(product.quantize(_quantum(self.currency), rounding=rounding), self.currency)

    def divide(self, divisor: Decimal | int, rounding: str) -> Money:
        divisor_value = to_decimal(divisor, "divisor")
        if divisor_value == 0:
            raise ConfigurationError(
                "division of money by zero",
                rule="money.divide",
                context={"amount": str(self.amount), "currency": self.currency},
            )
        quotient = self.amount / divisor_value
        return Money(quotient.quantize(_quantum(self.currency), rounding=rounding), self.currency)

    def ratio(self, other: Money) -> Decimal:
        """Exact ratio ``self / other``; a zero denominator is a configuration error."""
        self._check(other)
        if other.is_zero:
            raise ConfigurationError(
                "ratio against a zero amount",
                rule="money.ratio",
                context={"numerator": str(self.amount), "currency": self.currency},
            )
        return self.amount / other.amount

    def clamp_min_zero(self) -> Money:
        return self if self.amount >= 0 else Money.zero(self.currency)

    def format(self) -> str:
        symbol = _CURRENCY_SYMBOLS.get(self.currency, self.currency)
        return f"{self.amount:,.2f} {symbol}"

    def __str__(self) -> str:
        return f"{self.amount:,.2f} {self.currency}"
