"""
Money Value Object

Fixed-point monetary amounts stored as integer minor units (cents).
Parsing is tolerant of the formats vision models emit ("1.234,56",
"EUR 12,50", "€ 99.00") but never guesses: anything ambiguous or with
sub-cent precision parses to None instead of being truncated.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENTS_PER_UNIT = 100
DECIMAL_PLACES = 2

CURRENCY_SYMBOLS = {
    '€': 'EUR',
    '$': 'USD',
    '£': 'GBP',
    '¥': 'JPY',
}

_CURRENCY_CODE_PREFIX = re.compile(r'^([A-Za-z]{3})(?=[\s\d\-.,])')
_CURRENCY_CODE_SUFFIX = re.compile(r'(?<=[\s\d.,])([A-Za-z]{3})$')
_NUMERIC_BODY = re.compile(r'^-?[\d.,]+$')


@dataclass(frozen=True, order=False)
class Money:
    """
    Money represented in minor units.

    Examples:
        Money(12345)  -> 123.45
        Money(-5000)  -> -50.00

    Arithmetic only ever touches the integer minor units, so sums of
    extracted amounts are exact.
    """
    minor: int
    currency: Optional[str] = None

    @classmethod
    def from_minor(cls, minor: int, currency: Optional[str] = None) -> 'Money':
        """Create Money from an amount in minor units"""
        return cls(int(minor), currency)

    @classmethod
    def zero(cls, currency: Optional[str] = None) -> 'Money':
        return cls(0, currency)

    @classmethod
    def parse(cls, value: Any, currency: Optional[str] = None) -> Optional['Money']:
        """
        Parse a monetary amount from model output.

        Args:
            value: String, int (whole units), float/Decimal or Money
            currency: Currency to attach when the text carries none

        Returns:
            Money, or None when the value is absent or not a clean amount
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, Money):
            return value
        if isinstance(value, int):
            return cls(value * CENTS_PER_UNIT, currency)
        if isinstance(value, (float, Decimal)):
            return cls._from_decimal(value, currency)
        if isinstance(value, str):
            return cls._parse_text(value, currency)
        return None

    @classmethod
    def _from_decimal(cls, value: Any, currency: Optional[str]) -> Optional['Money']:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        if not amount.is_finite():
            return None

        minor = amount * CENTS_PER_UNIT
        if minor != minor.to_integral_value():
            # Sub-cent precision
            return None
        return cls(int(minor), currency)

    @classmethod
    def _parse_text(cls, value: str, currency: Optional[str]) -> Optional['Money']:
        text = value.strip().replace('\u00a0', ' ')
        if not text:
            return None

        # Currency symbols and ISO codes, leading or trailing
        for symbol, code in CURRENCY_SYMBOLS.items():
            if symbol in text:
                text = text.replace(symbol, '')
                currency = currency or code

        prefix = _CURRENCY_CODE_PREFIX.match(text)
        if prefix:
            currency = currency or prefix.group(1).upper()
            text = text[prefix.end():]
        suffix = _CURRENCY_CODE_SUFFIX.search(text)
        if suffix:
            currency = currency or suffix.group(1).upper()
            text = text[:suffix.start()]

        text = text.replace(' ', '')
        if not text or not _NUMERIC_BODY.match(text):
            return None

        is_negative = text.startswith('-')
        body = text[1:] if is_negative else text

        split = cls._split_decimal(body)
        if split is None:
            return None
        whole, fraction = split

        if not whole and not fraction:
            return None
        if len(fraction) > DECIMAL_PLACES:
            return None

        cents = int(fraction.ljust(DECIMAL_PLACES, '0')) if fraction else 0
        minor = int(whole or '0') * CENTS_PER_UNIT + cents
        return cls(-minor if is_negative else minor, currency)

    @staticmethod
    def _split_decimal(body: str) -> Optional[tuple]:
        """Split a digits-and-separators body into (whole, fraction) digit strings"""
        dots = body.count('.')
        commas = body.count(',')

        if dots and commas:
            decimal_sep = '.' if body.rfind('.') > body.rfind(',') else ','
            thousands_sep = ',' if decimal_sep == '.' else '.'
            if body.count(decimal_sep) > 1:
                return None
            whole, fraction = body.split(decimal_sep)
            groups = whole.split(thousands_sep)
            if not groups[0] or len(groups[0]) > 3:
                return None
            if any(len(group) != 3 for group in groups[1:]):
                return None
            whole = ''.join(groups)
        elif dots or commas:
            sep = '.' if dots else ','
            if body.count(sep) > 1:
                return None
            whole, fraction = body.split(sep)
        else:
            whole, fraction = body, ''

        if whole and not whole.isdigit():
            return None
        if fraction and not fraction.isdigit():
            return None
        return whole, fraction

    # Arithmetic

    def _check_currency(self, other: 'Money') -> Optional[str]:
        if self.currency and other.currency and self.currency != other.currency:
            raise ValueError(f"Cannot combine {self.currency} and {other.currency} amounts")
        return self.currency or other.currency

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor, self._check_currency(other))

    def __sub__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor, self._check_currency(other))

    def __mul__(self, factor: int) -> 'Money':
        if isinstance(factor, bool) or not isinstance(factor, int):
            return NotImplemented
        return Money(self.minor * factor, self.currency)

    __rmul__ = __mul__

    def __neg__(self) -> 'Money':
        return Money(-self.minor, self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.minor), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        return self.minor < other.minor

    def __le__(self, other: 'Money') -> bool:
        return self.minor <= other.minor

    def __gt__(self, other: 'Money') -> bool:
        return self.minor > other.minor

    def __ge__(self, other: 'Money') -> bool:
        return self.minor >= other.minor

    def times_quantity(self, quantity: float) -> 'Money':
        """
        Multiply by a possibly fractional quantity (e.g. 2.5 hours, 0.75 kg).

        The product is rounded half-up to the minor unit. Raises ValueError
        for NaN or infinite quantities.
        """
        factor = Decimal(str(quantity))
        if not factor.is_finite():
            raise ValueError(f"Cannot multiply by non-finite quantity {quantity!r}")
        product = factor * Decimal(self.minor)
        return Money(int(product.quantize(Decimal('1'), rounding=ROUND_HALF_UP)), self.currency)

    @staticmethod
    def sum(amounts, currency: Optional[str] = None) -> 'Money':
        """Sum an iterable of Money values"""
        total = Money(0, currency)
        for amount in amounts:
            total = total + amount
        return total

    # Queries

    @property
    def is_zero(self) -> bool:
        return self.minor == 0

    @property
    def is_negative(self) -> bool:
        return self.minor < 0

    def equals_within_tolerance(self, other: 'Money', tolerance_minor: int) -> bool:
        """True when both amounts differ by at most tolerance_minor cents"""
        return abs(self.minor - other.minor) <= tolerance_minor

    def to_decimal(self) -> Decimal:
        return Decimal(self.minor) / CENTS_PER_UNIT

    def to_display_string(self) -> str:
        """Display string with 2 decimal places, e.g. "123.45" or "-50.00" """
        sign = '-' if self.minor < 0 else ''
        whole, cents = divmod(abs(self.minor), CENTS_PER_UNIT)
        return f"{sign}{whole}.{cents:02d}"

    def __str__(self) -> str:
        return self.to_display_string()
