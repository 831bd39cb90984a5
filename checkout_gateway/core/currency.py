"""
Currency table - static currency metadata, exchange rates and display rules.

Rates express 1 unit of the base currency in the target currency, so the
base currency's own rate is exactly 1. Tables are loaded once at startup from
the pricing data file and never mutated afterwards.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from checkout_gateway.core.exceptions import (
    PricingConfigError,
    UnsupportedCurrency,
    ValidationError,
)

TWO_PLACES = Decimal("0.01")
WHOLE_UNITS = Decimal("1")
DEFAULT_MINIMUM_ORDER = Decimal("1")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convert a numeric input to Decimal without binary float artefacts.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not
    Decimal("0.1000000000000000055511151231257827...").
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"Invalid {field}: must be a number") from None
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: must be a finite number")
    return result


def quantize_amount(value: Decimal, exponent: Decimal, field: str = "amount") -> Decimal:
    """
    Round half-up to `exponent`.

    Raises:
        ValidationError: If the value has more digits than the decimal
            context can hold at that precision
    """
    try:
        return value.quantize(exponent, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}: too large") from None


class Currency(BaseModel):
    """A supported display/charge currency."""

    code: str
    name: str
    symbol: str
    is_base: bool = False

    model_config = ConfigDict(frozen=True)


class CurrencyTable:
    """
    Lookup table for currencies, exchange rates and minimum-order rules.

    Exactly one currency is the base currency, and its rate is exactly 1.
    """

    def __init__(
        self,
        currencies: Iterable[Currency],
        rates: Mapping[str, Decimal],
        minimum_orders: Optional[Mapping[str, Decimal]] = None,
        zero_decimal_currencies: Iterable[str] = ("JPY", "KRW"),
    ):
        self._currencies: Dict[str, Currency] = {c.code.upper(): c for c in currencies}
        self._rates: Dict[str, Decimal] = {
            code.upper(): to_decimal(rate, "exchange rate") for code, rate in rates.items()
        }
        self._minimum_orders: Dict[str, Decimal] = {
            code.upper(): to_decimal(amount, "minimum order")
            for code, amount in (minimum_orders or {}).items()
        }
        self.zero_decimal_currencies = frozenset(c.upper() for c in zero_decimal_currencies)

        bases = [c for c in self._currencies.values() if c.is_base]
        if len(bases) != 1:
            raise PricingConfigError(
                f"Currency table must have exactly one base currency, found {len(bases)}"
            )
        self._base = bases[0]

        if self._rates.get(self._base.code) != Decimal("1"):
            raise PricingConfigError(
                f"Base currency {self._base.code} must have an exchange rate of exactly 1"
            )
        for code, rate in self._rates.items():
            if rate <= 0:
                raise PricingConfigError(f"Exchange rate for {code} must be positive")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CurrencyTable:
        """Build a table from the `currencies` section of the pricing data file."""
        base_code = str(data.get("base_currency", "")).upper()
        entries = data.get("currencies") or []
        if not entries:
            raise PricingConfigError("Pricing data defines no currencies")

        currencies: List[Currency] = []
        rates: Dict[str, Decimal] = {}
        minimums: Dict[str, Decimal] = {}
        for entry in entries:
            code = str(entry["code"]).upper()
            currencies.append(
                Currency(
                    code=code,
                    name=entry.get("name", code),
                    symbol=entry.get("symbol", code),
                    is_base=code == base_code,
                )
            )
            if "rate" in entry:
                rates[code] = to_decimal(entry["rate"], "exchange rate")
            if "minimum_order" in entry:
                minimums[code] = to_decimal(entry["minimum_order"], "minimum order")

        return cls(
            currencies,
            rates,
            minimums,
            data.get("zero_decimal_currencies", ("JPY", "KRW")),
        )

    @property
    def base_currency(self) -> Currency:
        return self._base

    @property
    def codes(self) -> List[str]:
        return list(self._currencies)

    def currencies(self) -> List[Currency]:
        return list(self._currencies.values())

    def get_currency(self, code: str) -> Optional[Currency]:
        return self._currencies.get((code or "").upper())

    def require_currency(self, code: str) -> Currency:
        currency = self.get_currency(code)
        if currency is None:
            raise UnsupportedCurrency(code)
        return currency

    def is_base(self, code: str) -> bool:
        return (code or "").upper() == self._base.code

    def rate_for(self, code: str) -> Decimal:
        """
        Exchange rate for a currency.

        Raises:
            UnsupportedCurrency: If no rate is configured. A missing rate is
                never treated as 1.
        """
        rate = self._rates.get((code or "").upper())
        if rate is None:
            raise UnsupportedCurrency(code, f"Exchange rate not found for currency: {code}")
        return rate

    def is_zero_decimal(self, code: str) -> bool:
        return (code or "").upper() in self.zero_decimal_currencies

    def precision(self, code: str) -> Decimal:
        """Smallest representable unit: 1 for zero-decimal currencies, else 0.01."""
        return WHOLE_UNITS if self.is_zero_decimal(code) else TWO_PLACES

    def quantize(self, amount: Decimal, code: str) -> Decimal:
        return quantize_amount(amount, self.precision(code))

    def minimum_order_amount(self, code: str) -> Decimal:
        return self._minimum_orders.get((code or "").upper(), DEFAULT_MINIMUM_ORDER)

    def payment_provider_for(self, code: str) -> str:
        """Base-currency orders go through Paystack; everything else through PayPal."""
        return "paystack" if self.is_base(code) else "paypal"

    def format_currency(self, amount: Any, code: str) -> str:
        """
        Human-readable amount, e.g. "₦100,000", "¥1", "$1,234.50".

        Never raises: unknown currencies and unparseable amounts fall back to
        a plain string.
        """
        currency = self.get_currency(code)
        try:
            value = to_decimal(amount)
        except ValidationError:
            return str(amount)
        if currency is None:
            return _plain_number(value)

        sign = "-" if value < 0 else ""
        value = abs(value)

        try:
            if self.is_zero_decimal(currency.code):
                whole = value.quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP)
                return f"{sign}{currency.symbol}{whole:,.0f}"

            cents = value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return f"{sign}{currency.symbol}{_plain_number(value)}"
        if currency.is_base and cents == cents.to_integral_value():
            return f"{sign}{currency.symbol}{cents:,.0f}"
        return f"{sign}{currency.symbol}{cents:,.2f}"


def _plain_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return format(value, "f").split(".")[0]
    return format(value.normalize(), "f")
