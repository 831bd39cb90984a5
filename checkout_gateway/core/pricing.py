"""
Pricing engine - conversion, delivery fees, service fees and order totals.

Rounding rules:
- Conversions round to the target currency's precision
- Service and delivery fees are rounded independently
- The total is rounded once, to the currency's precision

All amounts are Decimal; floats never enter the arithmetic.
"""
from __future__ import annotations

import re
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Pattern

import structlog
import yaml
from pydantic import BaseModel, ConfigDict

from checkout_gateway.core.currency import TWO_PLACES, CurrencyTable, quantize_amount, to_decimal
from checkout_gateway.core.exceptions import PricingConfigError, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_SERVICE_FEE_RATE = Decimal("0.02")


class DeliveryTier(str, Enum):
    """Geographic delivery tier."""

    LOCAL = "local"
    NATIONAL = "national"
    INTERNATIONAL = "international"


class FeeSchedule(BaseModel):
    """Delivery fee per tier, in whole units of one currency."""

    local: Decimal
    national: Decimal
    international: Decimal

    model_config = ConfigDict(frozen=True)

    def fee_for(self, tier: DeliveryTier) -> Decimal:
        return getattr(self, tier.value)


class PricingResult(BaseModel):
    """Breakdown of an order total in a single currency."""

    subtotal: Decimal
    service_fee: Decimal
    delivery_fee: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str
    delivery_tier: DeliveryTier

    model_config = ConfigDict(frozen=True)


def _compile_terms(terms: Iterable[str]) -> Optional[Pattern[str]]:
    cleaned = sorted({t.strip().lower() for t in terms if t and t.strip()}, key=len, reverse=True)
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(t) for t in cleaned)
    return re.compile(rf"(?<![\w-])(?:{alternatives})(?![\w-])")


class RegionClassifier:
    """
    Pure location -> delivery tier classifier.

    Terms match on word boundaries, so "niger" does not match "nigeria" and
    "Ikeja, Lagos" still matches "lagos".
    """

    def __init__(
        self,
        home: Iterable[str],
        domestic: Iterable[str],
        international_keywords: Iterable[str] = ("international", "worldwide", "global"),
    ):
        self._home = _compile_terms(home)
        self._domestic = _compile_terms(domestic)
        self._international = _compile_terms(international_keywords)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RegionClassifier:
        return cls(
            home=data.get("home") or [],
            domestic=data.get("domestic") or [],
            international_keywords=data.get(
                "international_keywords", ("international", "worldwide", "global")
            ),
        )

    @staticmethod
    def normalize(location: Optional[str]) -> str:
        return (location or "").strip().lower()

    @staticmethod
    def _matches(pattern: Optional[Pattern[str]], text: str) -> bool:
        return bool(pattern and pattern.search(text))

    def classify(self, location: Optional[str], is_base_currency: bool) -> DeliveryTier:
        normalized = self.normalize(location)

        if not is_base_currency:
            # Domestic region lists only make sense inside the home country
            if self._matches(self._international, normalized):
                return DeliveryTier.INTERNATIONAL
            return DeliveryTier.NATIONAL

        if not normalized or self._matches(self._home, normalized):
            return DeliveryTier.LOCAL
        if self._matches(self._domestic, normalized):
            return DeliveryTier.NATIONAL
        return DeliveryTier.INTERNATIONAL


class PricingEngine:
    """
    Computes fees and totals on top of a CurrencyTable.

    Fee schedules are authored per currency; a currency without its own
    schedule uses the base schedule converted at the table rate.
    """

    def __init__(
        self,
        currency_table: CurrencyTable,
        fee_schedules: Mapping[str, FeeSchedule],
        classifier: RegionClassifier,
        service_fee_rate: Decimal = DEFAULT_SERVICE_FEE_RATE,
    ):
        self.currency_table = currency_table
        self.fee_schedules: Dict[str, FeeSchedule] = {
            code.upper(): schedule for code, schedule in fee_schedules.items()
        }
        self.classifier = classifier
        self.service_fee_rate = to_decimal(service_fee_rate, "service fee rate")

        base_code = currency_table.base_currency.code
        if base_code not in self.fee_schedules:
            raise PricingConfigError(f"No delivery fee schedule for base currency {base_code}")

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], service_fee_rate: Optional[Decimal] = None
    ) -> PricingEngine:
        table = CurrencyTable.from_dict(data)
        schedules = {
            code: FeeSchedule(**{tier: to_decimal(v, "delivery fee") for tier, v in fees.items()})
            for code, fees in (data.get("delivery_fees") or {}).items()
        }
        rate = service_fee_rate
        if rate is None:
            rate = to_decimal(data.get("service_fee_rate", DEFAULT_SERVICE_FEE_RATE), "service fee rate")
        return cls(table, schedules, RegionClassifier.from_dict(data.get("regions") or {}), rate)

    @classmethod
    def from_file(
        cls, path: Path | str, service_fee_rate: Optional[Decimal] = None
    ) -> PricingEngine:
        """Load the engine from a YAML pricing data file."""
        path = Path(path)
        if not path.exists():
            raise PricingConfigError(f"Pricing data file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        engine = cls.from_dict(data, service_fee_rate)
        logger.info(
            "pricing_data_loaded",
            path=str(path),
            base_currency=engine.currency_table.base_currency.code,
            currencies=len(engine.currency_table.codes),
            service_fee_rate=str(engine.service_fee_rate),
        )
        return engine

    # Conversion

    def convert_from_base(self, amount_in_base: Any, target_currency: str) -> Decimal:
        """Convert a base-currency amount into `target_currency`."""
        amount = to_decimal(amount_in_base)
        rate = self.currency_table.rate_for(target_currency)
        return self.currency_table.quantize(amount * rate, target_currency)

    def convert_to_base(self, amount: Any, source_currency: str) -> Decimal:
        """Convert an amount in `source_currency` back into the base currency."""
        value = to_decimal(amount)
        rate = self.currency_table.rate_for(source_currency)
        base_code = self.currency_table.base_currency.code
        return self.currency_table.quantize(value / rate, base_code)

    # Fees

    def fee_schedule_for(self, currency: str) -> FeeSchedule:
        code = (currency or "").upper()
        schedule = self.fee_schedules.get(code)
        if schedule is not None:
            return schedule

        base_schedule = self.fee_schedules[self.currency_table.base_currency.code]
        return FeeSchedule(
            local=self.convert_from_base(base_schedule.local, code),
            national=self.convert_from_base(base_schedule.national, code),
            international=self.convert_from_base(base_schedule.international, code),
        )

    def delivery_tier(self, location: Optional[str], currency: str) -> DeliveryTier:
        return self.classifier.classify(location, self.currency_table.is_base(currency))

    def calculate_delivery_fee(self, location: Optional[str], currency: str) -> Decimal:
        tier = self.delivery_tier(location, currency)
        return self.fee_schedule_for(currency).fee_for(tier)

    def calculate_service_fee(self, subtotal: Any) -> Decimal:
        amount = to_decimal(subtotal, "subtotal")
        return quantize_amount(amount * self.service_fee_rate, TWO_PLACES, "subtotal")

    def calculate_order_total(
        self,
        subtotal: Any,
        location: Optional[str],
        currency: str,
        discount_amount: Any = 0,
    ) -> PricingResult:
        """
        Full price breakdown for an order.

        The service fee is charged on the discounted subtotal.

        Raises:
            ValidationError: Negative subtotal/discount, or discount above subtotal
            UnsupportedCurrency: Currency unknown to the table
        """
        code = self.currency_table.require_currency(currency).code
        subtotal_value = to_decimal(subtotal, "subtotal")
        discount = to_decimal(discount_amount, "discount amount")

        if subtotal_value < 0:
            raise ValidationError("Subtotal must not be negative")
        if discount < 0:
            raise ValidationError("Discount amount must not be negative")
        if discount > subtotal_value:
            raise ValidationError("Discount amount cannot exceed subtotal")

        discounted = subtotal_value - discount
        service_fee = self.calculate_service_fee(discounted)
        tier = self.delivery_tier(location, code)
        delivery_fee = self.fee_schedule_for(code).fee_for(tier)
        total = self.currency_table.quantize(discounted + service_fee + delivery_fee, code)

        return PricingResult(
            subtotal=subtotal_value,
            service_fee=service_fee,
            delivery_fee=delivery_fee,
            discount_amount=discount,
            total=total,
            currency=code,
            delivery_tier=tier,
        )

    def check_minimum_order(self, subtotal: Any, currency: str) -> None:
        """Raise ValidationError when `subtotal` is below the currency's minimum order."""
        minimum = self.currency_table.minimum_order_amount(currency)
        if to_decimal(subtotal, "subtotal") < minimum:
            raise ValidationError(
                "Order is below the minimum of "
                f"{self.currency_table.format_currency(minimum, currency)}"
            )

    def format_currency(self, amount: Any, currency: str) -> str:
        return self.currency_table.format_currency(amount, currency)
