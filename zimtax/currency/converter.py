"""
Currency conversion through a common base currency.

Rates are quoted as units of the currency per one unit of the base currency,
so the base currency always carries a rate of 1.0.
"""
from typing import Dict, Mapping, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.core.utils import as_number, setup_logging

logger = setup_logging("currency")

class Currency(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    symbol: str = ""
    name: str = ""
    decimal_places: int = 2
    rate_to_base: float = 1.0
    is_base: bool = False
    requires_withholding: bool = False
    requires_inflation_adjustment: bool = False
    exchange_losses_deductible: bool = True

    @field_validator("code")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()

RateTable = Mapping[str, Currency]

EXCHANGE_SCENARIOS = ("stable", "moderate", "high")

class CurrencyData(BaseModel):
    """Currency block attached to a period.

    currency_mix maps currency code -> share of revenue/expenses in that
    currency. Weights sum to at most 1; the remainder is base currency.
    """
    model_config = ConfigDict(frozen=True)

    currency_mix: Dict[str, float] = Field(default_factory=dict)
    exchange_rate_scenario: str = "stable"
    inflation_adjustment_factor: float = 1.0
    exchange_losses_deductible: bool = True

    @field_validator("currency_mix", mode="before")
    @classmethod
    def _clean_mix(cls, v):
        if not v:
            return {}
        mix = {str(k).upper(): max(0.0, as_number(w)) for k, w in dict(v).items()}
        total = sum(mix.values())
        if total > 1.0:
            # normalise over-allocated mixes instead of rejecting the period
            mix = {k: w / total for k, w in mix.items()}
        return mix

    @field_validator("exchange_rate_scenario", mode="before")
    @classmethod
    def _scenario(cls, v):
        v = (v or "stable").strip().lower()
        return v if v in EXCHANGE_SCENARIOS else "stable"

    @field_validator("inflation_adjustment_factor", mode="before")
    @classmethod
    def _factor(cls, v):
        factor = as_number(v)
        return factor if factor > 0 else 1.0

    @property
    def base_weight(self) -> float:
        return max(0.0, 1.0 - sum(self.currency_mix.values()))

def _rate(code: str, rate_table: RateTable) -> Optional[float]:
    currency = rate_table.get((code or "").upper())
    if currency is None or currency.rate_to_base <= 0:
        return None
    return currency.rate_to_base

def convert(amount: float, from_code: str, to_code: str, rate_table: RateTable) -> float:
    """Convert via the base currency. Unknown codes leave the amount unchanged."""
    amount = as_number(amount)
    if (from_code or "").upper() == (to_code or "").upper():
        return amount
    from_rate = _rate(from_code, rate_table)
    to_rate = _rate(to_code, rate_table)
    if from_rate is None or to_rate is None:
        missing = from_code if from_rate is None else to_code
        logger.warning("unknown currency %r, conversion %s->%s left unchanged", missing, from_code, to_code)
        return amount
    return amount / from_rate * to_rate

def base_code_of(rate_table: RateTable, default: str = "USD") -> str:
    for code, currency in rate_table.items():
        if currency.is_base:
            return code
    return default

def to_base(amount: float, from_code: str, rate_table: RateTable, base_code: Optional[str] = None) -> float:
    return convert(amount, from_code, base_code or base_code_of(rate_table), rate_table)

def exchange_gain_loss(opening_balance: float, closing_balance: float,
                       opening_rate: float, closing_rate: float) -> float:
    """Change in base-currency value of a foreign balance between two rates.

    Positive is a gain, negative a loss. A non-positive rate values that side at 0.
    """
    opening_rate = as_number(opening_rate)
    closing_rate = as_number(closing_rate)
    closing_value = as_number(closing_balance) / closing_rate if closing_rate > 0 else 0.0
    opening_value = as_number(opening_balance) / opening_rate if opening_rate > 0 else 0.0
    return closing_value - opening_value

class CurrencyConverter:
    def __init__(self, rate_table: RateTable, base_code: Optional[str] = None):
        self.rates: Dict[str, Currency] = {code.upper(): c for code, c in rate_table.items()}
        self.base_code = (base_code or base_code_of(self.rates)).upper()
        self.unknown_codes: Set[str] = set()

    def is_known(self, code: str) -> bool:
        return _rate(code, self.rates) is not None

    def _track(self, *codes: str):
        for code in codes:
            if not self.is_known(code):
                self.unknown_codes.add((code or "").upper())

    def convert(self, amount: float, from_code: str, to_code: str) -> float:
        self._track(from_code, to_code)
        return convert(amount, from_code, to_code, self.rates)

    def to_base(self, amount: float, from_code: str) -> float:
        return self.convert(amount, from_code, self.base_code)

    def with_rates(self, overrides: Mapping[str, float]) -> "CurrencyConverter":
        """Copy of this converter with some rates replaced (e.g. a simulated period)."""
        rates = dict(self.rates)
        for code, rate in overrides.items():
            code = code.upper()
            if code in rates and rate > 0:
                rates[code] = rates[code].model_copy(update={"rate_to_base": float(rate)})
        return CurrencyConverter(rates, self.base_code)

    def rate(self, code: str) -> float:
        return _rate(code, self.rates) or 1.0

    def round(self, amount: float, code: Optional[str] = None) -> float:
        """Round to the currency's minor unit. Reporting only; engines use raw floats."""
        currency = self.rates.get((code or self.base_code).upper())
        places = currency.decimal_places if currency else 2
        return round(as_number(amount), places)


def weighted_to_base(amount: float, currency_data: CurrencyData,
                     converter: CurrencyConverter,
                     opening: Optional[CurrencyConverter] = None) -> float:
    """Split a base-denominated budget across the currency mix and revalue it.

    Each slice is translated into its own currency at the opening rates, then
    converted back at the converter's (period) rates, independently per slice.
    Slices in currencies that require inflation adjustment are scaled by the
    period's inflation adjustment factor.
    """
    amount = as_number(amount)
    opening = opening or converter
    total = amount * currency_data.base_weight
    for code, weight in currency_data.currency_mix.items():
        nominal = opening.convert(amount * weight, opening.base_code, code)
        value = converter.to_base(nominal, code)
        currency = converter.rates.get(code)
        if currency is not None and currency.requires_inflation_adjustment:
            value *= currency_data.inflation_adjustment_factor
        total += value
    return total
