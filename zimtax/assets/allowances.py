"""
Asset register and capital allowance schedule.

In the period an asset is acquired it claims cost * max(special, accelerated)
once; every later period claims cost * wear_tear. When cap_at_cost is set the
cumulative claim per asset never exceeds its cost.
"""
import re
import uuid
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from zimtax.core.utils import as_number, setup_logging
from zimtax.currency.converter import CurrencyConverter
from zimtax.planning.periods import Period, period_of_date
from zimtax.tax.rules import AllowanceRates, AssetCategory

logger = setup_logging("allowances")

def _snake(name: str) -> str:
    name = re.sub(r"[\s\-]+", "_", name.strip())
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()

class Asset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    category: str
    acquisition_date: Optional[date] = None
    acquisition_year: Optional[int] = None
    cost: float = 0.0
    currency: str = "USD"
    cost_base: Optional[float] = None
    written_down_value: Optional[float] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v):
        if isinstance(v, AssetCategory):
            return v.value
        return _snake(str(v or ""))

    @field_validator("cost", mode="before")
    @classmethod
    def _cost(cls, v):
        return as_number(v)

    @model_validator(mode="before")
    @classmethod
    def _derive(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("acquisition_year") is None:
            acquired = data.get("acquisition_date")
            if isinstance(acquired, str) and acquired:
                acquired = date.fromisoformat(acquired[:10])
                data["acquisition_date"] = acquired
            data["acquisition_year"] = acquired.year if isinstance(acquired, date) else date.today().year
        if data.get("cost_base") is None:
            data["cost_base"] = as_number(data.get("cost"))
        if data.get("written_down_value") is None:
            data["written_down_value"] = data["cost_base"]
        return data

class AllowanceSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    by_period: Dict[str, float]
    by_asset: Dict[str, Dict[str, float]]
    closing_values: Dict[str, float]

    def total(self) -> float:
        return sum(self.by_period.values())

def allowance_breakdown(cost: float, rates: AllowanceRates) -> Dict[str, float]:
    """Single-asset view of the three claims; the largest one is claimed."""
    cost = max(0.0, as_number(cost))
    special = cost * rates.special
    accelerated = cost * rates.accelerated
    wear_tear = cost * rates.wear_tear
    return {
        "special_initial_allowance": special,
        "accelerated_wear_tear": accelerated,
        "wear_tear": wear_tear,
        "claimed": max(special, accelerated, wear_tear),
    }

def _lookup_rates(category: str, rates: Mapping) -> Optional[AllowanceRates]:
    try:
        return rates.get(AssetCategory(category))
    except ValueError:
        return rates.get(category)

def schedule_allowances(assets: Iterable[Asset],
                        periods: Sequence[Period],
                        rates: Mapping,
                        *,
                        cap_at_cost: bool = True,
                        accelerated: bool = True) -> AllowanceSchedule:
    """Allowance per period across the asset register.

    accelerated=False claims plain wear and tear in the acquisition period too.
    Assets are only read.
    """
    ordered = sorted(periods, key=lambda p: p.sort_key)
    by_period = {p.id: 0.0 for p in ordered}
    by_asset: Dict[str, Dict[str, float]] = {}
    closing: Dict[str, float] = {}

    for asset in assets:
        asset_rates = _lookup_rates(asset.category, rates)
        cost = max(0.0, asset.cost_base or 0.0)
        claims = {p.id: 0.0 for p in ordered}
        by_asset[asset.id] = claims
        if asset_rates is None:
            logger.warning("no allowance rates for category %r (asset %s), allowing 0", asset.category, asset.id)
            closing[asset.id] = asset.written_down_value or 0.0
            continue

        claimed = 0.0
        for period in ordered:
            if asset.acquisition_date is not None and asset.acquisition_date.year == period.year:
                start_seq = period_of_date(asset.acquisition_date, period.type)
            else:
                start_seq = 1
            start = (asset.acquisition_year, start_seq)
            if period.sort_key < start:
                continue
            if period.sort_key == start:
                rate = asset_rates.first_year if accelerated else asset_rates.wear_tear
            else:
                rate = asset_rates.wear_tear
            amount = cost * rate
            if cap_at_cost:
                amount = min(amount, max(0.0, cost - claimed))
            claimed += amount
            claims[period.id] = amount
            by_period[period.id] += amount
        closing[asset.id] = max(0.0, cost - claimed)

    return AllowanceSchedule(by_period=by_period, by_asset=by_asset, closing_values=closing)

def apply_schedule(assets: Iterable[Asset], schedule: AllowanceSchedule) -> List[Asset]:
    """New asset values with written-down values reduced by the schedule."""
    updated = []
    for asset in assets:
        closing = schedule.closing_values.get(asset.id)
        if closing is None:
            updated.append(asset)
            continue
        wdv = min(asset.written_down_value or 0.0, closing)
        updated.append(asset.model_copy(update={"written_down_value": max(0.0, wdv)}))
    return updated

class AssetRegister:
    """Registered assets. Assets leave only through remove()."""

    def __init__(self, converter: CurrencyConverter):
        self.converter = converter
        self._assets: Dict[str, Asset] = {}

    def add(self, name: str, category, cost: float, currency: str = None,
            acquisition_date: Optional[date] = None) -> Asset:
        currency = (currency or self.converter.base_code).upper()
        asset = Asset(
            name=name,
            category=category,
            acquisition_date=acquisition_date,
            cost=cost,
            currency=currency,
            cost_base=self.converter.to_base(as_number(cost), currency),
        )
        self._assets[asset.id] = asset
        logger.info("registered asset %s (%s) cost_base=%.2f", asset.id, asset.category, asset.cost_base)
        return asset

    def remove(self, asset_id: str) -> bool:
        return self._assets.pop(asset_id, None) is not None

    def get(self, asset_id: str) -> Optional[Asset]:
        return self._assets.get(asset_id)

    @property
    def assets(self) -> List[Asset]:
        return list(self._assets.values())

    def schedule(self, periods: Sequence[Period], rates: Mapping, **kwargs) -> AllowanceSchedule:
        return schedule_allowances(self.assets, periods, rates, **kwargs)

    def apply(self, schedule: AllowanceSchedule) -> None:
        for asset in apply_schedule(self.assets, schedule):
            self._assets[asset.id] = asset

    def __len__(self):
        return len(self._assets)
