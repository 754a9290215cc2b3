"""
Statutory rule tables for one tax year.

A TaxRules value is passed explicitly into every computation so that several
tax years (or jurisdictions) can be evaluated side by side.
"""
import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator, model_validator

from zimtax.core.config import settings
from zimtax.currency.converter import Currency

# Tabulated bands leave a gap of one minor unit between max and the next min
# (e.g. 100 / 100.01, 75000 / 75001).
MAX_BAND_GAP = 1.0

class TaxBand(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float = Field(ge=0)
    max: Optional[float] = None
    rate: float = Field(ge=0, le=1)
    deduct: float = Field(0.0, ge=0)

class BracketTable(RootModel[List[TaxBand]]):
    """Ordered, non-overlapping bands covering [0, inf)."""
    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_bands(self):
        bands = self.root
        if not bands:
            raise ValueError("bracket table needs at least one band")
        if bands[0].min != 0:
            raise ValueError("first band must start at 0")
        for prev, band in zip(bands, bands[1:]):
            if prev.max is None:
                raise ValueError("only the last band may be unbounded")
            if band.min < prev.max:
                raise ValueError(f"band starting at {band.min} overlaps band ending at {prev.max}")
            if band.min - prev.max > MAX_BAND_GAP:
                raise ValueError(f"gap between {prev.max} and {band.min}")
        for band in bands:
            if band.max is not None and band.max < band.min:
                raise ValueError(f"band {band.min}-{band.max} is inverted")
        if bands[-1].max is not None:
            raise ValueError("last band must be unbounded")
        return self

    def __iter__(self):
        return iter(self.root)

    def __len__(self):
        return len(self.root)

    def __getitem__(self, item):
        return self.root[item]

class AssetCategory(str, Enum):
    MOTOR_VEHICLES = "motor_vehicles"
    MOVEABLE_ASSETS = "moveable_assets"
    COMMERCIAL_BUILDINGS = "commercial_buildings"
    INDUSTRIAL_BUILDINGS = "industrial_buildings"
    LEASE_IMPROVEMENTS = "lease_improvements"
    IT_EQUIPMENT = "it_equipment"

class AllowanceRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    special: float = Field(0.0, ge=0, le=1)
    accelerated: float = Field(0.0, ge=0, le=1)
    wear_tear: float = Field(0.0, ge=0, le=1)

    @property
    def first_year(self) -> float:
        return max(self.special, self.accelerated)

class TaxRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    tax_year: int
    base_currency: str = "USD"
    currencies: Dict[str, Currency]

    corporate_rate: float = Field(ge=0, le=1)
    levy_rate: float = Field(ge=0, le=1)
    vat_rate: float = Field(ge=0, le=1)
    business_rates: Dict[str, float] = Field(default_factory=dict)
    withholding_rates: Dict[str, float] = Field(default_factory=dict)

    nssa_employee_rate: float = Field(ge=0, le=1)
    nssa_employer_rate: float = Field(ge=0, le=1)
    nssa_monthly_cap: float = Field(ge=0)
    nssa_contribution_cap: float = Field(ge=0)
    bonus_threshold: float = Field(ge=0)
    zimdef_rate: float = Field(ge=0, le=1)
    sdf_rate: float = Field(0.0, ge=0, le=1)
    apwc_max_rate: float = Field(ge=0, le=1)
    default_apwc_rate: float = Field(0.01, ge=0, le=1)
    medical_credit_rate: float = Field(0.5, ge=0, le=1)

    allowance_rates: Dict[AssetCategory, AllowanceRates]
    cap_allowances_at_cost: bool = True

    paye_brackets: BracketTable
    corporate_brackets: BracketTable

    volatility: Dict[str, float] = Field(default_factory=dict)

    @field_validator("base_currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _base_listed(self):
        if self.base_currency not in self.currencies:
            raise ValueError(f"base currency {self.base_currency} missing from currency table")
        return self

    def rates_for(self, category) -> Optional[AllowanceRates]:
        try:
            return self.allowance_rates.get(AssetCategory(category))
        except ValueError:
            return None

def _bands(rows) -> BracketTable:
    return BracketTable([TaxBand(min=lo, max=hi, rate=rate, deduct=deduct) for lo, hi, rate, deduct in rows])

# Zimbabwe 2025/2026 PAYE bands, monthly USD (deduction method)
PAYE_MONTHLY_USD = [
    (0, 100, 0.00, 0),
    (100.01, 300, 0.20, 20),
    (300.01, 1000, 0.25, 35),
    (1000.01, 2000, 0.30, 85),
    (2000.01, 3000, 0.35, 185),
    (3000.01, None, 0.40, 335),
]

# Annual income bands used for yearly projections
ANNUAL_BANDS_USD = [
    (0, 75000, 0.00, 0),
    (75001, 150000, 0.20, 15000),
    (150001, 300000, 0.25, 22500),
    (300001, 600000, 0.30, 37500),
    (600001, None, 0.40, 97500),
]

DEFAULT_CURRENCIES = [
    Currency(code="USD", symbol="$", name="US Dollar", rate_to_base=1.0, is_base=True),
    Currency(code="ZWG", symbol="ZWG", name="Zimbabwe Gold", rate_to_base=26.8,
             requires_inflation_adjustment=True, exchange_losses_deductible=False),
    Currency(code="ZAR", symbol="R", name="South African Rand", rate_to_base=18.2),
    Currency(code="GBP", symbol="£", name="British Pound", rate_to_base=0.79),
    Currency(code="EUR", symbol="€", name="Euro", rate_to_base=0.92),
]

DEFAULT_ALLOWANCE_RATES = {
    AssetCategory.MOTOR_VEHICLES: AllowanceRates(special=0.5, accelerated=0.25, wear_tear=0.2),
    AssetCategory.MOVEABLE_ASSETS: AllowanceRates(special=0.5, accelerated=0.25, wear_tear=0.1),
    AssetCategory.COMMERCIAL_BUILDINGS: AllowanceRates(special=0, accelerated=0, wear_tear=0.025),
    AssetCategory.INDUSTRIAL_BUILDINGS: AllowanceRates(special=0, accelerated=0, wear_tear=0.05),
    AssetCategory.LEASE_IMPROVEMENTS: AllowanceRates(special=0.5, accelerated=0.25, wear_tear=0.05),
    AssetCategory.IT_EQUIPMENT: AllowanceRates(special=0.5, accelerated=0.25, wear_tear=0.333),
}

def default_rules(tax_year: Optional[int] = None) -> TaxRules:
    return TaxRules(
        tax_year=tax_year or settings.TAX_YEAR,
        base_currency="USD",
        currencies={c.code: c for c in DEFAULT_CURRENCIES},
        corporate_rate=0.25,
        levy_rate=0.03,
        vat_rate=0.15,
        business_rates={"private": 0.25, "pvo": 0.15, "ngo": 0.15, "mining": 0.25, "agriculture": 0.25},
        withholding_rates={"royalties": 0.15, "fees": 0.15, "interest": 0.10, "tenders": 0.10},
        nssa_employee_rate=0.045,
        nssa_employer_rate=0.045,
        nssa_monthly_cap=700.0,
        nssa_contribution_cap=31.50,
        bonus_threshold=700.0,
        zimdef_rate=0.01,
        sdf_rate=0.005,
        apwc_max_rate=0.0216,
        default_apwc_rate=0.01,
        medical_credit_rate=0.5,
        allowance_rates=DEFAULT_ALLOWANCE_RATES,
        paye_brackets=_bands(PAYE_MONTHLY_USD),
        corporate_brackets=_bands(ANNUAL_BANDS_USD),
        volatility={"stable": 0.05, "moderate": 0.15, "high": 0.35},
    )

def load_rules(path: str) -> TaxRules:
    """Validate a JSON rule file (same shape as TaxRules.model_dump())."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return TaxRules.model_validate(raw)

def configured_rules() -> TaxRules:
    if settings.RULES_FILE:
        return load_rules(settings.RULES_FILE)
    return default_rules()
