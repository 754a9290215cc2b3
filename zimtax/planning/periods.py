"""
Projection periods (annual, quarterly, monthly).
"""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.currency.converter import CurrencyData
from zimtax.tax.corporate import Adjustments, TaxResult

PERIODS_PER_YEAR = {"annually": 1, "quarterly": 4, "monthly": 12}

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
               'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "annually"
    year: int
    sequence: int = 1
    label: str = ""
    actuals: Dict[str, float] = Field(default_factory=dict)
    adjustments: Adjustments = Field(default_factory=Adjustments)
    tax_result: Optional[TaxResult] = None
    currency_data: CurrencyData = Field(default_factory=CurrencyData)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v):
        v = (v or "annually").strip().lower()
        if v == "annual":
            v = "annually"
        if v not in PERIODS_PER_YEAR:
            raise ValueError(f"unknown period type {v!r}")
        return v

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self.type]

    @property
    def fraction_of_year(self) -> float:
        return 1.0 / self.periods_per_year

    @property
    def sort_key(self):
        return (self.year, self.sequence)

def period_of_date(d: date, period_type: str) -> int:
    """Sequence number of the period containing d within its year."""
    if period_type == "monthly":
        return d.month
    if period_type == "quarterly":
        return (d.month - 1) // 3 + 1
    return 1

def _period(period_type: str, year: int, number: int) -> Period:
    if period_type == "annually":
        return Period(id=f"year-{year}", type=period_type, year=year, sequence=1, label=f"Year {year}")
    if period_type == "quarterly":
        return Period(id=f"year-{year}-q{number}", type=period_type, year=year,
                      sequence=number, label=f"Q{number} {year}")
    return Period(id=f"year-{year}-m{number}", type=period_type, year=year,
                  sequence=number, label=f"{MONTH_NAMES[number - 1]} {year}")

def create_periods(years: int = 3, period_type: str = "annually", start_year: Optional[int] = None) -> List[Period]:
    period_type = (period_type or "annually").strip().lower()
    period_type = "annually" if period_type == "annual" else period_type
    if period_type not in PERIODS_PER_YEAR:
        raise ValueError(f"unknown period type {period_type!r}")
    start_year = start_year or date.today().year
    periods = []
    for offset in range(max(0, years)):
        year = start_year + offset
        for number in range(1, PERIODS_PER_YEAR[period_type] + 1):
            periods.append(_period(period_type, year, number))
    return periods

def update_period(period: Period, **changes: Any) -> Period:
    """New Period value with the given fields replaced."""
    return period.model_copy(update=changes, deep=True)
