"""
Corporate income tax for one period.

Reconciliation order (kept exactly):
  1. accounting profit + non-deductible - non-taxable
  2. prior-year losses, limited to positive income
  3. capital allowances
  4. exchange gains (always) / exchange losses (only when deductible)
  5. tax at the corporate rate, levy on tax, total
  6. losses carried forward
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.core.utils import as_number, setup_logging
from zimtax.currency.converter import CurrencyData
from zimtax.tax.rules import TaxRules

logger = setup_logging("corporate")

class Adjustments(BaseModel):
    model_config = ConfigDict(frozen=True)

    non_deductible: float = 0.0
    non_taxable: float = 0.0
    exchange_gains_losses: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

class TaxResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    accounting_profit: float
    income_before_losses: float
    taxable_income: float
    tax_due: float
    levy: float
    total_tax: float
    effective_tax_rate: float
    losses_utilized: float
    losses_carried_forward: float
    capital_allowances_used: float
    exchange_adjustment: float
    corporate_rate: float

def corporate_rate_for(business_type: Optional[str], rules: TaxRules) -> float:
    if not business_type:
        return rules.corporate_rate
    return rules.business_rates.get(business_type.strip().lower(), rules.corporate_rate)

def compute_corporate_tax(accounting_profit: float,
                          adjustments: Optional[Adjustments],
                          capital_allowances: float,
                          previous_losses: float,
                          currency_data: Optional[CurrencyData],
                          rules: TaxRules,
                          *,
                          corporate_rate: Optional[float] = None) -> TaxResult:
    adjustments = adjustments or Adjustments()
    currency_data = currency_data or CurrencyData()
    accounting_profit = as_number(accounting_profit)
    capital_allowances = max(0.0, as_number(capital_allowances))
    previous_losses = max(0.0, as_number(previous_losses))
    rate = rules.corporate_rate if corporate_rate is None else as_number(corporate_rate)

    taxable_income = accounting_profit + adjustments.non_deductible - adjustments.non_taxable
    income_before_losses = taxable_income

    losses_used = min(previous_losses, max(0.0, taxable_income))
    taxable_income = max(0.0, taxable_income - losses_used)

    taxable_income = max(0.0, taxable_income - capital_allowances)

    fx = adjustments.exchange_gains_losses
    if fx >= 0:
        exchange_adjustment = fx
    elif currency_data.exchange_losses_deductible:
        exchange_adjustment = fx
    else:
        # non-deductible exchange loss contributes nothing
        exchange_adjustment = 0.0
    taxable_income = max(0.0, taxable_income + exchange_adjustment)

    tax_due = taxable_income * rate
    levy = tax_due * rules.levy_rate
    total_tax = tax_due + levy

    losses_carried_forward = max(0.0, previous_losses - losses_used)

    return TaxResult(
        accounting_profit=accounting_profit,
        income_before_losses=income_before_losses,
        taxable_income=taxable_income,
        tax_due=tax_due,
        levy=levy,
        total_tax=total_tax,
        effective_tax_rate=(total_tax / taxable_income * 100) if taxable_income > 0 else 0.0,
        losses_utilized=losses_used,
        losses_carried_forward=losses_carried_forward,
        capital_allowances_used=capital_allowances,
        exchange_adjustment=exchange_adjustment,
        corporate_rate=rate,
    )

class ProfitAndLoss(BaseModel):
    """Trading account figures used to derive accounting profit."""
    sales: float = 0.0
    other_trading_income: float = 0.0
    cost_of_goods_sold: float = 0.0
    operating_expenses: Dict[str, float] = Field(default_factory=dict)

    @field_validator("sales", "other_trading_income", "cost_of_goods_sold", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

    @field_validator("operating_expenses", mode="before")
    @classmethod
    def _expenses(cls, v):
        return {str(k): as_number(x) for k, x in dict(v or {}).items()}

    @property
    def gross_profit(self) -> float:
        return self.sales + self.other_trading_income - self.cost_of_goods_sold

    @property
    def total_operating_expenses(self) -> float:
        return sum(self.operating_expenses.values())

    @property
    def operating_profit(self) -> float:
        return self.gross_profit - self.total_operating_expenses

def accounting_profit_from(pl: ProfitAndLoss) -> Dict[str, float]:
    return {
        "gross_profit": pl.gross_profit,
        "operating_expenses": pl.total_operating_expenses,
        "operating_profit": pl.operating_profit,
    }

def chain_periods(profits: List[float], opening_losses: float, rules: TaxRules,
                  capital_allowances: Optional[List[float]] = None) -> List[TaxResult]:
    """Run compute_corporate_tax over consecutive periods, threading losses forward."""
    results = []
    losses = opening_losses
    for i, profit in enumerate(profits):
        allowance = capital_allowances[i] if capital_allowances and i < len(capital_allowances) else 0.0
        result = compute_corporate_tax(profit, None, allowance, losses, None, rules)
        logger.debug("period %s taxable=%.2f losses_cf=%.2f", i, result.taxable_income, result.losses_carried_forward)
        losses = result.losses_carried_forward
        results.append(result)
    return results
