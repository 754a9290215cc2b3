"""
Multi-period, multi-scenario corporate tax projection.

Within a scenario periods run strictly in chronological order because losses
carried forward from one period are an input to the next. Scenarios share
nothing but the frozen rules, so they can be projected independently.
"""
import zlib
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.assets.allowances import Asset, schedule_allowances
from zimtax.core.config import settings
from zimtax.core.utils import as_number, setup_logging
from zimtax.currency.converter import CurrencyConverter, CurrencyData, exchange_gain_loss, weighted_to_base
from zimtax.planning.scenarios import Scenario, ScenarioDrivers
from zimtax.planning.workforce import WorkforceAssumptions, period_cost_map, project_workforce_costs
from zimtax.tax.corporate import Adjustments, compute_corporate_tax, corporate_rate_for
from zimtax.tax.rules import TaxRules

logger = setup_logging("projection")

RatePath = List[Tuple[Dict[str, float], Dict[str, float]]]

class BaseFinancials(BaseModel):
    """Annual planning figures in base currency at the rule set's rates."""
    model_config = ConfigDict(frozen=True)

    revenue: float = 0.0
    expenses: float = 0.0
    adjustments: Adjustments = Field(default_factory=Adjustments)
    opening_losses: float = 0.0
    # extra expense per period id, e.g. from project_workforce_costs
    period_costs: Dict[str, float] = Field(default_factory=dict)
    # staff costs projected per scenario with its salary_growth driver
    workforce: Optional[WorkforceAssumptions] = None

    @field_validator("revenue", "expenses", "opening_losses", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

class ProjectionEngine:
    def __init__(self, rules: TaxRules, rng: Optional[np.random.Generator] = None):
        self.rules = rules
        self.rng = rng if rng is not None else np.random.default_rng(settings.RANDOM_SEED)
        # drawn once; every scenario derives its own stream from it
        self.entropy = int(self.rng.integers(0, 2**63))
        self.converter = CurrencyConverter(rules.currencies, rules.base_currency)

    def rng_for(self, scenario: Scenario) -> np.random.Generator:
        """Generator keyed by scenario id, independent of projection order."""
        return np.random.default_rng([self.entropy, zlib.crc32(scenario.id.encode("utf-8"))])

    def exchange_rate_path(self, n_periods: int, scenario_name: str,
                           rng: Optional[np.random.Generator] = None) -> RatePath:
        """Opening and closing rates per period from a bounded random walk.

        Every step moves each non-base rate by a uniform shock within the
        scenario's volatility band; rates stay positive.
        """
        rng = rng if rng is not None else self.rng
        volatility = self.rules.volatility.get(scenario_name, 0.0)
        rates = {code: c.rate_to_base for code, c in self.converter.rates.items() if code != self.converter.base_code}
        path = []
        for _ in range(n_periods):
            opening = dict(rates)
            for code in sorted(rates):
                shock = rng.uniform(-volatility, volatility) if volatility > 0 else 0.0
                rates[code] = max(rates[code] * (1.0 + shock), 1e-9)
            path.append((opening, dict(rates)))
        return path

    def currency_data_for(self, drivers: ScenarioDrivers) -> CurrencyData:
        mix = CurrencyData(currency_mix=drivers.currency_mix).currency_mix
        deductible = all(
            self.converter.rates[code].exchange_losses_deductible
            for code, weight in mix.items()
            if weight > 0 and code in self.converter.rates
        )
        return CurrencyData(
            currency_mix=mix,
            exchange_rate_scenario=drivers.exchange_rate_scenario,
            inflation_adjustment_factor=drivers.inflation_adjustment_factor,
            exchange_losses_deductible=deductible,
        )

    def project_scenario(self, scenario: Scenario, base: BaseFinancials,
                         assets: Sequence[Asset] = ()) -> Scenario:
        """New Scenario whose periods carry projected figures and tax results.

        Period adjustments are inputs and are left as given; the adjusted
        totals used for each period live in its tax_result, so projecting a
        projected scenario again gives the same figures.
        """
        drivers = scenario.drivers
        periods = sorted(scenario.periods, key=lambda p: p.sort_key)
        currency_data = self.currency_data_for(drivers)
        path = self.exchange_rate_path(len(periods), currency_data.exchange_rate_scenario, self.rng_for(scenario))
        schedule = schedule_allowances(
            assets, periods, self.rules.allowance_rates,
            cap_at_cost=self.rules.cap_allowances_at_cost,
            accelerated=drivers.claim_accelerated_allowances,
        )
        rate = corporate_rate_for(drivers.business_type, self.rules)
        staff_costs = dict(base.period_costs)
        if base.workforce is not None:
            costs = project_workforce_costs(periods, base.workforce, self.rules, salary_growth=drivers.salary_growth)
            for period_id, cost in period_cost_map(costs).items():
                staff_costs[period_id] = staff_costs.get(period_id, 0.0) + cost

        losses = base.opening_losses
        projected = []
        for index, period in enumerate(periods):
            opening_rates, closing_rates = path[index]
            fraction = period.fraction_of_year
            growth = (1.0 + drivers.revenue_growth) ** index

            revenue_budget = period.actuals.get("revenue_budget", base.revenue * fraction * growth)
            expense_budget = period.actuals.get("expense_budget", base.expenses * fraction * drivers.expense_multiplier)
            expense_budget += staff_costs.get(period.id, 0.0)

            period_converter = self.converter.with_rates(opening_rates)
            revenue = weighted_to_base(revenue_budget, currency_data, period_converter, opening=self.converter)
            expenses = weighted_to_base(expense_budget, currency_data, period_converter, opening=self.converter)

            fx = 0.0
            for code, weight in currency_data.currency_mix.items():
                if code not in opening_rates:
                    continue
                balance = self.converter.convert((revenue_budget - expense_budget) * weight,
                                                 self.converter.base_code, code)
                fx += exchange_gain_loss(balance, balance, opening_rates[code], closing_rates[code])

            adjustments = Adjustments(
                non_deductible=base.adjustments.non_deductible * fraction + period.adjustments.non_deductible,
                non_taxable=base.adjustments.non_taxable * fraction + period.adjustments.non_taxable,
                exchange_gains_losses=(base.adjustments.exchange_gains_losses * fraction
                                       + period.adjustments.exchange_gains_losses + fx),
            )
            profit = revenue - expenses
            previous = losses if drivers.apply_loss_relief else 0.0
            result = compute_corporate_tax(profit, adjustments, schedule.by_period.get(period.id, 0.0),
                                           previous, currency_data, self.rules, corporate_rate=rate)
            if drivers.apply_loss_relief:
                losses = result.losses_carried_forward

            actuals = dict(period.actuals)
            actuals.update({"revenue": revenue, "expenses": expenses, "accounting_profit": profit,
                            "exchange_gain_loss": fx})
            projected.append(period.model_copy(update={
                "actuals": actuals,
                "tax_result": result,
                "currency_data": currency_data,
            }))
            logger.debug("%s %s taxable=%.2f tax=%.2f", scenario.name, period.label,
                         result.taxable_income, result.total_tax)

        return scenario.model_copy(update={"periods": projected})

    def project_all(self, scenarios: Sequence[Scenario], base: BaseFinancials,
                    assets: Sequence[Asset] = ()) -> List[Scenario]:
        results = [self.project_scenario(s, base, assets) for s in scenarios]
        logger.info("projected %s scenarios", len(results))
        return results

def scenario_totals(scenario: Scenario) -> Dict[str, float]:
    results = [p.tax_result for p in scenario.periods if p.tax_result is not None]
    profit = sum(r.accounting_profit for r in results)
    taxable = sum(r.taxable_income for r in results)
    total_tax = sum(r.total_tax for r in results)
    return {
        "accounting_profit": profit,
        "taxable_income": taxable,
        "tax_due": sum(r.tax_due for r in results),
        "levy": sum(r.levy for r in results),
        "total_tax": total_tax,
        "capital_allowances": sum(r.capital_allowances_used for r in results),
        "losses_carried_forward": results[-1].losses_carried_forward if results else 0.0,
        "effective_tax_rate": (total_tax / taxable * 100) if taxable > 0 else 0.0,
    }
