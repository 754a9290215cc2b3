from typing import Dict, List, Sequence

import pandas as pd

from zimtax.assets.allowances import AllowanceSchedule, Asset
from zimtax.payroll.bulk_processor import PayrollBatchProcessor, PayrollBatchResult
from zimtax.planning.periods import Period
from zimtax.planning.projection import scenario_totals
from zimtax.planning.scenarios import Scenario
from zimtax.planning.workforce import WorkforceCost
from zimtax.tax.rules import TaxRules

PERIOD_TAX_COLUMNS = ["Period", "AccountingProfit", "TaxableIncome", "CapitalAllowances",
                      "LossesUtilized", "LossesCarriedForward", "TaxDue", "Levy", "TotalTax",
                      "EffectiveRate"]

def period_tax_frame(periods: Sequence[Period]) -> pd.DataFrame:
    rows = []
    for p in sorted(periods, key=lambda p: p.sort_key):
        r = p.tax_result
        if r is None:
            continue
        rows.append({"Period": p.label, "AccountingProfit": r.accounting_profit,
                     "TaxableIncome": r.taxable_income, "CapitalAllowances": r.capital_allowances_used,
                     "LossesUtilized": r.losses_utilized, "LossesCarriedForward": r.losses_carried_forward,
                     "TaxDue": r.tax_due, "Levy": r.levy, "TotalTax": r.total_tax,
                     "EffectiveRate": r.effective_tax_rate})
    return pd.DataFrame(rows, columns=PERIOD_TAX_COLUMNS)

def scenario_comparison_frame(scenarios: Sequence[Scenario]) -> pd.DataFrame:
    """One row per scenario with totals across its projected periods."""
    rows = []
    for s in scenarios:
        totals = scenario_totals(s)
        rows.append({"Scenario": s.name, "Type": s.type, "Base": s.is_base,
                     "AccountingProfit": totals["accounting_profit"],
                     "TaxableIncome": totals["taxable_income"],
                     "TotalTax": totals["total_tax"],
                     "CapitalAllowances": totals["capital_allowances"],
                     "LossesCarriedForward": totals["losses_carried_forward"],
                     "EffectiveRate": totals["effective_tax_rate"]})
    df = pd.DataFrame(rows, columns=["Scenario", "Type", "Base", "AccountingProfit", "TaxableIncome",
                                     "TotalTax", "CapitalAllowances", "LossesCarriedForward", "EffectiveRate"])
    if not df.empty:
        base_tax = df.loc[df["Base"], "TotalTax"]
        df["TaxVsBase"] = df["TotalTax"] - (base_tax.iloc[0] if not base_tax.empty else 0.0)
    return df

def allowance_schedule_frame(schedule: AllowanceSchedule, assets: Sequence[Asset],
                             periods: Sequence[Period]) -> pd.DataFrame:
    """Assets down, periods across, closing written-down value last."""
    ordered = sorted(periods, key=lambda p: p.sort_key)
    rows = []
    for asset in assets:
        claims = schedule.by_asset.get(asset.id, {})
        row: Dict[str, object] = {"Asset": asset.name or asset.id, "Category": asset.category,
                                  "Cost": asset.cost_base}
        for p in ordered:
            row[p.label] = claims.get(p.id, 0.0)
        row["ClosingValue"] = schedule.closing_values.get(asset.id, asset.written_down_value)
        rows.append(row)
    columns: List[str] = ["Asset", "Category", "Cost"] + [p.label for p in ordered] + ["ClosingValue"]
    return pd.DataFrame(rows, columns=columns)

def payroll_batch_frame(batch: PayrollBatchResult, rules: TaxRules) -> pd.DataFrame:
    return PayrollBatchProcessor(rules).to_frame(batch)

def workforce_frame(costs: Sequence[WorkforceCost]) -> pd.DataFrame:
    return pd.DataFrame([c.model_dump() for c in costs])
