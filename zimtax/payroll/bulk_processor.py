"""
Batch payroll: independent per-employee calculations, batch totals and
month-to-month roll forward of year-to-date bonus.
"""
from typing import Dict, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

from zimtax.core.utils import setup_logging
from zimtax.payroll.engine import EmployeePayrollRecord, PayrollCalculation, PayrollEngine
from zimtax.tax.rules import TaxRules

logger = setup_logging("payroll")

TOTAL_FIELDS = [
    "gross_salary", "nssa_employee", "paye", "aids_levy", "bonus_tax", "total_tax",
    "net_salary", "nssa_employer", "zimdef", "apwc", "total_employer_contributions",
    "total_employer_cost",
]

class BatchLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: EmployeePayrollRecord
    calculation: PayrollCalculation

class PayrollBatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: str = ""
    lines: List[BatchLine]
    totals: Dict[str, float]
    averages: Dict[str, float]

    @property
    def total_employees(self) -> int:
        return len(self.lines)

class PayrollBatchProcessor:
    def __init__(self, rules: TaxRules):
        self.rules = rules
        self.engine = PayrollEngine(rules)

    def run_batch(self, records: List[EmployeePayrollRecord], period: str = "") -> PayrollBatchResult:
        """Each employee is computed from its own record only, so lines are independent."""
        lines = [BatchLine(record=r, calculation=self.engine.calculate_from_gross(r)) for r in records]
        totals = {f: sum(getattr(line.calculation, f) for line in lines) for f in TOTAL_FIELDS}
        count = len(lines)
        averages = {
            "gross": totals["gross_salary"] / count if count > 0 else 0.0,
            "net": totals["net_salary"] / count if count > 0 else 0.0,
        }
        logger.info("payroll batch %s: %s employees, gross %.2f", period or "-", count, totals["gross_salary"])
        return PayrollBatchResult(period=period, lines=lines, totals=totals, averages=averages)

    def roll_forward(self, records: List[EmployeePayrollRecord], batch: Optional[PayrollBatchResult],
                     month: int, year: int) -> Tuple[List[EmployeePayrollRecord], int, int]:
        """Advance to the next month.

        Year-to-date bonus moves to each employee's new cumulative figure, or
        resets to 0 when the month rolls into a new year.
        """
        next_month = 1 if month >= 12 else month + 1
        next_year = year + 1 if month >= 12 else year
        new_year = next_year > year

        ytd_by_id = {}
        if batch is not None:
            ytd_by_id = {line.record.employee_id: line.calculation.new_cumulative_bonus_ytd for line in batch.lines}

        rolled = []
        for record in records:
            if new_year:
                ytd = 0.0
            else:
                ytd = ytd_by_id.get(record.employee_id, record.cumulative_bonus_ytd)
            rolled.append(record.model_copy(update={"cumulative_bonus_ytd": ytd}))
        return rolled, next_month, next_year

    def to_frame(self, batch: PayrollBatchResult) -> pd.DataFrame:
        rows = []
        for line in batch.lines:
            row = {"employee_id": line.record.employee_id, "name": line.record.name}
            row.update({f: getattr(line.calculation, f) for f in TOTAL_FIELDS})
            rows.append(row)
        return pd.DataFrame(rows, columns=["employee_id", "name"] + TOTAL_FIELDS)
