"""
Staff cost projection per period for a homogeneous head count.

Salaries are annual figures that compound once per year; PAYE is computed
per employee on annual cash pay with the annual income bands and scaled to
the period length.
"""
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.core.utils import as_number, setup_logging
from zimtax.payroll.engine import PayrollEngine
from zimtax.planning.periods import Period
from zimtax.tax.brackets import bracket_tax
from zimtax.tax.rules import TaxRules

logger = setup_logging("workforce")

class WorkforceAssumptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = Field(10, ge=0)
    average_salary: float = 50000.0
    annual_increase: float = 0.10
    benefits_percentage: float = 0.20
    bonus_percentage: float = 0.15
    pension_rate: float = 0.05

    @field_validator("average_salary", "annual_increase", "benefits_percentage",
                     "bonus_percentage", "pension_rate", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

class WorkforceCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    period_id: str
    period: str
    employee_count: int
    average_salary: float
    total_salary: float
    benefits: float
    bonus: float
    paye: float
    aids_levy: float
    nssa_employee: float
    nssa_employer: float
    pension: float
    zimdef: float
    sdf: float
    total_cost: float

def project_workforce_costs(periods: Sequence[Period], assumptions: WorkforceAssumptions,
                            rules: TaxRules, salary_growth: Optional[float] = None) -> List[WorkforceCost]:
    """Cost of the workforce in each period.

    total_cost is the employer's cost: cash pay plus employer NSSA, pension,
    ZIMDEF and SDF. PAYE and levy are withheld from cash pay and reported
    alongside.
    """
    engine = PayrollEngine(rules)
    growth = assumptions.annual_increase if salary_growth is None else as_number(salary_growth)
    ordered = sorted(periods, key=lambda p: p.sort_key)
    if not ordered:
        return []
    first_year = ordered[0].year
    count = assumptions.count

    costs = []
    for period in ordered:
        annual_salary = assumptions.average_salary * (1.0 + growth) ** (period.year - first_year)
        months = 12 * period.fraction_of_year

        monthly_salary = annual_salary / 12
        monthly_cash = monthly_salary * (1.0 + assumptions.benefits_percentage + assumptions.bonus_percentage)
        nssa = engine.compute_nssa(monthly_cash)
        annual_taxable = (monthly_cash - nssa.employee) * 12
        annual_paye = bracket_tax(annual_taxable, rules.corporate_brackets)

        salary = monthly_salary * months * count
        benefits = salary * assumptions.benefits_percentage
        bonus = salary * assumptions.bonus_percentage
        cash = salary + benefits + bonus
        paye = annual_paye * period.fraction_of_year * count
        nssa_employee = nssa.employee * months * count
        nssa_employer = nssa.employer * months * count
        pension = salary * assumptions.pension_rate
        zimdef = cash * rules.zimdef_rate
        sdf = cash * rules.sdf_rate

        costs.append(WorkforceCost(
            period_id=period.id,
            period=period.label,
            employee_count=count,
            average_salary=annual_salary,
            total_salary=salary,
            benefits=benefits,
            bonus=bonus,
            paye=paye,
            aids_levy=paye * rules.levy_rate,
            nssa_employee=nssa_employee,
            nssa_employer=nssa_employer,
            pension=pension,
            zimdef=zimdef,
            sdf=sdf,
            total_cost=cash + nssa_employer + pension + zimdef + sdf,
        ))
    logger.debug("projected workforce costs for %s periods", len(costs))
    return costs

def period_cost_map(costs: Sequence[WorkforceCost]) -> dict:
    """period id -> total cost, the shape BaseFinancials.period_costs expects."""
    return {c.period_id: c.total_cost for c in costs}
