from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.core.utils import as_number, setup_logging
from zimtax.tax.brackets import bracket_tax, top_rate
from zimtax.tax.rules import TaxRules

logger = setup_logging("payroll")

GROSS_UP_MAX_ITERATIONS = 50
GROSS_UP_TOLERANCE = 0.01

class Allowances(BaseModel):
    model_config = ConfigDict(frozen=True)

    living: float = 0.0
    medical: float = 0.0
    transport: float = 0.0
    housing: float = 0.0
    commission: float = 0.0
    bonus: float = 0.0
    overtime: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

    @property
    def total(self) -> float:
        return (self.living + self.medical + self.transport + self.housing
                + self.commission + self.bonus + self.overtime)

class EmployeePayrollRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_id: str = ""
    name: str = ""
    employee_number: str = ""
    department: str = ""
    position: str = ""
    basic_salary: float = 0.0
    allowances: Allowances = Field(default_factory=Allowances)
    apwc_rate: Optional[float] = None
    cumulative_bonus_ytd: float = 0.0

    @field_validator("basic_salary", "cumulative_bonus_ytd", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

class NSSAContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    insurable_earnings: float
    employee: float
    employer: float

class BonusTax(BaseModel):
    model_config = ConfigDict(frozen=True)

    tax_free_bonus: float
    taxable_bonus: float
    bonus_tax: float
    new_cumulative_ytd: float

class PayrollCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    basic_salary: float
    allowances: Dict[str, float]
    total_allowances: float
    gross_salary: float
    insurable_earnings: float
    nssa_employee: float
    taxable_gross_for_paye: float
    paye: float
    aids_levy: float
    tax_free_bonus: float
    taxable_bonus: float
    bonus_tax: float
    total_tax: float
    net_salary: float
    nssa_employer: float
    zimdef: float
    apwc: float
    apwc_rate: float
    total_employer_contributions: float
    total_employer_cost: float
    new_cumulative_bonus_ytd: float

class GrossUpResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_net: float
    calculation: PayrollCalculation
    iterations: int
    residual: float
    converged: bool

class PayrollEngine:
    def __init__(self, rules: TaxRules):
        self.rules = rules

    def compute_total_gross(self, basic_salary: float, allowances: Optional[Allowances] = None) -> float:
        allowances = allowances or Allowances()
        return as_number(basic_salary) + allowances.total

    def compute_nssa(self, gross: float) -> NSSAContribution:
        # percentage of capped earnings AND an absolute ceiling; the smaller wins
        insurable = min(max(0.0, gross), self.rules.nssa_monthly_cap)
        employee = min(insurable * self.rules.nssa_employee_rate, self.rules.nssa_contribution_cap)
        employer = min(insurable * self.rules.nssa_employer_rate, self.rules.nssa_contribution_cap)
        return NSSAContribution(insurable_earnings=insurable, employee=employee, employer=employer)

    def compute_bonus_tax(self, current_bonus: float, previous_bonus_ytd: float = 0.0,
                          top_marginal_rate: Optional[float] = None) -> BonusTax:
        """Split a bonus around the annual tax-free threshold.

        The split depends on bonuses already paid this year, so periods for one
        employee must be computed in order with new_cumulative_ytd carried forward.
        """
        bonus = max(0.0, as_number(current_bonus))
        previous = max(0.0, as_number(previous_bonus_ytd))
        rate = top_rate(self.rules.paye_brackets) if top_marginal_rate is None else top_marginal_rate
        threshold = self.rules.bonus_threshold
        total_ytd = previous + bonus

        if total_ytd <= threshold:
            return BonusTax(tax_free_bonus=bonus, taxable_bonus=0.0, bonus_tax=0.0, new_cumulative_ytd=total_ytd)

        if previous >= threshold:
            return BonusTax(tax_free_bonus=0.0, taxable_bonus=bonus, bonus_tax=bonus * rate,
                            new_cumulative_ytd=total_ytd)

        tax_free = min(bonus, threshold - previous)
        taxable = bonus - tax_free
        return BonusTax(tax_free_bonus=tax_free, taxable_bonus=taxable, bonus_tax=taxable * rate,
                        new_cumulative_ytd=total_ytd)

    def compute_paye(self, taxable: float) -> float:
        return bracket_tax(taxable, self.rules.paye_brackets)

    def effective_apwc_rate(self, apwc_rate: Optional[float]) -> float:
        rate = self.rules.default_apwc_rate if apwc_rate is None else as_number(apwc_rate)
        return min(max(0.0, rate), self.rules.apwc_max_rate)

    def calculate_from_gross(self, record: EmployeePayrollRecord) -> PayrollCalculation:
        allowances = record.allowances
        gross = self.compute_total_gross(record.basic_salary, allowances)

        nssa = self.compute_nssa(gross)
        bonus = self.compute_bonus_tax(allowances.bonus, record.cumulative_bonus_ytd)

        taxable_gross = gross - nssa.employee - bonus.tax_free_bonus
        paye = self.compute_paye(taxable_gross)
        aids_levy = paye * self.rules.levy_rate
        total_tax = paye + aids_levy + bonus.bonus_tax
        net = gross - nssa.employee - total_tax

        apwc_rate = self.effective_apwc_rate(record.apwc_rate)
        zimdef = gross * self.rules.zimdef_rate
        apwc = gross * apwc_rate
        employer_contributions = nssa.employer + zimdef + apwc

        return PayrollCalculation(
            basic_salary=record.basic_salary,
            allowances=allowances.model_dump(),
            total_allowances=allowances.total,
            gross_salary=gross,
            insurable_earnings=nssa.insurable_earnings,
            nssa_employee=nssa.employee,
            taxable_gross_for_paye=taxable_gross,
            paye=paye,
            aids_levy=aids_levy,
            tax_free_bonus=bonus.tax_free_bonus,
            taxable_bonus=bonus.taxable_bonus,
            bonus_tax=bonus.bonus_tax,
            total_tax=total_tax,
            net_salary=net,
            nssa_employer=nssa.employer,
            zimdef=zimdef,
            apwc=apwc,
            apwc_rate=apwc_rate,
            total_employer_contributions=employer_contributions,
            total_employer_cost=gross + employer_contributions,
            new_cumulative_bonus_ytd=bonus.new_cumulative_ytd,
        )

    def calculate_from_net(self, target_net: float,
                           allowances: Optional[Allowances] = None,
                           apwc_rate: Optional[float] = None,
                           cumulative_bonus_ytd: float = 0.0,
                           max_iterations: int = GROSS_UP_MAX_ITERATIONS,
                           tolerance: float = GROSS_UP_TOLERANCE) -> GrossUpResult:
        """Search the basic salary whose net pay matches target_net.

        Bracket search: expand the upper bound until it overshoots, then bisect.
        Both phases share the iteration cap; the closest estimate is returned
        even when the cap is hit.
        """
        target = as_number(target_net)
        allowances = allowances or Allowances()

        def attempt(basic: float) -> PayrollCalculation:
            record = EmployeePayrollRecord(basic_salary=basic, allowances=allowances,
                                           apwc_rate=apwc_rate, cumulative_bonus_ytd=cumulative_bonus_ytd)
            return self.calculate_from_gross(record)

        low = max(0.0, target - allowances.total)
        best = attempt(low)
        iterations = 1
        if best.net_salary >= target - tolerance:
            residual = best.net_salary - target
            return GrossUpResult(target_net=target, calculation=best, iterations=iterations,
                                 residual=residual, converged=abs(residual) < tolerance)

        high = max(2.0 * low, low + 1.0)
        high_calc = attempt(high)
        iterations += 1
        while high_calc.net_salary < target and iterations < max_iterations:
            low, high = high, high * 2.0
            high_calc = attempt(high)
            iterations += 1
        if abs(high_calc.net_salary - target) < abs(best.net_salary - target):
            best = high_calc

        while iterations < max_iterations and abs(best.net_salary - target) >= tolerance:
            mid = (low + high) / 2.0
            calc = attempt(mid)
            iterations += 1
            if abs(calc.net_salary - target) < abs(best.net_salary - target):
                best = calc
            if calc.net_salary < target:
                low = mid
            else:
                high = mid

        residual = best.net_salary - target
        converged = abs(residual) < tolerance
        if not converged:
            logger.warning("gross-up for net %.2f stopped after %s iterations, residual %.4f",
                           target, iterations, residual)
        return GrossUpResult(target_net=target, calculation=best, iterations=iterations,
                             residual=residual, converged=converged)
