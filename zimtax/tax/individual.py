"""
Individual PAYE return for a single earner.

Medical aid contributions earn a credit against tax (not a deduction from
income); NSSA contributions are only deductible up to the statutory cap.
"""
from pydantic import BaseModel, ConfigDict, field_validator

from zimtax.core.utils import as_number
from zimtax.tax.brackets import bracket_tax
from zimtax.tax.rules import TaxRules

class IndividualIncome(BaseModel):
    model_config = ConfigDict(frozen=True)

    salary: float = 0.0
    bonus: float = 0.0
    irregular_commission: float = 0.0
    other_irregular_earnings: float = 0.0
    housing_benefit: float = 0.0
    vehicle_benefit: float = 0.0
    education_benefit: float = 0.0
    exemptions: float = 0.0
    non_taxable_earnings: float = 0.0
    pension_contributions: float = 0.0
    nssa_contributions: float = 0.0
    other_deductions: float = 0.0
    medical_contributions: float = 0.0
    medical_expenses: float = 0.0
    credits: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

class IndividualTaxResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_income: float
    total_benefits: float
    taxable_income: float
    nssa_capped: float
    total_deductions: float
    medical_credit: float
    paye: float
    levy: float
    total_tax: float
    net_pay: float

def calculate_individual_paye(income: IndividualIncome, rules: TaxRules) -> IndividualTaxResult:
    total_income = (income.salary + income.bonus + income.irregular_commission
                    + income.other_irregular_earnings)
    total_benefits = income.housing_benefit + income.vehicle_benefit + income.education_benefit

    nssa_capped = min(max(0.0, income.nssa_contributions), rules.nssa_monthly_cap)
    total_deductions = (income.pension_contributions + nssa_capped
                        + income.other_deductions + income.medical_expenses)

    taxable_income = max(0.0, total_income + total_benefits - income.exemptions
                         - income.non_taxable_earnings - total_deductions)

    medical_credit = max(0.0, income.medical_contributions) * rules.medical_credit_rate
    paye = max(0.0, bracket_tax(taxable_income, rules.paye_brackets) - income.credits - medical_credit)
    levy = paye * rules.levy_rate
    total_tax = paye + levy

    net_pay = (total_income + total_benefits - total_tax - income.pension_contributions
               - nssa_capped - income.other_deductions)

    return IndividualTaxResult(
        total_income=total_income,
        total_benefits=total_benefits,
        taxable_income=taxable_income,
        nssa_capped=nssa_capped,
        total_deductions=total_deductions,
        medical_credit=medical_credit,
        paye=paye,
        levy=levy,
        total_tax=total_tax,
        net_pay=net_pay,
    )
