import pytest

from zimtax.tax.indirect import compute_vat, compute_withholding
from zimtax.tax.individual import IndividualIncome, calculate_individual_paye
from zimtax.tax.rules import default_rules

def test_individual_paye_with_medical_credit():
    rules=default_rules()
    base=calculate_individual_paye(IndividualIncome(salary=1000,nssa_contributions=31.5),rules)
    assert base.taxable_income==pytest.approx(968.5)
    assert base.paye==pytest.approx(207.125)
    withmed=calculate_individual_paye(IndividualIncome(salary=1000,nssa_contributions=31.5,medical_contributions=100),rules)
    assert withmed.medical_credit==pytest.approx(50)
    assert withmed.paye==pytest.approx(157.125)
    assert withmed.levy==pytest.approx(4.71375)

def test_individual_credits_floor_at_zero():
    r=calculate_individual_paye(IndividualIncome(salary=200,credits=500),default_rules())
    assert r.paye==0
    assert r.total_tax==0

def test_individual_nssa_capped():
    r=calculate_individual_paye(IndividualIncome(salary=5000,nssa_contributions=2000),default_rules())
    assert r.nssa_capped==700

def test_vat():
    rules=default_rules()
    assert compute_vat(1000,rules)==pytest.approx(150.0)
    assert compute_vat(1000,rules,exempt=True)==0

def test_withholding():
    rules=default_rules()
    assert compute_withholding(1000,"royalties",rules)==pytest.approx(150.0)
    assert compute_withholding(1000,"Interest",rules)==pytest.approx(100.0)
    assert compute_withholding(1000,"gifts",rules)==0
