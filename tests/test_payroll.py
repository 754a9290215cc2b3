import pytest

from zimtax.payroll.bulk_processor import PayrollBatchProcessor
from zimtax.payroll.engine import Allowances, EmployeePayrollRecord, PayrollEngine
from zimtax.reports.summary import payroll_batch_frame
from zimtax.tax.rules import default_rules

def test_nssa_double_cap():
    p=PayrollEngine(default_rules())
    assert p.compute_nssa(10000).employee==pytest.approx(31.50)
    assert p.compute_nssa(10000).insurable_earnings==700
    assert p.compute_nssa(500).employee==pytest.approx(22.5)
    assert p.compute_nssa(-10).employee==0

def test_bonus_split_around_threshold():
    p=PayrollEngine(default_rules())
    b=p.compute_bonus_tax(300,600)
    assert b.tax_free_bonus==pytest.approx(100)
    assert b.taxable_bonus==pytest.approx(200)
    assert b.new_cumulative_ytd==pytest.approx(900)
    assert b.bonus_tax==pytest.approx(80)

def test_bonus_branches():
    p=PayrollEngine(default_rules())
    under=p.compute_bonus_tax(500,0)
    assert under.tax_free_bonus==500 and under.bonus_tax==0
    over=p.compute_bonus_tax(300,800)
    assert over.tax_free_bonus==0 and over.bonus_tax==pytest.approx(120)

def test_calculate_from_gross():
    p=PayrollEngine(default_rules())
    c=p.calculate_from_gross(EmployeePayrollRecord(employee_id="e1",basic_salary=1000))
    assert c.gross_salary==1000
    assert c.nssa_employee==pytest.approx(31.5)
    assert c.paye==pytest.approx(207.125)
    assert c.aids_levy==pytest.approx(6.21375)
    assert c.net_salary==pytest.approx(755.16125)
    assert c.zimdef==pytest.approx(10)
    assert c.apwc==pytest.approx(10)
    assert c.total_employer_cost==pytest.approx(1051.5)

def test_apwc_clamped():
    p=PayrollEngine(default_rules())
    c=p.calculate_from_gross(EmployeePayrollRecord(basic_salary=1000,apwc_rate=0.05))
    assert c.apwc_rate==pytest.approx(0.0216)

def test_bonus_feeds_payslip():
    p=PayrollEngine(default_rules())
    rec=EmployeePayrollRecord(basic_salary=1000,allowances=Allowances(bonus=300),cumulative_bonus_ytd=600)
    c=p.calculate_from_gross(rec)
    assert c.gross_salary==1300
    assert c.tax_free_bonus==pytest.approx(100)
    assert c.bonus_tax==pytest.approx(80)
    assert c.new_cumulative_bonus_ytd==pytest.approx(900)

def test_gross_up_converges():
    p=PayrollEngine(default_rules())
    res=p.calculate_from_net(755.16125)
    assert res.converged
    assert abs(res.residual)<0.01
    assert res.iterations<=50
    assert res.calculation.basic_salary==pytest.approx(1000,abs=0.1)

def test_gross_up_zero_target():
    res=PayrollEngine(default_rules()).calculate_from_net(0)
    assert res.converged
    assert res.calculation.net_salary==0

def test_gross_up_iteration_cap():
    res=PayrollEngine(default_rules()).calculate_from_net(5000,max_iterations=3)
    assert res.iterations<=3
    assert not res.converged

def test_batch_totals_and_independence():
    proc=PayrollBatchProcessor(default_rules())
    a=EmployeePayrollRecord(employee_id="a",name="A",basic_salary=1000)
    b=EmployeePayrollRecord(employee_id="b",name="B",basic_salary=2500)
    batch=proc.run_batch([a,b],period="2025-05")
    alone=proc.run_batch([a])
    assert batch.total_employees==2
    assert batch.totals["gross_salary"]==pytest.approx(3500)
    assert batch.lines[0].calculation==alone.lines[0].calculation
    df=proc.to_frame(batch)
    assert list(df["employee_id"])==["a","b"]

def test_roll_forward_carries_and_resets_ytd():
    proc=PayrollBatchProcessor(default_rules())
    recs=[EmployeePayrollRecord(employee_id="a",basic_salary=1000,allowances=Allowances(bonus=600))]
    batch=proc.run_batch(recs)
    rolled,month,year=proc.roll_forward(recs,batch,5,2025)
    assert (month,year)==(6,2025)
    assert rolled[0].cumulative_bonus_ytd==pytest.approx(600)
    assert recs[0].cumulative_bonus_ytd==0
    rolled,month,year=proc.roll_forward(recs,batch,12,2025)
    assert (month,year)==(1,2026)
    assert rolled[0].cumulative_bonus_ytd==0

def test_batch_frame_report():
    rules=default_rules()
    batch=PayrollBatchProcessor(rules).run_batch([EmployeePayrollRecord(employee_id="a",basic_salary=1000)])
    df=payroll_batch_frame(batch,rules)
    assert df.loc[0,"net_salary"]==pytest.approx(755.16125)
