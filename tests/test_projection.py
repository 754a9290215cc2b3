import numpy as np
import pytest

from zimtax.assets.allowances import Asset
from zimtax.planning.periods import create_periods
from zimtax.planning.projection import BaseFinancials, ProjectionEngine, scenario_totals
from zimtax.planning.scenarios import ScenarioManager, create_scenario
from zimtax.planning.workforce import WorkforceAssumptions, period_cost_map, project_workforce_costs
from zimtax.reports.summary import allowance_schedule_frame, period_tax_frame, scenario_comparison_frame, workforce_frame
from zimtax.assets.allowances import schedule_allowances
from zimtax.tax.rules import default_rules

BASE=BaseFinancials(revenue=200000,expenses=100000)

def _engine(seed=1,rules=None):
    return ProjectionEngine(rules or default_rules(),rng=np.random.default_rng(seed))

def test_base_scenario_single_currency():
    periods=create_periods(3,"annually",2025)
    out=_engine().project_scenario(create_scenario("Base","base",periods),BASE)
    for p in out.periods:
        assert p.tax_result.taxable_income==pytest.approx(100000)
        assert p.tax_result.total_tax==pytest.approx(25750)
    assert scenario_totals(out)["total_tax"]==pytest.approx(77250)

def test_growth_compounds_per_year():
    periods=create_periods(3,"annually",2025)
    out=_engine().project_scenario(create_scenario("G","growth",periods),BASE)
    assert [p.actuals["revenue"] for p in out.periods]==pytest.approx([200000,240000,288000])

def test_cost_cutting_reduces_expenses():
    periods=create_periods(1,"annually",2025)
    out=_engine().project_scenario(create_scenario("C","cost-cutting",periods),BASE)
    assert out.periods[0].actuals["expenses"]==pytest.approx(85000)

def test_losses_thread_through_periods():
    periods=create_periods(3,"annually",2025)
    base=BaseFinancials(revenue=200000,expenses=100000,opening_losses=150000)
    out=_engine().project_scenario(create_scenario("L","base",periods),base)
    assert [p.tax_result.taxable_income for p in out.periods]==pytest.approx([0,50000,100000])
    assert out.periods[0].tax_result.losses_carried_forward==pytest.approx(50000)
    no_relief=create_scenario("N","custom",periods,apply_loss_relief=False)
    out=_engine().project_scenario(no_relief,base)
    assert out.periods[0].tax_result.taxable_income==pytest.approx(100000)

def test_quarterly_periods_scale_figures():
    periods=create_periods(1,"quarterly",2025)
    out=_engine().project_scenario(create_scenario("Q","base",periods),BASE)
    assert out.periods[0].actuals["revenue"]==pytest.approx(50000)
    assert out.periods[0].tax_result.taxable_income==pytest.approx(25000)

def test_capital_allowances_flow_into_tax():
    periods=create_periods(2,"annually",2025)
    asset=Asset(category="moveable_assets",acquisition_year=2025,cost=10000)
    out=_engine().project_scenario(create_scenario("A","base",periods),BASE,[asset])
    assert out.periods[0].tax_result.capital_allowances_used==pytest.approx(5000)
    assert out.periods[0].tax_result.taxable_income==pytest.approx(95000)
    assert out.periods[1].tax_result.capital_allowances_used==pytest.approx(1000)

def test_stable_rates_leave_mix_unchanged():
    rules=default_rules().model_copy(update={"volatility":{"stable":0.0}})
    periods=create_periods(2,"annually",2025)
    scen=create_scenario("Z","custom",periods,currency_mix={"ZAR":0.5})
    out=_engine(rules=rules).project_scenario(scen,BASE)
    assert out.periods[1].actuals["revenue"]==pytest.approx(200000)
    assert out.periods[1].actuals["exchange_gain_loss"]==pytest.approx(0)

def test_currency_heavy_scenario():
    periods=create_periods(3,"annually",2025)
    scen=create_scenario("H","currency-heavy",periods)
    out=_engine().project_scenario(scen,BASE)
    assert out.periods[0].currency_data.exchange_losses_deductible is False
    assert out.periods[0].currency_data.currency_mix=={"ZWG":0.6}
    for p in out.periods:
        assert p.tax_result.taxable_income>=0

def test_seeded_runs_reproducible():
    periods=create_periods(3,"quarterly",2025)
    scen=create_scenario("H","currency-heavy",periods)
    a=_engine(42).project_scenario(scen,BASE)
    b=_engine(42).project_scenario(scen,BASE)
    c=_engine(43).project_scenario(scen,BASE)
    assert [p.actuals["revenue"] for p in a.periods]==[p.actuals["revenue"] for p in b.periods]
    assert [p.actuals["revenue"] for p in a.periods]!=[p.actuals["revenue"] for p in c.periods]

def test_inputs_not_mutated():
    mgr=ScenarioManager(create_periods(2,"annually",2025))
    mgr.create("Growth","growth")
    results=_engine().project_all(mgr.all(),BASE)
    assert len(results)==2
    for s in mgr.all():
        assert all(p.tax_result is None for p in s.periods)
    assert all(p.tax_result is not None for s in results for p in s.periods)

def test_workforce_costs():
    rules=default_rules()
    periods=create_periods(2,"annually",2025)
    wa=WorkforceAssumptions(count=1,average_salary=120000,annual_increase=0.1,
                            benefits_percentage=0,bonus_percentage=0,pension_rate=0.05)
    costs=project_workforce_costs(periods,wa,rules)
    first=costs[0]
    assert first.total_salary==pytest.approx(120000)
    # annual bands on 120000 less 378 NSSA
    assert first.paye==pytest.approx(8924.4)
    assert first.nssa_employer==pytest.approx(378)
    assert first.total_cost==pytest.approx(128178)
    assert costs[1].average_salary==pytest.approx(132000)
    base=BaseFinancials(revenue=200000,expenses=100000,period_costs=period_cost_map(costs))
    out=_engine().project_scenario(create_scenario("W","base",periods),base)
    assert out.periods[0].actuals["expenses"]==pytest.approx(228178)
    assert list(workforce_frame(costs)["period"])==["Year 2025","Year 2026"]

def test_low_salaries_pay_no_annual_paye():
    wa=WorkforceAssumptions(count=3,average_salary=12000,benefits_percentage=0,bonus_percentage=0)
    costs=project_workforce_costs(create_periods(1,"quarterly",2025),wa,default_rules())
    assert all(c.paye==0 for c in costs)
    assert costs[0].total_salary==pytest.approx(9000)

def test_salary_growth_driver_feeds_staff_costs():
    periods=create_periods(2,"annually",2025)
    wa=WorkforceAssumptions(count=1,average_salary=120000,annual_increase=0.1,
                            benefits_percentage=0,bonus_percentage=0,pension_rate=0.05)
    base=BaseFinancials(revenue=200000,expenses=100000,workforce=wa)
    plain=_engine().project_scenario(create_scenario("P","base",periods),base)
    raised=_engine().project_scenario(create_scenario("R","custom",periods,salary_growth=0.2),base)
    assert plain.periods[1].actuals["expenses"]==pytest.approx(240958)
    assert raised.periods[1].actuals["expenses"]==pytest.approx(253738)

def test_growth_compounds_per_quarter():
    periods=create_periods(1,"quarterly",2025)
    base=BaseFinancials(revenue=400000,expenses=0)
    out=_engine().project_scenario(create_scenario("G","growth",periods),base)
    assert [p.actuals["revenue"] for p in out.periods]==pytest.approx([100000,120000,144000,172800])

def test_reprojecting_gives_same_figures():
    periods=create_periods(2,"annually",2025)
    base=BaseFinancials(revenue=200000,expenses=100000,adjustments={"non_deductible":10000})
    eng=_engine(7)
    first=eng.project_scenario(create_scenario("H","currency-heavy",periods),base)
    again=eng.project_scenario(first,base)
    assert [p.tax_result.taxable_income for p in again.periods]==pytest.approx(
        [p.tax_result.taxable_income for p in first.periods])
    assert all(p.adjustments.non_deductible==0 for p in again.periods)
    plain=eng.project_scenario(create_scenario("B","base",periods),base)
    assert [p.tax_result.taxable_income for p in plain.periods]==pytest.approx([110000,110000])

def test_scenario_path_independent_of_siblings():
    periods=create_periods(4,"quarterly",2025)
    heavy=create_scenario("H","currency-heavy",periods)
    growth=create_scenario("G","growth",periods)
    alone=_engine(5).project_scenario(heavy,BASE)
    together=_engine(5).project_all([growth,heavy],BASE)
    assert [p.tax_result.total_tax for p in together[1].periods]==[p.tax_result.total_tax for p in alone.periods]

def test_report_frames():
    rules=default_rules()
    mgr=ScenarioManager(create_periods(2,"annually",2025))
    mgr.create("Growth","growth")
    results=_engine().project_all(mgr.all(),BASE)
    df=scenario_comparison_frame(results)
    assert list(df["Scenario"])==["Base Case","Growth"]
    assert df.loc[df["Base"],"TaxVsBase"].iloc[0]==0
    assert df.loc[~df["Base"],"TaxVsBase"].iloc[0]>0
    assert len(period_tax_frame(results[0].periods))==2
    periods=results[0].periods
    asset=Asset(name="Van",category="motor_vehicles",acquisition_year=2025,cost=1000)
    sched=schedule_allowances([asset],periods,rules.allowance_rates)
    frame=allowance_schedule_frame(sched,[asset],periods)
    assert list(frame.columns)==["Asset","Category","Cost","Year 2025","Year 2026","ClosingValue"]
    assert frame.iloc[0]["ClosingValue"]==pytest.approx(300)
