from datetime import date

import pytest

from zimtax.assets.allowances import Asset, AssetRegister, allowance_breakdown, apply_schedule, schedule_allowances
from zimtax.currency.converter import CurrencyConverter
from zimtax.planning.periods import create_periods
from zimtax.tax.rules import AllowanceRates, default_rules

def test_first_year_then_wear_and_tear():
    rules=default_rules()
    periods=create_periods(3,"annually",2025)
    asset=Asset(name="Forklift",category="moveable_assets",acquisition_year=2025,cost=1000)
    s=schedule_allowances([asset],periods,rules.allowance_rates)
    assert [s.by_period[p.id] for p in periods]==pytest.approx([500,100,100])
    assert s.closing_values[asset.id]==pytest.approx(300)

def test_no_allowance_before_acquisition():
    rules=default_rules()
    periods=create_periods(3,"annually",2025)
    asset=Asset(category="moveable_assets",acquisition_date=date(2026,3,1),cost=1000)
    assert asset.acquisition_year==2026
    s=schedule_allowances([asset],periods,rules.allowance_rates)
    assert [s.by_period[p.id] for p in periods]==pytest.approx([0,500,100])

def test_cap_at_cost():
    rules=default_rules()
    periods=create_periods(3,"annually",2025)
    asset=Asset(category="it_equipment",acquisition_year=2025,cost=1000)
    capped=schedule_allowances([asset],periods,rules.allowance_rates)
    assert [capped.by_period[p.id] for p in periods]==pytest.approx([500,333,167])
    uncapped=schedule_allowances([asset],periods,rules.allowance_rates,cap_at_cost=False)
    assert uncapped.by_period["year-2027"]==pytest.approx(333)
    assert uncapped.closing_values[asset.id]==0

def test_plain_wear_and_tear_when_not_accelerated():
    rules=default_rules()
    periods=create_periods(2,"annually",2025)
    asset=Asset(category="motorVehicles",acquisition_year=2025,cost=1000)
    assert asset.category=="motor_vehicles"
    s=schedule_allowances([asset],periods,rules.allowance_rates,accelerated=False)
    assert s.by_period["year-2025"]==pytest.approx(200)

def test_acquisition_quarter():
    rules=default_rules()
    periods=create_periods(1,"quarterly",2025)
    asset=Asset(category="Moveable Assets",acquisition_date="2025-05-10",cost=1000)
    s=schedule_allowances([asset],periods,rules.allowance_rates)
    assert [s.by_period[p.id] for p in periods]==pytest.approx([0,500,100,100])

def test_unknown_category_gets_zero():
    rules=default_rules()
    periods=create_periods(2,"annually",2025)
    asset=Asset(category="spaceships",acquisition_year=2025,cost=1000)
    s=schedule_allowances([asset],periods,rules.allowance_rates)
    assert s.total()==0

def test_apply_schedule_does_not_mutate():
    rules=default_rules()
    periods=create_periods(2,"annually",2025)
    asset=Asset(category="moveable_assets",acquisition_year=2025,cost=1000)
    s=schedule_allowances([asset],periods,rules.allowance_rates)
    updated=apply_schedule([asset],s)
    assert updated[0].written_down_value==pytest.approx(400)
    assert asset.written_down_value==1000

def test_breakdown():
    b=allowance_breakdown(1000,AllowanceRates(special=0.5,accelerated=0.25,wear_tear=0.1))
    assert b["claimed"]==500
    assert b["wear_tear"]==100

def test_register_converts_to_base():
    reg=AssetRegister(CurrencyConverter(default_rules().currencies))
    a=reg.add("Truck","motor_vehicles",1820,currency="zar",acquisition_date=date(2025,1,1))
    assert a.cost_base==pytest.approx(100)
    assert len(reg)==1
    reg.apply(reg.schedule(create_periods(1,"annually",2025),default_rules().allowance_rates))
    assert reg.get(a.id).written_down_value==pytest.approx(50)
    assert reg.remove(a.id) is True
    assert len(reg)==0
