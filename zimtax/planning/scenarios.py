"""
Named what-if scenarios. Each scenario owns its own copy of the periods.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zimtax.core.utils import as_number, setup_logging
from zimtax.planning.periods import Period

logger = setup_logging("scenarios")

SCENARIO_TYPES = ("base", "growth", "cost-cutting", "currency-heavy", "custom")

class ScenarioDrivers(BaseModel):
    model_config = ConfigDict(frozen=True)

    revenue_growth: float = 0.0
    expense_multiplier: float = 1.0
    # overrides WorkforceAssumptions.annual_increase when set
    salary_growth: Optional[float] = None
    currency_mix: Dict[str, float] = Field(default_factory=dict)
    exchange_rate_scenario: str = "stable"
    inflation_adjustment_factor: float = 1.0
    business_type: str = "private"
    # tax planning strategies
    claim_accelerated_allowances: bool = True
    apply_loss_relief: bool = True

    @field_validator("revenue_growth", mode="before")
    @classmethod
    def _numeric(cls, v):
        return as_number(v)

    @field_validator("salary_growth", mode="before")
    @classmethod
    def _optional_numeric(cls, v):
        return None if v is None else as_number(v)

    @field_validator("expense_multiplier", mode="before")
    @classmethod
    def _multiplier(cls, v):
        return max(0.0, as_number(1.0 if v is None else v))

def preset_drivers(scenario_type: str) -> Dict[str, Any]:
    if scenario_type == "growth":
        return {"revenue_growth": 0.2}
    if scenario_type == "cost-cutting":
        return {"expense_multiplier": 0.85}
    if scenario_type == "currency-heavy":
        return {"currency_mix": {"ZWG": 0.6}, "exchange_rate_scenario": "high"}
    return {}

class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"scenario-{uuid.uuid4().hex[:12]}")
    name: str
    type: str = "custom"
    description: str = ""
    drivers: ScenarioDrivers = Field(default_factory=ScenarioDrivers)
    periods: List[Period] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    is_base: bool = False

    def with_periods(self, periods: Sequence[Period]) -> "Scenario":
        return self.model_copy(update={"periods": [p.model_copy(deep=True) for p in periods]})

def create_scenario(name: str, scenario_type: str = "custom", periods: Optional[Sequence[Period]] = None,
                    description: str = "", **driver_overrides: Any) -> Scenario:
    scenario_type = (scenario_type or "custom").strip().lower()
    if scenario_type not in SCENARIO_TYPES:
        logger.warning("unknown scenario type %r, treating as custom", scenario_type)
        scenario_type = "custom"
    drivers = preset_drivers(scenario_type)
    drivers.update(driver_overrides)
    return Scenario(
        name=name,
        type=scenario_type,
        description=description,
        drivers=ScenarioDrivers(**drivers),
        # deep copy: no scenario shares period objects with another
        periods=[p.model_copy(deep=True) for p in periods or []],
        is_base=scenario_type == "base",
    )

class ScenarioManager:
    """Scenario collection with exactly one base scenario that cannot be deleted."""

    def __init__(self, periods: Sequence[Period], base_name: str = "Base Case"):
        self._scenarios: Dict[str, Scenario] = {}
        base = create_scenario(base_name, "base", periods)
        self._scenarios[base.id] = base
        self.base_id = base.id

    @property
    def base(self) -> Scenario:
        return self._scenarios[self.base_id]

    def create(self, name: str, scenario_type: str = "custom", **driver_overrides: Any) -> Scenario:
        if scenario_type == "base":
            logger.warning("a base scenario already exists, creating %r as custom", name)
            scenario_type = "custom"
        scenario = create_scenario(name, scenario_type, self.base.periods, **driver_overrides)
        self._scenarios[scenario.id] = scenario
        return scenario

    def get(self, scenario_id: str) -> Optional[Scenario]:
        return self._scenarios.get(scenario_id)

    def replace(self, scenario: Scenario) -> bool:
        if scenario.id not in self._scenarios:
            return False
        self._scenarios[scenario.id] = scenario.model_copy(update={"is_base": scenario.id == self.base_id})
        return True

    def delete(self, scenario_id: str) -> bool:
        if scenario_id == self.base_id:
            logger.warning("refusing to delete base scenario %s", scenario_id)
            return False
        return self._scenarios.pop(scenario_id, None) is not None

    def all(self) -> List[Scenario]:
        return list(self._scenarios.values())

    def __len__(self):
        return len(self._scenarios)
