"""
Plan evaluation for GridShift.

Turns a finished plan into savings, CO2 and quality estimates. The
EV variant monetises the average quality of its charge slots with fixed
calibration factors; the HVAC variant integrates the avoided time-of-use
rate over the active slots. Evaluation never raises: a plan without
active slots yields an all-zero summary.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Protocol

from .models import ComfortProfile, OperationSlot, Plan, PlanSummary, SlotAction

QUALITY_SCALE = 100.0


class PlanEvaluator(Protocol):
    """Aggregates a plan into summary metrics."""

    def evaluate(self, plan: Plan) -> PlanSummary:
        """Return the summary of ``plan``."""
        ...


def average_active_quality(plan: Plan) -> float:
    """Mean ``quality_at_start`` over the active slots, 0.0 if there are none."""
    active = plan.active_slots
    if not active:
        return 0.0
    return sum(slot.quality_at_start for slot in active) / len(active)


def quality_score(average_quality: float) -> float:
    """Scale an average quality to ``[0, 100]``."""
    return max(0.0, min(QUALITY_SCALE, average_quality * QUALITY_SCALE))


def comfort_score(slots: Sequence[OperationSlot], comfort: ComfortProfile) -> float:
    """
    Mean comfort of the slot target temperatures, 0 to 100.

    A target at the band midpoint scores 100; each half band width away
    from it costs 50 points. Slots without a target temperature are left
    out, and a plan with none scores 0.
    """
    targets = [
        slot.target_temperature
        for slot in slots
        if slot.target_temperature is not None
    ]
    if not targets:
        return 0.0

    spread = max(comfort.half_range, 1.0)
    scores = [
        max(0.0, 1.0 - 0.5 * abs(target - comfort.midpoint) / spread)
        for target in targets
    ]
    return QUALITY_SCALE * sum(scores) / len(scores)


@dataclass(frozen=True)
class EvEvaluationConfig:
    """
    Calibration for EV charge plans.

    Attributes:
        cost_factor: Money saved per unit of average clean fraction.
        co2_factor: Kilograms of CO2 avoided per unit of average clean fraction.
        points_factor: Reward points per unit of average clean fraction.
        charger_power_kw: Charger draw used for the energy estimate.

    """

    cost_factor: float = 2.40
    co2_factor: float = 1.8
    points_factor: float = 180.0
    charger_power_kw: float = 7.4


@dataclass(frozen=True)
class CleanChargeEvaluator:
    """Evaluate EV plans by the cleanliness of their charge slots."""

    config: EvEvaluationConfig = field(default_factory=EvEvaluationConfig)

    def evaluate(self, plan: Plan) -> PlanSummary:
        """Return the summary of ``plan``."""
        active = plan.active_slots
        if not active:
            return PlanSummary.empty()

        avg = average_active_quality(plan)
        active_hours = sum(slot.duration_hours for slot in active)
        return PlanSummary(
            estimated_savings_cost=avg * self.config.cost_factor,
            estimated_savings_co2_kg=avg * self.config.co2_factor,
            estimated_quality_score=quality_score(avg),
            estimated_energy_kwh=active_hours * self.config.charger_power_kw,
            estimated_points=int(avg * self.config.points_factor),
        )


DEFAULT_HVAC_ACTION_POWER_KW = MappingProxyType(
    {
        SlotAction.PRE_HEAT: 2.5,
        SlotAction.PRE_COOL: 2.5,
        SlotAction.NORMAL: 1.5,
        SlotAction.PASSIVE: 0.5,
        SlotAction.OFF: 0.0,
        SlotAction.WAIT: 0.0,
        SlotAction.CHARGE: 0.0,
    }
)


@dataclass(frozen=True)
class HvacEvaluationConfig:
    """
    Calibration for HVAC operation plans.

    Attributes:
        baseline_rate: Flat rate the plan is compared against, per kWh.
        action_power_kw: Assumed draw of the system for each action.
        co2_kg_per_kwh: Emissions of the non-clean share of grid supply.
        baseline_clean_fraction: Clean share of an unplanned run.
        comfort: Band the slot target temperatures are scored against.

    """

    baseline_rate: float = 0.22
    action_power_kw: Mapping[SlotAction, float] = field(
        default_factory=lambda: DEFAULT_HVAC_ACTION_POWER_KW
    )
    co2_kg_per_kwh: float = 0.4
    baseline_clean_fraction: float = 0.4
    comfort: ComfortProfile = field(default_factory=ComfortProfile)

    def power_for(self, action: SlotAction) -> float:
        """Return the assumed draw for ``action`` in kW."""
        return self.action_power_kw.get(action, 0.0)


@dataclass(frozen=True)
class TouSavingsEvaluator:
    """Evaluate HVAC plans by the time-of-use rate avoided in active slots."""

    config: HvacEvaluationConfig = field(default_factory=HvacEvaluationConfig)

    def evaluate(self, plan: Plan) -> PlanSummary:
        """Return the summary of ``plan``."""
        if not plan.slots:
            return PlanSummary.empty()

        energy_kwh = sum(
            slot.duration_hours * self.config.power_for(slot.action)
            for slot in plan.slots
        )
        comfort = comfort_score(plan.slots, self.config.comfort)
        active = plan.active_slots
        if not active:
            return PlanSummary(
                estimated_energy_kwh=energy_kwh, estimated_comfort_score=comfort
            )

        savings = 0.0
        co2_kg = 0.0
        for slot in active:
            slot_kwh = slot.duration_hours * self.config.power_for(slot.action)
            if slot.rate_per_kwh is not None:
                savings += slot_kwh * (self.config.baseline_rate - slot.rate_per_kwh)
            cleaner_share = max(
                0.0, slot.clean_fraction - self.config.baseline_clean_fraction
            )
            co2_kg += slot_kwh * cleaner_share * self.config.co2_kg_per_kwh

        return PlanSummary(
            estimated_savings_cost=max(0.0, savings),
            estimated_savings_co2_kg=co2_kg,
            estimated_quality_score=quality_score(average_active_quality(plan)),
            estimated_energy_kwh=energy_kwh,
            estimated_comfort_score=comfort,
        )
