"""Tests for GridShift plan evaluation."""

from __future__ import annotations

import pytest

from custom_components.gridshift.evaluator import (
    CleanChargeEvaluator,
    EvEvaluationConfig,
    HvacEvaluationConfig,
    TouSavingsEvaluator,
    comfort_score,
    quality_score,
)
from custom_components.gridshift.models import (
    ComfortProfile,
    OperationSlot,
    Plan,
    PlanSummary,
    SlotAction,
)

from .conftest import hours


def _plan(*slots: OperationSlot) -> Plan:
    return Plan(
        slots=slots,
        now=slots[0].start if slots else hours(0),
        deadline=slots[-1].end if slots else hours(1),
        current_state=50,
        target_state=80,
    )


def _slot(  # noqa: PLR0913
    start: float,
    end: float,
    action: SlotAction,
    quality: float = 0.0,
    clean: float = 0.0,
    rate: float | None = None,
    target: float | None = None,
) -> OperationSlot:
    return OperationSlot(
        start=hours(start),
        end=hours(end),
        action=action,
        quality_at_start=quality,
        clean_fraction=clean,
        rate_per_kwh=rate,
        target_temperature=target,
    )


# ---------------------------------------------------------------------------
# EV charge plans
# ---------------------------------------------------------------------------


def test_clean_charge_summary():
    """Savings scale with the mean quality of the charge slots."""
    plan = _plan(
        _slot(0, 2, SlotAction.WAIT, quality=0.3),
        _slot(2, 4, SlotAction.CHARGE, quality=1.0),
        _slot(4, 5, SlotAction.CHARGE, quality=0.5),
    )

    summary = CleanChargeEvaluator().evaluate(plan)

    assert summary.estimated_quality_score == pytest.approx(75)
    assert summary.estimated_savings_cost == pytest.approx(0.75 * 2.40)
    assert summary.estimated_savings_co2_kg == pytest.approx(0.75 * 1.8)
    assert summary.estimated_points == 135
    assert summary.estimated_energy_kwh == pytest.approx(3 * 7.4)


def test_clean_charge_custom_calibration():
    """Calibration comes from the config, not from literals."""
    config = EvEvaluationConfig(cost_factor=1.0, co2_factor=2.0, points_factor=10)
    plan = _plan(_slot(0, 1, SlotAction.CHARGE, quality=0.5))

    summary = CleanChargeEvaluator(config).evaluate(plan)

    assert summary.estimated_savings_cost == pytest.approx(0.5)
    assert summary.estimated_savings_co2_kg == pytest.approx(1.0)
    assert summary.estimated_points == 5


def test_clean_charge_without_active_slots():
    """An all-idle plan is worth nothing."""
    plan = _plan(_slot(0, 6, SlotAction.WAIT, quality=0.9))
    assert CleanChargeEvaluator().evaluate(plan) == PlanSummary.empty()


def test_quality_score_is_clamped():
    """Quality scores stay within 0-100."""
    assert quality_score(1.4) == 100
    assert quality_score(-0.2) == 0
    assert quality_score(0.55) == pytest.approx(55)


# ---------------------------------------------------------------------------
# HVAC plans
# ---------------------------------------------------------------------------


def test_tou_savings_summary():
    """Savings integrate the avoided rate over active slots."""
    plan = _plan(
        _slot(0, 2, SlotAction.PASSIVE, quality=0.2, clean=0.3, rate=0.38),
        _slot(2, 4, SlotAction.PRE_HEAT, quality=0.7, clean=0.8, rate=0.12),
        _slot(4, 5, SlotAction.NORMAL, quality=0.5, clean=0.6, rate=0.22),
    )

    summary = TouSavingsEvaluator().evaluate(plan)

    # 2h * 2.5kW * (0.22 - 0.12); the NORMAL slot is at the baseline rate
    assert summary.estimated_savings_cost == pytest.approx(0.5)
    # 5kWh * 0.4 * 0.4 + 1.5kWh * 0.2 * 0.4
    assert summary.estimated_savings_co2_kg == pytest.approx(0.8 + 0.12)
    assert summary.estimated_quality_score == pytest.approx(60)
    # 2h passive + 2h pre-heat + 1h normal
    assert summary.estimated_energy_kwh == pytest.approx(1.0 + 5.0 + 1.5)
    assert summary.estimated_points == 0


def test_tou_savings_never_negative():
    """Running at peak is reported as zero savings, not a loss."""
    plan = _plan(_slot(0, 2, SlotAction.PRE_COOL, quality=0.2, clean=0.1, rate=0.38))

    summary = TouSavingsEvaluator().evaluate(plan)

    assert summary.estimated_savings_cost == 0
    assert summary.estimated_savings_co2_kg == 0


def test_tou_savings_slot_without_rate():
    """A slot without a known rate contributes no cost savings."""
    plan = _plan(_slot(0, 1, SlotAction.PRE_HEAT, quality=0.9, clean=0.9))

    summary = TouSavingsEvaluator().evaluate(plan)

    assert summary.estimated_savings_cost == 0
    assert summary.estimated_savings_co2_kg > 0


def test_tou_savings_idle_plan_reports_energy_only():
    """An idle plan has no savings but still draws passive power."""
    plan = _plan(_slot(0, 4, SlotAction.PASSIVE, clean=0.9, rate=0.12))

    summary = TouSavingsEvaluator(HvacEvaluationConfig()).evaluate(plan)

    assert summary.estimated_savings_cost == 0
    assert summary.estimated_quality_score == 0
    assert summary.estimated_energy_kwh == pytest.approx(2.0)


def test_tou_savings_empty_plan():
    """A plan without slots evaluates to the empty summary."""
    assert TouSavingsEvaluator().evaluate(_plan()) == PlanSummary.empty()


def test_tou_savings_reports_comfort_score():
    """The HVAC summary scores slot targets against the configured band."""
    config = HvacEvaluationConfig(
        comfort=ComfortProfile(minimum_temperature=20.0, maximum_temperature=24.0)
    )
    plan = _plan(
        _slot(0, 2, SlotAction.OFF, rate=0.38, target=16.0),
        _slot(2, 4, SlotAction.PRE_HEAT, quality=0.7, rate=0.12, target=24.0),
        _slot(4, 5, SlotAction.NORMAL, quality=0.5, rate=0.22, target=22.0),
    )

    summary = TouSavingsEvaluator(config).evaluate(plan)

    # 16 is clamped to 0, 24 scores 50 and the midpoint 100
    assert summary.estimated_comfort_score == pytest.approx(50)


def test_tou_savings_idle_plan_keeps_comfort_score():
    """An all-idle plan still reports how comfortable it is."""
    plan = _plan(_slot(0, 3, SlotAction.PASSIVE, target=23.0))

    summary = TouSavingsEvaluator().evaluate(plan)

    assert summary.estimated_savings_cost == 0
    assert summary.estimated_comfort_score == pytest.approx(75)


def test_comfort_score_formula():
    """Each half band away from the midpoint costs 50 points."""
    comfort = ComfortProfile(minimum_temperature=18.0, maximum_temperature=26.0)
    slots = [
        _slot(0, 1, SlotAction.NORMAL, target=22.0),
        _slot(1, 2, SlotAction.PRE_HEAT, target=26.0),
        _slot(2, 3, SlotAction.PASSIVE, target=19.0),
    ]

    assert comfort_score(slots[:1], comfort) == pytest.approx(100)
    assert comfort_score(slots[1:2], comfort) == pytest.approx(50)
    assert comfort_score(slots, comfort) == pytest.approx((100 + 50 + 62.5) / 3)


def test_comfort_score_narrow_band_uses_one_degree_spread():
    """A band narrower than two degrees is scored as if one degree wide."""
    comfort = ComfortProfile(minimum_temperature=21.0, maximum_temperature=21.0)
    slots = [_slot(0, 1, SlotAction.PASSIVE, target=22.0)]

    assert comfort_score(slots, comfort) == pytest.approx(50)


def test_comfort_score_ignores_slots_without_target():
    """Slots without a setpoint are left out, and none at all scores 0."""
    comfort = ComfortProfile()
    waiting = _slot(0, 1, SlotAction.WAIT)

    assert comfort_score([waiting], comfort) == 0
    assert comfort_score([], comfort) == 0
    assert comfort_score(
        [waiting, _slot(1, 2, SlotAction.NORMAL, target=comfort.midpoint)], comfort
    ) == pytest.approx(100)
