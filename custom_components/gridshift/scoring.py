"""
Score policies and qualifying predicates for forecast samples.

A score policy turns one sample into a desirability value in ``[0, 1]``.
A predicate decides whether a sample may be part of a clean window. Both
are plain strategy objects handed to the window detector and the planner,
so each interpretation can be tested on its own.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from .models import ForecastSample, PriceTier, TouRates

SamplePredicate = Callable[[ForecastSample], bool]


class ScorePolicy(Protocol):
    """Maps a forecast sample to a desirability score."""

    def score(self, sample: ForecastSample) -> float:
        """Return the score of ``sample``."""
        ...


@dataclass(frozen=True)
class CleanFractionPolicy:
    """Score a sample by its clean-energy fraction alone."""

    def score(self, sample: ForecastSample) -> float:
        """Return the clean fraction."""
        return sample.clean_fraction


@dataclass(frozen=True)
class TouScorePolicy:
    """
    Score a sample by price and cleanliness combined.

    ``score = cost_weight * (1 - rate / peak) + clean_weight * clean_fraction``
    """

    rates: TouRates = field(default_factory=TouRates)
    cost_weight: float = 0.6
    clean_weight: float = 0.4

    def rate_of(self, sample: ForecastSample) -> float:
        """Return the sample's rate, falling back to its tier's nominal rate."""
        if sample.rate_per_kwh is not None:
            return sample.rate_per_kwh
        return self.rates.rate_for(sample.price_tier)

    def score(self, sample: ForecastSample) -> float:
        """Return the weighted price/clean score."""
        peak = self.rates.peak
        normalized_rate = self.rate_of(sample) / peak if peak > 0 else 0.0
        return (
            self.cost_weight * (1.0 - normalized_rate)
            + self.clean_weight * sample.clean_fraction
        )


def clean_fraction_at_least(minimum: float = 0.6) -> SamplePredicate:
    """Qualify samples whose clean fraction reaches ``minimum``."""

    def _predicate(sample: ForecastSample) -> bool:
        return sample.clean_fraction >= minimum

    return _predicate


def score_above(policy: ScorePolicy, threshold: float) -> SamplePredicate:
    """Qualify samples whose policy score exceeds ``threshold``."""

    def _predicate(sample: ForecastSample) -> bool:
        return policy.score(sample) > threshold

    return _predicate


def off_peak_and_clean(floor: float = 0.5) -> SamplePredicate:
    """Qualify samples outside the peak tier with clean fraction above ``floor``."""

    def _predicate(sample: ForecastSample) -> bool:
        return sample.price_tier is not PriceTier.HIGH and sample.clean_fraction > floor

    return _predicate
