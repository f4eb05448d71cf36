"""Tests for the synthetic forecast and the fallback provider."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

from custom_components.gridshift.const import SOURCE_CARBON_INTENSITY, SOURCE_SYNTHETIC
from custom_components.gridshift.forecast_provider import (
    FallbackForecastProvider,
    ForecastFetchError,
    ForecastNotConfiguredError,
)
from custom_components.gridshift.models import PriceTier
from custom_components.gridshift.synthetic import (
    HOURLY_CLEAN_FRACTION,
    HOURLY_PRICE_TIER,
    SyntheticForecastProvider,
)

from .conftest import BASE_TIME, make_samples


@pytest.fixture
async def utc_time_zone(hass: HomeAssistant) -> None:
    """Run the synthetic profile against UTC local time."""
    await hass.config.async_set_time_zone("UTC")


def test_hourly_profiles_cover_a_day():
    """Both profiles have one entry per hour of the day."""
    assert len(HOURLY_CLEAN_FRACTION) == 24
    assert len(HOURLY_PRICE_TIER) == 24
    assert HOURLY_PRICE_TIER[3] is PriceTier.LOW
    assert HOURLY_PRICE_TIER[12] is PriceTier.HIGH
    assert HOURLY_PRICE_TIER[17] is PriceTier.HIGH
    assert HOURLY_PRICE_TIER[20] is PriceTier.MID
    assert HOURLY_PRICE_TIER[23] is PriceTier.LOW


@pytest.mark.usefixtures("utc_time_zone")
async def test_generate_is_hourly_and_aligned():
    """Samples start at the hour containing ``start`` and follow the profile."""
    provider = SyntheticForecastProvider()
    start = BASE_TIME + timedelta(minutes=20)

    samples = provider.generate(start, BASE_TIME + timedelta(hours=30))

    assert len(samples) == 30
    assert samples[0].timestamp == BASE_TIME
    assert all(
        later.timestamp - earlier.timestamp == timedelta(hours=1)
        for earlier, later in zip(samples, samples[1:], strict=False)
    )
    assert samples[12].clean_fraction == 0.87
    assert samples[12].price_tier is PriceTier.HIGH
    assert samples[12].rate_per_kwh == 0.38
    # The profile repeats daily
    assert samples[25].clean_fraction == samples[1].clean_fraction


@pytest.mark.usefixtures("utc_time_zone")
async def test_synthetic_is_deterministic():
    """Two calls over the same span give identical samples."""
    provider = SyntheticForecastProvider()
    end = BASE_TIME + timedelta(hours=48)

    first = await provider.async_get_forecast(BASE_TIME, end)
    second = await provider.async_get_forecast(BASE_TIME, end)

    assert first == second
    assert len(first) == 48


def test_empty_span():
    """No samples for an empty span."""
    assert SyntheticForecastProvider().generate(BASE_TIME, BASE_TIME) == []


def _primary(**kwargs) -> AsyncMock:
    primary = AsyncMock()
    primary.source = SOURCE_CARBON_INTENSITY
    primary.async_get_forecast = AsyncMock(**kwargs)
    return primary


async def test_fallback_passes_primary_through():
    """A healthy primary is used as is."""
    live = make_samples([0.5, 0.6])
    provider = FallbackForecastProvider(
        _primary(return_value=live), SyntheticForecastProvider()
    )

    samples = await provider.async_get_forecast(BASE_TIME, BASE_TIME)

    assert samples == live
    assert provider.last_source == SOURCE_CARBON_INTENSITY
    assert provider.last_error is None


async def test_fallback_on_fetch_error(caplog: pytest.LogCaptureFixture):
    """A failing primary is replaced by the synthetic forecast with a warning."""
    provider = FallbackForecastProvider(
        _primary(side_effect=ForecastFetchError("timeout")),
        SyntheticForecastProvider(),
    )
    now = dt_util.utcnow()

    samples = await provider.async_get_forecast(now, now + timedelta(hours=4))

    assert len(samples) in (4, 5)
    assert provider.source == SOURCE_SYNTHETIC
    assert isinstance(provider.last_error, ForecastFetchError)
    assert "timeout" in caplog.text


async def test_fallback_when_not_configured(caplog: pytest.LogCaptureFixture):
    """A missing postcode falls back quietly."""
    caplog.set_level("WARNING")
    provider = FallbackForecastProvider(
        _primary(side_effect=ForecastNotConfiguredError("no postcode")),
        SyntheticForecastProvider(),
    )

    samples = await provider.async_get_forecast(
        BASE_TIME, BASE_TIME + timedelta(hours=2)
    )

    assert len(samples) == 2
    assert provider.last_source == SOURCE_SYNTHETIC
    assert caplog.records == []


async def test_fallback_recovers():
    """The primary is tried again on every call."""
    live = make_samples([0.5])
    primary = _primary(side_effect=[ForecastFetchError("down"), live])
    provider = FallbackForecastProvider(primary, SyntheticForecastProvider())

    await provider.async_get_forecast(BASE_TIME, BASE_TIME + timedelta(hours=1))
    assert provider.last_source == SOURCE_SYNTHETIC

    assert await provider.async_get_forecast(BASE_TIME, BASE_TIME) == live
    assert provider.last_source == SOURCE_CARBON_INTENSITY
    assert provider.last_error is None


async def test_unexpected_errors_propagate():
    """Only forecast unavailability triggers the fallback."""
    provider = FallbackForecastProvider(
        _primary(side_effect=RuntimeError("bug")), SyntheticForecastProvider()
    )

    with pytest.raises(RuntimeError):
        await provider.async_get_forecast(BASE_TIME, BASE_TIME)
