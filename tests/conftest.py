"""Fixtures for GridShift tests."""

from __future__ import annotations

from collections.abc import Generator, Sequence
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from homeassistant import loader
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.gridshift.const import (
    CONF_CURRENT_STATE,
    CONF_DEADLINE,
    CONF_DEVICE_TYPE,
    CONF_MIN_CLEAN_FRACTION,
    CONF_MIN_WINDOW_MINUTES,
    CONF_POSTCODE,
    CONF_TARGET_STATE,
    DEVICE_TYPE_EV_CHARGER,
    DOMAIN,
)
from custom_components.gridshift.models import ForecastSample, PriceTier, TouRates

BASE_TIME = datetime(2026, 3, 2, 0, 0, tzinfo=UTC)
HOUR = timedelta(hours=1)


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(hass: HomeAssistant) -> None:
    """Enable custom integrations in all tests."""
    hass.data.pop(loader.DATA_CUSTOM_COMPONENTS)


def make_samples(
    clean_fractions: Sequence[float],
    base_time: datetime = BASE_TIME,
    step: timedelta = HOUR,
    tiers: Sequence[PriceTier | None] | None = None,
) -> list[ForecastSample]:
    """Build consecutive forecast samples from a list of clean fractions."""
    return [
        ForecastSample(
            timestamp=base_time + step * i,
            clean_fraction=fraction,
            price_tier=tiers[i] if tiers else None,
            rate_per_kwh=TouRates().rate_for(tiers[i]) if tiers else None,
        )
        for i, fraction in enumerate(clean_fractions)
    ]


def hours(n: float) -> datetime:
    """Return ``BASE_TIME`` plus ``n`` hours."""
    return BASE_TIME + timedelta(hours=n)


@pytest.fixture
def mock_config_entry(hass: HomeAssistant) -> MockConfigEntry:
    """Create a mock EV charger config entry."""
    entry = MockConfigEntry(
        domain=DOMAIN,
        title="GridShift EV charger",
        data={
            CONF_DEVICE_TYPE: DEVICE_TYPE_EV_CHARGER,
            CONF_POSTCODE: "RG10",
            CONF_DEADLINE: "07:30:00",
            CONF_TARGET_STATE: 80,
            CONF_CURRENT_STATE: 50,
            CONF_MIN_CLEAN_FRACTION: 0.6,
            CONF_MIN_WINDOW_MINUTES: 30,
        },
    )
    entry.add_to_hass(hass)
    return entry


@pytest.fixture
def mock_setup_entry() -> Generator[None]:
    """Override async_setup_entry."""
    with patch(
        "custom_components.gridshift.async_setup_entry",
        return_value=True,
    ):
        yield


def make_live_forecast(
    start: datetime, count: int = 96, clean_fraction: float = 0.7
) -> list[ForecastSample]:
    """Create half-hourly samples as the Carbon Intensity client returns them."""
    start = start.replace(
        minute=start.minute - start.minute % 30, second=0, microsecond=0
    )
    return [
        ForecastSample(
            timestamp=start + timedelta(minutes=30 * i),
            clean_fraction=clean_fraction,
            price_tier=PriceTier.LOW,
            rate_per_kwh=0.12,
        )
        for i in range(count)
    ]


@pytest.fixture
def mock_carbon_api() -> Generator[AsyncMock]:
    """Mock the CarbonIntensityClient used by the coordinator."""
    mock_client = AsyncMock()
    mock_client.source = "carbon_intensity"
    mock_client.async_get_forecast = AsyncMock(
        side_effect=lambda start, _end: make_live_forecast(start)
    )

    with patch(
        "custom_components.gridshift.coordinator.CarbonIntensityClient",
        return_value=mock_client,
    ):
        yield mock_client
