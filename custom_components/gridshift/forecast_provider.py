"""Forecast provider interface and fallback handling for GridShift."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from .models import ForecastSample

_LOGGER = logging.getLogger(__name__)


class ForecastUnavailableError(Exception):
    """Raised when a provider cannot deliver a forecast."""


class ForecastNotConfiguredError(ForecastUnavailableError):
    """The provider has no source configured."""


class ForecastFetchError(ForecastUnavailableError):
    """The provider's source could not be reached or returned bad data."""


class ForecastProvider(Protocol):
    """Anything that can produce forecast samples for a time span."""

    source: str

    async def async_get_forecast(
        self, start: datetime, end: datetime
    ) -> list[ForecastSample]:
        """Return samples ascending by timestamp covering ``[start, end)``."""
        ...


class FallbackForecastProvider:
    """
    Serve the primary provider's forecast, or the fallback's when it fails.

    Only ``ForecastUnavailableError`` triggers the fallback; anything else
    propagates to the caller.
    """

    def __init__(
        self, primary: ForecastProvider, fallback: ForecastProvider
    ) -> None:
        """Initialize the decorator."""
        self._primary = primary
        self._fallback = fallback
        self.last_source: str | None = None
        self.last_error: ForecastUnavailableError | None = None

    @property
    def source(self) -> str:
        """Source of the most recent forecast, the primary's before any fetch."""
        return self.last_source or self._primary.source

    async def async_get_forecast(
        self, start: datetime, end: datetime
    ) -> list[ForecastSample]:
        """Return the primary forecast, falling back on unavailability."""
        try:
            samples = await self._primary.async_get_forecast(start, end)
        except ForecastNotConfiguredError as err:
            _LOGGER.debug(
                "Primary forecast not configured (%s), using %s",
                err,
                self._fallback.source,
            )
            return await self._use_fallback(start, end, err)
        except ForecastUnavailableError as err:
            _LOGGER.warning(
                "Forecast fetch from %s failed, using %s: %s",
                self._primary.source,
                self._fallback.source,
                err,
            )
            return await self._use_fallback(start, end, err)

        self.last_source = self._primary.source
        self.last_error = None
        return samples

    async def _use_fallback(
        self, start: datetime, end: datetime, err: ForecastUnavailableError
    ) -> list[ForecastSample]:
        samples = await self._fallback.async_get_forecast(start, end)
        self.last_source = self._fallback.source
        self.last_error = err
        return samples
