"""Weather lookup for tasks via the Open-Meteo geocoding and forecast APIs.

resolve_weather() is the only entry point the board uses. It never raises:
every failure is reported as one of the fixed placeholder strings below, and
that text is stored on the task as its weather summary.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from planboard.core.config import Settings, constants, settings
from planboard.core.logging import span


logger = logging.getLogger(__name__)

LOCATION_NOT_FOUND = "Location not found"
WEATHER_UNAVAILABLE = "Weather data unavailable"
DATE_OUT_OF_RANGE = "Date out of forecast range"
FETCH_FAILED = "Failed to fetch weather"
UNKNOWN_WEATHER = "Unknown weather"

# WMO weather interpretation codes (WW)
WEATHER_CODES: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


class WeatherLookupError(Exception):
    """Raised when a geocoding or forecast request fails (not when it finds nothing)."""


class GeoLocation(BaseModel):
    """One geocoding candidate."""

    id: int | None = None
    name: str
    country: str = ""
    admin1: str | None = None
    latitude: float
    longitude: float

    @property
    def label(self) -> str:
        """Autocomplete label, e.g. "Springfield, Illinois, United States"."""
        parts = [self.name, self.admin1, self.country]
        return ", ".join(part for part in parts if part)

    @property
    def short_label(self) -> str:
        """Location text stored on a task when this candidate is picked."""
        return ", ".join(part for part in (self.name, self.country) if part)


class DailyForecast(BaseModel):
    """Daily series aligned by index across the parallel arrays."""

    time: list[str] = Field(default_factory=list)
    weather_code: list[int | None] = Field(default_factory=list)
    temperature_2m_max: list[float | None] = Field(default_factory=list)

    def entry_for(self, date: str) -> tuple[int | None, float | None] | None:
        """Return (weather code, max temperature) for an exact ISO date match."""
        try:
            index = self.time.index(date)
        except ValueError:
            return None
        code = self.weather_code[index] if index < len(self.weather_code) else None
        temp = self.temperature_2m_max[index] if index < len(self.temperature_2m_max) else None
        return code, temp


def describe_weather_code(code: int | None) -> str:
    """Map a WMO code to its description."""
    if code is None:
        return UNKNOWN_WEATHER
    return WEATHER_CODES.get(code, UNKNOWN_WEATHER)


def format_temperature(temp: float) -> str:
    """Render a temperature the way the API value reads (18.4, 20, -3.5)."""
    if float(temp).is_integer():
        return str(int(temp))
    return str(temp)


def format_weather(code: int | None, temp: float) -> str:
    return f"{describe_weather_code(code)} • {format_temperature(temp)}°C"


class WeatherLookup:
    """Client for the geocoding and forecast collaborators.

    An httpx.AsyncClient may be injected (tests pass one with a mock transport);
    otherwise a short-lived client is opened per request.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        app_settings: Settings | None = None,
    ) -> None:
        self._client = http_client
        self._settings = app_settings or settings

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=constants.WEATHER_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise WeatherLookupError(f"HTTP {e.response.status_code} from {url}") from e
        except httpx.RequestError as e:
            raise WeatherLookupError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise WeatherLookupError(f"Invalid JSON from {url}") from e

        if not isinstance(data, dict):
            raise WeatherLookupError(f"Unexpected response shape from {url}")
        return data

    async def search_locations(self, query: str, *, count: int = constants.CITY_SEARCH_RESULT_LIMIT) -> list[GeoLocation]:
        """Search places by free text.

        Returns:
            Candidates in API order; empty when the API reports no match

        Raises:
            WeatherLookupError: If the request or response parsing fails
        """
        data = await self._get_json(
            self._settings.geocoding_url,
            {"name": query, "count": count, "language": self._settings.weather_language, "format": "json"},
        )
        try:
            return [GeoLocation.model_validate(item) for item in data.get("results") or []]
        except ValidationError as e:
            raise WeatherLookupError("Malformed geocoding result") from e

    async def get_coordinates(self, location: str) -> GeoLocation | None:
        """Return the best geocoding match for a location, or None."""
        results = await self.search_locations(location, count=1)
        return results[0] if results else None

    async def fetch_forecast(self, latitude: float, longitude: float) -> DailyForecast | None:
        """Fetch the daily forecast; None when the response has no daily series.

        Raises:
            WeatherLookupError: If the request or response parsing fails
        """
        data = await self._get_json(
            self._settings.forecast_url,
            {
                "latitude": latitude,
                "longitude": longitude,
                "daily": "weather_code,temperature_2m_max",
                "timezone": "auto",
            },
        )
        daily = data.get("daily")
        if not daily:
            return None
        try:
            return DailyForecast.model_validate(daily)
        except ValidationError as e:
            raise WeatherLookupError("Malformed forecast data") from e

    async def resolve_weather(self, location: str, date: str) -> str:
        """Return a one-line weather description for a location on a date.

        Never raises; failures come back as placeholder text.
        """
        with span("weather_service.resolve_weather"):
            try:
                coords = await self.get_coordinates(location)
                if coords is None:
                    return LOCATION_NOT_FOUND

                forecast = await self.fetch_forecast(coords.latitude, coords.longitude)
                if forecast is None:
                    return WEATHER_UNAVAILABLE

                entry = forecast.entry_for(date)
                if entry is None:
                    return DATE_OUT_OF_RANGE

                code, temp = entry
                if temp is None:
                    return WEATHER_UNAVAILABLE
                return format_weather(code, temp)
            except Exception as e:
                logger.error("Weather lookup failed", extra={"location": location, "date": date, "error": str(e)})
                return FETCH_FAILED


class CitySearch:
    """City autocomplete with a stale-response guard.

    Every call to suggest() takes a ticket; a response that arrives after a
    newer call was issued is dropped and suggest() returns None.
    """

    def __init__(self, lookup: WeatherLookup) -> None:
        self._lookup = lookup
        self._ticket = 0

    async def suggest(self, query: str) -> list[GeoLocation] | None:
        self._ticket += 1
        ticket = self._ticket

        query = query.strip()
        if len(query) < constants.CITY_SEARCH_MIN_CHARS:
            return []

        try:
            results = await self._lookup.search_locations(query, count=constants.CITY_SEARCH_RESULT_LIMIT)
        except WeatherLookupError as e:
            logger.warning("City search failed", extra={"query": query, "error": str(e)})
            results = []

        if ticket != self._ticket:
            logger.debug("Discarding stale city search response", extra={"query": query})
            return None
        return results
