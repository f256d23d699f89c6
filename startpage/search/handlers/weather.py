"""
Weather Handler - Current conditions and a short forecast via "tq <city>".

Weather comes from wttr.in's JSON format (no API key needed). Results are
cached per city for 30 minutes. A blank city falls back to the configured
default city.
"""

import time
import urllib.parse
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Optional

import httpx
from loguru import logger

from startpage.errors import ProviderError
from startpage.search.router import CommandHandler, CommandResult

COMPASS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

# Checked in order: "partly cloudy" before "cloudy", "light rain" before "rain"
ICONS = [
    (("clear", "sunny"), "01d"),
    (("partly cloudy",), "02d"),
    (("cloudy", "overcast"), "03d"),
    (("mist", "fog"), "50d"),
    (("light rain", "drizzle"), "10d"),
    (("thunder",), "11d"),
    (("rain",), "09d"),
    (("snow", "sleet"), "13d"),
]


@dataclass
class DayForecast:
    day: str
    condition: str
    icon: str
    temp_min: int
    temp_max: int


@dataclass
class WeatherData:
    """Current conditions plus forecast for one city."""
    city: str
    temperature: int
    temp_min: int
    temp_max: int
    condition: str
    humidity: int
    wind_speed: float  # m/s
    wind_direction: str
    icon: str
    forecast: list[DayForecast] = field(default_factory=list)


def wind_direction(degrees: int) -> str:
    """16-point compass label for a wind bearing."""
    return COMPASS[round(degrees / 22.5) % 16]


def weather_icon(description: str) -> str:
    desc = description.lower()
    for keywords, icon in ICONS:
        if any(keyword in desc for keyword in keywords):
            return icon
    return "01d"


def day_label(offset: int, today: date) -> str:
    if offset == 0:
        return "Today"
    if offset == 1:
        return "Tomorrow"
    return (today + timedelta(days=offset)).strftime("%a")


def parse_wttr(city: str, data: dict, today: Optional[date] = None) -> WeatherData:
    """
    Convert a wttr.in j1 payload into WeatherData.

    Raises:
        ProviderError: payload is missing the expected sections
    """
    today = today or date.today()

    try:
        current = data["current_condition"][0]
        days = data["weather"]
        description = current["weatherDesc"][0]["value"]

        forecast = []
        for offset, day in enumerate(days[:3]):
            hourly = day.get("hourly") or []
            # Midday reading stands for the whole day
            noon = hourly[4] if len(hourly) > 4 else (hourly[-1] if hourly else {})
            day_desc = noon.get("weatherDesc", [{"value": description}])[0]["value"]
            forecast.append(DayForecast(
                day=day_label(offset, today),
                condition=day_desc.strip(),
                icon=weather_icon(day_desc),
                temp_min=int(day["mintempC"]),
                temp_max=int(day["maxtempC"]),
            ))

        return WeatherData(
            city=city,
            temperature=int(current["temp_C"]),
            temp_min=int(days[0]["mintempC"]),
            temp_max=int(days[0]["maxtempC"]),
            condition=description.strip(),
            humidity=int(current["humidity"]),
            wind_speed=round(float(current["windspeedKmph"]) / 3.6, 1),
            wind_direction=wind_direction(int(current["winddirDegree"])),
            icon=weather_icon(description),
            forecast=forecast,
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise ProviderError(f"Invalid weather data for {city}: {e!r}") from e


class WttrWeatherProvider:
    """Weather provider backed by wttr.in."""

    def __init__(self, client: httpx.AsyncClient, url: str = "https://wttr.in", timeout: float = 10.0):
        self.client = client
        self.url = url.rstrip("/")
        self.timeout = timeout

    async def fetch_weather(self, city: str) -> WeatherData:
        city = city.strip()
        url = f"{self.url}/{urllib.parse.quote(city)}"

        try:
            response = await self.client.get(url, params={"format": "j1"}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Weather request for {city} failed: {e}") from e

        return parse_wttr(city, data)


class WeatherHandler(CommandHandler):
    """Look up weather for 'tq <city>'."""

    name = "weather"

    def __init__(
        self,
        provider,
        default_city: str = "beijing",
        cache_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.default_city = default_city
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, WeatherData]] = {}

    async def execute(self, args: str) -> CommandResult:
        city = args.strip() or self.default_city
        key = city.lower()

        hit = self._cache.get(key)
        if hit and self._clock() - hit[0] < self.cache_seconds:
            logger.debug(f"Weather cache hit for {city}")
            return self._result(city, hit[1])

        try:
            weather = await self.provider.fetch_weather(city)
        except Exception as e:
            logger.warning(f"Weather lookup for '{city}' failed: {e}")
            return self.failure(city, f"could not fetch weather for {city}")

        self._cache[key] = (self._clock(), weather)
        return self._result(city, weather)

    def _result(self, city: str, weather: WeatherData) -> CommandResult:
        return CommandResult(
            kind=self.name,
            success=True,
            query=city,
            data=weather,
            title=f"{weather.city}: {weather.temperature}°C, {weather.condition}",
        )

    def clear_cache(self) -> None:
        self._cache.clear()
