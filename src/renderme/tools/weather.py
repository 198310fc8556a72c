from __future__ import annotations

from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel, Field

from ..services.http_session import build_http_session
from .base import Tool, ToolContext, ToolExecutionError


FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = build_http_session()
    return _session


class WeatherArgs(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


def fetch_weather(latitude: float, longitude: float, timeout: float = 10.0) -> Dict[str, Any]:
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto",
    }
    try:
        resp = _get_session().get(FORECAST_URL, params=params, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise ToolExecutionError(f"weather lookup failed: {exc}") from exc


def _handle(args: WeatherArgs, context: Optional[ToolContext]) -> Dict[str, Any]:
    return fetch_weather(args.latitude, args.longitude)


WEATHER_TOOL = Tool(
    name="getWeather",
    description="Get the current weather at a location.",
    args_model=WeatherArgs,
    handler=_handle,  # type: ignore[arg-type]
)
