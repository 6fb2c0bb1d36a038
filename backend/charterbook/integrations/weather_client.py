"""Marine weather verdicts from the NOAA alerts API (api.weather.gov)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
from typing import Any, Dict, List, Optional, cast

import httpx

from ..core.config import settings
from ..core.enums import WeatherVerdict

logger = logging.getLogger(__name__)

# Alert event names containing any of these are treated as marine alerts
MARINE_EVENT_KEYWORDS = ("craft", "marine", "gale", "storm", "wind")
DANGEROUS_SEVERITIES = frozenset({"Severe", "Extreme"})


class WeatherClientError(RuntimeError):
    """Raised when the weather API cannot produce a verdict."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class WeatherAlert:
    event: str
    severity: str
    headline: str
    instruction: Optional[str] = None

    @property
    def is_marine(self) -> bool:
        lowered = self.event.lower()
        return any(keyword in lowered for keyword in MARINE_EVENT_KEYWORDS)


@dataclass(frozen=True)
class WeatherAssessment:
    verdict: WeatherVerdict
    reason: Optional[str] = None
    alerts: tuple = ()


def assess_alerts(alerts: List[WeatherAlert]) -> WeatherAssessment:
    """Map active alerts to a safety verdict."""
    marine = [alert for alert in alerts if alert.is_marine]
    if not marine:
        return WeatherAssessment(verdict=WeatherVerdict.SAFE)

    dangerous = [alert for alert in marine if alert.severity in DANGEROUS_SEVERITIES]
    verdict = WeatherVerdict.DANGEROUS if dangerous else WeatherVerdict.CAUTION
    lead = (dangerous or marine)[0]
    reason = f"{lead.event}: {lead.headline}"
    if lead.instruction:
        reason = f"{reason} {lead.instruction}"
    return WeatherAssessment(verdict=verdict, reason=reason, alerts=tuple(marine))


class WeatherClient:
    """Thin client for the NOAA active-alerts endpoint."""

    def __init__(
        self,
        *,
        user_agent: str,
        base_url: str = "https://api.weather.gov",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not user_agent:
            raise ValueError("api.weather.gov requires a User-Agent")
        self._user_agent = user_agent
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def assess(self, latitude: float, longitude: float, when: datetime) -> WeatherAssessment:
        """
        Safety verdict for a location.

        NOAA only publishes currently active alerts, so ``when`` is used for
        logging; the sweep only asks about trips starting within 48 hours.
        """
        alerts = self.get_active_alerts(latitude, longitude)
        assessment = assess_alerts(alerts)
        logger.info(
            "weather_assessed",
            extra={
                "latitude": latitude,
                "longitude": longitude,
                "when": when.isoformat(),
                "verdict": assessment.verdict.value,
                "alert_count": len(alerts),
            },
        )
        return assessment

    def get_active_alerts(self, latitude: float, longitude: float) -> List[WeatherAlert]:
        payload = self.request(
            "GET", "/alerts/active", params={"point": f"{latitude:.4f},{longitude:.4f}"}
        )
        alerts = []
        for feature in payload.get("features") or []:
            props = feature.get("properties") or {}
            alerts.append(
                WeatherAlert(
                    event=str(props.get("event") or ""),
                    severity=str(props.get("severity") or "Unknown"),
                    headline=str(props.get("headline") or props.get("event") or ""),
                    instruction=props.get("instruction"),
                )
            )
        return alerts

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw API request and return the parsed JSON payload."""
        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={"User-Agent": self._user_agent, "Accept": "application/geo+json"},
        ) as client:
            try:
                response = client.request(method, url, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "Weather API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise WeatherClientError(
                    f"Weather API responded with status {status}", status_code=status
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Weather request failure for %s %s: %s", method, path, str(exc))
                raise WeatherClientError("Failed to reach weather API") from exc

        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from weather API for %s %s", method, path)
            raise WeatherClientError("Received malformed JSON from weather API") from exc


class FakeWeatherClient(WeatherClient):
    """In-memory stand-in returning a configured verdict."""

    def __init__(
        self,
        verdict: WeatherVerdict = WeatherVerdict.SAFE,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(user_agent="charterbook-fake")
        self.verdict = verdict
        self.reason = reason
        self.calls: List[tuple] = []

    def assess(self, latitude: float, longitude: float, when: datetime) -> WeatherAssessment:
        self.calls.append((latitude, longitude, when))
        reason = self.reason
        if reason is None and self.verdict.is_unsafe:
            reason = f"Small Craft Advisory: {self.verdict.value} conditions expected"
        return WeatherAssessment(verdict=self.verdict, reason=reason)


def build_weather_client() -> WeatherClient:
    if settings.weather_provider == "fake":
        return FakeWeatherClient()
    return WeatherClient(
        user_agent=settings.weather_user_agent,
        base_url=settings.weather_base_url,
        timeout=settings.weather_timeout_seconds,
    )
