#!/usr/bin/env python3
"""
Weather and local-time lookups shown alongside a playing channel.

Both endpoints are fetched once per request and fail soft: a network or
parse failure turns into a placeholder line, never an exception. Airport
metadata is memoized per ICAO on the AirportInfoClient instance.
"""

import json
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from metar_decoder import decode_metar

logger = logging.getLogger(__name__)

METAR_URL = "https://aviationweather.gov/api/data/metar?ids={icao}&format=raw"
AIRPORT_URL = "https://aviationweather.gov/api/data/airport?ids={icao}&format=json"
FETCH_TIMEOUT_SECS = 5


def _get(url: str, timeout: int) -> Optional[str]:
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            return response.read().decode('utf-8').strip()
    except (urllib.error.URLError, urllib.error.HTTPError, OSError, UnicodeDecodeError) as e:
        logger.debug(f"Fetch failed for {url}: {e}")
        return None


def fetch_metar(icao: str, timeout: int = FETCH_TIMEOUT_SECS) -> Optional[str]:
    """Fetch the latest raw METAR for an ICAO code, or None."""
    data = _get(METAR_URL.format(icao=icao.strip().upper()), timeout)
    if not data:
        return None
    # Raw format returns one report per line, newest first
    for line in data.splitlines():
        if line.strip():
            return line.strip()
    return None


class AirportInfoClient:
    """Airport coordinates and time zone, fetched lazily and cached per ICAO."""

    def __init__(self, url_template: str = AIRPORT_URL, timeout: int = FETCH_TIMEOUT_SECS,
                 getter: Callable[[str, int], Optional[str]] = _get):
        self.url_template = url_template
        self.timeout = timeout
        self._get = getter
        self._cache: Dict[str, Optional[dict]] = {}

    def info(self, icao: str) -> Optional[dict]:
        code = icao.strip().upper()
        if code not in self._cache:
            self._cache[code] = self._fetch(code)
        return self._cache[code]

    def _fetch(self, code: str) -> Optional[dict]:
        body = self._get(self.url_template.format(icao=code), self.timeout)
        if not body:
            return None
        try:
            data = json.loads(body)
        except ValueError:
            logger.debug(f"Airport info for {code} is not JSON")
            return None
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            return None
        return {
            'latitude': data.get('lat', data.get('latitude')),
            'longitude': data.get('lon', data.get('longitude')),
            'timezone': data.get('tz', data.get('timezone')),
        }

    def local_time(self, icao: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """Current time at the airport, or None when the zone is unknown."""
        info = self.info(icao)
        zone_name = info.get('timezone') if info else None
        if not zone_name:
            return None
        try:
            zone = ZoneInfo(zone_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"Unknown time zone '{zone_name}' for {icao}")
            return None
        return (now or datetime.now(timezone.utc)).astimezone(zone)


def weather_report(icao: str, fetch: Callable[[str], Optional[str]] = fetch_metar,
                   airport_info: Optional[AirportInfoClient] = None) -> List[str]:
    """Display lines for the airport's current weather."""
    code = icao.strip().upper()
    lines = []
    if airport_info is not None:
        local = airport_info.local_time(code)
        if local is not None:
            lines.append(f"Local time at {code}: {local:%H:%M %Z}")

    raw = fetch(code)
    if not raw:
        lines.append(f"Weather unavailable for {code}")
        return lines

    decoded = decode_metar(raw)
    lines.append(f"METAR: {decoded.raw}")
    lines.extend(f"  {line}" for line in decoded.lines())
    return lines
