#!/usr/bin/env python3
"""
METAR decoder for lofiatc.

Turns raw METAR text into display strings for wind, visibility, ceiling,
temperature, dew point and pressure. Every element is found by its own
regex search over the whole report, so a garbled or missing group only
blanks that one element. decode_metar() never raises.

    >>> decode_metar("KJFK 121651Z 18015G25KT 10SM BKN015 OVC030 22/18 A2992").wind
    '180° at 15 knots, gusting to 25 knots'
"""

import re
from dataclasses import dataclass, fields
from typing import Iterator, Optional, Tuple

UNAVAILABLE = "Unavailable"

KM_PER_STATUTE_MILE = 1.60934
HPA_PER_INHG = 33.8639

COVERAGE_NAMES = {
    'FEW': 'Few',
    'SCT': 'Scattered',
    'BKN': 'Broken',
    'OVC': 'Overcast',
}

_WIND_RE = re.compile(r'(\d{3})(\d{2})(?:G(\d{2}))?KT')
# Bare groups only; slash groups such as PK WND 18032/1630 and R28L/1200FT are not visibility
_VIS_UNLIMITED_RE = re.compile(r'(?<![\w/])9999(?![\w/])')
_VIS_METERS_RE = re.compile(r'(?<![\w/])(\d{4})(?![\w/])')
_VIS_SM_RE = re.compile(r'(?<![\w/])P?(\d+)SM\b')
_VERTICAL_VIS_RE = re.compile(r'VV(\d{3})')
_CLOUD_RE = re.compile(r'(BKN|OVC|SCT|FEW)(\d{3})')
# Neither side may touch other groups: keeps 1/2SM and R04/1200 out
_TEMP_DEW_RE = re.compile(r'(?<![\w/])([-M]?\d{1,2})/([-M]?\d{1,2})(?![\w/])')
_QNH_HPA_RE = re.compile(r'\bQ(\d{4})\b')
_QNH_INHG_RE = re.compile(r'\bA(\d{4})\b')


@dataclass(frozen=True)
class DecodedMetar:
    """Decoded METAR elements; each is display text or 'Unavailable'."""
    wind: str = UNAVAILABLE
    visibility: str = UNAVAILABLE
    ceiling: str = UNAVAILABLE
    temperature: str = UNAVAILABLE
    dew_point: str = UNAVAILABLE
    pressure: str = UNAVAILABLE
    raw: str = ''

    def lines(self) -> Iterator[str]:
        """Yield 'Label: value' lines in report order."""
        for f in fields(self):
            if f.name == 'raw':
                continue
            label = f.name.replace('_', ' ').title()
            yield f"{label}: {getattr(self, f.name)}"


def decode_wind(raw: str) -> str:
    match = _WIND_RE.search(raw)
    if not match:
        return UNAVAILABLE
    direction, speed, gust = match.groups()
    text = f"{direction}° at {int(speed)} knots"
    if gust:
        text += f", gusting to {int(gust)} knots"
    return text


def decode_visibility(raw: str) -> str:
    """Prefer metric groups; 9999 means 10 km or more."""
    if _VIS_UNLIMITED_RE.search(raw):
        return "10+ km (Unlimited)"

    match = _VIS_METERS_RE.search(raw)
    if match:
        return f"{int(match.group(1)) // 1000} km"

    match = _VIS_SM_RE.search(raw)
    if match:
        km = round(int(match.group(1)) * KM_PER_STATUTE_MILE, 3)
        return f"{km} km"

    return UNAVAILABLE


def decode_ceiling(raw: str) -> str:
    match = _VERTICAL_VIS_RE.search(raw)
    if match:
        return f"Vertical Visibility at {int(match.group(1)) * 100} ft"

    match = _CLOUD_RE.search(raw)
    if match:
        coverage, height = match.groups()
        return f"{COVERAGE_NAMES[coverage]} at {int(height) * 100} ft"

    return UNAVAILABLE


def _signed_celsius(token: str) -> str:
    # M is the METAR minus sign; int('-00') is already 0
    value = int(token.replace('M', '-'))
    return f"{value}°C"


def decode_temperatures(raw: str) -> Tuple[str, str]:
    """Return (temperature, dew point) from the shared TT/DD group."""
    match = _TEMP_DEW_RE.search(raw)
    if not match:
        return UNAVAILABLE, UNAVAILABLE
    return _signed_celsius(match.group(1)), _signed_celsius(match.group(2))


def decode_pressure(raw: str) -> str:
    match = _QNH_HPA_RE.search(raw)
    if match:
        return f"{int(match.group(1))} hPa"

    match = _QNH_INHG_RE.search(raw)
    if match:
        hpa = (int(match.group(1)) / 100) * HPA_PER_INHG
        return f"{hpa:.1f} hPa"

    return UNAVAILABLE


def decode_metar(raw: Optional[str]) -> DecodedMetar:
    """Decode a raw METAR report. Missing or malformed text yields 'Unavailable' fields."""
    if not isinstance(raw, str) or not raw.strip():
        return DecodedMetar()

    text = raw.strip()
    temperature, dew_point = decode_temperatures(text)
    return DecodedMetar(
        wind=decode_wind(text),
        visibility=decode_visibility(text),
        ceiling=decode_ceiling(text),
        temperature=temperature,
        dew_point=dew_point,
        pressure=decode_pressure(text),
        raw=text,
    )
