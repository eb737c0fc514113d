#!/usr/bin/env python3
"""
Channel catalog for lofiatc.

The catalog is a flat CSV of ATC feeds, one row per channel:

    Continent, Country, City, [State/Province], Airport Name, ICAO, IATA,
    Channel Description, Stream URL, Webcam URL, [NearbyICAOs]

Rows are parsed once into immutable ChannelRecords. All lookups compare
trimmed, case-folded text; the records keep the original spelling for display.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from atc_errors import (
    CatalogEmpty, CatalogFormatError, CatalogNotFound,
    IcaoNotFound, NoChannelsForRegion,
)

logger = logging.getLogger(__name__)

# Header name -> ChannelRecord attribute
COLUMNS = {
    'Continent': 'continent',
    'Country': 'country',
    'City': 'city',
    'State/Province': 'state_province',
    'Airport Name': 'airport_name',
    'ICAO': 'icao',
    'IATA': 'iata',
    'Channel Description': 'channel_description',
    'Stream URL': 'stream_url',
    'Webcam URL': 'webcam_url',
    'NearbyICAOs': 'nearby_icaos',
}
OPTIONAL_COLUMNS = {'State/Province', 'NearbyICAOs'}
REQUIRED_COLUMNS = [c for c in COLUMNS if c not in OPTIONAL_COLUMNS]
# Rows with any of these blank are skipped
REQUIRED_VALUES = ('continent', 'country', 'icao', 'stream_url')


def normalize(text: Optional[str]) -> str:
    """Comparison key: trimmed and case-folded."""
    return (text or '').strip().casefold()


def natural_sort_key(text: str) -> List:
    """Sort key that orders 'Zone 2' before 'Zone 10', ignoring case."""
    return [int(part) if part.isdigit() else part.casefold()
            for part in re.split(r'(\d+)', text)]


def parse_icao_list(value: Optional[str]) -> Tuple[str, ...]:
    """Split a NearbyICAOs cell ('KLGA, KEWR;KTEB') into upper-case codes."""
    return tuple(code.upper() for code in re.split(r'[\s,;]+', value or '') if code)


@dataclass(frozen=True)
class ChannelRecord:
    """One catalog row. Optional fields default to empty."""
    continent: str
    country: str
    city: str
    airport_name: str
    icao: str
    channel_description: str
    stream_url: str
    iata: str = ''
    webcam_url: str = ''
    state_province: str = ''
    nearby_icaos: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> Tuple[str, str]:
        """Uniqueness key: (ICAO, channel description), case-insensitive."""
        return self.icao.strip().upper(), normalize(self.channel_description)

    @property
    def has_webcam(self) -> bool:
        return bool(self.webcam_url.strip())


class CatalogStore:
    """Read-only, ordered collection of ChannelRecords."""

    def __init__(self, records: List[ChannelRecord], warnings: List[str] = None):
        self._records = list(records)
        self.warnings = list(warnings) if warnings else []

    @classmethod
    def load(cls, source, delimiter: str = ',') -> 'CatalogStore':
        """Parse a catalog file.

        Raises:
            CatalogNotFound: source does not exist
            CatalogFormatError: a required column is missing from the header,
                or the file is not readable UTF-8 CSV
            CatalogEmpty: no usable rows
        """
        path = Path(source)
        if not path.is_file():
            raise CatalogNotFound(f"Catalog not found at {path}")

        try:
            with open(path, newline='', encoding='utf-8-sig') as f:
                reader = csv.DictReader(f, delimiter=delimiter)
                if not reader.fieldnames:
                    raise CatalogEmpty(f"Catalog {path} has no header row")
                reader.fieldnames = [name.strip() for name in reader.fieldnames]
                missing = [c for c in REQUIRED_COLUMNS if c not in reader.fieldnames]
                if missing:
                    raise CatalogFormatError(
                        f"Catalog {path} is missing column(s): {', '.join(missing)}")
                records, warnings = cls._parse_rows(reader)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise CatalogFormatError(f"Catalog {path} could not be read: {e}") from e

        if not records:
            raise CatalogEmpty(f"Catalog {path} contains no channels")
        logger.debug(f"Loaded {len(records)} channels from {path}")
        return cls(records, warnings)

    @staticmethod
    def _parse_rows(rows) -> Tuple[List[ChannelRecord], List[str]]:
        records = []
        warnings = []
        seen: Dict[Tuple[str, str], ChannelRecord] = {}

        # Header is line 1
        for line_no, row in enumerate(rows, start=2):
            values = {attr: (row.get(col) or '').strip() for col, attr in COLUMNS.items()}
            values['nearby_icaos'] = parse_icao_list(values['nearby_icaos'])

            if not all(values[attr] for attr in REQUIRED_VALUES):
                msg = f"Line {line_no}: skipped, Continent, Country, ICAO and Stream URL are required"
                logger.warning(msg)
                warnings.append(msg)
                continue

            record = ChannelRecord(**values)
            previous = seen.get(record.key)
            if previous is not None:
                if previous != record:
                    msg = (f"Line {line_no}: duplicate channel {record.icao} "
                           f"'{record.channel_description}' differs from an earlier row "
                           f"({previous.stream_url} vs {record.stream_url}); keeping the first")
                    logger.warning(msg)
                    warnings.append(msg)
                else:
                    logger.debug(f"Line {line_no}: identical duplicate of "
                                 f"{record.icao} '{record.channel_description}' dropped")
                continue

            seen[record.key] = record
            records.append(record)

        return records, warnings

    # --- queries ---

    @property
    def records(self) -> List[ChannelRecord]:
        return list(self._records)

    def distinct_continents(self) -> List[str]:
        return self._distinct(r.continent for r in self._records)

    def countries_in(self, continent: str) -> List[str]:
        wanted = normalize(continent)
        return self._distinct(r.country for r in self._records
                              if normalize(r.continent) == wanted)

    def channels_in(self, continent: str, country: str) -> List[ChannelRecord]:
        wanted = (normalize(continent), normalize(country))
        found = [r for r in self._records
                 if (normalize(r.continent), normalize(r.country)) == wanted]
        if not found:
            raise NoChannelsForRegion(f"No channels found for {country}, {continent}")
        return found

    def channels_for_icao(self, icao: str) -> List[ChannelRecord]:
        wanted = normalize(icao)
        found = [r for r in self._records if normalize(r.icao) == wanted]
        if not found:
            raise IcaoNotFound(f"No channels found for ICAO '{icao.strip().upper()}'")
        return found

    def find(self, icao: str, channel_description: str) -> Optional[ChannelRecord]:
        key = ((icao or '').strip().upper(), normalize(channel_description))
        for record in self._records:
            if record.key == key:
                return record
        return None

    @staticmethod
    def _distinct(names) -> List[str]:
        """Unique non-empty names (first spelling wins), naturally sorted."""
        unique: Dict[str, str] = {}
        for name in names:
            name = name.strip()
            if name and normalize(name) not in unique:
                unique[normalize(name)] = name
        return sorted(unique.values(), key=natural_sort_key)

    def __len__(self):
        return len(self._records)

    def __iter__(self) -> Iterator[ChannelRecord]:
        return iter(self._records)

    def __repr__(self):
        return f"CatalogStore({len(self._records)} channels)"
