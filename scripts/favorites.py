#!/usr/bin/env python3
"""
Usage-ranked favorites for lofiatc.

Stored as a JSON list next to the config file:

    [{"icao": "KJFK", "channel_description": "Tower", "play_count": 4,
      "last_used": 1760630400.0}, ...]

Entries are ranked by play count, then by most recent use, and the list is
capped at max_entries. Each record() is a read-modify-write of the whole
file; callers sharing a store across threads must serialize record().
"""

import json
import logging
import time
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional

from atc_errors import FavoritesPersistenceFailure

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10


@dataclass(frozen=True)
class FavoriteEntry:
    icao: str
    channel_description: str
    play_count: int = 1
    last_used: float = 0.0

    def matches(self, icao: str, channel_description: str) -> bool:
        return (self.icao.upper() == icao.strip().upper()
                and self.channel_description.strip().casefold()
                == channel_description.strip().casefold())


def _rank_key(entry: FavoriteEntry):
    return entry.play_count, entry.last_used


class FavoritesStore:
    """Bounded favorites list persisted to a JSON file.

    path=None keeps the store in memory only (used by tests).
    """

    def __init__(self, path: Optional[Path] = None, max_entries: int = DEFAULT_MAX_ENTRIES,
                 clock: Callable[[], float] = time.time):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.path = Path(path) if path else None
        self.max_entries = max_entries
        self._clock = clock
        self._entries: List[FavoriteEntry] = []
        if self.path:
            self._entries = self._rank(self._load())

    def _load(self) -> List[FavoriteEntry]:
        """Read the store, tolerating missing keys and camelCase names."""
        if not self.path.exists():
            return []
        try:
            items = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read favorites from {self.path}: {e}")
            return []
        if not isinstance(items, list):
            logger.warning(f"Ignoring favorites file {self.path}: expected a list")
            return []

        now = self._clock()
        entries = []
        for item in items:
            if not isinstance(item, dict):
                continue
            icao = item.get('icao')
            desc = item.get('channel_description', item.get('channelDescription'))
            if not icao or not desc:
                logger.debug(f"Skipping favorites item without icao/channel: {item}")
                continue
            try:
                count = int(item.get('play_count', item.get('playCount', 1)))
                last = float(item.get('last_used', item.get('lastUsedTimestamp', now)))
            except (TypeError, ValueError):
                count, last = 1, now
            entries.append(FavoriteEntry(str(icao).strip().upper(), str(desc).strip(),
                                         max(count, 1), last))
        return entries

    def _rank(self, entries: List[FavoriteEntry]) -> List[FavoriteEntry]:
        ranked = sorted(entries, key=_rank_key, reverse=True)
        dropped = ranked[self.max_entries:]
        if dropped:
            logger.debug(f"Evicting {len(dropped)} favorite(s): "
                         f"{', '.join(e.icao + ' ' + e.channel_description for e in dropped)}")
        return ranked[:self.max_entries]

    def _save(self) -> None:
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps([asdict(e) for e in self._entries], indent=2, ensure_ascii=False),
                encoding='utf-8')
        except OSError as e:
            raise FavoritesPersistenceFailure(
                f"Could not write favorites to {self.path}: {e}") from e

    def record(self, icao: str, channel_description: str) -> FavoriteEntry:
        """Count one play of a channel and persist the re-ranked list.

        The in-memory list is updated even when the write fails; the
        FavoritesPersistenceFailure is left to the caller to report.
        """
        now = self._clock()
        entries = list(self._entries)
        for i, entry in enumerate(entries):
            if entry.matches(icao, channel_description):
                updated = replace(entry, play_count=entry.play_count + 1, last_used=now)
                entries[i] = updated
                break
        else:
            updated = FavoriteEntry(icao.strip().upper(), channel_description.strip(), 1, now)
            entries.append(updated)

        self._entries = self._rank(entries)
        self._save()
        return updated

    def list(self) -> List[FavoriteEntry]:
        return list(self._entries)

    def __len__(self):
        return len(self._entries)
