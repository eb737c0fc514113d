#!/usr/bin/env python3
"""
Channel selection for lofiatc.

Resolves exactly one ChannelRecord from the catalog by one of:

  guided     Continent -> Country -> Airport -> Channel drill-down, with
             "go back" from every level below Continent
  fuzzy      one fzf query over every channel label
  favorites  the usage-ranked favorites list (falls back to guided or fuzzy
             when no favorite still exists in the catalog)
  icao       direct lookup, optionally random among the airport's channels
  random     any channel in the catalog

Every resolution except the random ones is counted in the favorites store.
User interaction goes through a prompter (numbered menus) and a fuzzy
matcher (fzf), both injectable so the engine can be driven from tests.
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from random import Random
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from atc_errors import (
    AmbiguousFuzzyMatch, FavoritesPersistenceFailure, MatcherUnavailable,
    NoChannelsForRegion, NoMatchSelected, SelectionCancelled,
)
from channel_catalog import CatalogStore, ChannelRecord, natural_sort_key, normalize
from favorites import FavoritesStore

logger = logging.getLogger(__name__)

WEBCAM_TAG = ' [webcam available]'
FALLBACK_STRATEGIES = ('guided', 'fuzzy')


class Back:
    """Prompter answer meaning 'return to the previous level'."""

    def __repr__(self):
        return 'BACK'


BACK = Back()

Choice = Union[int, Back]


class State(Enum):
    CONTINENT = 'continent'
    COUNTRY = 'country'
    AIRPORT = 'airport'
    CHANNEL = 'channel'


@dataclass(frozen=True)
class SelectionResult:
    stream_url: str
    webcam_url: Optional[str]
    record: ChannelRecord
    strategy: str


# ============================================================
# Labels
# ============================================================

def webcam_tag(has_webcam: bool) -> str:
    return WEBCAM_TAG if has_webcam else ''


def fuzzy_label(record: ChannelRecord) -> str:
    """One-line label for fzf, e.g.

    [New York, United States] John F Kennedy Intl (KJFK/JFK) | Tower [webcam available]

    Must stay a pure function of the record: fuzzy() maps fzf's answer back
    by regenerating labels.
    """
    codes = f"{record.icao}/{record.iata}" if record.iata else record.icao
    return (f"[{record.city}, {record.country}] {record.airport_name} ({codes}) "
            f"| {record.channel_description}{webcam_tag(record.has_webcam)}")


@dataclass(frozen=True)
class AirportGroup:
    """Channels sharing a (city, airport name)."""
    city: str
    airport_name: str
    records: Tuple[ChannelRecord, ...]

    @property
    def has_webcam(self) -> bool:
        return any(r.has_webcam for r in self.records)

    @property
    def label(self) -> str:
        name = f"{self.airport_name} ({self.city})" if self.city else self.airport_name
        return name + webcam_tag(self.has_webcam)


def group_airports(records: Sequence[ChannelRecord]) -> List[AirportGroup]:
    """Group records by airport, sorted by display label."""
    grouped: Dict[Tuple[str, str], List[ChannelRecord]] = {}
    for record in records:
        grouped.setdefault((normalize(record.city), normalize(record.airport_name)), []).append(record)
    groups = [AirportGroup(members[0].city, members[0].airport_name, tuple(members))
              for members in grouped.values()]
    return sorted(groups, key=lambda g: natural_sort_key(g.label))


def channel_options(records: Sequence[ChannelRecord]) -> List[Tuple[str, ChannelRecord]]:
    """(label, record) per distinct channel description, sorted by description."""
    distinct: Dict[str, ChannelRecord] = {}
    for record in records:
        distinct.setdefault(normalize(record.channel_description), record)
    ordered = sorted(distinct.values(), key=lambda r: r.channel_description)
    return [(r.channel_description + webcam_tag(r.has_webcam), r) for r in ordered]


# ============================================================
# Interaction seams
# ============================================================

class TextPrompter:
    """Numbered menus on stdout; re-prompts until a valid number is entered."""

    def __init__(self, input_func: Callable[[str], str] = input, stream=None):
        self._input = input_func
        self._stream = stream

    def _print(self, text: str = '') -> None:
        print(text, file=self._stream or sys.stdout)

    def choose(self, title: str, options: Sequence[str], allow_back: bool = False) -> Choice:
        self._print()
        self._print(title)
        width = len(str(len(options)))
        for i, option in enumerate(options, start=1):
            self._print(f"  {i:>{width}}. {option}")
        if allow_back:
            self._print(f"  {0:>{width}}. Go back")

        low = 0 if allow_back else 1
        while True:
            try:
                answer = self._input("Select: ").strip()
            except (EOFError, KeyboardInterrupt):
                raise SelectionCancelled("Selection cancelled") from None
            if answer.isdigit():
                number = int(answer)
                if allow_back and number == 0:
                    return BACK
                if 1 <= number <= len(options):
                    return number - 1
            self._print(f"Please enter a number from {low} to {len(options)}.")


class FzfMatcher:
    """Runs fzf in exact-match mode over newline-separated labels."""

    # fzf exit codes: 1 = no match, 130 = aborted with Esc/Ctrl-C
    NO_SELECTION_CODES = (1, 130)

    def __init__(self, command: str = 'fzf'):
        self.command = command

    def __call__(self, lines: Sequence[str], prompt: str) -> Optional[str]:
        argv = [self.command, '--exact', f'--prompt={prompt}']
        try:
            proc = subprocess.run(argv, input='\n'.join(lines), stdout=subprocess.PIPE,
                                  text=True, check=False)
        except FileNotFoundError:
            raise MatcherUnavailable(
                f"'{self.command}' not found; install fzf or use guided selection") from None

        if proc.returncode in self.NO_SELECTION_CODES:
            return None
        if proc.returncode != 0:
            logger.warning(f"{self.command} exited with status {proc.returncode}")
            return None
        return proc.stdout.rstrip('\n') or None


# ============================================================
# Engine
# ============================================================

class SelectionEngine:
    """Resolves one channel from a CatalogStore.

    favorites=None disables usage tracking and makes the favorites path go
    straight to the fallback.
    """

    def __init__(self, catalog: CatalogStore, favorites: Optional[FavoritesStore] = None,
                 prompter=None, matcher=None, rng: Optional[Random] = None,
                 fallback: str = 'guided'):
        if fallback not in FALLBACK_STRATEGIES:
            raise ValueError(f"fallback must be one of {', '.join(FALLBACK_STRATEGIES)}")
        self.catalog = catalog
        self.favorites = favorites
        self.prompter = prompter or TextPrompter()
        self.matcher = matcher or FzfMatcher()
        self.rng = rng or Random()
        self.fallback = fallback

    # --- guided ---

    def guided(self) -> SelectionResult:
        return self._resolve(self._drill_down(), 'guided')

    def _drill_down(self) -> ChannelRecord:
        state = State.CONTINENT
        continent = country = None
        group = None

        while True:
            if state is State.CONTINENT:
                continent = country = group = None
                continents = self.catalog.distinct_continents()
                if not continents:
                    raise NoChannelsForRegion("No continents in the channel catalog")
                choice = self.prompter.choose("Select a continent", continents)
                continent = continents[choice]
                state = State.COUNTRY

            elif state is State.COUNTRY:
                country = group = None
                countries = self.catalog.countries_in(continent)
                choice = self.prompter.choose(f"Select a country in {continent}",
                                              countries, allow_back=True)
                if isinstance(choice, Back):
                    state = State.CONTINENT
                    continue
                country = countries[choice]
                state = State.AIRPORT

            elif state is State.AIRPORT:
                group = None
                groups = group_airports(self.catalog.channels_in(continent, country))
                choice = self.prompter.choose(f"Select an airport in {country}",
                                              [g.label for g in groups], allow_back=True)
                if isinstance(choice, Back):
                    state = State.COUNTRY
                    continue
                group = groups[choice]
                if len(group.records) == 1:
                    return group.records[0]
                state = State.CHANNEL

            elif state is State.CHANNEL:
                picked = self._choose_channel(group.records,
                                              f"Select a channel at {group.airport_name}",
                                              allow_back=True)
                if isinstance(picked, Back):
                    state = State.AIRPORT
                    continue
                return picked

            else:
                raise RuntimeError(f"Unexpected selection state {state}")

    def _choose_channel(self, records: Sequence[ChannelRecord], title: str,
                        allow_back: bool = False) -> Union[ChannelRecord, Back]:
        options = channel_options(records)
        choice = self.prompter.choose(title, [label for label, _ in options],
                                      allow_back=allow_back)
        if isinstance(choice, Back):
            return choice
        return options[choice][1]

    # --- fuzzy ---

    def fuzzy(self) -> SelectionResult:
        lines = [fuzzy_label(r) for r in self.catalog]
        chosen = self.matcher(lines, "Channel> ")
        if not chosen:
            raise NoMatchSelected("No channel selected")
        return self._resolve(self._match_label(chosen), 'fuzzy')

    def _match_label(self, label: str) -> ChannelRecord:
        matches = [r for r in self.catalog if fuzzy_label(r) == label]
        if not matches:
            raise NoMatchSelected(f"'{label}' does not match any channel")
        if len(matches) > 1:
            raise AmbiguousFuzzyMatch(
                f"'{label}' matches {len(matches)} channels: "
                f"{', '.join(r.stream_url for r in matches)}")
        return matches[0]

    # --- favorites ---

    def favorite(self) -> SelectionResult:
        candidates = []
        entries = self.favorites.list() if self.favorites is not None else []
        for entry in entries:
            record = self.catalog.find(entry.icao, entry.channel_description)
            if record is None:
                logger.debug(f"Favorite {entry.icao} '{entry.channel_description}' "
                             f"is no longer in the catalog")
                continue
            candidates.append((entry, record))

        if not candidates:
            logger.info(f"No favorites available, falling back to {self.fallback} selection")
            return self.fuzzy() if self.fallback == 'fuzzy' else self.guided()

        labels = [f"{fuzzy_label(record)}  (played {entry.play_count}×)"
                  for entry, record in candidates]
        choice = self.prompter.choose("Select a favorite", labels)
        return self._resolve(candidates[choice][1], 'favorites')

    # --- direct / random ---

    def by_icao(self, icao: str, random: bool = False) -> SelectionResult:
        records = self.catalog.channels_for_icao(icao)
        if random:
            return self._resolve(self.rng.choice(records), 'random', track=False)
        if len(records) == 1:
            return self._resolve(records[0], 'icao')
        record = self._choose_channel(records, f"Select a channel at {records[0].airport_name}")
        return self._resolve(record, 'icao')

    def random_channel(self) -> SelectionResult:
        return self._resolve(self.rng.choice(self.catalog.records), 'random', track=False)

    # --- resolution ---

    def _resolve(self, record: ChannelRecord, strategy: str, track: bool = True) -> SelectionResult:
        result = SelectionResult(
            stream_url=record.stream_url,
            webcam_url=record.webcam_url or None,
            record=record,
            strategy=strategy,
        )
        logger.debug(f"Resolved {record.icao} '{record.channel_description}' via {strategy}")
        if track and self.favorites is not None:
            try:
                self.favorites.record(record.icao, record.channel_description)
            except FavoritesPersistenceFailure as e:
                logger.warning(f"Favorites not saved: {e}")
        return result
