#!/usr/bin/env python3
"""
lofiatc - Live ATC radio with lofi music

Pick an air-traffic-control feed from the channel catalog and play it over an
ambient music stream.

Selection modes:
  (default)       guided Continent -> Country -> Airport -> Channel menus
  --fuzzy         type-to-filter over every channel (needs fzf)
  --favorites     most played channels, falls back to the configured mode
  --icao KJFK     channels at one airport (add --random to skip the menu)
  --random        any channel

Config:    $LOFIATC_DATA_DIR/config.json (default ~/.local/share/lofiatc)
Favorites: favorites.json beside the config file
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from atc_errors import (
    AmbiguousFuzzyMatch, CatalogError, LofiAtcError, NoMatchSelected,
    PlayerUnavailable, SelectionCancelled,
)
from channel_catalog import CatalogStore
from favorites import DEFAULT_MAX_ENTRIES, FavoritesStore
from metar_decoder import decode_metar
from playback import DEFAULT_LOFI_URL, PLAYERS, PlaybackCoordinator, build_player_command
from selection import FALLBACK_STRATEGIES, SelectionEngine, SelectionResult, fuzzy_label
from weather_client import AirportInfoClient, weather_report

logger = logging.getLogger('lofiatc')

DEFAULT_CATALOG = Path(__file__).parent / 'atc_sources.csv'

DEFAULT_CONFIG = {
    'catalog': str(DEFAULT_CATALOG),
    'player': 'mpv',
    'lofi_url': DEFAULT_LOFI_URL,
    'atc_volume': 100,
    'lofi_volume': 50,
    'max_favorites': DEFAULT_MAX_ENTRIES,
    'fallback': 'guided',
    'show_weather': True,
}


def data_dir() -> Path:
    return Path(os.environ.get('LOFIATC_DATA_DIR',
                               str(Path.home() / '.local' / 'share' / 'lofiatc')))


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Console warnings (debug with --verbose), plus an optional log file."""
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # Modules log under their own names, so handlers go on the root logger
    for handler in [h for h in root.handlers if h.get_name() == 'lofiatc']:
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.set_name('lofiatc')
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.set_name('lofiatc')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        )
        root.addHandler(file_handler)

    return logger


def load_config(path: Path) -> Dict:
    """Merge config.json over DEFAULT_CONFIG. Bad values fall back to defaults."""
    config = dict(DEFAULT_CONFIG)
    if not path.exists():
        return config
    try:
        loaded = json.loads(path.read_text(encoding='utf-8'))
        if not isinstance(loaded, dict):
            raise ValueError("expected a JSON object")
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring config {path}: {e}")
        return config

    for key, value in loaded.items():
        if key not in DEFAULT_CONFIG:
            logger.debug(f"Unknown config key '{key}' ignored")
            continue
        config[key] = value

    if config['player'] not in PLAYERS:
        logger.warning(f"Unknown player '{config['player']}' in config, using {DEFAULT_CONFIG['player']}")
        config['player'] = DEFAULT_CONFIG['player']
    if config['fallback'] not in FALLBACK_STRATEGIES:
        logger.warning(f"Unknown fallback '{config['fallback']}' in config, using guided")
        config['fallback'] = DEFAULT_CONFIG['fallback']
    for key in ('atc_volume', 'lofi_volume', 'max_favorites'):
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            logger.warning(f"Config '{key}' must be a number, using {DEFAULT_CONFIG[key]}")
            config[key] = DEFAULT_CONFIG[key]
    if config['max_favorites'] < 1:
        config['max_favorites'] = DEFAULT_CONFIG['max_favorites']
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Live ATC radio with lofi music')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--fuzzy', action='store_true', help='Fuzzy-search every channel with fzf')
    mode.add_argument('--favorites', action='store_true', help='Choose from most played channels')
    parser.add_argument('--icao', help='Play a channel at this airport (e.g. KJFK)')
    parser.add_argument('--random', action='store_true',
                        help='Random channel (within --icao if given); not added to favorites')
    parser.add_argument('--catalog', help='Channel catalog CSV')
    parser.add_argument('--config',
                        help='Config file (default: <data dir>/config.json); '
                             'favorites.json is kept beside it')
    parser.add_argument('--player', choices=PLAYERS, help='Media player')
    parser.add_argument('--lofi-url', dest='lofi_url', help='Ambient music stream URL')
    parser.add_argument('--no-lofi', action='store_true', help='Play ATC only')
    parser.add_argument('--webcam', action='store_true', help='Open the airport webcam if available')
    parser.add_argument('--weather', dest='show_weather', action='store_true', default=None,
                        help='Show decoded METAR for the airport')
    parser.add_argument('--no-weather', dest='show_weather', action='store_false',
                        help='Skip the weather lookup')
    parser.add_argument('--decode-metar', dest='decode_metar', metavar='RAW',
                        help='Decode a raw METAR string and exit')
    parser.add_argument('--list', action='store_true', help='List all channels and exit')
    parser.add_argument('--dry-run', action='store_true',
                        help='Print the player commands instead of starting playback')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--log-file', dest='log_file', help='Append logs to this file')
    return parser


def select_channel(engine: SelectionEngine, args: argparse.Namespace) -> SelectionResult:
    if args.icao:
        return engine.by_icao(args.icao, random=args.random)
    if args.random:
        return engine.random_channel()
    if args.fuzzy:
        return engine.fuzzy()
    if args.favorites:
        return engine.favorite()
    return engine.guided()


def format_now_playing(result: SelectionResult) -> List[str]:
    record = result.record
    place = ', '.join(p for p in (record.city, record.state_province, record.country) if p)
    lines = [
        f"Now playing: {record.airport_name} ({record.icao}) - {record.channel_description}",
        f"Location: {place}",
        f"Stream: {result.stream_url}",
    ]
    if result.webcam_url:
        lines.append(f"Webcam: {result.webcam_url}")
    if record.nearby_icaos:
        lines.append(f"Nearby airports: {', '.join(record.nearby_icaos)}")
    if result.strategy == 'random':
        lines.append("(random pick, not added to favorites)")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if args.decode_metar:
        for line in decode_metar(args.decode_metar).lines():
            print(line)
        return 0

    config_path = Path(args.config) if args.config else data_dir() / 'config.json'
    config = load_config(config_path)

    try:
        catalog = CatalogStore.load(args.catalog or config['catalog'])
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list:
        for record in catalog:
            print(fuzzy_label(record))
        return 0

    favorites = FavoritesStore(config_path.parent / 'favorites.json',
                               max_entries=config['max_favorites'])
    engine = SelectionEngine(catalog, favorites, fallback=config['fallback'])

    try:
        result = select_channel(engine, args)
    except (NoMatchSelected, SelectionCancelled) as e:
        print(f"{e}. Exiting.", file=sys.stderr)
        return 0
    except AmbiguousFuzzyMatch as e:
        print(f"Fatal: {e}", file=sys.stderr)
        return 2
    except LofiAtcError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in format_now_playing(result):
        print(line)

    show_weather = config['show_weather'] if args.show_weather is None else args.show_weather
    if show_weather:
        print("")
        for line in weather_report(result.record.icao, airport_info=AirportInfoClient()):
            print(line)

    player = args.player or config['player']
    lofi_url = None if args.no_lofi else (args.lofi_url or config['lofi_url'])

    if args.dry_run:
        print("")
        print(' '.join(build_player_command(player, result.stream_url, config['atc_volume'])))
        if lofi_url:
            print(' '.join(build_player_command(player, lofi_url, config['lofi_volume'])))
        return 0

    coordinator = PlaybackCoordinator(
        player=player,
        atc_volume=config['atc_volume'],
        lofi_volume=config['lofi_volume'],
        lofi_url=lofi_url,
        open_webcam=args.webcam,
    )
    try:
        return coordinator.play(result)
    except PlayerUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
