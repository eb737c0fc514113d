#!/usr/bin/env python3
"""
Player launching for lofiatc.

Starts the selected ATC stream and an ambient music stream side by side in
an external player (mpv, VLC or ffplay), optionally opens the airport webcam
in a browser, and stops the music when the ATC player exits.
"""

import logging
import subprocess
import webbrowser
from typing import Callable, List, Optional

from atc_errors import PlayerUnavailable

logger = logging.getLogger(__name__)

PLAYERS = ('mpv', 'vlc', 'ffplay')
DEFAULT_LOFI_URL = "https://www.youtube.com/watch?v=jfKfPfyJRdk"


def build_player_command(player: str, url: str, volume: int = 100) -> List[str]:
    """Audio-only command line for one stream. Volume is a percentage."""
    volume = max(0, min(int(volume), 100))
    if player == 'mpv':
        return ['mpv', '--really-quiet', '--no-video', f'--volume={volume}', url]
    if player == 'vlc':
        return ['cvlc', '--quiet', '--no-video', f'--gain={volume / 100:.2f}', url]
    if player == 'ffplay':
        return ['ffplay', '-loglevel', 'quiet', '-nodisp', '-volume', str(volume), url]
    raise ValueError(f"Unsupported player '{player}' (choose from {', '.join(PLAYERS)})")


class PlaybackCoordinator:
    """Runs the ATC stream plus the lofi stream until the ATC player exits."""

    def __init__(self, player: str = 'mpv', atc_volume: int = 100, lofi_volume: int = 50,
                 lofi_url: Optional[str] = DEFAULT_LOFI_URL, open_webcam: bool = False,
                 popen: Callable = subprocess.Popen,
                 open_url: Callable[[str], bool] = webbrowser.open):
        if player not in PLAYERS:
            raise ValueError(f"Unsupported player '{player}' (choose from {', '.join(PLAYERS)})")
        self.player = player
        self.atc_volume = atc_volume
        self.lofi_volume = lofi_volume
        self.lofi_url = lofi_url
        self.open_webcam = open_webcam
        self._popen = popen
        self._open_url = open_url

    def _start(self, url: str, volume: int) -> subprocess.Popen:
        cmd = build_player_command(self.player, url, volume)
        logger.debug(f"Starting: {' '.join(cmd)}")
        try:
            return self._popen(cmd, stdin=subprocess.DEVNULL)
        except FileNotFoundError:
            raise PlayerUnavailable(f"Player not found: {cmd[0]}") from None

    def play(self, result) -> int:
        """Play a SelectionResult. Returns the ATC player's exit status."""
        extras = []
        try:
            atc = self._start(result.stream_url, self.atc_volume)
            if self.lofi_url:
                try:
                    extras.append(self._start(self.lofi_url, self.lofi_volume))
                except PlayerUnavailable as e:
                    logger.warning(f"Lofi stream not started: {e}")
            if self.open_webcam and result.webcam_url:
                self._open_url(result.webcam_url)
            try:
                return atc.wait()
            except KeyboardInterrupt:
                atc.terminate()
                return atc.wait()
        finally:
            for proc in extras:
                if proc.poll() is None:
                    proc.terminate()
