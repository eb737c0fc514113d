#!/usr/bin/env python3
"""Tests for player command lines and the playback coordinator (processes mocked)."""

import sys
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).parent))
from atc_errors import PlayerUnavailable
from channel_catalog import ChannelRecord
from playback import PlaybackCoordinator, build_player_command
from selection import SelectionResult

RECORD = ChannelRecord(
    continent='North America', country='United States', city='New York',
    airport_name='John F Kennedy Intl', icao='KJFK', channel_description='Tower',
    stream_url='http://s.example/kjfk_twr', webcam_url='http://cam.example/jfk',
)
RESULT = SelectionResult(RECORD.stream_url, RECORD.webcam_url, RECORD, 'guided')


class TestBuildPlayerCommand(unittest.TestCase):

    def test_mpv(self):
        self.assertEqual(build_player_command('mpv', 'http://x', 40),
                         ['mpv', '--really-quiet', '--no-video', '--volume=40', 'http://x'])

    def test_vlc(self):
        self.assertEqual(build_player_command('vlc', 'http://x', 50),
                         ['cvlc', '--quiet', '--no-video', '--gain=0.50', 'http://x'])

    def test_ffplay(self):
        self.assertEqual(build_player_command('ffplay', 'http://x', 100),
                         ['ffplay', '-loglevel', 'quiet', '-nodisp', '-volume', '100', 'http://x'])

    def test_volume_clamped(self):
        self.assertIn('--volume=100', build_player_command('mpv', 'http://x', 250))
        self.assertIn('--volume=0', build_player_command('mpv', 'http://x', -5))

    def test_unknown_player(self):
        with self.assertRaises(ValueError):
            build_player_command('winamp', 'http://x')


class TestPlaybackCoordinator(unittest.TestCase):

    def setUp(self):
        self.atc = mock.Mock()
        self.atc.wait.return_value = 0
        self.lofi = mock.Mock()
        self.lofi.poll.return_value = None
        self.popen = mock.Mock(side_effect=[self.atc, self.lofi])
        self.open_url = mock.Mock()

    def coordinator(self, **kwargs):
        kwargs.setdefault('lofi_url', 'http://lofi.example/stream')
        return PlaybackCoordinator(popen=self.popen, open_url=self.open_url, **kwargs)

    def test_plays_atc_and_lofi(self):
        status = self.coordinator(atc_volume=90, lofi_volume=30).play(RESULT)
        self.assertEqual(status, 0)
        commands = [c[0][0] for c in self.popen.call_args_list]
        self.assertEqual(commands[0][-1], RECORD.stream_url)
        self.assertIn('--volume=90', commands[0])
        self.assertEqual(commands[1][-1], 'http://lofi.example/stream')
        self.assertIn('--volume=30', commands[1])
        self.lofi.terminate.assert_called_once_with()
        self.open_url.assert_not_called()

    def test_lofi_left_alone_if_already_exited(self):
        self.lofi.poll.return_value = 0
        self.coordinator().play(RESULT)
        self.lofi.terminate.assert_not_called()

    def test_atc_only(self):
        self.coordinator(lofi_url=None).play(RESULT)
        self.assertEqual(self.popen.call_count, 1)

    def test_opens_webcam(self):
        self.coordinator(open_webcam=True).play(RESULT)
        self.open_url.assert_called_once_with('http://cam.example/jfk')

    def test_no_webcam_to_open(self):
        result = SelectionResult(RECORD.stream_url, None, RECORD, 'guided')
        self.coordinator(open_webcam=True).play(result)
        self.open_url.assert_not_called()

    def test_missing_player(self):
        self.popen.side_effect = FileNotFoundError
        with self.assertRaises(PlayerUnavailable):
            self.coordinator().play(RESULT)

    def test_interrupt_stops_everything(self):
        self.atc.wait.side_effect = [KeyboardInterrupt, -15]
        status = self.coordinator().play(RESULT)
        self.assertEqual(status, -15)
        self.atc.terminate.assert_called_once_with()
        self.lofi.terminate.assert_called_once_with()

    def test_unknown_player(self):
        with self.assertRaises(ValueError):
            PlaybackCoordinator(player='winamp')


if __name__ == '__main__':
    unittest.main()
