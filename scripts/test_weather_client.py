#!/usr/bin/env python3
"""Tests for the METAR / airport-metadata fetchers (network mocked)."""

import json
import sys
import unittest
import urllib.error
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).parent))
from weather_client import AirportInfoClient, fetch_metar, weather_report

KJFK_METAR = "KJFK 121651Z 18015G25KT 10SM BKN015 OVC030 22/18 A2992"


def fake_urlopen(body: bytes):
    opener = mock.MagicMock()
    opener.return_value.__enter__.return_value.read.return_value = body
    return opener


class TestFetchMetar(unittest.TestCase):

    def test_first_report_line(self):
        body = f"{KJFK_METAR}\nKJFK 121551Z 18012KT 10SM FEW040 21/17 A2993\n".encode()
        with mock.patch('urllib.request.urlopen', fake_urlopen(body)) as urlopen:
            self.assertEqual(fetch_metar('kjfk'), KJFK_METAR)
        url = urlopen.call_args[0][0]
        self.assertIn('ids=KJFK', url)
        self.assertEqual(urlopen.call_args[1]['timeout'], 5)

    def test_empty_response(self):
        with mock.patch('urllib.request.urlopen', fake_urlopen(b"\n")):
            self.assertIsNone(fetch_metar('KJFK'))

    def test_network_failure_is_soft(self):
        with mock.patch('urllib.request.urlopen',
                        side_effect=urllib.error.URLError('offline')):
            self.assertIsNone(fetch_metar('KJFK'))


class TestAirportInfoClient(unittest.TestCase):

    def setUp(self):
        self.calls = []

    def getter(self, body):
        def get(url, timeout):
            self.calls.append(url)
            return body
        return get

    def test_info_is_cached_per_icao(self):
        body = json.dumps([{'lat': 40.64, 'lon': -73.78, 'tz': 'America/New_York'}])
        client = AirportInfoClient(getter=self.getter(body))
        first = client.info('kjfk')
        second = client.info('KJFK')
        self.assertEqual(first, {'latitude': 40.64, 'longitude': -73.78,
                                 'timezone': 'America/New_York'})
        self.assertIs(first, second)
        self.assertEqual(len(self.calls), 1)

    def test_failures_are_cached_too(self):
        client = AirportInfoClient(getter=self.getter(None))
        self.assertIsNone(client.info('KJFK'))
        self.assertIsNone(client.info('KJFK'))
        self.assertEqual(len(self.calls), 1)

    def test_bad_json(self):
        client = AirportInfoClient(getter=self.getter('<html>error</html>'))
        self.assertIsNone(client.info('KJFK'))

    def test_clients_do_not_share_cache(self):
        body = json.dumps({'latitude': 1.0, 'longitude': 2.0, 'timezone': 'UTC'})
        AirportInfoClient(getter=self.getter(body)).info('KJFK')
        AirportInfoClient(getter=self.getter(body)).info('KJFK')
        self.assertEqual(len(self.calls), 2)

    def test_local_time(self):
        body = json.dumps([{'lat': 40.64, 'lon': -73.78, 'tz': 'America/New_York'}])
        client = AirportInfoClient(getter=self.getter(body))
        local = client.local_time('KJFK', now=datetime(2026, 1, 15, 17, 0, tzinfo=timezone.utc))
        self.assertEqual((local.hour, local.minute), (12, 0))

    def test_unknown_zone(self):
        body = json.dumps([{'tz': 'Not/AZone'}])
        client = AirportInfoClient(getter=self.getter(body))
        self.assertIsNone(client.local_time('KJFK'))

    def test_missing_zone(self):
        client = AirportInfoClient(getter=self.getter(json.dumps([{'lat': 1.0}])))
        self.assertIsNone(client.local_time('KJFK'))


class TestWeatherReport(unittest.TestCase):

    def test_decoded_lines(self):
        lines = weather_report('kjfk', fetch=lambda icao: KJFK_METAR)
        self.assertEqual(lines[0], f"METAR: {KJFK_METAR}")
        self.assertIn("  Wind: 180° at 15 knots, gusting to 25 knots", lines)
        self.assertIn("  Pressure: 1013.2 hPa", lines)

    def test_placeholder_when_unavailable(self):
        self.assertEqual(weather_report('kjfk', fetch=lambda icao: None),
                         ["Weather unavailable for KJFK"])

    def test_local_time_line(self):
        info = mock.Mock()
        info.local_time.return_value = datetime(2026, 1, 15, 12, 5, tzinfo=timezone.utc)
        lines = weather_report('KJFK', fetch=lambda icao: None, airport_info=info)
        self.assertEqual(lines[0], "Local time at KJFK: 12:05 UTC")


if __name__ == '__main__':
    unittest.main()
