import datetime as dt
import unittest

from routewind.data_sources import open_meteo_client


class DummyResp:
    def __init__(self, payload, url="https://api.open-meteo.com/v1/forecast"):
        self._payload = payload
        self.url = url

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


class RecordingSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        return DummyResp(self.payload, url=url)


class EchoElevationSession(RecordingSession):
    """Answers each elevation request with the requested latitudes."""

    def __init__(self):
        super().__init__(None)

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        lats = [float(v) for v in params["latitude"].split(",")]
        return DummyResp({"elevation": lats}, url=url)


def _make_wind_payload():
    return {
        "latitude": 43.65,
        "longitude": -79.4,
        "timezone": "America/Toronto",
        "utc_offset_seconds": -14400,
        "hourly_units": {
            "time": "iso8601",
            "wind_speed_10m": "km/h",
            "wind_direction_10m": "°",
        },
        "hourly": {
            "time": ["2024-06-01T12:00", "2024-06-01T13:00", "2024-06-01T14:00"],
            "wind_speed_10m": [12.34, None, 20.06],
            "wind_direction_10m": [271.6, 180.0, 45.0],
        },
    }


class TestOpenMeteoClient(unittest.TestCase):
    def setUp(self):
        self._orig_session = open_meteo_client.session

    def tearDown(self):
        open_meteo_client.session = self._orig_session

    def test_fetch_wind_hours(self):
        fake = RecordingSession(_make_wind_payload())
        open_meteo_client.session = fake

        hours = open_meteo_client.fetch_wind_hours(43.65, -79.4)

        # the hour with a missing speed is skipped
        self.assertEqual(len(hours), 2)
        self.assertEqual(hours[0].speed_kmh, 12.3)
        self.assertEqual(hours[0].direction_deg, 272)
        self.assertEqual(hours[1].speed_kmh, 20.1)
        self.assertEqual(hours[0].time.utcoffset(), dt.timedelta(hours=-4))
        self.assertEqual(hours[0].time.hour, 12)

        params = fake.calls[0]["params"]
        self.assertEqual(params["hourly"], "wind_speed_10m,wind_direction_10m")
        self.assertEqual(params["timezone"], "auto")
        self.assertEqual(params["wind_speed_unit"], "kmh")
        self.assertEqual(params["forecast_days"], 2)

    def test_fetch_wind_hours_forecast_days_override(self):
        fake = RecordingSession(_make_wind_payload())
        open_meteo_client.session = fake
        open_meteo_client.fetch_wind_hours(0, 0, forecast_days=3, timeout=2.5)
        self.assertEqual(fake.calls[0]["params"]["forecast_days"], 3)
        self.assertEqual(fake.calls[0]["timeout"], 2.5)

    def test_unknown_timezone_falls_back_to_offset(self):
        payload = _make_wind_payload()
        payload["timezone"] = "Not/AZone"
        payload["utc_offset_seconds"] = 3600
        open_meteo_client.session = RecordingSession(payload)

        hours = open_meteo_client.fetch_wind_hours(0, 0)
        self.assertEqual(hours[0].time.utcoffset(), dt.timedelta(hours=1))

    def test_http_errors_propagate(self):
        import requests

        class FailingResp(DummyResp):
            def raise_for_status(self):
                raise requests.HTTPError("500")

        open_meteo_client.session = type("S", (), {"get": lambda *a, **k: FailingResp({})})()
        with self.assertRaises(requests.HTTPError):
            open_meteo_client.fetch_wind_hours(0, 0)

    def test_fetch_elevation(self):
        fake = RecordingSession({"elevation": [76.0]})
        open_meteo_client.session = fake

        self.assertEqual(open_meteo_client.fetch_elevation(43.65, -79.4), 76.0)
        self.assertTrue(fake.calls[0]["url"].endswith("/v1/elevation"))
        self.assertEqual(fake.calls[0]["params"]["latitude"], "43.65")
        self.assertEqual(fake.calls[0]["params"]["longitude"], "-79.4")

    def test_fetch_elevation_missing_value(self):
        for payload in ({}, {"elevation": []}, {"elevation": [None]}, {"elevation": [float("nan")]}):
            open_meteo_client.session = RecordingSession(payload)
            self.assertIsNone(open_meteo_client.fetch_elevation(0, 0))

    def test_api_key_added_when_configured(self):
        from routewind.config import settings

        previous = settings.open_meteo_api_key
        fake = RecordingSession({"elevation": [1.0]})
        open_meteo_client.session = fake
        try:
            settings.open_meteo_api_key = "abc"
            open_meteo_client.fetch_elevation(0, 0)
        finally:
            settings.open_meteo_api_key = previous
        self.assertEqual(fake.calls[0]["params"]["apikey"], "abc")

    def test_fetch_elevations_batches_points(self):
        fake = EchoElevationSession()
        open_meteo_client.session = fake
        lats = [float(i) for i in range(250)]
        lons = [0.5] * 250

        values = open_meteo_client.fetch_elevations(lats, lons)

        self.assertEqual(len(fake.calls), 3)
        self.assertEqual(values, lats)
        first = fake.calls[0]["params"]
        self.assertEqual(len(first["latitude"].split(",")), open_meteo_client.ELEVATION_BATCH_SIZE)
        self.assertEqual(len(fake.calls[2]["params"]["latitude"].split(",")), 50)

    def test_fetch_elevations_pads_short_response(self):
        open_meteo_client.session = RecordingSession({"elevation": [12.0, float("nan")]})
        values = open_meteo_client.fetch_elevations([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
        self.assertEqual(values, [12.0, None, None])

    def test_fetch_elevations_rejects_mismatched_inputs(self):
        with self.assertRaises(ValueError):
            open_meteo_client.fetch_elevations([1.0, 2.0], [1.0])

    def test_default_session_retries_transient_failures(self):
        from routewind.config import settings

        adapter = self._orig_session.get_adapter("https://api.open-meteo.com/v1/forecast")
        self.assertEqual(adapter.max_retries.total, settings.request_retries)
        self.assertEqual(adapter.max_retries.backoff_factor, settings.retry_backoff_factor)


if __name__ == "__main__":
    unittest.main()
