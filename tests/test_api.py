import json
import time
import unittest

from fastapi.testclient import TestClient

from zoneradar.api import get_streamer, get_zone_service
from zoneradar.data_sources.base import CallableWeatherProvider
from zoneradar.domain import WeatherSnapshot
from zoneradar.events_service import EventsService
from zoneradar.main import app as fastapi_app
from zoneradar.streaming import STREAM_FAILED, NearbyZonesStreamer
from zoneradar.weather_cache import WeatherGridCache
from zoneradar.zone_service import ZoneScoringService


def _service(weather_provider=None):
    return ZoneScoringService(WeatherGridCache(weather_provider), EventsService(None))


class TestApi(unittest.TestCase):
    def setUp(self):
        self.weather_calls = []

        def fetch(lat, lng):
            self.weather_calls.append((lat, lng))
            return WeatherSnapshot(501, 55.0, "moderate rain", "Los Angeles")

        self.service = _service(CallableWeatherProvider(fetch))
        fastapi_app.dependency_overrides[get_zone_service] = lambda: self.service
        self.client = TestClient(fastapi_app)

    def tearDown(self):
        fastapi_app.dependency_overrides.clear()

    def test_score_returns_camel_case_zone_score(self):
        resp = self.client.get("/v1/zones/score", params={"lat": 34.05, "lng": -118.24, "timezone": "America/Los_Angeles"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(0 <= body["score"] <= 100)
        self.assertIn(body["label"], {"Hot", "Busy", "Moderate", "Slow", "Dead"})
        self.assertEqual(body["factors"]["weatherBoost"], 50)
        self.assertEqual(body["weatherDescription"], "moderate rain")
        self.assertEqual(body["timezone"], "America/Los_Angeles")
        self.assertIn("calculatedAt", body)
        self.assertIn("nextRefresh", body)

    def test_score_without_coordinates_is_time_only(self):
        resp = self.client.get("/v1/zones/score")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["timezone"], "UTC")
        self.assertEqual(body["factors"]["weatherBoost"], 20)
        self.assertEqual(body["factors"]["eventBoost"], 0)
        self.assertEqual(self.weather_calls, [])

    def test_score_requires_both_coordinates(self):
        resp = self.client.get("/v1/zones/score", params={"lat": 34.05})
        self.assertEqual(resp.status_code, 400)

    def test_out_of_range_coordinates_rejected(self):
        for path in ("/v1/zones/score", "/v1/zones/nearby", "/v1/zones/stream"):
            with self.subTest(path=path):
                resp = self.client.get(path, params={"lat": 91, "lng": 0})
                self.assertEqual(resp.status_code, 400)
                self.assertIn("lat", resp.json()["detail"])
        self.assertEqual(self.weather_calls, [])

    def test_unknown_timezone_rejected(self):
        resp = self.client.get("/v1/zones/nearby", params={"lat": 34.05, "lng": -118.24, "timezone": "Not/AZone"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Invalid timezone", resp.json()["detail"])

    def test_nearby_returns_all_candidates_in_grid_order(self):
        resp = self.client.get("/v1/zones/nearby", params={"lat": 34.05, "lng": -118.24})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(len(body["zones"]), 25)
        self.assertEqual(body["meta"]["totalZones"], 25)
        self.assertEqual(body["meta"]["center"], {"lat": 34.05, "lng": -118.24})
        self.assertEqual(body["meta"]["timezone"], "UTC")
        center = body["zones"][12]
        self.assertEqual((center["latitude"], center["longitude"]), (34.05, -118.24))
        # every candidate falls in one of a handful of 0.1 degree cells
        self.assertLessEqual(len(self.weather_calls), 4)

    def test_stream_is_ndjson(self):
        with self.client.stream("GET", "/v1/zones/stream", params={"lat": 34.05, "lng": -118.24}) as resp:
            self.assertEqual(resp.status_code, 200)
            self.assertTrue(resp.headers["content-type"].startswith("application/x-ndjson"))
            self.assertEqual(resp.headers["cache-control"], "no-cache")
            lines = [json.loads(line) for line in resp.iter_lines() if line]

        self.assertEqual(lines[0]["type"], "meta")
        self.assertEqual(lines[0]["totalCandidates"], 25)
        self.assertEqual(sum(1 for line in lines if line["type"] == "zone"), 25)
        self.assertEqual(lines[-1], {"type": "complete", "totalZones": 25})

    def test_missing_coordinates_on_nearby_is_validation_error(self):
        resp = self.client.get("/v1/zones/nearby")
        self.assertEqual(resp.status_code, 422)


class UnreliableService(ZoneScoringService):
    """Scores nothing: every candidate is slow, fails, or both."""

    def __init__(self, delay=0.0, fail=False):
        super().__init__(WeatherGridCache(None), EventsService(None))
        self.delay = delay
        self.fail = fail

    def score_candidate(self, candidate, timezone="UTC", now=None):
        time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("weather lookup exploded")
        return super().score_candidate(candidate, timezone, now)


class TestNearbyFailures(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(fastapi_app)

    def tearDown(self):
        fastapi_app.dependency_overrides.clear()

    def _use_streamer(self, service, **kwargs):
        fastapi_app.dependency_overrides[get_streamer] = lambda: NearbyZonesStreamer(service, **kwargs)

    def test_nearby_deadline_is_gateway_timeout(self):
        self._use_streamer(UnreliableService(delay=0.5), max_workers=2, timeout_seconds=0.1)
        resp = self.client.get("/v1/zones/nearby", params={"lat": 34.05, "lng": -118.24})
        self.assertEqual(resp.status_code, 504)

    def test_nearby_scoring_failure_is_bad_gateway(self):
        self._use_streamer(UnreliableService(fail=True), max_workers=2)
        resp = self.client.get("/v1/zones/nearby", params={"lat": 34.05, "lng": -118.24})
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["detail"], "Failed to score nearby zones")

    def test_stream_failure_ends_with_error_line(self):
        self._use_streamer(UnreliableService(fail=True), max_workers=1, queue_size=1)
        with self.client.stream("GET", "/v1/zones/stream", params={"lat": 34.05, "lng": -118.24}) as resp:
            self.assertEqual(resp.status_code, 200)
            lines = [json.loads(line) for line in resp.iter_lines() if line]

        self.assertEqual(lines[0]["type"], "meta")
        self.assertEqual(lines[-1], {"type": "error", "message": STREAM_FAILED})
        self.assertNotIn("complete", [line["type"] for line in lines])


class TestHealth(unittest.TestCase):
    def tearDown(self):
        fastapi_app.dependency_overrides.clear()

    def test_health_reports_configuration(self):
        fastapi_app.dependency_overrides[get_zone_service] = lambda: _service()
        resp = TestClient(fastapi_app).get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok", "weatherConfigured": False, "eventsConfigured": False})

        provider = CallableWeatherProvider(lambda lat, lng: WeatherSnapshot(800, 70.0, "clear", "X"))
        fastapi_app.dependency_overrides[get_zone_service] = lambda: _service(provider)
        resp = TestClient(fastapi_app).get("/health")
        self.assertTrue(resp.json()["weatherConfigured"])


if __name__ == "__main__":
    unittest.main()
