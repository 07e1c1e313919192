import os
import unittest

from zoneradar.config import Settings


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        previous = os.environ.pop("ZONES_WEATHER_CACHE_TTL_SECONDS", None)
        try:
            s = Settings()
            self.assertEqual(s.weather_cache_ttl_seconds, 900)
            self.assertEqual(s.weather_grid_resolution, 0.1)
            self.assertEqual(s.candidate_grid_radius, 2)
            self.assertEqual(s.openweather_base_url, "https://api.openweathermap.org/data/2.5/weather")
        finally:
            if previous is not None:
                os.environ["ZONES_WEATHER_CACHE_TTL_SECONDS"] = previous

    def test_settings_env_override(self):
        previous = os.environ.get("ZONES_OPENWEATHER_API_KEY")
        try:
            os.environ["ZONES_OPENWEATHER_API_KEY"] = "abc123"
            s = Settings()
            self.assertEqual(s.openweather_api_key, "abc123")
        finally:
            if previous is None:
                os.environ.pop("ZONES_OPENWEATHER_API_KEY", None)
            else:
                os.environ["ZONES_OPENWEATHER_API_KEY"] = previous

    def test_base_url_trailing_slash_stripped(self):
        previous = os.environ.get("ZONES_TICKETMASTER_BASE_URL")
        try:
            os.environ["ZONES_TICKETMASTER_BASE_URL"] = "http://example.com/events/"
            s = Settings()
            self.assertEqual(s.ticketmaster_base_url, "http://example.com/events")
        finally:
            if previous is None:
                os.environ.pop("ZONES_TICKETMASTER_BASE_URL", None)
            else:
                os.environ["ZONES_TICKETMASTER_BASE_URL"] = previous


if __name__ == "__main__":
    unittest.main()
