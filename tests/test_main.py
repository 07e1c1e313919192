import unittest

from zoneradar.main import app


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "Zone Radar")
        paths = {route.path for route in app.routes}
        self.assertIn("/health", paths)
        self.assertIn("/v1/zones/nearby", paths)
        self.assertIn("/v1/zones/stream", paths)
        self.assertIn("/v1/zones/score", paths)


if __name__ == "__main__":
    unittest.main()
