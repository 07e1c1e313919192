import datetime as dt
import unittest

from zoneradar.data_sources.base import CallableEventsProvider, EventsProviderError
from zoneradar.data_sources.ticketmaster_client import TicketmasterClient
from zoneradar.domain import EventRecord, EventType
from zoneradar.events_service import (
    NO_EVENTS,
    EventsService,
    calculate_event_boost,
    format_time_until,
)

UTC = dt.timezone.utc
NOW = dt.datetime(2024, 3, 1, 20, 0, tzinfo=UTC)
ARENA = (34.043, -118.267)


def _event(start=NOW, lat=ARENA[0], lng=ARENA[1], capacity=20000, event_type=EventType.SPORTS, name="Lakers vs Celtics"):
    return EventRecord(
        id=name,
        name=name,
        venue_name="Crypto.com Arena",
        venue_lat=lat,
        venue_lng=lng,
        start_time=start,
        venue_capacity=capacity,
        type=event_type,
    )


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestFormatTimeUntil(unittest.TestCase):
    def test_future_and_past(self):
        self.assertEqual(format_time_until(NOW + dt.timedelta(minutes=65), NOW), "in 1h 5m")
        self.assertEqual(format_time_until(NOW + dt.timedelta(minutes=12), NOW), "in 12m")
        self.assertEqual(format_time_until(NOW - dt.timedelta(minutes=10), NOW), "now")
        self.assertEqual(format_time_until(NOW - dt.timedelta(hours=2), NOW), "2h ago")


class TestCalculateEventBoost(unittest.TestCase):
    def test_event_in_progress_at_venue(self):
        boost = calculate_event_boost([_event(start=NOW - dt.timedelta(minutes=10))], *ARENA, when=NOW)
        # arena tier 50 * sports 1.2
        self.assertEqual(boost.score, 60)
        self.assertEqual(len(boost.nearby_events), 1)
        self.assertEqual(boost.nearby_events[0].venue, "Crypto.com Arena")
        self.assertEqual(boost.nearby_events[0].starts_in, "now")

    def test_boost_ramps_up_before_start(self):
        boost = calculate_event_boost([_event(start=NOW + dt.timedelta(minutes=90))], *ARENA, when=NOW)
        self.assertEqual(boost.score, 45)
        self.assertEqual(boost.nearby_events[0].starts_in, "in 1h 30m")

    def test_distance_decay(self):
        # ~3.3 km north of the venue
        boost = calculate_event_boost([_event(lat=ARENA[0] + 0.03)], *ARENA, when=NOW)
        self.assertLess(boost.score, 60)
        self.assertGreater(boost.score, 60 * 0.3)

    def test_far_or_out_of_window_events_ignored(self):
        far = _event(lat=ARENA[0] + 0.2)
        tomorrow = _event(start=NOW + dt.timedelta(hours=10))
        self.assertEqual(calculate_event_boost([far, tomorrow], *ARENA, when=NOW), NO_EVENTS)

    def test_reports_at_most_three_strongest(self):
        events = [
            _event(name="small", capacity=500, event_type=EventType.OTHER),
            _event(name="stadium", capacity=60000),
            _event(name="theater", capacity=2000, event_type=EventType.THEATER),
            _event(name="concert", capacity=15000, event_type=EventType.CONCERT),
        ]
        boost = calculate_event_boost(events, *ARENA, when=NOW)
        self.assertEqual(boost.score, 72)
        self.assertEqual([e.name for e in boost.nearby_events], ["stadium", "concert", "theater"])


class TestEventsService(unittest.TestCase):
    def setUp(self):
        self.calls = []
        self.fail = False
        self.events = [_event()]
        self.clock = FakeClock()

        def fetch(lat, lng, **kwargs):
            self.calls.append((lat, lng, kwargs))
            if self.fail:
                raise EventsProviderError("rate limited")
            return self.events

        self.service = EventsService(CallableEventsProvider(fetch), ttl_seconds=100, radius_km=8.0, clock=self.clock)

    def test_boost_uses_cached_events_within_cell(self):
        first = self.service.get_event_boost(*ARENA, when=NOW)
        second = self.service.get_event_boost(ARENA[0] + 0.001, ARENA[1], when=NOW)
        self.assertEqual(first.score, 60)
        self.assertEqual(second.score, 60)
        self.assertEqual(len(self.calls), 1)
        self.assertEqual(self.calls[0][2], {"radius_km": 8.0})

    def test_stale_events_served_on_failure(self):
        self.service.get_nearby_events(*ARENA)
        self.clock.now = 150
        self.fail = True
        self.assertEqual(self.service.get_nearby_events(*ARENA), self.events)
        self.assertEqual(len(self.calls), 2)

    def test_empty_results_are_cached(self):
        self.events = []
        self.assertEqual(self.service.get_event_boost(*ARENA, when=NOW), NO_EVENTS)
        self.assertEqual(self.service.get_event_boost(*ARENA, when=NOW), NO_EVENTS)
        self.assertEqual(len(self.calls), 1)

    def test_failure_without_cache_gives_zero_boost(self):
        self.fail = True
        self.assertEqual(self.service.get_event_boost(*ARENA, when=NOW), NO_EVENTS)

    def test_failed_cell_does_not_keep_its_lock(self):
        self.fail = True
        self.service.get_nearby_events(*ARENA)
        self.assertEqual(self.service._key_locks, {})

        self.fail = False
        self.service.get_nearby_events(*ARENA)
        self.assertEqual(len(self.service._key_locks), 1)
        self.service.clear()
        self.assertEqual(self.service._key_locks, {})

    def test_unconfigured_provider(self):
        service = EventsService(CallableEventsProvider(lambda *a, **k: [_event()], configured=False))
        self.assertFalse(service.is_configured())
        self.assertEqual(service.get_event_boost(*ARENA, when=NOW).score, 0)


class DummyResp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class DummySession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = 0

    def get(self, url, params=None, timeout=None):
        self.calls += 1
        return DummyResp(self.payload)


class TestEventsServiceWithOddPayloads(unittest.TestCase):
    def test_garbage_events_give_zero_boost(self):
        payloads = [
            {"_embedded": {"events": ["garbage", 7, None]}},
            {"_embedded": {"events": [{"id": "x", "_embedded": {"venues": ["hall"]}}]}},
            {"_embedded": "nothing"},
            ["not", "an", "object"],
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                session = DummySession(payload)
                service = EventsService(TicketmasterClient("k", session=session))
                self.assertEqual(service.get_event_boost(*ARENA, when=NOW), NO_EVENTS)
                self.assertEqual(session.calls, 1)


if __name__ == "__main__":
    unittest.main()
