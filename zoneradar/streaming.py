"""Progressive scoring of the candidate zones around a center point.

Scoring one candidate costs a weather and an events round trip, so candidates
are scored on a bounded thread pool. Workers publish finished zones onto a
bounded queue that the consumer drains; a full queue blocks the workers until
the consumer catches up. Closing the consumer's iterator (client disconnect)
cancels whatever has not started and releases workers blocked on the queue.
"""

from __future__ import annotations

import json
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone as dt_timezone
from typing import Iterator, List, Optional, Tuple

from zoneradar.candidates import DEFAULT_GRID_RADIUS, DEFAULT_STEP_DEGREES, generate_candidates
from zoneradar.domain import (
    CompleteMessage,
    Coordinates,
    ErrorMessage,
    MetaMessage,
    StreamMessage,
    ZoneCandidate,
    ZoneMessage,
    ZoneResult,
)
from zoneradar.zone_service import ZoneScoringService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="streaming")

NDJSON_MEDIA_TYPE = "application/x-ndjson"
STREAM_FAILED = "Stream failed"
_PUT_POLL_SECONDS = 0.1


class ZoneStreamError(RuntimeError):
    """A candidate could not be scored; the stream cannot complete."""


class ZoneStreamTimeout(ZoneStreamError):
    """The batch did not finish before its deadline."""


class NearbyZonesStreamer:
    """Score every candidate around a center and yield results as they finish."""

    def __init__(
        self,
        service: ZoneScoringService,
        *,
        max_workers: int = 8,
        queue_size: int = 4,
        timeout_seconds: float = 60.0,
        grid_radius: int = DEFAULT_GRID_RADIUS,
        step_degrees: float = DEFAULT_STEP_DEGREES,
    ) -> None:
        self.service = service
        self.max_workers = max(1, max_workers)
        self.queue_size = max(1, queue_size)
        self.timeout_seconds = timeout_seconds
        self.grid_radius = grid_radius
        self.step_degrees = step_degrees

    def candidates(self, latitude: float, longitude: float) -> List[ZoneCandidate]:
        """Candidate grid for a center; raises InvalidCoordinateError when out of range."""
        return generate_candidates(latitude, longitude, self.grid_radius, self.step_degrees)

    def stream(
        self,
        latitude: float,
        longitude: float,
        timezone: str = "UTC",
        now: Optional[datetime] = None,
    ) -> Iterator[StreamMessage]:
        """Validate the center now, then return an iterator of stream messages.

        The iterator yields ``meta`` first, one ``zone`` per candidate in
        completion order, and ``complete`` last.
        """
        candidates = self.candidates(latitude, longitude)
        center = Coordinates(lat=latitude, lng=longitude)
        return self._messages(center, candidates, timezone, now or datetime.now(dt_timezone.utc))

    def collect(
        self,
        latitude: float,
        longitude: float,
        timezone: str = "UTC",
        now: Optional[datetime] = None,
    ) -> List[ZoneResult]:
        """Batch variant: every zone, in candidate order."""
        candidates = self.candidates(latitude, longitude)
        results: List[Optional[ZoneResult]] = [None] * len(candidates)
        for index, zone in self._scored(candidates, timezone, now or datetime.now(dt_timezone.utc)):
            results[index] = zone
        return [zone for zone in results if zone is not None]

    def _messages(
        self,
        center: Coordinates,
        candidates: List[ZoneCandidate],
        timezone: str,
        now: datetime,
    ) -> Iterator[StreamMessage]:
        yield MetaMessage(center=center, total_candidates=len(candidates))
        emitted = 0
        scored = self._scored(candidates, timezone, now)
        try:
            for _index, zone in scored:
                emitted += 1
                yield ZoneMessage(data=zone)
        finally:
            scored.close()
        yield CompleteMessage(total_zones=emitted)

    def _scored(
        self,
        candidates: List[ZoneCandidate],
        timezone: str,
        now: datetime,
    ) -> Iterator[Tuple[int, ZoneResult]]:
        """Yield (candidate index, zone) pairs in completion order."""
        channel: queue.Queue = queue.Queue(maxsize=self.queue_size)
        cancelled = threading.Event()
        deadline = time.monotonic() + self.timeout_seconds
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="zone-scorer")
        logger.info("Scoring %d candidates", len(candidates), extra={"timezone": timezone})

        try:
            for index, candidate in enumerate(candidates):
                executor.submit(self._score_one, index, candidate, timezone, now, channel, cancelled)

            for _ in range(len(candidates)):
                remaining = deadline - time.monotonic()
                try:
                    kind, index, payload = channel.get(timeout=max(0.0, remaining))
                except queue.Empty:
                    raise ZoneStreamTimeout(
                        f"Nearby zones did not finish within {self.timeout_seconds:.0f}s"
                    ) from None
                if kind == "error":
                    raise ZoneStreamError(f"Failed to score candidate {index}") from payload
                yield index, payload
        finally:
            cancelled.set()
            executor.shutdown(wait=False, cancel_futures=True)

    def _score_one(
        self,
        index: int,
        candidate: ZoneCandidate,
        timezone: str,
        now: datetime,
        channel: queue.Queue,
        cancelled: threading.Event,
    ) -> None:
        if cancelled.is_set():
            return
        try:
            item = ("zone", index, self.service.score_candidate(candidate, timezone, now))
        except Exception as exc:
            logger.exception("Scoring candidate %d failed", index)
            item = ("error", index, exc)
        self._publish(channel, item, cancelled)

    @staticmethod
    def _publish(channel: queue.Queue, item: tuple, cancelled: threading.Event) -> None:
        """Blocking put that gives up once the consumer has gone away."""
        while not cancelled.is_set():
            try:
                channel.put(item, timeout=_PUT_POLL_SECONDS)
                return
            except queue.Full:
                continue


def encode_ndjson(message) -> bytes:
    """One stream message as a newline-terminated JSON line."""
    return (json.dumps(message.to_wire(), separators=(",", ":")) + "\n").encode("utf-8")


def ndjson_lines(messages: Iterator[StreamMessage]) -> Iterator[bytes]:
    """Encode a message stream, ending with an error line if it breaks mid-way."""
    try:
        for message in messages:
            yield encode_ndjson(message)
    except ZoneStreamError as exc:
        logger.error("Zone stream failed: %s", exc)
        yield encode_ndjson(ErrorMessage(message=STREAM_FAILED))
    finally:
        close = getattr(messages, "close", None)
        if close is not None:
            close()
