"""Observers receiving weak-match and not-found events from the resolver.

Events are for monitoring drift between the county data and incoming
queries; an observer never changes what the resolver returns.
"""

import logging
import threading
from typing import Iterable, Protocol

from ..geometry import Point
from .resolution_models import MatchStatus, Resolution, ResolutionStats

logger = logging.getLogger(__name__)


class ResolutionObserver(Protocol):
    """Receiver for resolution events."""

    def on_weak_match(self, point: Point, region_id: int, distance: float) -> None:
        ...

    def on_not_found(self, point: Point, resolution: Resolution) -> None:
        ...


class NullObserver:
    """Observer that ignores every event."""

    def on_weak_match(self, point: Point, region_id: int, distance: float) -> None:
        pass

    def on_not_found(self, point: Point, resolution: Resolution) -> None:
        pass


class LoggingObserver:
    """Logs weak matches at a configurable level and not-found at INFO."""

    def __init__(self, weak_match_level: str = "INFO", log: logging.Logger = None):
        self.weak_match_level = getattr(logging, weak_match_level.upper())
        self.log = log or logger

    def on_weak_match(self, point: Point, region_id: int, distance: float) -> None:
        self.log.log(
            self.weak_match_level,
            f"closest county to {point.latitude:.6f},{point.longitude:.6f} "
            f"({distance:f}) is {region_id}",
            extra={"latitude": point.latitude, "longitude": point.longitude,
                   "region_id": region_id, "distance": distance}
        )

    def on_not_found(self, point: Point, resolution: Resolution) -> None:
        self.log.info(
            f"no county for {point.latitude:.6f},{point.longitude:.6f} "
            f"({resolution.status.value}, candidates: {list(resolution.candidates)})",
            extra={"latitude": point.latitude, "longitude": point.longitude,
                   "status": resolution.status.value}
        )


class StatsObserver:
    """Counts weak-match and not-found events; safe to share between threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._weak = 0
        self._ambiguous = 0
        self._not_found = 0
        self._max_distance = 0.0

    def on_weak_match(self, point: Point, region_id: int, distance: float) -> None:
        with self._lock:
            self._weak += 1
            self._max_distance = max(self._max_distance, distance)

    def on_not_found(self, point: Point, resolution: Resolution) -> None:
        with self._lock:
            if resolution.status == MatchStatus.AMBIGUOUS:
                self._ambiguous += 1
            else:
                self._not_found += 1

    def snapshot(self) -> ResolutionStats:
        with self._lock:
            return ResolutionStats(
                weak_matches=self._weak,
                ambiguous=self._ambiguous,
                not_found=self._not_found,
                max_weak_distance=self._max_distance,
            )

    def reset(self) -> None:
        with self._lock:
            self._weak = self._ambiguous = self._not_found = 0
            self._max_distance = 0.0


class CompositeObserver:
    """Forwards every event to each wrapped observer in order."""

    def __init__(self, observers: Iterable[ResolutionObserver]):
        self.observers = list(observers)

    def on_weak_match(self, point: Point, region_id: int, distance: float) -> None:
        for observer in self.observers:
            observer.on_weak_match(point, region_id, distance)

    def on_not_found(self, point: Point, resolution: Resolution) -> None:
        for observer in self.observers:
            observer.on_not_found(point, resolution)
