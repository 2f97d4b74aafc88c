"""Progress reporting and cooperative cancellation."""
from __future__ import annotations

import threading
from typing import Callable, Optional

from heightmap2brz.errors import GenerationCancelled

ProgressReporter = Callable[[str, float], Optional[bool]]


class CancellationToken:
    """Thread-safe stop flag handed to the optimizer by the caller."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "Generating") -> None:
        if self._event.is_set():
            raise GenerationCancelled(stage)


class ProgressTracker:
    """Delivers monotonic, coalesced progress to an optional reporter.

    A reporter returning ``False`` requests cancellation; any other return
    value (including ``None``) lets the run continue.
    """

    def __init__(
        self,
        reporter: Optional[ProgressReporter] = None,
        cancel: Optional[CancellationToken] = None,
        min_step: float = 0.01,
    ) -> None:
        self.reporter = reporter
        self.cancel = cancel or CancellationToken()
        self.min_step = min_step
        self.last_fraction = 0.0
        self.last_stage: Optional[str] = None

    def report(self, stage: str, fraction: float) -> None:
        fraction = max(self.last_fraction, min(1.0, max(0.0, float(fraction))))
        if stage == self.last_stage:
            delta = fraction - self.last_fraction
            reaches_end = fraction >= 1.0 > self.last_fraction
            if delta < self.min_step and not reaches_end:
                return
        self.last_fraction = fraction
        self.last_stage = stage
        if self.reporter is not None and self.reporter(stage, fraction) is False:
            self.cancel.cancel()

    def checkpoint(self, stage: str) -> None:
        self.cancel.raise_if_cancelled(stage)

    def stage(self, label: str, start: float = 0.0, end: float = 1.0) -> "StageProgress":
        return StageProgress(self, label, start, end)


class StageProgress:
    """A labelled slice ``[start, end]`` of a tracker's overall progress."""

    def __init__(self, tracker: ProgressTracker, label: str, start: float, end: float) -> None:
        self.tracker = tracker
        self.label = label
        self.start = start
        self.end = end

    def report(self, fraction: float) -> None:
        fraction = min(1.0, max(0.0, float(fraction)))
        self.tracker.report(self.label, self.start + (self.end - self.start) * fraction)

    def checkpoint(self) -> None:
        self.tracker.checkpoint(self.label)
