"""Background detection scheduling.

The pipeline has no timers of its own; this worker is the periodic caller. It
looks at every Nth submitted frame, keeps at most one frame waiting, and drops
the result of a pass that a newer frame has superseded.
"""
import logging
import threading
from typing import Any, Callable

from bracket_guidance.core.errors import GuidanceError

logger = logging.getLogger('bracket_guidance.worker')

ResultCallback = Callable[[int, Any], None]
ErrorCallback = Callable[[int, GuidanceError], None]


class DetectionWorker:
    def __init__(
        self,
        detect: Callable[[object], Any],
        on_result: ResultCallback,
        on_error: ErrorCallback | None = None,
        every_n_frames: int = 1,
    ) -> None:
        if every_n_frames < 1:
            raise ValueError('every_n_frames must be at least 1.')
        self._detect = detect
        self._on_result = on_result
        self._on_error = on_error
        self._every_n_frames = every_n_frames
        self._condition = threading.Condition()
        self._pending: tuple[int, object] | None = None
        self._frame_count = 0
        self._generation = 0
        self._busy = False
        self._running = False
        self._thread: threading.Thread | None = None
        self.published = 0
        self.discarded = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._condition:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._loop, name='detection-worker', daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._condition:
            self._running = False
            self._pending = None
            self._condition.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def submit(self, frame) -> int | None:
        """Offer a frame; returns its generation, or ``None`` when throttled."""
        with self._condition:
            self._frame_count += 1
            if (self._frame_count - 1) % self._every_n_frames != 0:
                return None
            self._generation += 1
            if self._pending is not None:
                self.discarded += 1
            self._pending = (self._generation, frame)
            self._condition.notify_all()
            return self._generation

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: self._pending is None and not self._busy, timeout)

    def _loop(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._pending is not None or not self._running)
                if not self._running:
                    return
                generation, frame = self._pending
                self._pending = None
                self._busy = True
            try:
                self._run_pass(generation, frame)
            finally:
                with self._condition:
                    self._busy = False
                    self._condition.notify_all()

    def _run_pass(self, generation: int, frame) -> None:
        try:
            result = self._detect(frame)
        except GuidanceError as exc:
            logger.warning('Detection pass failed generation=%s code=%s message=%s', generation, exc.code, exc.message)
            if self._on_error is not None:
                self._on_error(generation, exc)
            return
        except Exception:
            logger.exception('Unexpected detection failure generation=%s', generation)
            return
        with self._condition:
            superseded = generation != self._generation
            if superseded:
                self.discarded += 1
        if superseded:
            logger.debug('Discarding superseded detection pass generation=%s', generation)
            return
        self.published += 1
        self._on_result(generation, result)
