"""
Background execution of a fit.

FitWorker runs one Levenberg-Marquardt fit at a time in its own thread so
the calling context (an interactive session, a plotting loop) stays
responsive. Inputs are copied when the fit is started. Results come back
only as events on a FIFO queue, which the caller drains on its own thread.

Usage:
    worker = FitWorker()
    worker.start(ModelType.COMPOSITE_FRACTURED_HORIZONTAL, params, observed)
    for event in worker.events():
        ...
"""

import queue
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .config import Config, DEFAULT_CONFIG
from .data_io import ObservedData
from .fitting import CancellationToken, FitCompleted, FitEvent, LevenbergMarquardt
from .models import ModelType
from .parameters import ParameterSet


@dataclass
class FitFailed:
    """Terminal event for a fit that raised."""
    error: BaseException


class FitWorker:
    """
    Runs fits on a dedicated thread, one at a time.

    Parameters
    ----------
    config : Config, optional
        Configuration object passed to every fit
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config if config is not None else DEFAULT_CONFIG
        self._thread: Optional[threading.Thread] = None
        self._queue: 'queue.Queue' = queue.Queue()
        self._token: Optional[CancellationToken] = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        model_type: ModelType,
        parameters: ParameterSet,
        observed: ObservedData,
        weight: float = 0.5,
    ) -> CancellationToken:
        """
        Launch a fit in the background.

        Returns
        -------
        CancellationToken
            Token of this run; ``cancel()`` is equivalent to calling
            ``token.cancel()``.

        Raises
        ------
        RuntimeError
            If a fit is already running.
        ValueError
            If ``weight`` is outside [0, 1].
        """
        with self._lock:
            if self._running:
                raise RuntimeError("A fit is already running.")

            token = CancellationToken()
            optimizer = LevenbergMarquardt(
                model_type, parameters.copy(), observed, weight, token, self.config
            )
            self._token = token
            self._queue = queue.Queue()
            self._running = True

        self._thread = threading.Thread(
            target=self._execute,
            args=(optimizer, self._queue),
            daemon=True,
        )
        try:
            self._thread.start()
        except RuntimeError:
            with self._lock:
                self._running = False
            raise
        return token

    def cancel(self) -> None:
        """Request cancellation; takes effect between outer iterations."""
        if self._token is not None:
            self._token.cancel()

    def _execute(self, optimizer: LevenbergMarquardt, events: 'queue.Queue') -> None:
        """Thread target: forward every fit event to the queue."""
        # The flag is cleared before the terminal event is queued so a
        # consumer reacting to it can start the next fit immediately.
        finished = False
        try:
            for event in optimizer.run():
                if isinstance(event, FitCompleted):
                    self._finish()
                    finished = True
                events.put(event)
        except Exception as exc:
            self._finish()
            finished = True
            events.put(FitFailed(exc))
        finally:
            if not finished:
                self._finish()

    def _finish(self) -> None:
        with self._lock:
            self._running = False

    def drain(self) -> List[FitEvent]:
        """All events currently queued, oldest first, without blocking."""
        out = []
        while True:
            try:
                out.append(self._queue.get_nowait())
            except queue.Empty:
                return out

    def events(self, timeout: Optional[float] = None) -> Iterator[FitEvent]:
        """
        Yield events in order until the fit completes or fails.

        Raises
        ------
        queue.Empty
            If no event arrives within ``timeout`` seconds.
        """
        while True:
            event = self._queue.get(timeout=timeout)
            yield event
            if isinstance(event, (FitCompleted, FitFailed)):
                return

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
