"""Observable progress for recomputation passes.

A reporter is created by whoever starts a pass and handed to the
engine; there is no process-wide instance. Subscribers receive every
change as a :class:`ProgressUpdate`.

Delivery goes through the reporter's ``dispatch`` callable, called as
``dispatch(callback, update)``. Pass the consumer's scheduler (for
example ``loop.call_soon_threadsafe``) to have updates arrive in the
consumer's own thread or event loop. Without one, subscribers are called
inline on the publishing thread. Either way, updates are published under
a single lock, so every subscriber sees them in order.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[["ProgressUpdate"], None]
Dispatch = Callable[..., Any]


class ProgressState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProgressUpdate:
    """One observed progress value."""

    value: float
    state: ProgressState
    message: Optional[str] = None


def _call_inline(callback: Subscriber, update: ProgressUpdate) -> None:
    callback(update)


class ProgressReporter:
    """Progress of a single pass, kept within [0, 1].

    State machine::

        IDLE(0) -> RUNNING(0..1, non-decreasing) -> IDLE(0)
                                                 -> FAILED(partial)
                                                 -> CANCELLED(partial)

    ``finish()`` publishes exactly 1.0 before returning to IDLE. FAILED
    and CANCELLED keep the value reached so far until the next
    ``start()``.
    """

    def __init__(self, dispatch: Optional[Dispatch] = None):
        self._dispatch = dispatch or _call_inline
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []
        self._value = 0.0
        self._state = ProgressState.IDLE
        self._message: Optional[str] = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    @property
    def state(self) -> ProgressState:
        with self._lock:
            return self._state

    def snapshot(self) -> ProgressUpdate:
        with self._lock:
            return ProgressUpdate(self._value, self._state, self._message)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Begin a pass at 0.0."""
        self._publish(0.0, ProgressState.RUNNING)

    def advance(self, fraction: float) -> None:
        """Add *fraction* of the pass, clamped to 1.0."""
        if fraction < 0:
            raise ValueError(f"Progress cannot move backwards (fraction={fraction})")
        with self._lock:
            self._require_running()
            self._publish(min(1.0, self._value + fraction), ProgressState.RUNNING)

    def advance_to(self, value: float) -> None:
        """Move to *value* if it is ahead of the current value."""
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Progress must be within [0, 1], got {value}")
        with self._lock:
            self._require_running()
            if value > self._value:
                self._publish(value, ProgressState.RUNNING)

    def finish(self) -> None:
        """Publish completion (1.0), then reset to IDLE."""
        with self._lock:
            self._publish(1.0, ProgressState.RUNNING)
            self._publish(0.0, ProgressState.IDLE)

    def fail(self, error: BaseException) -> None:
        """Stop at the current value with a FAILED state."""
        with self._lock:
            self._publish(self._value, ProgressState.FAILED, str(error))

    def cancel(self) -> None:
        """Stop at the current value with a CANCELLED state."""
        with self._lock:
            self._publish(self._value, ProgressState.CANCELLED, "Cancelled")

    def reset(self) -> None:
        self._publish(0.0, ProgressState.IDLE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_running(self) -> None:
        if self._state is not ProgressState.RUNNING:
            raise RuntimeError(
                f"Cannot advance progress while {self._state.value}"
            )

    def _publish(
        self, value: float, state: ProgressState, message: Optional[str] = None
    ) -> None:
        with self._lock:
            self._value = value
            self._state = state
            self._message = message
            update = ProgressUpdate(value, state, message)
            for callback in list(self._subscribers):
                try:
                    self._dispatch(callback, update)
                except Exception:
                    logger.exception("Progress subscriber %r failed", callback)
