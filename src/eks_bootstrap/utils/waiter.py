"""Blocking poll-until-ready waits with cooperative cancellation."""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from eks_bootstrap.utils.errors import (
    ErrorContext,
    WaitCancelledError,
    WaitFailedError,
    WaitTimeoutError,
)
from eks_bootstrap.utils.logging import get_logger

logger = get_logger(__name__)


class WaitOutcome(Enum):
    """Terminal outcome of a wait."""
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class WaitResult:
    """Result of polling a resource status."""

    outcome: WaitOutcome
    last_status: Optional[str]
    elapsed: float
    polls: int

    @property
    def ready(self) -> bool:
        return self.outcome == WaitOutcome.READY

    def raise_for_outcome(self, resource: str, resource_type: Optional[str] = None) -> None:
        """Raise the matching error unless the resource is ready.

        Args:
            resource: Name of the resource that was waited on
            resource_type: Optional resource kind for error context

        Raises:
            WaitFailedError: The resource reached a failure status
            WaitTimeoutError: The timeout elapsed first
            WaitCancelledError: The wait was cancelled
        """
        context = ErrorContext(resource_id=resource, resource_type=resource_type, operation='wait')
        if self.outcome == WaitOutcome.FAILED:
            raise WaitFailedError(
                f"{resource} reached failure status {self.last_status}",
                last_status=self.last_status,
                context=context,
            )
        if self.outcome == WaitOutcome.TIMED_OUT:
            raise WaitTimeoutError(
                f"Timed out after {int(self.elapsed)}s waiting for {resource} "
                f"(last status: {self.last_status})",
                last_status=self.last_status,
                context=context,
            )
        if self.outcome == WaitOutcome.CANCELLED:
            raise WaitCancelledError(
                f"Wait for {resource} was cancelled (last status: {self.last_status})",
                context=context,
            )


class Waiter:
    """Polls a status function at a fixed interval until a terminal state.

    Sleeping goes through a ``threading.Event`` so ``cancel()`` called from
    another thread or a signal handler ends the wait early. ``clock`` and
    ``sleep`` can be replaced for tests; a replacement ``sleep`` receives the
    interval in seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self._clock = clock
        self._cancelled = threading.Event()
        self._sleep = sleep

    def cancel(self) -> None:
        """Request cancellation of the current and any later wait."""
        self._cancelled.set()

    def reset(self) -> None:
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def pause(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled.

        Returns:
            True if the full delay elapsed, False if cancelled
        """
        if self._sleep is not None:
            self._sleep(seconds)
            return not self._cancelled.is_set()
        return not self._cancelled.wait(seconds)

    def wait_for(
        self,
        status_fn: Callable[[], Optional[str]],
        success: str,
        failures: Iterable[str] = (),
        timeout: float = 1200,
        interval: float = 30,
        on_poll: Optional[Callable[[Optional[str], float], None]] = None,
    ) -> WaitResult:
        """Poll ``status_fn`` until it returns ``success`` or a failure value.

        The status is checked before the elapsed time, so a resource that
        becomes ready on the last poll is reported ready. The pause before the
        last poll is cut short so that poll starts at ``timeout``.

        Args:
            status_fn: Returns the current status string
            success: Status that ends the wait successfully
            failures: Statuses that end the wait as failed
            timeout: Upper bound in seconds
            interval: Delay between polls in seconds
            on_poll: Called with (status, elapsed) after each non-terminal poll

        Returns:
            WaitResult describing the terminal outcome
        """
        failure_set = set(failures)
        start = self._clock()
        polls = 0
        status = None

        while True:
            if self._cancelled.is_set():
                return WaitResult(WaitOutcome.CANCELLED, status, self._clock() - start, polls)

            status = status_fn()
            polls += 1
            elapsed = self._clock() - start

            if status == success:
                logger.debug(f"Reached {success} after {elapsed:.0f}s ({polls} polls)")
                return WaitResult(WaitOutcome.READY, status, elapsed, polls)
            if status in failure_set:
                return WaitResult(WaitOutcome.FAILED, status, elapsed, polls)
            if elapsed >= timeout:
                return WaitResult(WaitOutcome.TIMED_OUT, status, elapsed, polls)

            if on_poll:
                on_poll(status, elapsed)
            logger.debug(f"Status: {status} | Elapsed: {elapsed:.0f}s")

            # Polling time counts against the bound
            if not self.pause(min(interval, timeout - elapsed)):
                return WaitResult(WaitOutcome.CANCELLED, status, self._clock() - start, polls)
