"""Bounded tick loop waiting for package resolution to settle."""

import asyncio
from typing import Callable, Optional
import logging


class ReadinessPoller:
    """Waits a fixed number of loop ticks for an external operation to settle.

    There is no readiness signal to consult: after ``settle_threshold`` ticks
    the operation is presumed done, and ``max_attempts`` is a hard cap. The
    ``on_settled(timed_out)`` callback runs exactly once per poll.
    """

    def __init__(self, settle_threshold: int = 10, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Initialize poller.

        Args:
            settle_threshold: Tick count after which the operation is presumed settled
            loop: Event loop used for scheduling (running loop if None)
        """
        self.logger = logging.getLogger("launcher.poller")
        self.settle_threshold = settle_threshold
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._on_settled: Optional[Callable[[bool], None]] = None
        self.attempts = 0
        self.max_attempts = 0

    @property
    def is_active(self) -> bool:
        return self._on_settled is not None

    def poll(self, check_interval: float, max_attempts: int, on_settled: Callable[[bool], None]) -> None:
        """Start ticking every ``check_interval`` seconds.

        Args:
            check_interval: Seconds between ticks
            max_attempts: Hard cap on ticks
            on_settled: Called once with timed_out=True if the cap was hit first

        Raises:
            RuntimeError: If a poll is already active
            ValueError: If max_attempts < 1
        """
        if self.is_active:
            raise RuntimeError("POLL_ACTIVE: a readiness poll is already running")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        self.attempts = 0
        self.max_attempts = max_attempts
        self._check_interval = check_interval
        self._on_settled = on_settled
        self.logger.debug(
            f"Polling every {check_interval}s: settle={self.settle_threshold}, max={max_attempts}"
        )
        self._handle = self._loop.call_later(check_interval, self._tick)

    def cancel(self) -> None:
        """Stop ticking without calling on_settled."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._on_settled is not None:
            self.logger.info(f"Readiness poll cancelled after {self.attempts} ticks")
        self._on_settled = None

    def _tick(self) -> None:
        self._handle = None
        if self._on_settled is None:
            return

        self.attempts += 1
        if self.attempts >= self.settle_threshold:
            self._settle(timed_out=False)
        elif self.attempts >= self.max_attempts:
            self._settle(timed_out=True)
        else:
            self._handle = self._loop.call_later(self._check_interval, self._tick)

    def _settle(self, timed_out: bool) -> None:
        callback = self._on_settled
        self._on_settled = None
        if timed_out:
            self.logger.warning(f"Readiness poll hit cap after {self.attempts} ticks")
        else:
            self.logger.info(f"Readiness presumed after {self.attempts} ticks")
        callback(timed_out)
