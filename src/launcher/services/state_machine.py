"""Install state machine: step tracking, progress aggregation and the run log."""

from collections import deque
from typing import Iterable, Optional, Protocol
import logging

from launcher.models.state import InstallState, LogEntry
from launcher.models.status import InstallStep
from launcher.models.config import ProgressRange, _default_progress_ranges

MAX_LOG_ENTRIES = 100


class ProgressSink(Protocol):
    """Receives a state snapshot after every mutation."""

    def notify(self, state: InstallState) -> None:
        ...


class InstallStateMachine:
    """Owns the InstallState of a single installation run.

    Manages:
    - Current step and detail text
    - Progress fraction (step-proportional, or piecewise per package step)
    - Bounded run log (FIFO, MAX_LOG_ENTRIES)
    - Completion and error flags

    Progress never decreases within a run; only reset() moves it back to 0.
    """

    def __init__(
        self,
        sinks: Optional[Iterable[ProgressSink]] = None,
        progress_ranges: Optional[dict[InstallStep, ProgressRange]] = None,
    ):
        """Initialize state machine.

        Args:
            sinks: Progress sinks notified after every mutation
            progress_ranges: Progress slice per multi-item step (defaults if None)
        """
        self.logger = logging.getLogger("launcher.state")
        self.sinks: list[ProgressSink] = list(sinks or [])
        self.progress_ranges = (
            dict(progress_ranges) if progress_ranges is not None else _default_progress_ranges()
        )
        self._total_steps = len(InstallStep)
        self.reset()

    def add_sink(self, sink: ProgressSink) -> None:
        self.sinks.append(sink)

    @property
    def current_step(self) -> InstallStep:
        return self._current_step

    @property
    def progress(self) -> float:
        return self._progress

    def get_status(self) -> InstallState:
        """Get a snapshot of the current state.

        Returns:
            InstallState copy, safe to hand to other components
        """
        return InstallState(
            current_step=self._current_step,
            detail=self._detail,
            progress=self._progress,
            current_package_index=self._current_package_index,
            total_package_count=self._total_package_count,
            is_complete=self._is_complete,
            has_error=self._has_error,
            error_message=self._error_message,
            logs=list(self._logs),
        )

    def reset(self) -> None:
        """Reset to the initial state (called at the start of every run)."""
        self._current_step = InstallStep.NONE
        self._detail = ""
        self._progress = 0.0
        self._current_package_index = 0
        self._total_package_count = 0
        self._logs: deque[LogEntry] = deque(maxlen=MAX_LOG_ENTRIES)
        self._is_complete = False
        self._has_error = False
        self._error_message = ""
        self.logger.debug("Install state reset")
        self._notify()

    def set_step(self, step: InstallStep, detail: str = "") -> None:
        """Move to a step and recompute progress.

        Args:
            step: Target step; lower than the current step is ignored
            detail: Detail text shown beside the step
        """
        if step < self._current_step:
            self.logger.warning(
                f"Ignoring step regression: {self._current_step.name} -> {step.name}"
            )
        else:
            self._current_step = step
        self._detail = detail

        self._advance_progress(self._current_step.value / (self._total_steps - 1))

        message = self._current_step.description
        if detail:
            message += " " + detail

        if self._current_step == InstallStep.COMPLETE:
            self._is_complete = True
            self._progress = 1.0

        self.logger.info(f"Step: {self._current_step.name} ({self._progress:.0%}) {detail}")
        self._append_log(message)
        self._notify()

    def set_package_progress(self, index: int, total: int, name: str) -> None:
        """Update per-package progress within the current step's progress slice.

        Args:
            index: 1-based index of the package being configured
            total: Number of packages in this step
            name: Package name
        """
        self._current_package_index = index
        self._total_package_count = total
        self._detail = f"({index}/{total}) {name}"

        step_range = self.progress_ranges.get(self._current_step)
        if step_range is not None:
            fraction = index / total if total > 0 else 0.0
            self._advance_progress(step_range.base + step_range.span * fraction)

        self._append_log(f"  Configuring: {name}")
        self._notify()

    def add_log(self, message: str) -> None:
        """Append a timestamped log entry, evicting the oldest beyond capacity."""
        self._append_log(message)
        self._notify()

    def set_error(self, message: str) -> None:
        """Record an error; the run keeps going, callers decide whether to stop.

        Args:
            message: Error description (code-prefixed where available)
        """
        self._has_error = True
        self._error_message = message
        self.logger.error(f"Install error: {message}")
        self._append_log(f"Error: {message}")
        self._notify()

    def _advance_progress(self, value: float) -> None:
        self._progress = min(1.0, max(self._progress, value))

    def _append_log(self, message: str) -> None:
        self._logs.append(LogEntry(message=message))

    def _notify(self) -> None:
        if not self.sinks:
            return
        snapshot = self.get_status()
        for sink in self.sinks:
            try:
                sink.notify(snapshot)
            except Exception as e:
                self.logger.error(f"Progress sink {sink!r} failed: {e}", exc_info=True)
