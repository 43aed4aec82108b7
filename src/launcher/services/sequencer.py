"""Ordered execution of asynchronous install stages."""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence
import logging

from launcher.errors import StageCallbackError
from launcher.models.status import InstallStep
from launcher.services.state_machine import InstallStateMachine

StageCallback = Callable[[], None]


@dataclass(frozen=True)
class StageDescriptor:
    """One discrete unit of the install sequence.

    ``action`` receives a completion callback it must call exactly once,
    on success or after recording a failure. It may return an awaitable,
    which is scheduled as a task on the running loop.
    """

    id: str
    display_name: str
    action: Callable[[StageCallback], Any]


class _StageCompletion:
    """One-shot completion callback handed to a single stage."""

    def __init__(self, sequencer: "StageSequencer", index: int, stage: StageDescriptor):
        self._sequencer = sequencer
        self._index = index
        self._stage = stage
        self.called = False

    def __call__(self) -> None:
        if self.called:
            raise StageCallbackError(
                f"STAGE_CALLBACK_REPEATED: stage '{self._stage.id}' completed more than once"
            )
        self.called = True
        self._sequencer._on_stage_complete(self._index)


class StageSequencer:
    """Runs stages once each, in order, advancing on their completion callback.

    A stage that never completes stalls the sequence; a failing stage is
    expected to record its error and complete, so the sequence continues.
    After the last stage the sequencer moves to LAUNCH_SECONDARY_INSTALLER
    and calls ``on_finished``.
    """

    def __init__(
        self,
        state_machine: InstallStateMachine,
        on_finished: Optional[Callable[[], None]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """Initialize sequencer.

        Args:
            state_machine: Install state receiving steps, logs and errors
            on_finished: Handoff called after the terminal transition
            loop: Event loop used for deferral (running loop if None)
        """
        self.logger = logging.getLogger("launcher.sequencer")
        self.state_machine = state_machine
        self.on_finished = on_finished
        self._loop = loop
        self._stages: Sequence[StageDescriptor] = ()
        self._index = 0
        self._discarded = False
        self._tasks: set[asyncio.Task] = set()
        self.finished: Optional[asyncio.Future] = None

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_running(self) -> bool:
        return self.finished is not None and not self.finished.done() and not self._discarded

    def run(self, stages: Sequence[StageDescriptor]) -> asyncio.Future:
        """Start the sequence at stage 0 on the next loop iteration.

        Args:
            stages: Ordered stages, consumed left to right

        Returns:
            Future resolved once the terminal transition has run

        Raises:
            RuntimeError: If a sequence is already running
        """
        if self.is_running:
            raise RuntimeError("SEQUENCE_ACTIVE: a stage sequence is already running")

        loop = self._get_loop()
        self._stages = tuple(stages)
        self._index = 0
        self._discarded = False
        self.finished = loop.create_future()

        self.logger.info(f"Starting stage sequence: {[s.id for s in self._stages]}")
        loop.call_soon(self._start_stage, 0)
        return self.finished

    def discard(self) -> None:
        """Drop remaining stages silently (host closed)."""
        if self._discarded:
            return
        self._discarded = True
        self.logger.info(f"Stage sequence discarded at index {self._index}")
        if self.finished is not None and not self.finished.done():
            self.finished.cancel()
        for task in list(self._tasks):
            task.cancel()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _start_stage(self, index: int) -> None:
        if self._discarded:
            return

        self._index = index
        if index >= len(self._stages):
            self._finish()
            return

        stage = self._stages[index]
        completion = _StageCompletion(self, index, stage)
        self.logger.info(f"Stage {index + 1}/{len(self._stages)}: {stage.display_name}")

        try:
            result = stage.action(completion)
        except Exception as e:
            self.logger.error(f"Stage {stage.id} raised: {e}", exc_info=True)
            self.state_machine.set_error(f"STAGE_FAILED: {stage.display_name}: {e}")
            if not completion.called:
                completion()
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(lambda t, c=completion, s=stage: self._on_task_done(t, c, s))

    def _on_task_done(self, task: asyncio.Task, completion: _StageCompletion, stage: StageDescriptor) -> None:
        self._tasks.discard(task)
        if task.cancelled() or self._discarded:
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(f"Stage {stage.id} failed: {exc}", exc_info=exc)
            self.state_machine.set_error(f"STAGE_FAILED: {stage.display_name}: {exc}")
            if not completion.called:
                completion()

    def _on_stage_complete(self, index: int) -> None:
        if self._discarded:
            return
        self.state_machine.add_log(f"  Done: {self._stages[index].display_name}")
        self._get_loop().call_soon(self._start_stage, index + 1)

    def _finish(self) -> None:
        self.logger.info("All stages complete, handing off")
        self.state_machine.set_step(InstallStep.LAUNCH_SECONDARY_INSTALLER, "Launching secondary installer...")
        if self.finished is not None and not self.finished.done():
            self.finished.set_result(None)
        if self.on_finished is not None:
            self._get_loop().call_soon(self.on_finished)
