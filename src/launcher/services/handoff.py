"""Handoff from the launcher's own stages to the secondary installer."""

import asyncio
import inspect
from typing import Callable, Optional
import logging

from launcher.errors import InstallerInvocationError, InstallerNotFoundError
from launcher.models.config import LauncherConfig
from launcher.models.status import InstallStep
from launcher.services.locator import ProgressCallbacks, SecondaryInstaller, SecondaryInstallerLocator
from launcher.services.package_manager import PackageManagerClient
from launcher.services.poller import ReadinessPoller
from launcher.services.state_machine import InstallStateMachine
from launcher.services.step_mapper import map_secondary_step


class SecondaryInstallerHandoff:
    """Waits for package resolution, locates the secondary installer and starts it.

    Flow:
    resolve → poll until settled → delay → locate (up to ``handoff_attempts``,
    resolving again and backing off between attempts) → wire progress
    callbacks → start_install on the next loop iteration.

    Nothing here blocks the loop; every wait is a scheduled continuation.
    """

    def __init__(
        self,
        state_machine: InstallStateMachine,
        package_manager: PackageManagerClient,
        locator: SecondaryInstallerLocator,
        config: LauncherConfig,
        poller: Optional[ReadinessPoller] = None,
        on_complete: Optional[Callable[[], None]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.logger = logging.getLogger("launcher.handoff")
        self.state_machine = state_machine
        self.package_manager = package_manager
        self.locator = locator
        self.config = config
        self.poller = poller or ReadinessPoller(settle_threshold=config.settle_threshold, loop=loop)
        self.on_complete = on_complete
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self.installer: Optional[SecondaryInstaller] = None
        self.handed_off: Optional[asyncio.Future] = None

    def start(self) -> asyncio.Future:
        """Begin the handoff.

        Returns:
            Future resolved True once start_install returned, False on terminal failure
        """
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self.handed_off = self._loop.create_future()

        self.state_machine.set_step(InstallStep.RUN_SECONDARY_INSTALL, "Starting secondary installer...")
        self.package_manager.resolve()
        self.poller.poll(self.config.poll_interval, self.config.max_poll_attempts, self._on_settled)
        return self.handed_off

    def cancel(self) -> None:
        """Abandon any pending wait (host closed)."""
        self.poller.cancel()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for task in list(self._tasks):
            task.cancel()
        if self.handed_off is not None and not self.handed_off.done():
            self.handed_off.cancel()

    def _on_settled(self, timed_out: bool) -> None:
        if timed_out:
            self.state_machine.add_log("Package resolve wait timed out, launching installer anyway...")
            delay = self.config.timeout_delay
        else:
            self.state_machine.add_log("Package resolve wait finished, preparing to launch installer...")
            delay = self.config.settle_delay
        self._schedule(delay, self._try_handoff, 1)

    def _schedule(self, delay: float, callback, *args) -> None:
        self._handle = self._loop.call_later(delay, callback, *args)

    def _try_handoff(self, attempt: int) -> None:
        self._handle = None
        total = self.config.handoff_attempts
        self.state_machine.add_log(f"Locating secondary installer (attempt {attempt}/{total})...")

        try:
            installer = self.locator.locate()
        except Exception as e:
            self.logger.warning(f"Installer lookup raised: {e}", exc_info=True)
            installer = None

        if installer is not None:
            self.installer = installer
            self._connect(installer)
            return

        if attempt >= total:
            error = InstallerNotFoundError(
                f"INSTALLER_NOT_FOUND: secondary installer not found after {total} attempts, "
                f"check that the installer package was installed"
            )
            self.state_machine.set_error(str(error))
            self._resolve_handed_off(False)
            return

        delay = self.config.handoff_backoff * (2 ** (attempt - 1))
        self.state_machine.add_log(f"Secondary installer not found, retrying in {delay:.1f}s...")
        self.package_manager.resolve()
        self._schedule(delay, self._try_handoff, attempt + 1)

    def _connect(self, installer: SecondaryInstaller) -> None:
        callbacks = ProgressCallbacks(
            set_step=self._mirror_step,
            set_package_progress=self.state_machine.set_package_progress,
            add_log=self.state_machine.add_log,
            set_error=self.state_machine.set_error,
        )
        try:
            installer.set_progress_callbacks(callbacks)
            self.state_machine.add_log("Connected to secondary installer progress")
        except Exception as e:
            error = InstallerInvocationError(f"INSTALLER_INVOCATION_FAILED: set_progress_callbacks: {e}")
            self.logger.error(str(error), exc_info=True)
            self.state_machine.set_error(str(error))

        self._loop.call_soon(self._start_installer, installer)

    def _start_installer(self, installer: SecondaryInstaller) -> None:
        self.state_machine.add_log("Calling secondary installer start_install...")
        try:
            result = installer.start_install()
        except Exception as e:
            self._invocation_failed(e)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_install_task_done)

        self.state_machine.add_log("Secondary installer started, progress is mirrored here")
        self._resolve_handed_off(True)

    def _on_install_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._invocation_failed(exc)

    def _invocation_failed(self, exc: BaseException) -> None:
        error = InstallerInvocationError(f"INSTALLER_INVOCATION_FAILED: start_install: {exc}")
        self.logger.error(str(error), exc_info=exc)
        self.state_machine.set_error(str(error))
        self._resolve_handed_off(False)

    def _mirror_step(self, code: int, detail: str = "") -> None:
        step = map_secondary_step(code)
        self.state_machine.set_step(step, detail)
        if step == InstallStep.COMPLETE and self.on_complete is not None:
            self.on_complete()

    def _resolve_handed_off(self, value: bool) -> None:
        if self.handed_off is not None and not self.handed_off.done():
            self.handed_off.set_result(value)
