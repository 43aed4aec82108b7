"""Top-level installation flow: clone framework packages, register them, hand off."""

import asyncio
from functools import partial
from typing import Optional
import logging

from launcher.errors import LauncherError, ManifestNotFoundError, ManifestPatchError
from launcher.models.config import LauncherConfig, PackageSpec
from launcher.models.status import InstallStep
from launcher.services.handoff import SecondaryInstallerHandoff
from launcher.services.locator import EntryPointLocator, SecondaryInstallerLocator
from launcher.services.manifest import ManifestEditor
from launcher.services.package_manager import ManifestPackageManager, PackageManagerClient
from launcher.services.process import GitClient
from launcher.services.sequencer import StageCallback, StageDescriptor, StageSequencer
from launcher.services.state_machine import InstallStateMachine


class PackageInstallerLauncher:
    """Drives one installation run end to end.

    Run order:
    check environment → create data directories → one stage per configured
    package (clone, patch manifest, resolve) → hand off to the secondary
    installer → optionally remove the launcher package once it completes.

    Failures are recorded in the install state; the run keeps going.
    """

    def __init__(
        self,
        config: LauncherConfig,
        state_machine: Optional[InstallStateMachine] = None,
        git: Optional[GitClient] = None,
        manifest_editor: Optional[ManifestEditor] = None,
        package_manager: Optional[PackageManagerClient] = None,
        locator: Optional[SecondaryInstallerLocator] = None,
    ):
        """Initialize launcher.

        Args:
            config: Launcher configuration
            state_machine: Install state (created from config if None)
            git: Git client
            manifest_editor: Manifest editor
            package_manager: Package manager client (manifest-driven if None)
            locator: Secondary installer locator (entry point lookup if None)
        """
        self.logger = logging.getLogger("launcher.launcher")
        self.config = config
        self.state_machine = state_machine or InstallStateMachine(progress_ranges=config.progress_ranges)
        self.git = git or GitClient()
        self.manifest_editor = manifest_editor or ManifestEditor()
        self.package_manager = package_manager or ManifestPackageManager(
            config.manifest_path, self.manifest_editor
        )
        self.locator = locator or EntryPointLocator(
            config.installer_entry_point_group, config.installer_entry_point_name
        )
        self.sequencer: Optional[StageSequencer] = None
        self.handoff: Optional[SecondaryInstallerHandoff] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def is_environment_satisfied(self) -> bool:
        """True if the framework is already installed and the run can be skipped."""
        try:
            deps = await self.manifest_editor.dependencies(self.config.manifest_path)
        except (ManifestNotFoundError, ManifestPatchError) as e:
            self.logger.debug(f"Cannot read manifest for environment check: {e}")
            deps = {}

        present = [name for name in self.config.presence_markers if name in deps]
        if present:
            self.logger.info(f"Framework packages already present: {present}")
            return True

        try:
            if self.locator.is_available():
                self.logger.info("Secondary installer already available")
                return True
        except Exception as e:
            self.logger.warning(f"Installer lookup failed during environment check: {e}")

        return False

    async def execute_installation(self) -> bool:
        """Start a run unless the environment is already satisfied.

        Returns:
            True if a run was started, False if installation was skipped

        Raises:
            RuntimeError: If a run is already active
        """
        if self._running:
            raise RuntimeError("INSTALL_ACTIVE: an installation run is already in progress")

        # claimed before the first await so a concurrent caller is rejected
        self._running = True
        try:
            satisfied = await self.is_environment_satisfied()
        except BaseException:
            self._running = False
            raise

        if satisfied:
            self._running = False
            self.logger.info("Framework already installed, skipping installation")
            return False

        self.logger.info("Starting installation run")
        self._loop = asyncio.get_running_loop()
        self.state_machine.reset()
        self.state_machine.set_step(InstallStep.CHECK_ENVIRONMENT, "Checking install environment...")

        # defer so observers see the first step before any work starts
        self._loop.call_soon(self._do_execute)
        return True

    def close(self) -> None:
        """Abandon the run; remaining stages are discarded silently."""
        if self.sequencer is not None:
            self.sequencer.discard()
        if self.handoff is not None:
            self.handoff.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._running:
            self.logger.info("Installation run closed")
        self._running = False

    def build_stages(self) -> list[StageDescriptor]:
        """One stage per configured package, in configuration order."""
        return [
            StageDescriptor(
                id=package.name,
                display_name=package.name,
                action=partial(self._install_package, package),
            )
            for package in self.config.packages
        ]

    async def remove_self(self) -> None:
        """Remove the launcher's own package from the project."""
        name = self.config.launcher_package
        try:
            await self.package_manager.remove(name)
            self.state_machine.add_log(f"Removed launcher package {name}")
            self.logger.info(f"Successfully removed self: {name}")
        except LauncherError as e:
            self.logger.error(f"Failed to remove self: {e}")
            self.state_machine.add_log(f"Could not remove launcher package: {e}")

    def _do_execute(self) -> None:
        if not self._running:
            return

        try:
            self.state_machine.set_step(
                InstallStep.DOWNLOAD_PACKAGE, "Preparing to download framework packages..."
            )
            for directory in (self.config.data_path, self.config.repo_path):
                if not directory.exists():
                    directory.mkdir(parents=True, exist_ok=True)
                    self.state_machine.add_log(f"Created directory: {directory}")
            stages = self.build_stages()
        except OSError as e:
            self.logger.error(f"Installation setup failed: {e}", exc_info=True)
            self.state_machine.set_error(f"INSTALL_SETUP_FAILED: {e}")
            self._running = False
            return

        self.sequencer = StageSequencer(
            self.state_machine, on_finished=self._start_handoff, loop=self._loop
        )
        self.sequencer.run(stages)

    async def _install_package(self, package: PackageSpec, done: StageCallback) -> None:
        self.state_machine.set_step(package.step, f"Installing {package.name}...")
        target = self.config.repo_path / package.name

        try:
            if GitClient.is_checkout(target):
                self.state_machine.add_log(f"{package.name} already cloned at {target}, reusing it")
            else:
                await self.git.clone(package.git_url, target)
                self.state_machine.add_log(f"Successfully downloaded package from {package.git_url}")

            patched = await self.manifest_editor.add_dependency(
                self.config.manifest_path,
                package.name,
                self.config.package_reference(package.name),
            )
        except LauncherError as e:
            self.logger.error(f"Failed to install {package.name}: {e}")
            self.state_machine.set_error(str(e))
            done()
            return

        if not patched:
            self.state_machine.add_log("Package dependency already exists in manifest.json")
            done()
            return

        self.state_machine.add_log("Successfully updated manifest.json with new package dependency")
        self.package_manager.resolve()
        self._loop.call_later(self.config.post_patch_delay, done)

    def _start_handoff(self) -> None:
        if not self._running:
            return

        self.handoff = SecondaryInstallerHandoff(
            self.state_machine,
            self.package_manager,
            self.locator,
            self.config,
            on_complete=self._on_secondary_complete,
            loop=self._loop,
        )
        handed_off = self.handoff.start()
        handed_off.add_done_callback(self._on_handoff_done)

    def _on_handoff_done(self, future: asyncio.Future) -> None:
        self._running = False
        if future.cancelled():
            return
        if future.result():
            self.logger.info("Handoff to secondary installer complete")
        else:
            self.logger.error("Handoff to secondary installer failed")

    def _on_secondary_complete(self) -> None:
        self.logger.info("Secondary installer reported completion")
        if self.config.remove_self_on_complete:
            task = self._loop.create_task(self.remove_self())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
