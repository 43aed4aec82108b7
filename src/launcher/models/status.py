"""Install step enum for the launcher."""

from enum import IntEnum


class InstallStep(IntEnum):
    """Coarse installation steps shown to the operator.

    Step order within a run:
    none → checkEnvironment → downloadPackage → installSecondaryA →
    installSecondaryB → launchSecondaryInstaller → runSecondaryInstall → complete
    """

    NONE = 0
    CHECK_ENVIRONMENT = 1
    DOWNLOAD_PACKAGE = 2
    INSTALL_SECONDARY_A = 3
    INSTALL_SECONDARY_B = 4
    LAUNCH_SECONDARY_INSTALLER = 5
    RUN_SECONDARY_INSTALL = 6
    COMPLETE = 7

    @property
    def description(self) -> str:
        return STEP_DESCRIPTIONS[self]


STEP_DESCRIPTIONS = {
    InstallStep.NONE: "Preparing...",
    InstallStep.CHECK_ENVIRONMENT: "Checking environment...",
    InstallStep.DOWNLOAD_PACKAGE: "Downloading framework packages...",
    InstallStep.INSTALL_SECONDARY_A: "Installing installer package...",
    InstallStep.INSTALL_SECONDARY_B: "Installing common package...",
    InstallStep.LAUNCH_SECONDARY_INSTALLER: "Launching installer...",
    InstallStep.RUN_SECONDARY_INSTALL: "Running automatic install...",
    InstallStep.COMPLETE: "Installation complete!",
}
