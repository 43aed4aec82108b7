"""Exception types raised by launcher services.

Messages carry an upper-case code prefix (e.g. ``CLONE_FAILED: ...``) so the
text recorded into the install state is greppable in logs.
"""


class LauncherError(Exception):
    """Base class for launcher failures."""


class ExternalProcessError(LauncherError):
    """External command exited non-zero or could not be spawned."""


class ManifestNotFoundError(LauncherError, FileNotFoundError):
    """Project package manifest does not exist."""


class ManifestPatchError(LauncherError, ValueError):
    """Package manifest could not be patched."""


class InstallerNotFoundError(LauncherError):
    """Secondary installer could not be located after all attempts."""


class InstallerInvocationError(LauncherError):
    """Secondary installer raised while being wired up or started."""


class StageCallbackError(LauncherError, RuntimeError):
    """Stage completion callback was invoked more than once."""
