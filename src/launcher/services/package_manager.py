"""Package manager client used to resolve and remove project packages."""

import os
from pathlib import Path
from typing import Optional, Protocol
import logging

from launcher.services.manifest import ManifestEditor


class PackageManagerClient(Protocol):
    """What the launcher needs from the engine's package manager."""

    def resolve(self) -> None:
        """Request re-resolution; fire-and-forget, no completion signal."""
        ...

    async def remove(self, package_name: str) -> None:
        """Remove a package from the project."""
        ...


class ManifestPackageManager:
    """Package manager driven through the project manifest.

    The editor watches Packages/manifest.json and re-resolves when it
    changes, so resolve() bumps the file's modification time and remove()
    deletes the dependency entry.
    """

    def __init__(self, manifest_path: Path, editor: Optional[ManifestEditor] = None):
        self.logger = logging.getLogger("launcher.package_manager")
        self.manifest_path = manifest_path
        self.editor = editor or ManifestEditor()
        self.resolve_count = 0

    def resolve(self) -> None:
        self.resolve_count += 1
        try:
            os.utime(self.manifest_path, None)
            self.logger.info(f"Requested package resolve ({self.resolve_count})")
        except OSError as e:
            self.logger.warning(f"Could not touch {self.manifest_path} for resolve: {e}")

    async def remove(self, package_name: str) -> None:
        """Remove ``package_name`` from the manifest.

        Raises:
            ManifestNotFoundError: If the manifest does not exist
            ManifestPatchError: If the manifest cannot be edited
        """
        removed = await self.editor.remove_dependency(self.manifest_path, package_name)
        if removed:
            self.resolve()
        else:
            self.logger.info(f"{package_name} was not a project dependency")
