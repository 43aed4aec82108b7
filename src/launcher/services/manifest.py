"""Text-level editing of the project package manifest (Packages/manifest.json).

The manifest is patched as text rather than re-serialized so that every
byte outside the inserted entry (ordering, indentation, comments the editor
tolerates) survives unchanged.
"""

import json
import re
from pathlib import Path
import logging

import aiofiles

from launcher.errors import ManifestNotFoundError, ManifestPatchError

DEPENDENCIES_KEY = '"dependencies"'

# Characters past the opening brace searched for an existing entry.
DUPLICATE_WINDOW = 200


class ManifestEditor:
    """Idempotent insertion and removal of dependency entries."""

    def __init__(self, indent: str = "    "):
        self.logger = logging.getLogger("launcher.manifest")
        self.indent = indent

    async def add_dependency(self, manifest_path: Path, package_name: str, reference: str) -> bool:
        """Insert ``"package_name": "reference"`` as the first dependency.

        Args:
            manifest_path: Path to manifest.json
            package_name: Package identifier
            reference: Dependency value (version or file: URL)

        Returns:
            True if the file was rewritten, False if the entry already existed

        Raises:
            ManifestNotFoundError: If manifest_path does not exist
            ManifestPatchError: If no dependencies object can be found
        """
        content = await self._read(manifest_path)
        key_pos, brace = self._find_dependencies(content, manifest_path)

        if package_name in content[key_pos:brace + DUPLICATE_WINDOW]:
            self.logger.info(f"{package_name} already present in {manifest_path}")
            return False

        newline = "\r\n" if "\r\n" in content else "\n"
        entry = f'{newline}{self.indent}"{package_name}": "{reference}"'
        if content[brace + 1:].lstrip().startswith("}"):
            # empty object: no trailing comma
            insert_at = brace + 1
        else:
            entry += ","
            line_end = content.find("\n", brace + 1)
            close = content.find("}", brace + 1)
            if line_end == -1 or (close != -1 and close < line_end):
                insert_at = brace + 1
            elif content[line_end - 1] == "\r":
                insert_at = line_end - 1
            else:
                insert_at = line_end

        updated = content[:insert_at] + entry + content[insert_at:]
        await self._write(manifest_path, updated)
        self.logger.info(f"Added {package_name} to {manifest_path}")
        return True

    async def remove_dependency(self, manifest_path: Path, package_name: str) -> bool:
        """Remove the entry for ``package_name`` if present.

        Returns:
            True if the file was rewritten, False if there was no such entry

        Raises:
            ManifestNotFoundError: If manifest_path does not exist
            ManifestPatchError: If no dependencies object can be found
        """
        content = await self._read(manifest_path)
        _, brace = self._find_dependencies(content, manifest_path)

        pattern = re.compile(r'\s*"' + re.escape(package_name) + r'"\s*:\s*"[^"]*"(\s*,)?')
        match = pattern.search(content, brace + 1)
        if match is None:
            self.logger.debug(f"{package_name} not in {manifest_path}")
            return False

        start, end = match.span()
        if match.group(1) is None:
            # last entry: drop the separator before it instead
            prev = start - 1
            while prev > brace and content[prev].isspace():
                prev -= 1
            if content[prev] == ",":
                start = prev

        updated = content[:start] + content[end:]
        await self._write(manifest_path, updated)
        self.logger.info(f"Removed {package_name} from {manifest_path}")
        return True

    async def dependencies(self, manifest_path: Path) -> dict[str, str]:
        """Parse and return the dependencies object.

        Raises:
            ManifestNotFoundError: If manifest_path does not exist
            ManifestPatchError: If the manifest is not valid JSON
        """
        content = await self._read(manifest_path)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ManifestPatchError(f"MANIFEST_INVALID: {manifest_path}: {e}")
        deps = data.get("dependencies", {}) if isinstance(data, dict) else {}
        return deps if isinstance(deps, dict) else {}

    def _find_dependencies(self, content: str, manifest_path: Path) -> tuple[int, int]:
        key_pos = content.find(DEPENDENCIES_KEY)
        if key_pos == -1:
            raise ManifestPatchError(f"MANIFEST_PATCH_FAILED: no {DEPENDENCIES_KEY} key in {manifest_path}")
        brace = content.find("{", key_pos)
        if brace == -1:
            raise ManifestPatchError(f"MANIFEST_PATCH_FAILED: {DEPENDENCIES_KEY} has no object in {manifest_path}")
        return key_pos, brace

    async def _read(self, manifest_path: Path) -> str:
        if not manifest_path.exists():
            raise ManifestNotFoundError(f"MANIFEST_NOT_FOUND: manifest.json not found at: {manifest_path}")
        async with aiofiles.open(manifest_path, "r", encoding="utf-8", newline="") as f:
            return await f.read()

    async def _write(self, manifest_path: Path, content: str) -> None:
        try:
            async with aiofiles.open(manifest_path, "w", encoding="utf-8", newline="") as f:
                await f.write(content)
        except OSError as e:
            raise ManifestPatchError(f"MANIFEST_PATCH_FAILED: cannot write {manifest_path}: {e}")
