"""Discovery of the secondary installer the launcher hands off to."""

import importlib
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Callable, Optional, Protocol, runtime_checkable
import logging

logger = logging.getLogger("launcher.locator")


@dataclass(frozen=True)
class ProgressCallbacks:
    """Callbacks a secondary installer uses to mirror its progress into the launcher.

    ``set_step`` takes the secondary installer's own numeric step code.
    """

    set_step: Callable[[int, str], None]
    set_package_progress: Callable[[int, int, str], None]
    add_log: Callable[[str], None]
    set_error: Callable[[str], None]


@runtime_checkable
class SecondaryInstaller(Protocol):
    """Contract a secondary installer must implement."""

    def set_progress_callbacks(self, callbacks: ProgressCallbacks) -> None:
        ...

    def start_install(self) -> None:
        ...


class SecondaryInstallerLocator(Protocol):
    def is_available(self) -> bool:
        """True if an installer can be located, without creating it."""
        ...

    def locate(self) -> Optional[SecondaryInstaller]:
        ...


class StaticLocator:
    """Locator for an installer injected directly at startup."""

    def __init__(self, installer: Optional[SecondaryInstaller]):
        self.installer = installer

    def is_available(self) -> bool:
        return self.installer is not None

    def locate(self) -> Optional[SecondaryInstaller]:
        return self.installer


class EntryPointLocator:
    """Finds the secondary installer through a Python entry point.

    The entry point may name an installer object or a zero-argument factory
    (e.g. the installer class). Distributions installed after startup become
    visible once import caches are invalidated, so every lookup starts fresh.
    """

    def __init__(self, group: str, name: str):
        self.group = group
        self.name = name

    def is_available(self) -> bool:
        """Check that the entry point is registered; nothing is imported or built."""
        importlib.invalidate_caches()
        return any(ep.name == self.name for ep in entry_points(group=self.group))

    def locate(self) -> Optional[SecondaryInstaller]:
        importlib.invalidate_caches()
        eps = entry_points(group=self.group)

        for entry_point in eps:
            if entry_point.name != self.name:
                continue

            try:
                target = entry_point.load()
            except Exception as e:
                # broken distribution; keep looking
                logger.warning(f"Failed to load entry point {entry_point.value}: {e}")
                continue

            installer = target
            # classes pass the protocol check too, so instantiate them explicitly
            if isinstance(target, type) or (
                not isinstance(target, SecondaryInstaller) and callable(target)
            ):
                try:
                    installer = target()
                except Exception as e:
                    logger.warning(f"Installer factory {entry_point.value} raised: {e}")
                    continue

            if isinstance(installer, SecondaryInstaller):
                logger.info(f"Found secondary installer at {entry_point.value}")
                return installer

            logger.warning(f"Entry point {entry_point.value} does not provide a secondary installer")

        logger.debug(f"No '{self.name}' entry point in group '{self.group}'")
        return None
