"""Global pytest fixtures and configuration."""

import asyncio
import sys
from pathlib import Path
from typing import Callable, Optional

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from launcher.models.config import LauncherConfig  # noqa: E402
from launcher.services.locator import ProgressCallbacks  # noqa: E402

SAMPLE_MANIFEST = (
    "{\n"
    '  "dependencies": {\n'
    '    "com.unity.ugui": "1.0.0",\n'
    '    "com.novaframework.unity.launcher": "file:./../launcher",\n'
    '    "com.unity.test-framework": "1.1.33"\n'
    "  },\n"
    '  "scopedRegistries": []\n'
    "}\n"
)


class RecordingSink:
    """Progress sink keeping every snapshot it receives."""

    def __init__(self):
        self.states = []

    def notify(self, state):
        self.states.append(state)


class FakeInstaller:
    """Secondary installer double recording how it was driven."""

    def __init__(self, fail_on_start: bool = False, fail_on_connect: bool = False):
        self.callbacks: Optional[ProgressCallbacks] = None
        self.started = 0
        self.fail_on_start = fail_on_start
        self.fail_on_connect = fail_on_connect

    def set_progress_callbacks(self, callbacks: ProgressCallbacks) -> None:
        if self.fail_on_connect:
            raise RuntimeError("callbacks rejected")
        self.callbacks = callbacks

    def start_install(self) -> None:
        self.started += 1
        if self.fail_on_start:
            raise RuntimeError("installer exploded")


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def fake_installer():
    return FakeInstaller()


@pytest.fixture
def project_dir(tmp_path):
    """Engine project with a Packages/manifest.json."""
    project = tmp_path / "project"
    packages = project / "Packages"
    packages.mkdir(parents=True)
    (packages / "manifest.json").write_text(SAMPLE_MANIFEST, encoding="utf-8")
    return project


@pytest.fixture
def manifest_path(project_dir):
    return project_dir / "Packages" / "manifest.json"


@pytest.fixture
def fast_config(project_dir, tmp_path):
    """Config with near-zero delays so scheduled continuations run quickly."""
    return LauncherConfig(
        project_path=project_dir,
        poll_interval=0.001,
        settle_threshold=3,
        max_poll_attempts=10,
        settle_delay=0,
        timeout_delay=0,
        post_patch_delay=0,
        handoff_backoff=0,
        log_file=str(tmp_path / "logs" / "launcher.log"),
    )


@pytest.fixture
def installer_factory():
    """FakeInstaller class, for tests that need a misbehaving instance."""
    return FakeInstaller


@pytest.fixture
def wait_until():
    """Coroutine function yielding to the loop until a predicate holds."""
    return _wait_until
