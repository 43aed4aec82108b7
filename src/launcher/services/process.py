"""External command execution for git and other tooling."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union
import logging

from launcher.errors import ExternalProcessError


@dataclass(frozen=True)
class ProcessResult:
    """Exit code and captured output of a finished command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Runs commands to completion without blocking the event loop."""

    def __init__(self, timeout: Optional[float] = 600.0):
        """Initialize process runner.

        Args:
            timeout: Seconds before a command is killed (None disables)
        """
        self.logger = logging.getLogger("launcher.process")
        self.timeout = timeout

    async def run(self, args: Sequence[str], cwd: Union[str, Path, None] = None) -> ProcessResult:
        """Run a command and capture its output.

        Args:
            args: Program and arguments (no shell)
            cwd: Working directory

        Returns:
            ProcessResult with exit code, stdout and stderr

        Raises:
            ExternalProcessError: If the command cannot be spawned or times out
        """
        self.logger.debug(f"Running: {' '.join(args)} (cwd={cwd})")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd) if cwd is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalProcessError(f"SPAWN_FAILED: {args[0]}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExternalProcessError(f"PROCESS_TIMEOUT: {args[0]} exceeded {self.timeout}s")

        result = ProcessResult(
            exit_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        self.logger.debug(f"{args[0]} exited with code {result.exit_code}")
        return result


class GitClient:
    """Thin wrapper around the git command line."""

    def __init__(self, runner: Optional[ProcessRunner] = None, executable: str = "git"):
        self.logger = logging.getLogger("launcher.git")
        self.runner = runner or ProcessRunner()
        self.executable = executable

    async def clone(self, url: str, target: Path) -> ProcessResult:
        """Clone ``url`` into ``target``.

        Args:
            url: Repository URL
            target: Destination directory (must not exist yet)

        Returns:
            ProcessResult of the successful clone

        Raises:
            ExternalProcessError: If git exits non-zero or cannot be run
        """
        self.logger.info(f"Cloning {url} into {target}")
        target.parent.mkdir(parents=True, exist_ok=True)

        result = await self.runner.run(
            [self.executable, "clone", url, str(target)],
            cwd=target.parent,
        )
        if not result.ok:
            raise ExternalProcessError(
                f"CLONE_FAILED: git clone {url} exited with code {result.exit_code}: "
                f"{result.stderr.strip()}"
            )

        self.logger.info(f"Cloned {url}")
        return result

    @staticmethod
    def is_checkout(path: Path) -> bool:
        """True if ``path`` already holds a git working tree."""
        return (path / ".git").exists()
