"""Launcher configuration model and loader."""

import json
import logging
from pathlib import Path
from typing import Optional, Union
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from launcher.models.status import InstallStep


def _coerce_step(v):
    """Accept a step as enum, ordinal, or member name (e.g. 'INSTALL_SECONDARY_A')."""
    if isinstance(v, InstallStep):
        return v
    if isinstance(v, str):
        try:
            return InstallStep[v.upper()]
        except KeyError:
            raise ValueError(f"Unknown install step: {v}")
    return InstallStep(v)


class PackageSpec(BaseModel):
    """Git-hosted package cloned and registered in the project manifest."""

    name: str = Field(
        ...,
        pattern=r"^[a-z0-9][a-z0-9._-]*$",
        description="Package identifier (e.g. 'com.novaframework.unity.installer')",
    )
    git_url: str = Field(..., description="Repository URL passed to git clone")
    step: InstallStep = Field(..., description="Step shown while this package installs")

    @field_validator("step", mode="before")
    @classmethod
    def parse_step(cls, v):
        return _coerce_step(v)


class ProgressRange(BaseModel):
    """Slice [base, base + span) of the overall progress axis owned by a step."""

    base: float = Field(..., ge=0.0, le=1.0)
    span: float = Field(..., ge=0.0, le=1.0)

    @model_validator(mode="after")
    def within_unit_interval(self) -> "ProgressRange":
        if self.base + self.span > 1.0 + 1e-9:
            raise ValueError("base + span must not exceed 1.0")
        return self


def _default_packages() -> list[PackageSpec]:
    return [
        PackageSpec(
            name="com.novaframework.unity.installer",
            git_url="https://github.com/phao5120/com.novaframework.unity.installer.git",
            step=InstallStep.INSTALL_SECONDARY_A,
        ),
        PackageSpec(
            name="com.novaframework.unity.core.common",
            git_url="https://github.com/phao5120/com.novaframework.unity.core.common.git",
            step=InstallStep.INSTALL_SECONDARY_B,
        ),
    ]


def _default_progress_ranges() -> dict[InstallStep, ProgressRange]:
    return {
        InstallStep.INSTALL_SECONDARY_A: ProgressRange(base=0.2, span=0.1),
        InstallStep.INSTALL_SECONDARY_B: ProgressRange(base=0.3, span=0.1),
        InstallStep.RUN_SECONDARY_INSTALL: ProgressRange(base=0.4, span=0.5),
    }


class LauncherConfig(BaseModel):
    """Static configuration for one launcher instance.

    Every field has a default so an empty JSON object is a valid config.
    """

    project_path: Path = Field(default=Path("."), description="Engine project root (contains Packages/)")
    data_dir_name: str = Field(default="NovaFrameworkData", description="Data directory beside the project")
    repo_dir_name: str = Field(default="framework_repo", description="Clone directory inside the data directory")
    packages: list[PackageSpec] = Field(default_factory=_default_packages, min_length=1)
    launcher_package: str = Field(
        default="com.novaframework.unity.launcher",
        description="This launcher's own package id (removed after completion if enabled)",
    )
    presence_markers: list[str] = Field(
        default_factory=lambda: [
            "com.novaframework.unity.installer",
            "com.novaframework.unity.core.common",
        ],
        description="Package ids whose presence in the manifest means the framework is installed",
    )
    progress_ranges: dict[InstallStep, ProgressRange] = Field(default_factory=_default_progress_ranges)

    # Readiness polling
    poll_interval: float = Field(default=0.1, gt=0, description="Seconds between poll ticks")
    settle_threshold: int = Field(default=10, ge=1, description="Ticks after which resolve is presumed done")
    max_poll_attempts: int = Field(default=60, ge=1, description="Hard cap on poll ticks")
    settle_delay: float = Field(default=2.0, ge=0, description="Delay before handoff after settling")
    timeout_delay: float = Field(default=1.0, ge=0, description="Delay before handoff after poll timeout")
    post_patch_delay: float = Field(default=1.0, ge=0, description="Delay after a manifest patch")

    # Handoff
    handoff_attempts: int = Field(default=3, ge=1, description="Attempts to locate the secondary installer")
    handoff_backoff: float = Field(default=1.0, ge=0, description="First retry delay, doubled per attempt")
    installer_entry_point_group: str = Field(default="nova_launcher.installers")
    installer_entry_point_name: str = Field(default="auto_install")

    # Ambient
    report_url: Optional[str] = Field(
        default=None, pattern=r"^https?://.+", description="POST target for progress snapshots"
    )
    auto_start: bool = Field(default=False, description="Start installation on service startup")
    remove_self_on_complete: bool = Field(default=False)
    log_file: str = Field(default="./logs/launcher.log")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=12316, gt=0, lt=65536)

    @field_validator("progress_ranges", mode="before")
    @classmethod
    def parse_range_keys(cls, v):
        if isinstance(v, dict):
            return {_coerce_step(k if not str(k).isdigit() else int(k)): r for k, r in v.items()}
        return v

    @field_validator("packages")
    @classmethod
    def unique_package_names(cls, v: list[PackageSpec]) -> list[PackageSpec]:
        """Ensure package names are unique."""
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError("Package names must be unique")
        return v

    @property
    def data_path(self) -> Path:
        return self.project_path / self.data_dir_name

    @property
    def repo_path(self) -> Path:
        return self.data_path / self.repo_dir_name

    @property
    def manifest_path(self) -> Path:
        return self.project_path / "Packages" / "manifest.json"

    def package_reference(self, package_name: str) -> str:
        """Manifest value pointing at a local clone, relative to Packages/."""
        return f"file:./../{self.data_dir_name}/{self.repo_dir_name}/{package_name}"


def load_config(path: Union[str, Path, None] = None) -> LauncherConfig:
    """Load configuration from a JSON file.

    Args:
        path: Config file path; defaults are used when None or missing

    Returns:
        Validated LauncherConfig

    Raises:
        ValueError: If the file exists but is not valid JSON or fails validation
    """
    logger = logging.getLogger("launcher.config")

    if path is None or not Path(path).exists():
        logger.debug(f"No config file at {path}, using defaults")
        return LauncherConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = LauncherConfig(**data)
    except json.JSONDecodeError as e:
        raise ValueError(f"INVALID_CONFIG: {path} is not valid JSON: {e}")
    except ValidationError as e:
        raise ValueError(f"INVALID_CONFIG: {e}")

    logger.info(f"Loaded config from {path}: packages={len(config.packages)}")
    return config
