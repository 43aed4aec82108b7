"""In-memory install state models."""

from datetime import datetime
from pydantic import BaseModel, Field

from launcher.models.status import InstallStep


class LogEntry(BaseModel):
    """Single timestamped line in the install log."""

    timestamp: datetime = Field(default_factory=datetime.now, description="Time the entry was added")
    message: str = Field(..., description="Log text")

    def format(self) -> str:
        """Render as ``[HH:MM:SS] message`` for display."""
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class InstallState(BaseModel):
    """Snapshot of one installation run.

    Owned by InstallStateMachine; everything else only ever sees copies.
    """

    current_step: InstallStep = Field(default=InstallStep.NONE, description="Current coarse step")
    detail: str = Field(default="", description="Detail text for the current step")
    progress: float = Field(default=0.0, ge=0.0, le=1.0, description="Overall progress fraction")
    current_package_index: int = Field(default=0, ge=0, description="Index of the package being configured")
    total_package_count: int = Field(default=0, ge=0, description="Number of packages in the current step")
    is_complete: bool = Field(default=False, description="Run reached the complete step")
    has_error: bool = Field(default=False, description="At least one error was recorded")
    error_message: str = Field(default="", description="Last recorded error")
    logs: list[LogEntry] = Field(default_factory=list, description="Log entries, oldest first")
