from datetime import datetime
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class LogEntry(BaseModel):
    """One log record as delivered by a provider."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Event time (timezone-aware)")
    severity: str = Field(default="INFO", description="Severity level")
    message: str = Field(default="", description="Log message")
    labels: Dict[str, str] = Field(default_factory=dict, description="Provider labels")

    def format_line(self) -> str:
        """Render as ``[YYYY-mm-dd HH:MM:SS] SEVERITY: message``."""
        stamp = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp}] {self.severity}: {self.message.rstrip()}"
