"""
Notification Models
===================

User-facing event contract handed to the notification collaborator.

The core never renders UI. Tray icons, toasts and the WebSocket feed all
consume the same Notification shape.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """
    Notification severity.

    Attributes:
        INFO: Normal progress and success
        WARNING: Degraded result or rejected command
        ERROR: Export failed
    """

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """
    A single user-facing event.

    Attributes:
        id: Monotonically increasing id within one process
        timestamp: UNIX time the notification was raised
        title: Short headline ("GIF Saved!")
        message: One or two lines of detail
        severity: info / warning / error
    """

    id: int = Field(..., ge=0, description="Sequence number within this process")
    timestamp: float = Field(..., description="UNIX timestamp")
    title: str = Field(..., description="Short headline")
    message: str = Field(..., description="Detail text")
    severity: Severity = Field(default=Severity.INFO, description="Severity tag")
