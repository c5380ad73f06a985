"""
Data Models
===========

Pydantic models shared by the service, notifiers and the control API.

Models:
    Export:
        - ExportOutcome: animation / sequence / screenshot / failed
        - ExportMode: buffer / recording
        - EncodingResult: Tagged result of one export

    Notification:
        - Severity: info / warning / error
        - Notification: User-facing event
"""

from quickrewind.models.export import EncodingResult, ExportMode, ExportOutcome
from quickrewind.models.notification import Notification, Severity

__all__ = [
    # Export
    "ExportOutcome",
    "ExportMode",
    "EncodingResult",
    # Notification
    "Severity",
    "Notification",
]
