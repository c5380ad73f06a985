"""
QuickRewind
===========

Always-on screen rewind: retroactively export "the last N seconds" as a GIF.

This package provides the capture and export core for QuickRewind.
A low-priority thread continuously grabs downscaled screenshots into a
bounded rolling buffer, an optional foreground session records at a higher
frame rate, and exports run through a fallback encoding chain
(GIF -> PNG sequence -> single PNG) on a worker thread.

Components:
    - capture: Frame grabbing, rolling buffer, recording session, scheduler
    - encoding: Fallback encoding pipeline and its stages
    - observability: Notification sinks
    - service: Application facade used by tray/hotkey/API front-ends
    - main: Localhost FastAPI control surface

Example:
    from quickrewind.config import settings
    from quickrewind.service import QuickRewindService

    service = QuickRewindService(settings.capture)
    service.start()
    result = service.export_buffer().result()
"""

__version__ = "0.1.0"
__author__ = "QuickRewind Project"

__all__ = [
    "__version__",
]
