"""pystatsview - real-time Python runtime stats over HTTP."""

from pystatsview.config import Settings, Theme, configure, get_settings
from pystatsview.registry import ViewManager, Viewers, default_viewers, empty_viewers

__all__ = [
    "Settings",
    "Theme",
    "ViewManager",
    "Viewers",
    "configure",
    "default_viewers",
    "empty_viewers",
    "get_settings",
]
