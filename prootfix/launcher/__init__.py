"""Android side: drive Termux and a VNC viewer app through activity-manager intents."""

from .prefs import LauncherPrefs
from .sequence import StartSequence
from .termux import TermuxBridge
from .vnc import VncViewer

__all__ = ["LauncherPrefs", "StartSequence", "TermuxBridge", "VncViewer"]
