from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Literal, Optional

from .prefs import LauncherPrefs
from .termux import TermuxBridge
from .vnc import VncViewer

logger = logging.getLogger(__name__)

SequenceState = Literal["idle", "pending", "running", "cancelled", "stopped"]

VNC_HOST = "localhost"

TimerFactory = Callable[[float, Callable[[], None]], Any]


class StartSequence:
    """Start the proot desktop, then open the viewer after a delay.

    Stage 1 (``start``) asks Termux to run the start command and returns
    ``"pending"`` straight away. Stage 2 runs when the timer fires: unless the
    sequence was cancelled meanwhile, it opens the VNC viewer and the state
    becomes ``"running"``.

    *timer_factory* must return an object with ``start()`` and ``cancel()``;
    ``threading.Timer`` is used by default.
    """

    def __init__(
        self,
        prefs: LauncherPrefs,
        *,
        bridge: TermuxBridge,
        viewer: VncViewer,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.prefs = prefs
        self.bridge = bridge
        self.viewer = viewer
        self._timer_factory = timer_factory
        self._timer: Optional[Any] = None
        self._lock = threading.Lock()
        self._state: SequenceState = "idle"
        self._done = threading.Event()

    @property
    def state(self) -> SequenceState:
        with self._lock:
            return self._state

    def start(self) -> SequenceState:
        with self._lock:
            if self._state == "pending":
                logger.info("Start already pending")
                return self._state
            self._state = "pending"
            self._done.clear()

        command = self.prefs.build_start_command()
        logger.info("Starting proot desktop: %s", command)
        self.bridge.execute(command)

        delay = max(0, int(self.prefs.vnc_connection_delay))
        timer = self._timer_factory(float(delay), self._stage_two)
        with self._lock:
            self._timer = timer
        logger.info("Opening the VNC viewer in %s s (port %s)", delay, self.prefs.vnc_port)
        timer.start()
        return "pending"

    def _stage_two(self) -> None:
        with self._lock:
            if self._state != "pending":
                logger.info("Viewer launch skipped (%s)", self._state)
                return
            self._state = "running"
            self._timer = None

        try:
            if self.prefs.auto_connect_vnc:
                self.viewer.launch(VNC_HOST, self.prefs.vnc_port)
            else:
                logger.info("Auto-connect disabled; connect a viewer to %s:%s", VNC_HOST, self.prefs.vnc_port)
        finally:
            self._done.set()

    def cancel(self) -> bool:
        """Cancel a pending viewer launch. Returns True if one was pending."""

        with self._lock:
            if self._state != "pending":
                return False
            self._state = "cancelled"
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        self._done.set()
        logger.info("Viewer launch cancelled")
        return True

    def stop(self) -> SequenceState:
        self.cancel()
        command = self.prefs.build_stop_command()
        logger.info("Stopping proot desktop: %s", command)
        self.bridge.execute(command)
        with self._lock:
            self._state = "stopped"
        self._done.set()
        return "stopped"

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stage 2 has run or the sequence was cancelled/stopped."""

        return self._done.wait(timeout)
