from __future__ import annotations

import logging
from typing import List, Optional

from ..lib.command import run_cmd
from .termux import Runner, am_failed, package_installed

logger = logging.getLogger(__name__)

AVNC_PACKAGE = "com.gaurav.avnc"
BVNC_PACKAGE = "com.iiordanov.bVNC"
REALVNC_PACKAGE = "com.realvnc.viewer.android"
MULTIVNC_PACKAGE = "com.coboltforge.dontmind.multivnc"

# Preference order when several viewers are installed.
SUPPORTED_VIEWERS = (AVNC_PACKAGE, BVNC_PACKAGE, REALVNC_PACKAGE, MULTIVNC_PACKAGE)

# Viewers that accept a targeted vnc:// VIEW intent.
URI_VIEWERS = (AVNC_PACKAGE, BVNC_PACKAGE, REALVNC_PACKAGE)

AVNC_FDROID_URL = "https://f-droid.org/en/packages/com.gaurav.avnc/"

VIEW_ACTION = "android.intent.action.VIEW"


def vnc_uri(host: str, port: int) -> str:
    return f"vnc://{host}:{port}"


class VncViewer:
    def __init__(self, *, preferred: Optional[str] = None, runner: Runner = run_cmd, dry_run: bool = False) -> None:
        self.preferred = preferred
        self._run = runner
        self.dry_run = dry_run

    def candidates(self) -> List[str]:
        order = list(SUPPORTED_VIEWERS)
        if self.preferred:
            order = [self.preferred] + [p for p in order if p != self.preferred]
        return order

    def installed_viewer(self) -> Optional[str]:
        for pkg in self.candidates():
            if package_installed(pkg, runner=self._run):
                return pkg
        return None

    def _start(self, argv: List[str]) -> bool:
        return not am_failed(self._run(argv, check=False, dry_run=self.dry_run))

    def view_argv(self, host: str, port: int, package: Optional[str] = None) -> List[str]:
        argv = ["am", "start", "-a", VIEW_ACTION, "-d", vnc_uri(host, port)]
        if package:
            argv += ["-p", package]
        return argv

    def launch(self, host: str, port: int) -> bool:
        """Open the installed viewer on host:port. Returns True when an activity started."""

        pkg = self.installed_viewer()
        if pkg is None:
            logger.warning("No VNC viewer installed; AVNC is available from %s", AVNC_FDROID_URL)
        elif pkg in URI_VIEWERS:
            if self._start(self.view_argv(host, port, pkg)):
                logger.info("Opened %s on %s", pkg, vnc_uri(host, port))
                return True
            if pkg == REALVNC_PACKAGE:
                # RealVNC does not always handle vnc:// URIs; open it and let the user connect.
                logger.info("Opening RealVNC; connect manually to %s:%s", host, port)
                return self._start(
                    ["am", "start", "-a", "android.intent.action.MAIN", "-c", "android.intent.category.LAUNCHER", "-p", pkg]
                )

        if self._start(self.view_argv(host, port)):
            logger.info("Opened %s with the default handler", vnc_uri(host, port))
            return True
        logger.warning("Could not open a VNC viewer for %s", vnc_uri(host, port))
        return False
