"""nvidia-smi discovery: fixed name on Linux, DriverStore scan on Windows."""

from __future__ import annotations

import logging
import os
import sys
import threading
from collections.abc import Callable
from typing import Any

from smiprobe._config import SmiConfig

logger = logging.getLogger("smiprobe.locator")

_DEFAULT_SYSTEM_ROOT = "C:\\Windows"
_DRIVER_STORE = ("System32", "DriverStore", "FileRepository")


def _family(platform: str) -> str | None:
    if platform.startswith("linux"):
        return "linux"
    if platform == "win32":
        return "windows"
    return None


class ToolLocator:
    """Resolves the nvidia-smi path once and keeps it.

    Only successful resolutions are cached; a failed lookup is retried on the
    next call.
    """

    def __init__(
        self,
        config: SmiConfig | None = None,
        *,
        platform: str | None = None,
        listdir: Callable[[str], list[str]] = os.listdir,
        stat: Callable[[str], Any] = os.stat,
    ) -> None:
        self._config = config or SmiConfig()
        self._platform = platform if platform is not None else sys.platform
        self._listdir = listdir
        self._stat = stat
        self._location: str | None = None
        self._lock = threading.Lock()

    @property
    def platform(self) -> str:
        return self._platform

    @property
    def supported(self) -> bool:
        return _family(self._platform) is not None

    @property
    def base_path(self) -> str:
        """DriverStore repository scanned on Windows."""
        root = (
            self._config.system_root
            or os.environ.get("WINDIR")
            or _DEFAULT_SYSTEM_ROOT
        )
        return os.path.join(root, *_DRIVER_STORE)

    def resolve(self) -> str | None:
        if self._location is not None:
            return self._location
        with self._lock:
            if self._location is None:
                self._location = self._lookup()
            return self._location

    def reset(self) -> None:
        with self._lock:
            self._location = None

    def _lookup(self) -> str | None:
        family = _family(self._platform)
        if family == "linux":
            return self._config.command_name
        if family == "windows":
            try:
                return self._scan_driver_store()
            except OSError:
                logger.debug("DriverStore scan failed", exc_info=True)
                return None
        logger.debug("Unsupported platform %r", self._platform)
        return None

    def _scan_driver_store(self) -> str | None:
        base = self.base_path
        exe = self._config.executable_name

        best_path: str | None = None
        best_ctime = 0.0
        for entry in sorted(self._listdir(base)):
            candidate = os.path.join(base, entry)
            if exe not in self._listdir(candidate):
                continue
            exe_path = os.path.join(candidate, exe)
            ctime = self._stat(exe_path).st_ctime
            # Strict comparison: on equal times the earlier candidate stays.
            if best_path is None or ctime > best_ctime:
                best_path, best_ctime = exe_path, ctime

        if best_path is None:
            logger.debug("No %s found under %s", exe, base)
        return best_path
