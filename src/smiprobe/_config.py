"""Probe configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class SmiConfig:
    """Immutable probe configuration."""

    command_name: str = "nvidia-smi"
    executable_name: str = "nvidia-smi.exe"
    system_root: str | None = None
    max_output_bytes: int = 20000 * 1024
    hide_window: bool = True
    encoding: str = "utf-8"
    locale: str = "en_US.UTF-8"
    timeout_s: float | None = None
    discard_stderr: bool | None = None

    def build_env(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Copy of the environment with LANG forced to the configured locale."""
        env = dict(os.environ if base is None else base)
        env["LANG"] = self.locale
        return env
