"""Probe: wires locator, runner and decoder behind the public API."""

from __future__ import annotations

import asyncio
import logging
import threading

from smiprobe._config import SmiConfig
from smiprobe._decoder import decode
from smiprobe._locator import ToolLocator
from smiprobe._runner import CommandExecutor, QueryRunner
from smiprobe._types import DeviceSample, QueryOutcome

logger = logging.getLogger("smiprobe.probe")

_default_probe: SmiProbe | None = None
_default_lock = threading.Lock()


class SmiProbe:
    """Owns one ToolLocator, so the resolved path is cached per probe."""

    def __init__(
        self,
        config: SmiConfig | None = None,
        *,
        locator: ToolLocator | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config or SmiConfig()
        self.locator = locator or ToolLocator(self.config)
        self._runner = QueryRunner(
            self.locator, config=self.config, executor=executor
        )

    def query(self) -> QueryOutcome:
        """Run the tool once and report what happened."""
        return self._runner.query()

    def sample(self) -> list[DeviceSample]:
        """Decoded samples, or an empty list on any failure."""
        try:
            outcome = self.query()
            if not outcome.ok:
                logger.debug("No GPU telemetry: %s", outcome.status.value)
                return []
            return decode(outcome.text)
        except Exception:  # noqa: BLE001
            logger.debug("GPU telemetry decoding failed", exc_info=True)
            return []

    async def sample_async(self) -> list[DeviceSample]:
        """Like :meth:`sample`, without blocking the event loop."""
        try:
            return await asyncio.to_thread(self.sample)
        except Exception:  # noqa: BLE001
            logger.debug("GPU telemetry worker failed", exc_info=True)
            return []


def _get_probe() -> SmiProbe:
    """Return the default probe, creating it on first use."""
    global _default_probe  # noqa: PLW0603
    with _default_lock:
        if _default_probe is None:
            _default_probe = SmiProbe()
        return _default_probe


def init(
    *,
    command_name: str = "nvidia-smi",
    executable_name: str = "nvidia-smi.exe",
    system_root: str | None = None,
    max_output_bytes: int = 20000 * 1024,
    hide_window: bool = True,
    encoding: str = "utf-8",
    locale: str = "en_US.UTF-8",
    timeout_s: float | None = None,
    discard_stderr: bool | None = None,
) -> SmiProbe:
    """Replace the default probe with one built from the given settings."""
    global _default_probe  # noqa: PLW0603

    config = SmiConfig(
        command_name=command_name,
        executable_name=executable_name,
        system_root=system_root,
        max_output_bytes=max_output_bytes,
        hide_window=hide_window,
        encoding=encoding,
        locale=locale,
        timeout_s=timeout_s,
        discard_stderr=discard_stderr,
    )
    probe = SmiProbe(config)
    with _default_lock:
        _default_probe = probe
    return probe


def reset() -> None:
    """Drop the default probe; the next call resolves nvidia-smi again."""
    global _default_probe  # noqa: PLW0603
    with _default_lock:
        _default_probe = None


def query_devices() -> list[DeviceSample]:
    """Poll nvidia-smi once. Never raises; empty on any failure."""
    return _get_probe().sample()


async def get_device_info() -> list[DeviceSample]:
    """Poll nvidia-smi once without blocking the event loop.

    Usage::

        samples = await smiprobe.get_device_info()
        for gpu in samples:
            print(gpu.name, gpu.utilization_gpu)
    """
    return await _get_probe().sample_async()
