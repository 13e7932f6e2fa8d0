"""Core types: device samples and query results."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from typing import Any

# Attributes 0-3 are identity text, the rest are numeric gauges.
_IDENTITY_FIELDS = ("driver_version", "sub_device_id", "name", "pci_bus")


@dataclass(frozen=True)
class DeviceSample:
    """One telemetry snapshot for one GPU at one poll instant.

    Gauges are ``None`` when the tool reports the sensor as unsupported.
    """

    driver_version: str | None
    sub_device_id: str | None
    name: str | None
    pci_bus: str | None
    fan_speed: float | None
    memory_total: float | None
    memory_used: float | None
    memory_free: float | None
    utilization_gpu: float | None
    utilization_memory: float | None
    temperature_gpu: float | None
    temperature_memory: float | None
    power_draw: float | None
    power_limit: float | None
    clock_core: float | None
    clock_memory: float | None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def gauges(self) -> dict[str, float | None]:
        """Numeric attributes in query order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in _IDENTITY_FIELDS
        }


class QueryStatus(enum.Enum):
    """Result of a single tool invocation."""

    OK = "ok"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    TOOL_NOT_FOUND = "tool_not_found"
    INVOCATION_FAILED = "invocation_failed"
    STDERR_OUTPUT = "stderr_output"


@dataclass(frozen=True)
class QueryOutcome:
    """Raw tool output, or the reason there is none."""

    status: QueryStatus
    text: str | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.OK


@dataclass(frozen=True)
class ExecOptions:
    """Options handed to the subprocess collaborator."""

    hide_window: bool
    max_output_bytes: int
    encoding: str
    env: Mapping[str, str] = field(default_factory=dict)
    timeout_s: float | None = None


@dataclass(frozen=True)
class CommandResult:
    """Captured output of one command; ``error`` is set when it failed."""

    stdout: str
    stderr: str
    error: BaseException | None = None
