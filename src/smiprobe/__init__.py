"""smiprobe: NVIDIA GPU telemetry from nvidia-smi as typed records."""

from __future__ import annotations

from smiprobe._config import SmiConfig
from smiprobe._decoder import decode, parse_float
from smiprobe._exporter import OTLPMetricsExporter
from smiprobe._locator import ToolLocator
from smiprobe._probe import SmiProbe, get_device_info, init, query_devices, reset
from smiprobe._runner import (
    QUERY_FIELDS,
    CommandExecutor,
    QueryRunner,
    SubprocessExecutor,
)
from smiprobe._types import (
    CommandResult,
    DeviceSample,
    ExecOptions,
    QueryOutcome,
    QueryStatus,
)
from smiprobe._version import __version__

__all__ = [
    "QUERY_FIELDS",
    "CommandExecutor",
    "CommandResult",
    "DeviceSample",
    "ExecOptions",
    "OTLPMetricsExporter",
    "QueryOutcome",
    "QueryRunner",
    "QueryStatus",
    "SmiConfig",
    "SmiProbe",
    "SubprocessExecutor",
    "ToolLocator",
    "__version__",
    "decode",
    "get_device_info",
    "init",
    "parse_float",
    "query_devices",
    "reset",
]
