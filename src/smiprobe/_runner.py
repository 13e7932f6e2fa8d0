"""Runs the fixed nvidia-smi query and captures its output."""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from typing import Protocol, runtime_checkable

from smiprobe._config import SmiConfig
from smiprobe._locator import ToolLocator
from smiprobe._types import (
    CommandResult,
    ExecOptions,
    QueryOutcome,
    QueryStatus,
)

logger = logging.getLogger("smiprobe.runner")

# Order matters: the decoder maps columns by position.
QUERY_FIELDS: tuple[str, ...] = (
    "driver_version",
    "pci.sub_device_id",
    "name",
    "pci.bus_id",
    "fan.speed",
    "memory.total",
    "memory.used",
    "memory.free",
    "utilization.gpu",
    "utilization.memory",
    "temperature.gpu",
    "temperature.memory",
    "power.draw",
    "power.limit",
    "clocks.gr",
    "clocks.mem",
)

_FORMAT = "csv,noheader,nounits"
_DEVNULL_REDIRECT = "2>/dev/null"


def _quote(executable: str, platform: str) -> str:
    if not any(ch.isspace() for ch in executable):
        return executable
    if platform == "win32":
        return f'"{executable}"'
    return shlex.quote(executable)


def build_command(
    executable: str,
    *,
    discard_stderr: bool = False,
    platform: str | None = None,
) -> str:
    """Build the shell command line for the telemetry query."""
    platform = platform if platform is not None else sys.platform
    cmd = (
        f"{_quote(executable, platform)} "
        f"--query-gpu={','.join(QUERY_FIELDS)} --format={_FORMAT}"
    )
    if discard_stderr:
        cmd = f"{cmd} {_DEVNULL_REDIRECT}"
    return cmd


@runtime_checkable
class CommandExecutor(Protocol):
    """Subprocess collaborator: run a command string, capture its output."""

    def execute(self, command: str, options: ExecOptions) -> CommandResult: ...


class SubprocessExecutor:
    """Runs commands through the shell with :mod:`subprocess`.

    Failures are returned in ``CommandResult.error``, never raised.
    """

    def execute(self, command: str, options: ExecOptions) -> CommandResult:
        creationflags = 0
        if options.hide_window and sys.platform == "win32":
            creationflags = subprocess.CREATE_NO_WINDOW
        try:
            proc = subprocess.run(  # noqa: S602
                command,
                shell=True,
                capture_output=True,
                env=dict(options.env) if options.env else None,
                timeout=options.timeout_s,
                creationflags=creationflags,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            return CommandResult(stdout="", stderr="", error=exc)

        stdout = proc.stdout.decode(options.encoding, errors="replace")
        stderr = proc.stderr.decode(options.encoding, errors="replace")

        error: BaseException | None = None
        if max(len(proc.stdout), len(proc.stderr)) > options.max_output_bytes:
            error = BufferError(
                f"output exceeded {options.max_output_bytes} bytes"
            )
        elif proc.returncode != 0:
            error = subprocess.CalledProcessError(
                proc.returncode, command, output=stdout, stderr=stderr
            )
        return CommandResult(stdout=stdout, stderr=stderr, error=error)


class QueryRunner:
    """Invokes nvidia-smi with the telemetry query.

    Any stderr output counts as failure, even with a zero exit status.
    """

    def __init__(
        self,
        locator: ToolLocator,
        *,
        config: SmiConfig | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self._locator = locator
        self._config = config or SmiConfig()
        self._executor = executor or SubprocessExecutor()

    @property
    def discard_stderr(self) -> bool:
        if self._config.discard_stderr is not None:
            return self._config.discard_stderr
        return self._locator.platform.startswith("linux")

    def exec_options(self) -> ExecOptions:
        return ExecOptions(
            hide_window=self._config.hide_window,
            max_output_bytes=self._config.max_output_bytes,
            encoding=self._config.encoding,
            env=self._config.build_env(),
            timeout_s=self._config.timeout_s,
        )

    def query(self) -> QueryOutcome:
        try:
            return self._query()
        except Exception as exc:  # noqa: BLE001
            logger.debug("nvidia-smi query failed", exc_info=True)
            return QueryOutcome(QueryStatus.INVOCATION_FAILED, detail=repr(exc))

    def run(self) -> str | None:
        """Raw CSV text, or ``None`` on any failure."""
        return self.query().text

    def _query(self) -> QueryOutcome:
        executable = self._locator.resolve()
        if executable is None:
            if not self._locator.supported:
                return QueryOutcome(
                    QueryStatus.UNSUPPORTED_PLATFORM, detail=self._locator.platform
                )
            return QueryOutcome(QueryStatus.TOOL_NOT_FOUND)

        command = build_command(
            executable,
            discard_stderr=self.discard_stderr,
            platform=self._locator.platform,
        )
        result = self._executor.execute(command, self.exec_options())

        if result.error is not None:
            logger.debug("nvidia-smi invocation failed: %r", result.error)
            return QueryOutcome(QueryStatus.INVOCATION_FAILED, detail=repr(result.error))
        if result.stderr:
            logger.debug("nvidia-smi wrote to stderr: %s", result.stderr.strip())
            return QueryOutcome(QueryStatus.STDERR_OUTPUT, detail=result.stderr)
        return QueryOutcome(QueryStatus.OK, text=result.stdout)
