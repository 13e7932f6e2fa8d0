"""Tests for SmiProbe and the module-level API."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterator

import pytest

import smiprobe
import smiprobe._probe as probe_mod
from smiprobe._config import SmiConfig
from smiprobe._locator import ToolLocator
from smiprobe._probe import SmiProbe
from smiprobe._types import CommandResult, DeviceSample, ExecOptions, QueryStatus

GPU0 = (
    "470.63.01, 0x1234, NVIDIA GeForce RTX 3080, 00000000:01:00.0, 45, 10240, "
    "2048, 8192, 12, 8, 65, N/A, 220.5, 320, 1800, 9500"
)
GPU1 = (
    "470.63.01, 0x1234, NVIDIA GeForce RTX 3080, 00000000:02:00.0, 30, 10240, "
    "512, 9728, 0, 0, 41, N/A, 21.5, 320, 210, 405"
)


class _FakeExecutor:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.calls = 0

    def execute(self, command: str, options: ExecOptions) -> CommandResult:
        self.calls += 1
        return self.result


def _probe(stdout: str = f"{GPU0}\n", stderr: str = "", error: BaseException | None = None,
           platform: str = "linux") -> SmiProbe:
    executor = _FakeExecutor(CommandResult(stdout=stdout, stderr=stderr, error=error))
    return SmiProbe(locator=ToolLocator(platform=platform), executor=executor)


@pytest.fixture(autouse=True)
def _reset_default_probe() -> Iterator[None]:
    smiprobe.reset()
    yield
    smiprobe.reset()


class TestSmiProbe:
    def test_sample_decodes_output(self) -> None:
        samples = _probe().sample()
        assert len(samples) == 1
        assert samples[0].driver_version == "470.63.01"
        assert samples[0].temperature_memory is None
        assert samples[0].power_draw == 220.5
        assert samples[0].clock_memory == 9500.0

    def test_two_gpus_in_order(self) -> None:
        samples = _probe(stdout=f"{GPU0}\n{GPU1}\n").sample()
        assert [s.pci_bus for s in samples] == ["00000000:01:00.0", "00000000:02:00.0"]

    def test_stderr_gives_empty(self) -> None:
        probe = _probe(stderr="Failed to initialize NVML: Driver/library version mismatch")
        assert probe.sample() == []
        assert probe.query().status is QueryStatus.STDERR_OUTPUT

    def test_exit_error_gives_empty(self) -> None:
        assert _probe(error=OSError("spawn failed")).sample() == []

    def test_unsupported_platform_gives_empty(self) -> None:
        probe = _probe(platform="darwin")
        assert probe.sample() == []
        assert probe.query().status is QueryStatus.UNSUPPORTED_PLATFORM

    def test_empty_output_gives_empty(self) -> None:
        probe = _probe(stdout="")
        assert probe.query().ok
        assert probe.sample() == []

    def test_samples_are_fresh_per_call(self) -> None:
        probe = _probe()
        first = probe.sample()
        second = probe.sample()
        assert first == second
        assert first[0] is not second[0]

    def test_default_config(self) -> None:
        probe = SmiProbe()
        assert probe.config == SmiConfig()
        assert isinstance(probe.locator, ToolLocator)

    def test_sample_async(self) -> None:
        samples = asyncio.run(_probe().sample_async())
        assert len(samples) == 1
        assert isinstance(samples[0], DeviceSample)

    def test_sample_async_runs_off_loop_thread(self) -> None:
        seen: list[int] = []

        class _ThreadRecorder(_FakeExecutor):
            def execute(self, command: str, options: ExecOptions) -> CommandResult:
                seen.append(threading.get_ident())
                return super().execute(command, options)

        executor = _ThreadRecorder(CommandResult(stdout=f"{GPU0}\n", stderr=""))
        probe = SmiProbe(locator=ToolLocator(platform="linux"), executor=executor)

        async def main() -> int:
            await probe.sample_async()
            return threading.get_ident()

        loop_thread = asyncio.run(main())
        assert seen and seen[0] != loop_thread


class TestModuleApi:
    def test_default_probe_is_shared(self) -> None:
        assert probe_mod._get_probe() is probe_mod._get_probe()

    def test_reset_drops_default_probe(self) -> None:
        first = probe_mod._get_probe()
        smiprobe.reset()
        assert probe_mod._get_probe() is not first

    def test_init_replaces_default_probe(self) -> None:
        probe = smiprobe.init(system_root="D:\\Windows", timeout_s=5.0)
        assert probe_mod._get_probe() is probe
        assert probe.config.system_root == "D:\\Windows"
        assert probe.config.timeout_s == 5.0

    def test_query_devices_uses_default_probe(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(probe_mod, "_default_probe", _probe(stdout=f"{GPU0}\n{GPU1}\n"))
        assert len(smiprobe.query_devices()) == 2

    def test_get_device_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(probe_mod, "_default_probe", _probe())
        samples = asyncio.run(smiprobe.get_device_info())
        assert samples[0].name == "NVIDIA GeForce RTX 3080"

    def test_get_device_info_never_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def explode(self: SmiProbe) -> list[DeviceSample]:
            raise RuntimeError("boom")

        monkeypatch.setattr(probe_mod, "_default_probe", _probe())
        monkeypatch.setattr(SmiProbe, "sample", explode)
        assert asyncio.run(smiprobe.get_device_info()) == []

    def test_get_device_info_on_stderr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(probe_mod, "_default_probe", _probe(stderr="warning"))
        assert asyncio.run(smiprobe.get_device_info()) == []
