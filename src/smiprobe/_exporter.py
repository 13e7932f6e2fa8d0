"""OTLP gRPC exporter: converts DeviceSample batches to gauge metrics and ships them."""

from __future__ import annotations

import logging
import math
import platform
import time
from typing import TYPE_CHECKING

import grpc
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
)
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2_grpc import (
    MetricsServiceStub,
)
from opentelemetry.proto.common.v1.common_pb2 import (
    AnyValue,
    InstrumentationScope,
    KeyValue,
)
from opentelemetry.proto.metrics.v1.metrics_pb2 import (
    Gauge,
    Metric,
    NumberDataPoint,
    ResourceMetrics,
    ScopeMetrics,
)
from opentelemetry.proto.resource.v1.resource_pb2 import Resource

from smiprobe._version import __version__

if TYPE_CHECKING:
    from smiprobe._types import DeviceSample

logger = logging.getLogger("smiprobe.exporter")

_SDK_NAME = "smiprobe"
_SDK_VERSION = __version__

# DeviceSample gauge attribute -> (metric name, unit)
_GAUGE_METRICS: dict[str, tuple[str, str]] = {
    "fan_speed": ("gpu.fan.speed", "%"),
    "memory_total": ("gpu.memory.total", "MiB"),
    "memory_used": ("gpu.memory.used", "MiB"),
    "memory_free": ("gpu.memory.free", "MiB"),
    "utilization_gpu": ("gpu.utilization", "%"),
    "utilization_memory": ("gpu.memory.utilization", "%"),
    "temperature_gpu": ("gpu.temperature", "Cel"),
    "temperature_memory": ("gpu.memory.temperature", "Cel"),
    "power_draw": ("gpu.power.draw", "W"),
    "power_limit": ("gpu.power.limit", "W"),
    "clock_core": ("gpu.clock.core", "MHz"),
    "clock_memory": ("gpu.clock.memory", "MHz"),
}


def _make_attribute(key: str, value: str | int | float | bool) -> KeyValue:
    """Convert a Python key-value pair to an OTLP KeyValue protobuf."""
    if isinstance(value, bool):
        av = AnyValue(bool_value=value)
    elif isinstance(value, int):
        av = AnyValue(int_value=value)
    elif isinstance(value, float):
        av = AnyValue(double_value=value)
    else:
        av = AnyValue(string_value=str(value))
    return KeyValue(key=key, value=av)


def _sample_attributes(sample: DeviceSample, index: int) -> list[KeyValue]:
    """Identity attributes for one GPU's data points. Absent fields are skipped."""
    attrs = [_make_attribute("gpu.index", index)]
    for key, value in (
        ("gpu.name", sample.name),
        ("gpu.pci_bus", sample.pci_bus),
        ("gpu.driver_version", sample.driver_version),
        ("gpu.sub_device_id", sample.sub_device_id),
    ):
        if value is not None:
            attrs.append(_make_attribute(key, value))
    return attrs


def _build_metrics(
    samples: list[DeviceSample], time_unix_nano: int
) -> list[Metric]:
    points: dict[str, list[NumberDataPoint]] = {key: [] for key in _GAUGE_METRICS}
    for idx, sample in enumerate(samples):
        attrs = _sample_attributes(sample, idx)
        for key, value in sample.gauges().items():
            if value is None or math.isnan(value):
                continue
            points[key].append(NumberDataPoint(
                attributes=attrs,
                time_unix_nano=time_unix_nano,
                as_double=value,
            ))

    metrics: list[Metric] = []
    for key, (name, unit) in _GAUGE_METRICS.items():
        if not points[key]:
            continue
        metrics.append(Metric(
            name=name,
            unit=unit,
            gauge=Gauge(data_points=points[key]),
        ))
    return metrics


def _build_export_request(
    samples: list[DeviceSample],
    service_name: str,
    environment: str,
    time_unix_nano: int | None = None,
) -> ExportMetricsServiceRequest:
    """Build an ExportMetricsServiceRequest from one poll's samples."""
    if time_unix_nano is None:
        time_unix_nano = time.time_ns()

    resource_attrs = [
        _make_attribute("service.name", service_name),
        _make_attribute("deployment.environment", environment),
        _make_attribute("host.name", platform.node()),
        _make_attribute("telemetry.sdk.name", _SDK_NAME),
        _make_attribute("telemetry.sdk.version", _SDK_VERSION),
    ]

    resource = Resource(attributes=resource_attrs)
    scope = InstrumentationScope(name=_SDK_NAME, version=_SDK_VERSION)

    scope_metrics = ScopeMetrics(
        scope=scope, metrics=_build_metrics(samples, time_unix_nano)
    )
    resource_metrics = ResourceMetrics(
        resource=resource, scope_metrics=[scope_metrics]
    )

    return ExportMetricsServiceRequest(resource_metrics=[resource_metrics])


class OTLPMetricsExporter:
    """Exports DeviceSample batches over gRPC using the OTLP metrics protocol.

    Failures are logged but never raised, so a dead collector does not break
    the host's polling.
    """

    def __init__(
        self,
        endpoint: str,
        service_name: str,
        environment: str = "development",
        *,
        insecure: bool = True,
        timeout_s: float = 10.0,
        api_key: str | None = None,
    ) -> None:
        self._service_name = service_name
        self._environment = environment
        self._timeout_s = timeout_s
        self._metadata: list[tuple[str, str]] | None = None
        if api_key is not None:
            self._metadata = [("authorization", f"Bearer {api_key}")]

        if insecure:
            self._channel = grpc.insecure_channel(endpoint)
        else:
            self._channel = grpc.secure_channel(endpoint, grpc.ssl_channel_credentials())

        self._stub = MetricsServiceStub(self._channel)  # type: ignore[no-untyped-call]

    def export(self, samples: list[DeviceSample]) -> None:
        """Export one batch of samples. Logs and swallows all errors."""
        if not samples:
            return
        try:
            request = _build_export_request(
                samples, self._service_name, self._environment
            )
            self._stub.Export(request, timeout=self._timeout_s, metadata=self._metadata)
        except Exception:  # noqa: BLE001
            logger.debug("Failed to export %d samples", len(samples), exc_info=True)

    def shutdown(self) -> None:
        """Close the gRPC channel."""
        try:
            self._channel.close()
        except Exception:  # noqa: BLE001
            pass
