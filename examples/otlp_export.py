"""Forward one nvidia-smi poll to an OpenTelemetry collector as gauge metrics."""

import logging

import smiprobe

logging.basicConfig(level=logging.DEBUG)

# Inspect why a poll came back empty
probe = smiprobe.SmiProbe(smiprobe.SmiConfig(timeout_s=10.0))
outcome = probe.query()
print(f"nvidia-smi: {outcome.status.value}")

exporter = smiprobe.OTLPMetricsExporter(
    "localhost:4317",
    service_name="gpu-node-agent",
    environment="development",
)
exporter.export(smiprobe.decode(outcome.text))
exporter.shutdown()
