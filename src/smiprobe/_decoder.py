"""Decodes nvidia-smi CSV output into DeviceSample records."""

from __future__ import annotations

import logging
import math
import re

from smiprobe._types import DeviceSample

logger = logging.getLogger("smiprobe.decoder")

FIELD_COUNT = 16
SEPARATOR = ", "
MISSING_MARKER = "N/A"

_FLOAT_PREFIX = re.compile(
    r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)", re.ASCII
)


def parse_float(value: str | None) -> float | None:
    """Permissive float conversion.

    ``None`` stays ``None``. Otherwise the longest numeric prefix after
    leading whitespace is parsed (``"45 W"`` gives ``45.0``), and text with no
    numeric prefix gives NaN instead of raising.
    """
    if value is None:
        return None
    match = _FLOAT_PREFIX.match(value.lstrip())
    if match is None:
        return math.nan
    token = match.group(0)
    if token.endswith("Infinity"):
        return -math.inf if token.startswith("-") else math.inf
    return float(token)


def _split_fields(line: str) -> list[str | None]:
    return [
        None if MISSING_MARKER in value else value
        for value in line.split(SEPARATOR)
    ]


def decode_line(line: str) -> DeviceSample | None:
    """Decode one CSV row; rows without exactly 16 fields give ``None``."""
    data = _split_fields(line)
    if len(data) != FIELD_COUNT:
        logger.debug("Dropping line with %d fields: %r", len(data), line)
        return None
    gauges = [parse_float(value) for value in data[4:]]
    return DeviceSample(data[0], data[1], data[2], data[3], *gauges)


def decode(text: str | None) -> list[DeviceSample]:
    if not text:
        return []
    samples: list[DeviceSample] = []
    for line in text.splitlines():
        if not line:
            continue
        sample = decode_line(line)
        if sample is not None:
            samples.append(sample)
    return samples
