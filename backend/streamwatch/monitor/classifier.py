"""Classification of ffmpeg diagnostic lines into typed observations.

ffmpeg writes two incompatible formats to stderr while the diagnostic
filter chain runs:

* human readable reports from silencedetect and astats, e.g.
  ``[silencedetect @ 0x..] silence_end: 12.3 | silence_duration: 7.5`` or
  ``[Parsed_astats_1 @ 0x..] RMS level dB: -18.23``
* key=value frame metadata printed by ametadata, e.g.
  ``lavfi.astats.Overall.RMS_level=-18.231``

Every rule is checked against every line, so one line may yield several
observations.
"""
import math
import re
from typing import Callable, List, Optional, Tuple

from streamwatch.monitor.models import (
    ClippedSamples,
    DynamicRange,
    Observation,
    PeakLevel,
    RmsLevel,
    SilenceEnd,
    SilenceStart,
)

SILENCE_START_MARKER = "silence_start"
SILENCE_END_MARKER = "silence_end"
METADATA_MARKER = "lavfi.astats."

_SILENCE_DURATION_RE = re.compile(r"silence_duration: ([0-9.]+)")

# (metadata key suffix, observation constructor)
_METADATA_SUFFIXES: Tuple[Tuple[str, Callable[[float], Optional[Observation]]], ...] = (
    ("rms_level", lambda value: RmsLevel(value)),
    ("peak_level", lambda value: PeakLevel(value)),
    ("clipped_samples", lambda value: _clipped(value)),
    ("dynamic_range", lambda value: DynamicRange(value)),
)


def _to_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def _clipped(value: float) -> Optional[ClippedSamples]:
    """Clip counts only ever feed a counter, so zero and fractions are dropped."""
    if not math.isfinite(value) or not value.is_integer() or value <= 0:
        return None
    return ClippedSamples(int(value))


def _silence(match: re.Match) -> Optional[Observation]:
    line = match.string
    if SILENCE_START_MARKER in line:
        return SilenceStart()
    duration = None
    found = _SILENCE_DURATION_RE.search(line)
    if found:
        duration = _to_float(found.group(1))
    return SilenceEnd(duration)


def _rms(match: re.Match) -> Optional[Observation]:
    value = _to_float(match.group(1))
    return RmsLevel(value) if value is not None else None


def _peak(match: re.Match) -> Optional[Observation]:
    value = _to_float(match.group(1))
    return PeakLevel(value) if value is not None else None


def _clip_count(match: re.Match) -> Optional[Observation]:
    try:
        count = int(match.group(1))
    except ValueError:
        return None
    return ClippedSamples(count) if count > 0 else None


def _dynamic_range(match: re.Match) -> Optional[Observation]:
    value = _to_float(match.group(1))
    return DynamicRange(value) if value is not None else None


def _metadata(match: re.Match) -> Optional[Observation]:
    fragment = match.string[match.start():].strip()
    key, sep, raw_value = fragment.partition("=")
    if not sep:
        return None
    value = _to_float(raw_value.strip())
    if value is None:
        return None
    key = key.strip().lower()
    for suffix, build in _METADATA_SUFFIXES:
        if key.endswith(suffix):
            return build(value)
    return None


_RULES: List[Tuple[re.Pattern, Callable[[re.Match], Optional[Observation]]]] = [
    (re.compile(f"{SILENCE_START_MARKER}|{SILENCE_END_MARKER}"), _silence),
    (re.compile(r"RMS level(?: dB)?:\s*([-+]?\d+(?:\.\d+)?)", re.IGNORECASE), _rms),
    (re.compile(r"Peak level(?: dB)?:\s*([-+]?\d+(?:\.\d+)?)", re.IGNORECASE), _peak),
    (re.compile(r"Number of clipped samples:\s*(\d+)", re.IGNORECASE), _clip_count),
    (re.compile(r"Dynamic range(?: dB)?:\s*(\d+(?:\.\d+)?)", re.IGNORECASE), _dynamic_range),
    (re.compile(re.escape(METADATA_MARKER)), _metadata),
]


def classify_line(line: str) -> List[Observation]:
    """
    Turn one diagnostic line into zero or more observations.

    Args:
        line: A single stderr line, with or without trailing newline

    Returns:
        Observations in rule order; empty if nothing matched
    """
    observations: List[Observation] = []
    for pattern, build in _RULES:
        match = pattern.search(line)
        if match is None:
            continue
        observation = build(match)
        if observation is not None:
            observations.append(observation)
    return observations
