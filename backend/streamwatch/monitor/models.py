"""Stream, observation and metric data models."""
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Union

# Metric names, each labelled by stream URL
STREAM_UP = "audio_stream_up"
SILENCE_ACTIVE = "audio_silence_active"
SILENCE_DURATION = "audio_silence_duration_seconds"
RMS_LEVEL = "audio_rms_level_db"
PEAK_LEVEL = "audio_peak_level_db"
CLIPPED_SAMPLES = "audio_clipped_samples"
DYNAMIC_RANGE = "audio_dynamic_range_db"


@dataclass(frozen=True)
class StreamTarget:
    """A monitored stream and the thresholds handed to silencedetect."""
    url: str
    silence_min_seconds: float = 5.0
    silence_noise_level: str = "-30dB"


class SilenceState(Enum):
    """Silence state of a single stream."""
    AUDIBLE = "audible"
    SILENT = "silent"


@dataclass(frozen=True)
class SilenceStart:
    """silencedetect reported the start of a silent interval."""


@dataclass(frozen=True)
class SilenceEnd:
    """silencedetect reported the end of a silent interval."""
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class RmsLevel:
    db: float


@dataclass(frozen=True)
class PeakLevel:
    db: float


@dataclass(frozen=True)
class ClippedSamples:
    count: int


@dataclass(frozen=True)
class DynamicRange:
    db: float


Observation = Union[SilenceStart, SilenceEnd, RmsLevel, PeakLevel, ClippedSamples, DynamicRange]


class MetricUpdate(NamedTuple):
    """A single write into the metrics sink for one stream."""
    metric: str
    value: float
    counter: bool = False
