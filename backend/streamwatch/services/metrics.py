"""Prometheus metrics for stream health.

Metrics exported (label: url):
- audio_stream_up: 1 if the liveness probe could read the stream
- audio_silence_active: 1 while a silence >= the configured duration is running
- audio_silence_duration_seconds: Duration of the last completed silence
- audio_rms_level_db: Latest overall RMS level
- audio_peak_level_db: Latest overall peak level
- audio_clipped_samples_total: Clipped samples seen since start
- audio_dynamic_range_db: Latest dynamic range
"""
from typing import Dict, Optional, Protocol

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest

from streamwatch.monitor.models import (
    CLIPPED_SAMPLES,
    DYNAMIC_RANGE,
    PEAK_LEVEL,
    RMS_LEVEL,
    SILENCE_ACTIVE,
    SILENCE_DURATION,
    STREAM_UP,
    MetricUpdate,
)

LABEL = "url"

GAUGE_HELP = {
    STREAM_UP: "Indicates if the audio stream is online",
    SILENCE_ACTIVE: "1 if a silence >= configured duration is detected, 0 otherwise",
    SILENCE_DURATION: "Duration of the last detected silence (seconds)",
    RMS_LEVEL: "Overall RMS level of the stream (dB)",
    PEAK_LEVEL: "Overall peak level of the stream (dB)",
    DYNAMIC_RANGE: "Dynamic range of the stream (dB)",
}

COUNTER_HELP = {
    CLIPPED_SAMPLES: "Number of clipped samples detected",
}

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsSink(Protocol):
    """Write side of the metrics store used by supervisors and the prober."""

    def set_gauge(self, name: str, label: str, value: float) -> None:
        ...

    def add_counter(self, name: str, label: str, delta: float) -> None:
        ...


def publish(sink: MetricsSink, label: str, update: MetricUpdate) -> None:
    """Write one metric update for a stream into the sink."""
    if update.counter:
        sink.add_counter(update.metric, label, update.value)
    else:
        sink.set_gauge(update.metric, label, update.value)


class PrometheusMetricsSink:
    """MetricsSink backed by prometheus_client gauges and counters."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Create every metric in the given registry.

        Args:
            registry: Registry to register into; a private one is created if None
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self._gauges: Dict[str, Gauge] = {
            name: Gauge(name, help_text, labelnames=[LABEL], registry=self.registry)
            for name, help_text in GAUGE_HELP.items()
        }
        self._counters: Dict[str, Counter] = {
            name: Counter(name, help_text, labelnames=[LABEL], registry=self.registry)
            for name, help_text in COUNTER_HELP.items()
        }

    def set_gauge(self, name: str, label: str, value: float) -> None:
        self._gauges[name].labels(label).set(value)

    def add_counter(self, name: str, label: str, delta: float) -> None:
        if delta < 0:
            raise ValueError(f"Counter {name} can only increase, got delta {delta}")
        self._counters[name].labels(label).inc(delta)

    def initialize_stream(self, label: str) -> None:
        """Expose the silence series for a stream before any event arrives."""
        self.set_gauge(SILENCE_ACTIVE, label, 0)
        self.set_gauge(SILENCE_DURATION, label, 0)
        self._counters[CLIPPED_SAMPLES].labels(label)

    def get_value(self, name: str, label: str) -> Optional[float]:
        """Read back the current value of a series, or None if it does not exist."""
        sample_name = f"{name}_total" if name in self._counters else name
        return self.registry.get_sample_value(sample_name, {LABEL: label})

    def render(self) -> bytes:
        """Prometheus text exposition of the whole registry."""
        return generate_latest(self.registry)
