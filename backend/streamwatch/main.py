"""FastAPI application entrypoint."""
import argparse
from fastapi import FastAPI
from streamwatch.api import rest_status
from streamwatch.core.config import ConfigError, load_monitor_config, settings
from streamwatch.core.logging import logger, setup_logging
from streamwatch.monitor.launcher import DiagnosticLauncher
from streamwatch.services.metrics import PrometheusMetricsSink
from streamwatch.services.monitor_service import MonitorService
from streamwatch.services.prober import LivenessProber
from streamwatch.services.stream_registry import StreamRegistry

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Audio Stream Exporter",
    description="Silence, level and reachability metrics for live audio streams",
    version=rest_status.VERSION
)

# Include routers
app.include_router(rest_status.router)

# Metrics and status are served even if monitoring fails to start
app.state.sink = PrometheusMetricsSink()
app.state.registry = StreamRegistry()
app.state.monitor = None


def build_monitor(config_path: str, sink: PrometheusMetricsSink, registry: StreamRegistry) -> MonitorService:
    """
    Load the stream config and wire supervisors and prober for every stream.

    Raises:
        ConfigError: If the stream config is unreadable or invalid
    """
    config = load_monitor_config(config_path)
    targets = config.targets()
    logger.info(f"{len(targets)} streams loaded from {config_path}")

    for target in targets:
        sink.initialize_stream(target.url)

    launcher = DiagnosticLauncher(
        ffmpeg_path=settings.ffmpeg_path,
        level_stats=settings.enable_level_stats,
        stats_reset_frames=settings.level_stats_reset_frames,
        read_limit=settings.read_buffer_limit
    )
    prober = LivenessProber(
        [target.url for target in targets],
        sink,
        interval=settings.probe_interval_seconds,
        ffmpeg_path=settings.ffmpeg_path,
        probe_seconds=settings.probe_duration_seconds,
        timeout=settings.probe_timeout_seconds
    )
    return MonitorService(
        targets,
        launcher,
        sink,
        registry=registry,
        prober=prober,
        restart_delay=settings.restart_delay_seconds,
        launch_retry_delay=settings.launch_retry_delay_seconds,
        terminate_grace=settings.terminate_grace_seconds
    )


@app.on_event("startup")
async def startup_event():
    """Load the stream config and start monitoring."""
    try:
        monitor = build_monitor(settings.config_path, app.state.sink, app.state.registry)
    except ConfigError as e:
        logger.critical(f"Cannot start monitoring: {e}")
        raise

    app.state.monitor = monitor
    await monitor.start()
    logger.info(f"Audio stream exporter running on {settings.host}:{settings.port}/metrics")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop supervisors and terminate their ffmpeg processes."""
    logger.info("Shutting down Audio Stream Exporter")
    if app.state.monitor is not None:
        await app.state.monitor.stop()


def parse_listen(value: str) -> tuple[str, int]:
    """Split a HOST:PORT (or :PORT) listen address."""
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid listen address: {value}")
    return host or "0.0.0.0", int(port)


def run() -> None:
    """Command line entrypoint."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Audio stream silence and level exporter")
    parser.add_argument("--config", default=settings.config_path, help="Path to the configuration file")
    parser.add_argument(
        "--listen",
        type=parse_listen,
        default=f"{settings.host}:{settings.port}",
        help="Address and port to listen on"
    )
    args = parser.parse_args()

    settings.config_path = args.config
    settings.host, settings.port = args.listen

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
