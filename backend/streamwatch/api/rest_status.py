"""REST endpoints for health, metrics and stream status."""
from fastapi import APIRouter, HTTPException, Request, Response
from datetime import datetime, timezone
from streamwatch.services.metrics import METRICS_CONTENT_TYPE

VERSION = "0.1.0"

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Status and version information
    """
    return {
        "status": "ok",
        "version": VERSION
    }


@router.get("/metrics")
async def metrics(request: Request):
    """Prometheus text exposition of every stream metric."""
    sink = request.app.state.sink
    return Response(content=sink.render(), media_type=METRICS_CONTENT_TYPE)


def _format_times(status: dict) -> dict:
    for key in ("last_line_at", "started_at"):
        if status.get(key):
            status[key] = datetime.fromtimestamp(status[key], tz=timezone.utc).isoformat()
    return status


@router.get("/streams")
async def list_streams(request: Request):
    """
    List supervisor status for every configured stream.

    Returns:
        List of stream status objects
    """
    registry = request.app.state.registry
    return [_format_times(status) for status in await registry.list_statuses()]


@router.get("/streams/status")
async def get_stream_status(url: str, request: Request):
    """
    Get supervisor status for one stream.

    Args:
        url: Stream URL, passed as a query parameter

    Returns:
        Stream status with ISO 8601 timestamps
    """
    status = await request.app.state.registry.get_status(url)

    if status is None:
        raise HTTPException(status_code=404, detail=f"Stream {url} not found")

    return _format_times(status)
