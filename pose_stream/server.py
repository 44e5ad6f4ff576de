"""Collector service that ingests pose frames and keeps a bounded history."""
from __future__ import annotations

import argparse
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .landmarks import isoformat, utc_now
from .schemas import ErrorResponse, HealthResponse, IngestResponse, PoseDataResponse
from .store import PoseStore

LOGGER = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_LIMIT = 10
_LEADING_INT = re.compile(r"\s*[+-]?\d+")
STATIC_DIR = Path(__file__).parent / "static"

router = APIRouter(prefix="/api", tags=["pose"])


def get_store(request: Request) -> PoseStore:
    """Return the store attached to the app in :func:`create_app`."""
    return request.app.state.store


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, message=message).model_dump())


def parse_limit(raw: Optional[str]) -> int:
    """``limit`` query value read from its leading integer, like ``"3abc"`` -> 3.

    Absent, non-numeric or non-positive means the default.
    """
    if raw is None:
        return DEFAULT_LIMIT
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return DEFAULT_LIMIT
    value = int(match.group(0))
    return value if value > 0 else DEFAULT_LIMIT


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@router.post(
    "/pose-landmarks",
    response_model=IngestResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def ingest_pose_landmarks(payload: Dict[str, Any], store: PoseStore = Depends(get_store)):
    """Store one frame. Body: {"landmarks": [...], "timestamp": "...", "sessionId": "..."}"""
    landmarks = payload.get("landmarks")
    if not isinstance(landmarks, list):
        return _error(400, "Invalid landmarks data", "Landmarks must be an array")

    try:
        entry = store.append(
            landmarks,
            timestamp=_optional_str(payload.get("timestamp")),
            session_id=_optional_str(payload.get("sessionId")),
        )
        LOGGER.info(
            "Received pose landmarks: count=%d session=%s timestamp=%s",
            len(landmarks),
            entry.sessionId,
            entry.timestamp,
        )
        return IngestResponse(success=True, message="Pose landmarks received successfully", id=entry.id)
    except Exception as exc:
        LOGGER.exception("Error processing pose landmarks: %s", exc)
        return _error(500, "Internal server error", "Failed to process pose landmarks")


@router.get("/pose-data", response_model=PoseDataResponse)
def get_pose_data(limit: Optional[str] = None, store: PoseStore = Depends(get_store)):
    """Most recent entries, oldest first, plus the store size."""
    entries = store.recent(parse_limit(limit))
    return PoseDataResponse(total=len(store), data=entries)


@router.get("/health", response_model=HealthResponse)
def health(store: PoseStore = Depends(get_store)):
    return HealthResponse(status="healthy", timestamp=isoformat(utc_now()), storedEntries=len(store))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    LOGGER.warning("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return _error(400, "Invalid request body", "Request body must be a JSON object with a landmarks array")


def create_app(store: Optional[PoseStore] = None, static_dir: Optional[Path] = STATIC_DIR) -> FastAPI:
    """Build the collector app around a single owned :class:`PoseStore`."""

    app = FastAPI(title="Pose Landmark Collector")
    app.state.store = store if store is not None else PoseStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)

    if static_dir is not None:
        if Path(static_dir).is_dir():
            app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")
        else:
            LOGGER.warning("Static directory %s not found; serving API only", static_dir)
    return app


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect pose landmark frames over HTTP")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", DEFAULT_PORT)))
    parser.add_argument(
        "--static-dir",
        type=Path,
        default=Path(os.getenv("POSE_STATIC_DIR") or STATIC_DIR),
        help="Directory served at /",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging")
    return parser


def main(args: Optional["argparse.Namespace"] = None) -> None:  # pragma: no cover - CLI entry point
    import uvicorn

    from .pose_capture_app import configure_logging

    if args is None:
        args = create_argument_parser().parse_args()
    configure_logging(args.debug)

    app = create_app(static_dir=args.static_dir)
    LOGGER.info("Pose Landmark Server running on port %d", args.port)
    LOGGER.info("Access the app at: http://localhost:%d", args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.debug else "info")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
