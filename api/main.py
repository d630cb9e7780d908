#!/usr/bin/env python3
import logging
import os
import threading
from datetime import datetime, timezone

import anyio
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from config.settings import load_settings, validate_settings
from engine.json_utils import safe_json_dumps
from engine.runtime import get_runtime_info
from engine.search_service import AlbumSearchRequest, AlbumSearchService
from slskd.client import SlskdClient

APP_NAME = "slskd Album Search API"
STATUS_SCHEMA_VERSION = 1
LOG_DIR = os.environ.get("SLSKD_SEARCH_LOG_DIR", os.path.join(os.getcwd(), "logs"))
_TRUST_PROXY = os.environ.get("SLSKD_SEARCH_TRUST_PROXY", "").strip().lower() in {"1", "true", "yes", "on"}

app = FastAPI(
    title=APP_NAME,
    description="Album search over a slskd instance: query strategies, polling, and candidate ranking.",
)

if _TRUST_PROXY:
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


def _env_or_default(name, default):
    value = os.environ.get(name)
    return value if value else default


class AlbumSearchPayload(BaseModel):
    artist: str | None = None
    album: str | None = None
    year: str | None = None
    track_count: int = 0
    primary_type: str | None = None
    aliases: list[str] = []
    tracks: list[str] = []
    interactive: bool = False


def _setup_logging(log_dir):
    os.makedirs(log_dir, exist_ok=True)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, "search.log")
    root.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    has_file = False
    has_console = False
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                has_file = True
        elif isinstance(handler, logging.StreamHandler):
            has_console = True
    if not has_file:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.INFO)
        root.addHandler(file_handler)
    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)


def _build_search_service(settings):
    return AlbumSearchService(SlskdClient(settings), settings)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "invalid request"})


@app.on_event("startup")
async def startup() -> None:
    _setup_logging(LOG_DIR)
    try:
        settings = load_settings()
    except (OSError, ValueError) as exc:
        logging.error("Failed to load search settings: %s", exc)
        raise
    app.state.settings = settings
    app.state.search_service = _build_search_service(settings)
    app.state.stop_event = threading.Event()
    errors = app.state.search_service.validate()
    if errors:
        logging.warning("Search settings are incomplete: %s", safe_json_dumps(errors))
    logging.info("%s ready (backend=%s)", APP_NAME, settings.base_url)


@app.on_event("shutdown")
async def shutdown() -> None:
    stop_event = getattr(app.state, "stop_event", None)
    if stop_event is not None:
        stop_event.set()


def _service_errors(service):
    if service is None:
        return ["search service is not configured"]
    return service.validate()


@app.get("/api/status")
async def api_status():
    service = getattr(app.state, "search_service", None)
    errors = _service_errors(service)
    return {
        "schema_version": STATUS_SCHEMA_VERSION,
        "server_time": datetime.now(timezone.utc).isoformat(),
        "runtime": get_runtime_info(),
        "configured": not errors,
        "errors": errors,
    }


@app.post("/api/search/albums")
async def api_search_albums(payload: AlbumSearchPayload):
    artist = (payload.artist or "").strip()
    album = (payload.album or "").strip()
    if not artist and not album:
        raise HTTPException(status_code=400, detail="artist or album is required")
    if payload.track_count < 0:
        raise HTTPException(status_code=400, detail="track_count must be zero or positive")

    service = getattr(app.state, "search_service", None)
    errors = _service_errors(service)
    if service is None or validate_settings(service.settings):
        raise HTTPException(status_code=503, detail={"errors": errors})

    request = AlbumSearchRequest(
        artist=artist or None,
        album=album or None,
        year=payload.year,
        track_count=payload.track_count,
        primary_type=payload.primary_type,
        aliases=list(payload.aliases),
        tracks=list(payload.tracks),
        interactive=payload.interactive,
    )
    stop_event = getattr(app.state, "stop_event", None)
    result = await anyio.to_thread.run_sync(service.search_album, request, stop_event)
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn

    host = _env_or_default("SLSKD_SEARCH_HOST", "127.0.0.1")
    port = int(_env_or_default("SLSKD_SEARCH_PORT", "8000"))
    uvicorn.run("api.main:app", host=host, port=port, reload=False)
