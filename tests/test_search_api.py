from __future__ import annotations

import importlib
import sys

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from conftest import FakeBackend, make_response

from config.settings import SearchSettings
from engine.search_service import AlbumSearchService


def _build_client(service=None):
    sys.modules.pop("api.main", None)
    module = importlib.import_module("api.main")
    module.app.router.on_startup.clear()
    module.app.router.on_shutdown.clear()
    if service is not None:
        module.app.state.search_service = service
    return TestClient(module.app)


def _service(backend, **changes):
    return AlbumSearchService(backend, SearchSettings(api_key="secret", **changes))


def test_status_without_service() -> None:
    client = _build_client()
    resp = client.get("/api/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["configured"] is False
    assert body["errors"] == ["search service is not configured"]
    assert "python_version" in body["runtime"]


def test_status_with_service() -> None:
    client = _build_client(_service(FakeBackend()))
    body = client.get("/api/status").json()
    assert body["configured"] is True
    assert body["errors"] == []


def test_search_requires_artist_or_album() -> None:
    client = _build_client(_service(FakeBackend()))
    resp = client.post("/api/search/albums", json={"artist": "  ", "album": ""})
    assert resp.status_code == 400


def test_search_rejects_bad_track_count() -> None:
    client = _build_client(_service(FakeBackend()))
    assert client.post("/api/search/albums", json={"album": "The Wall", "track_count": -1}).status_code == 400
    assert client.post("/api/search/albums", json={"album": "The Wall", "track_count": "many"}).status_code == 400


def test_search_unavailable_without_valid_settings() -> None:
    assert _build_client().post("/api/search/albums", json={"album": "The Wall"}).status_code == 503
    broken = AlbumSearchService(FakeBackend(), SearchSettings())
    resp = _build_client(broken).post("/api/search/albums", json={"album": "The Wall"})
    assert resp.status_code == 503
    assert resp.json()["detail"]["errors"] == ["api_key is required"]


def test_search_returns_ranked_candidates() -> None:
    backend = FakeBackend(
        {"Pink Floyd The Wall": [make_response("alice", "Music\\Pink Floyd\\The Wall (1979)", 12)]}
    )
    client = _build_client(_service(backend))
    resp = client.post(
        "/api/search/albums",
        json={"artist": "Pink Floyd", "album": "The Wall", "year": "1979", "track_count": 12},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["executed_queries"] == ["Pink Floyd The Wall"]
    assert body["cancelled"] is False
    candidate = body["candidates"][0]
    assert candidate["username"] == "alice"
    assert candidate["year"] == "1979"
    assert candidate["codec"] == "FLAC"
    assert candidate["score"] == 6167
