"""Tests for the read-only catalog HTTP API."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.server import APIServerConfig, create_app
from catalog.context import ArchiveContext, open_context, resolve_startup_options
from catalog.types import EntryStatus, EntryUpdate, ScopeMode
from core.settings import merge_defaults

API_KEY = "test-key-123"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture()
def context(tmp_path: Path):
    options = resolve_startup_options(merge_defaults({"logging": {"console": False}}), tmp_path)
    ctx = open_context(options)
    scope = ctx.scopes.add_scope(ScopeMode.SITE, "https://contoso.example/sites/media", "Videos")
    for index, name in enumerate(["one.mp4", "two.mp4", "three.mp4"], start=1):
        ctx.catalog.add_entry(
            f"https://contoso.example/sites/media/Videos/{name}",
            "https://contoso.example/sites/media",
            "Videos",
            "/",
            name,
            index * 1_000_000,
            scope_id=scope.id,
        )
    ctx.catalog.transition_status(1, EntryStatus.COMPLETED, EntryUpdate(compressed_size_bytes=250_000))
    ctx.catalog.transition_status(2, EntryStatus.FAILED, EntryUpdate(retry_count=2, last_error="timeout"))
    yield ctx
    ctx.close()


def _client(ctx: ArchiveContext, **overrides) -> TestClient:
    config = APIServerConfig(context=ctx, api_key=API_KEY, app_version="test", **overrides)
    return TestClient(create_app(config))


def test_requests_without_key_are_rejected(context: ArchiveContext) -> None:
    client = _client(context)
    response = client.get("/v1/stats")
    assert response.status_code == 401
    assert "error" in response.json()

    unconfigured = TestClient(create_app(APIServerConfig(context=context, api_key=None)))
    assert unconfigured.get("/v1/health", headers=HEADERS).status_code == 401


def test_health_and_stats(context: ArchiveContext) -> None:
    client = _client(context)

    health = client.get("/v1/health", headers=HEADERS).json()
    assert health["ok"] is True
    assert health["version"] == "test"
    assert health["schema_version"] >= 1

    stats = client.get("/v1/stats", headers=HEADERS).json()
    assert stats["total_cataloged"] == 3
    assert stats["total_original_size"] == 6_000_000
    assert stats["space_saved"] == 750_000
    assert stats["average_compression_ratio"] == 0.25
    assert stats["by_status"] == {"Cataloged": 1, "Completed": 1, "Failed": 1}


def test_entries_listing_and_detail(context: ArchiveContext) -> None:
    client = _client(context, max_page_size=2)

    listing = client.get("/v1/entries", headers=HEADERS, params={"limit": 50}).json()
    assert listing["limit"] == 2
    assert [row["filename"] for row in listing["results"]] == ["one.mp4", "two.mp4"]

    failed = client.get("/v1/entries", headers=HEADERS, params={"status": "Failed", "max_retry": 1}).json()
    assert failed["results"] == []

    unfiltered = client.get("/v1/entries", headers=HEADERS, params={"status": ""})
    assert unfiltered.status_code == 200
    assert len(unfiltered.json()["results"]) == 2

    detail = client.get("/v1/entries/2", headers=HEADERS).json()
    assert detail["status"] == "Failed"
    assert detail["last_error"] == "timeout"

    missing = client.get("/v1/entries/99", headers=HEADERS)
    assert missing.status_code == 404
    assert missing.json() == {"error": "catalog entry not found"}

    invalid = client.get("/v1/entries", headers=HEADERS, params={"limit": 0})
    assert invalid.status_code == 400


def test_entry_audit_history(context: ArchiveContext) -> None:
    client = _client(context)

    audit = client.get("/v1/entries/1/audit", headers=HEADERS).json()
    assert audit["entry_id"] == 1
    assert [row["status"] for row in audit["results"]] == ["Cataloged", "Completed"]
    assert client.get("/v1/entries/42/audit", headers=HEADERS).status_code == 404


def test_failure_report_scopes_and_logs(context: ArchiveContext) -> None:
    client = _client(context)

    report = client.get("/v1/failed", headers=HEADERS).json()
    assert report["failed_count"] == 1
    assert report["failed"][0]["filename"] == "two.mp4"

    scopes = client.get("/v1/scopes", headers=HEADERS).json()["results"]
    assert len(scopes) == 1
    assert scopes[0]["mode"] == "Site"

    logs = client.get("/v1/logs", headers=HEADERS, params={"level": "WARNING"}).json()
    assert logs["results"]
    assert all(row["level"] == "WARNING" for row in logs["results"])
    assert client.get("/v1/logs", headers=HEADERS, params={"level": "loud"}).status_code == 400
