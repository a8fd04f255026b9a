from __future__ import annotations

import json
from pathlib import Path
from unittest import mock

import pytest

import archive_cli
from catalog.context import open_context, resolve_startup_options
from core.paths import HOME_ENV
from core.settings import load_settings


@pytest.fixture()
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(HOME_ENV, str(tmp_path))
    (tmp_path / "settings.json").write_text(json.dumps({"logging": {"console": False}}), encoding="utf-8")
    return tmp_path.resolve()


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, object]:
    with mock.patch.object(archive_cli, "configure_logging"):
        code = archive_cli.main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out)


def _seed(home: Path) -> None:
    options = resolve_startup_options(load_settings(home), home)
    with open_context(options) as ctx:
        for name in ("a.mp4", "b.mp4"):
            ctx.catalog.add_entry(f"uri://lib/{name}", "uri://site", "lib", "/", name, 100)
        ctx.catalog.transition_status(1, "Downloading")
        ctx.catalog.transition_status(2, "Failed")


def test_init_creates_catalog(home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, payload = _run(capsys, "init")

    assert code == 0
    assert payload["schema_version"] >= 1
    assert (home / "data" / "catalog.db").exists()


def test_stats_failed_and_resume(home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(home)

    code, stats = _run(capsys, "stats")
    assert code == 0
    assert stats["total_cataloged"] == 2
    assert stats["space_saved"] is None

    _, report = _run(capsys, "failed")
    assert [row["filename"] for row in report["failed"]] == ["b.mp4"]

    _, resumed = _run(capsys, "resume")
    assert resumed == {"reset": 1}


def test_scope_commands(home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, scope = _run(capsys, "scope-add", "site", "https://contoso.example/sites/media", "--library", "Videos")
    assert code == 0
    assert scope["mode"] == "Site"

    _, disabled = _run(capsys, "scope-disable", str(scope["id"]))
    assert disabled["enabled"] is False

    _, listing = _run(capsys, "scope-list", "--enabled-only")
    assert listing["results"] == []

    _, refreshed = _run(capsys, "scope-refresh")
    assert refreshed["results"][0]["video_count"] == 0

    _, removed = _run(capsys, "scope-remove", str(scope["id"]), "--cascade")
    assert removed["entries_removed"] == 0


def test_unknown_scope_exits_with_error(home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, payload = _run(capsys, "scope-enable", "404")
    assert code == 2
    assert "404" in payload["error"]


def test_export_and_config_show(home: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(home)

    code, exported = _run(capsys, "export", "--format", "csv")
    assert code == 0
    assert all(Path(path).exists() for path in exported["paths"])
    assert Path(exported["paths"][0]).suffix == ".csv"

    _, config = _run(capsys, "config-show")
    assert config["max_retries"] == 3

    _, pruned = _run(capsys, "prune", "--log-days", "0")
    assert set(pruned) == {"logs", "audit"}
