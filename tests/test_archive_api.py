from __future__ import annotations

import pytest

import archive_api
from core.settings import merge_defaults


def test_bind_host_is_loopback_only() -> None:
    assert archive_api._resolve_bind_host("localhost") == "127.0.0.1"
    assert archive_api._resolve_bind_host("::1") == "127.0.0.1"
    assert archive_api._resolve_bind_host("127.0.0.2") == "127.0.0.2"
    assert archive_api._resolve_bind_host(None) == "127.0.0.1"
    with pytest.raises(ValueError):
        archive_api._resolve_bind_host("0.0.0.0")


def test_resolve_api_settings_prefers_arguments() -> None:
    settings = merge_defaults({"api": {"api_key": "from-settings", "port": 9000}})

    args = archive_api.parse_args(["--port", "9100", "--cors", "http://example.test"])
    host, port, api_key, cors = archive_api.resolve_api_settings(args, settings)
    assert (host, port, api_key, cors) == ("127.0.0.1", 9100, "from-settings", ["http://example.test"])

    args = archive_api.parse_args(["--api-key", "override"])
    _, port, api_key, cors = archive_api.resolve_api_settings(args, settings)
    assert port == 9000
    assert api_key == "override"
    assert cors == ["http://localhost", "http://127.0.0.1"]
