"""CLI entry-point to launch the VideoArchive read-only HTTP API."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

import uvicorn

from api import __version__ as API_VERSION
from api.server import APIServerConfig, create_app
from catalog.context import ArchiveContext, open_context, resolve_startup_options
from catalog.errors import CatalogError
from core.logging_utils import configure_logging, redact_secret
from core.paths import resolve_working_dir
from core.settings import load_settings

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_CORS = ["http://localhost", "http://127.0.0.1"]

LOGGER = logging.getLogger("videoarchive.api.cli")


def _resolve_bind_host(candidate: Optional[str]) -> str:
    host = (candidate or DEFAULT_HOST).strip()
    if not host:
        host = DEFAULT_HOST
    norm = host.lower()
    if norm == "localhost":
        return "127.0.0.1"
    if norm.startswith("::ffff:"):
        norm = norm.split("::ffff:")[-1]
    if norm == "::1":
        return "127.0.0.1"
    if norm.startswith("127."):
        return host if host.startswith("127.") else "127.0.0.1"
    raise ValueError(
        f"Refusing to bind API server to non-loopback host '{candidate}'. VideoArchive only serves on localhost."
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the local VideoArchive catalog API service.")
    parser.add_argument("--host", default=None, help="Bind host (default from settings.json)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings.json)")
    parser.add_argument("--api-key", dest="api_key", default=None, help="Override the API key for this session")
    parser.add_argument(
        "--cors",
        action="append",
        dest="cors",
        default=None,
        help="Additional allowed CORS origin (repeatable).",
    )
    parser.add_argument("--db", default=None, help="Catalog database path (default from settings.json)")
    return parser.parse_args(argv)


def resolve_api_settings(
    args: argparse.Namespace,
    settings: Dict[str, Any],
) -> tuple[str, int, Optional[str], List[str]]:
    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}

    host = _resolve_bind_host(args.host or api_settings.get("host") or DEFAULT_HOST)
    port = args.port or api_settings.get("port") or DEFAULT_PORT
    try:
        port = int(port)
    except (TypeError, ValueError):
        port = DEFAULT_PORT

    api_key = args.api_key if args.api_key else api_settings.get("api_key")

    if args.cors:
        cors = list(args.cors)
    else:
        cors = list(api_settings.get("cors_origins") or DEFAULT_CORS)
    return str(host), int(port), api_key, cors


def build_server_config(
    context: ArchiveContext,
    settings: Dict[str, Any],
    api_key: Optional[str],
    cors: Sequence[str],
) -> APIServerConfig:
    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}
    return APIServerConfig(
        context=context,
        api_key=api_key,
        cors_origins=list(cors),
        app_version=API_VERSION,
        default_limit=int(api_settings.get("default_limit") or 100),
        max_page_size=int(api_settings.get("max_page_size") or 500),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    working_dir = resolve_working_dir()
    settings = load_settings(working_dir)
    if args.db:
        settings["catalog_db"] = args.db
    logging_cfg = settings.get("logging") or {}
    configure_logging(
        working_dir,
        level=str(logging_cfg.get("level", "INFO")),
        console=True,
        json_file=bool(logging_cfg.get("json_file", True)),
    )
    try:
        host, port, api_key, cors = resolve_api_settings(args, settings)
    except ValueError as exc:
        LOGGER.error("%s", exc)
        return 2

    try:
        context = open_context(resolve_startup_options(settings, working_dir))
    except CatalogError as exc:
        LOGGER.error("Cannot open catalog: %s", exc)
        return 2

    if not api_key:
        LOGGER.warning("API key is not configured; all requests will be rejected with 401.")
    else:
        LOGGER.info("API key configured (%s)", redact_secret(api_key))

    app = create_app(build_server_config(context, settings, api_key, cors))

    print(f"API listening on http://{host}:{port}", flush=True)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(uvicorn_config)
    try:
        server.run()
    finally:
        context.close()
    return 0 if server.started else 1


if __name__ == "__main__":
    sys.exit(main())
