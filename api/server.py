"""FastAPI application exposing a read-only REST interface over the catalog."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog.context import ArchiveContext
from catalog.errors import NotFoundError, StoreError
from catalog.exporter import build_failure_report
from catalog.logs import LogLevel
from catalog.schema import schema_version
from catalog.types import format_ts, utc_now

from .auth import APIKeyAuth
from .models import (
    AuditResponse,
    AuditRow,
    EntriesResponse,
    EntryModel,
    FailureReportResponse,
    HealthResponse,
    LogRow,
    LogsResponse,
    ScopeModel,
    ScopesResponse,
    StatsResponse,
)

LOGGER = logging.getLogger("videoarchive.api")


@dataclass(slots=True)
class APIServerConfig:
    """Runtime configuration for the FastAPI application."""

    context: ArchiveContext
    api_key: Optional[str]
    cors_origins: Sequence[str] = ()
    app_version: str = "dev"
    default_limit: int = 100
    max_page_size: int = 500
    lan_only: bool = True


_LOCAL_CLIENT_SENTINELS = {
    "127.0.0.1",
    "::1",
    "localhost",
    "testclient",
}


def _normalise_remote_host(host: Optional[str]) -> Optional[str]:
    if host is None:
        return None
    value = host.strip().lower()
    if not value:
        return None
    if value.startswith("::ffff:"):
        value = value.rsplit(":", 1)[-1]
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if "%" in value:  # strip IPv6 scope id
        value = value.split("%", 1)[0]
    return value


def _is_loopback_host(host: Optional[str]) -> bool:
    value = _normalise_remote_host(host)
    if value is None:
        return True
    if value in _LOCAL_CLIENT_SENTINELS:
        return True
    return value.startswith("127.")


def create_app(config: APIServerConfig) -> FastAPI:
    """Create a FastAPI application bound to the given catalog context."""

    app = FastAPI(
        title="VideoArchive Local API",
        version=config.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    allowed_origins: List[str] = [origin for origin in config.cors_origins if origin]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    auth_dependency = APIKeyAuth(config.api_key)
    ctx = config.context
    lan_only = bool(config.lan_only)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response: Optional[Response] = None
        client_host = request.client.host if request.client else None
        try:
            if lan_only and not _is_loopback_host(client_host):
                LOGGER.warning("Rejected non-local HTTP request from %s", client_host or "<unknown>")
                response = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "LAN access disabled"})
            else:
                response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response is not None else 500
            LOGGER.info(
                "%s %s -> %s (%.1f ms) ip=%s",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                client_host or "-",
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid parameters", "details": exc.errors()},
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(_request: Request, exc: StoreError):
        LOGGER.error("Catalog store error: %s", exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": "catalog unavailable"})

    def clamp_limit(value: Optional[int]) -> int:
        parsed = int(value) if value is not None else int(config.default_limit)
        return min(max(1, parsed), int(config.max_page_size))

    @app.get("/v1/health", response_model=HealthResponse)
    def health_check(_: str = Depends(auth_dependency)) -> HealthResponse:
        return HealthResponse(
            ok=True,
            version=config.app_version,
            time_utc=format_ts(utc_now()),
            schema_version=schema_version(ctx.handle),
        )

    @app.get("/v1/stats", response_model=StatsResponse)
    def stats(_: str = Depends(auth_dependency)) -> StatsResponse:
        return StatsResponse(**ctx.catalog.compute_statistics().as_dict())

    @app.get("/v1/entries", response_model=EntriesResponse)
    def entries(
        status_filter: Optional[str] = Query(None, alias="status", description="Exact status to match."),
        max_retry: Optional[int] = Query(None, ge=0, description="Only entries with retry_count <= max_retry."),
        scope_id: Optional[int] = Query(None, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        newest_first: bool = Query(False, description="Reverse the default oldest-first order."),
        _: str = Depends(auth_dependency),
    ) -> EntriesResponse:
        page = clamp_limit(limit)
        rows = ctx.catalog.query_entries(
            (status_filter or "").strip() or None,
            max_retry_count=max_retry,
            limit=page,
            scope_id=scope_id,
            newest_first=newest_first,
        )
        return EntriesResponse(limit=page, results=[EntryModel(**row.as_dict()) for row in rows])

    @app.get("/v1/entries/{entry_id}", response_model=EntryModel)
    def entry_detail(entry_id: int, _: str = Depends(auth_dependency)) -> EntryModel:
        try:
            entry = ctx.catalog.get_entry(entry_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="catalog entry not found")
        return EntryModel(**entry.as_dict())

    @app.get("/v1/entries/{entry_id}/audit", response_model=AuditResponse)
    def entry_audit(entry_id: int, _: str = Depends(auth_dependency)) -> AuditResponse:
        try:
            ctx.catalog.get_entry(entry_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="catalog entry not found")
        rows = ctx.audit.history(entry_id)
        return AuditResponse(
            entry_id=entry_id,
            results=[
                AuditRow(id=row.id, entry_id=row.entry_id, ts_utc=row.ts_utc, status=row.status, message=row.message)
                for row in rows
            ],
        )

    @app.get("/v1/failed", response_model=FailureReportResponse)
    def failed(
        max_retry: Optional[int] = Query(None, ge=0),
        _: str = Depends(auth_dependency),
    ) -> FailureReportResponse:
        return FailureReportResponse(**build_failure_report(ctx.catalog, max_retry_count=max_retry))

    @app.get("/v1/scopes", response_model=ScopesResponse)
    def scopes(
        enabled_only: bool = Query(False),
        _: str = Depends(auth_dependency),
    ) -> ScopesResponse:
        rows = ctx.scopes.list_scopes(enabled_only=enabled_only)
        return ScopesResponse(results=[ScopeModel(**row.as_dict()) for row in rows])

    @app.get("/v1/logs", response_model=LogsResponse)
    def logs(
        limit: Optional[int] = Query(None, ge=1),
        level: Optional[str] = Query(None, description="Exact level: DEBUG, INFO, WARNING or ERROR."),
        component: Optional[str] = Query(None),
        _: str = Depends(auth_dependency),
    ) -> LogsResponse:
        if level is not None:
            try:
                LogLevel.parse(level)
            except ValueError:
                raise HTTPException(status_code=400, detail="unknown log level")
        page = clamp_limit(limit)
        rows = ctx.logger.query_history(limit=page, level=level, component=component)
        return LogsResponse(
            limit=page,
            results=[
                LogRow(id=row.id, ts_utc=row.ts_utc, level=row.level, component=row.component, message=row.message)
                for row in rows
            ],
        )

    return app


__all__ = ["APIServerConfig", "create_app"]
