"""Pydantic schemas for the VideoArchive local API."""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health response summarising server and store readiness."""

    ok: bool = Field(True, description="Indicates the API server is reachable.")
    version: str = Field(..., description="Application version string.")
    time_utc: str = Field(..., description="Current UTC timestamp in ISO8601 format.")
    schema_version: int = Field(..., ge=0, description="Catalog schema version stored in the database.")


class StatsResponse(BaseModel):
    """Aggregate catalog numbers. Savings stay null until an entry completes."""

    total_cataloged: int = Field(..., ge=0)
    by_status: Dict[str, int] = Field(default_factory=dict, description="Entry counts keyed by status.")
    total_original_size: int = Field(..., ge=0, description="Sum of original sizes over all entries.")
    total_compressed_size: int = Field(..., ge=0, description="Sum of compressed sizes over completed entries.")
    space_saved: Optional[int] = Field(None, description="Original minus compressed bytes over completed entries.")
    average_compression_ratio: Optional[float] = Field(
        None, description="Compressed over original size for completed entries, two decimals."
    )


class EntryModel(BaseModel):
    """A catalog entry as stored."""

    id: int
    source_uri: str
    container_url: str
    container_name: str
    path: str
    filename: str
    original_size_bytes: int
    modified_utc: Optional[str] = None
    cataloged_utc: str
    status: str
    processing_started_utc: Optional[str] = None
    processing_completed_utc: Optional[str] = None
    compressed_size_bytes: Optional[int] = None
    compression_ratio: Optional[float] = None
    archive_path: Optional[str] = None
    archive_hash: Optional[str] = None
    original_hash: Optional[str] = None
    hash_verified: bool = False
    original_duration_s: Optional[float] = None
    compressed_duration_s: Optional[float] = None
    integrity_verified: bool = False
    retry_count: int = 0
    last_error: Optional[str] = None
    scope_id: Optional[int] = None


class EntriesResponse(BaseModel):
    limit: int = Field(..., description="Maximum number of rows returned.")
    results: List[EntryModel] = Field(default_factory=list)


class AuditRow(BaseModel):
    id: int
    entry_id: int
    ts_utc: str
    status: str
    message: Optional[str] = None


class AuditResponse(BaseModel):
    entry_id: int
    results: List[AuditRow] = Field(default_factory=list)


class FailedEntry(BaseModel):
    id: int
    filename: str
    path: str
    container_name: str
    source_uri: str
    original_size_bytes: int
    retry_count: int
    last_error: Optional[str] = None
    failed_utc: Optional[str] = None


class FailureReportResponse(BaseModel):
    """Payload handed to the notification collaborator."""

    generated_utc: str
    statistics: StatsResponse
    failed_count: int = Field(..., ge=0)
    failed: List[FailedEntry] = Field(default_factory=list)


class ScopeModel(BaseModel):
    id: int
    mode: str
    container_url: str
    library_name: str
    folder_path: str
    recursive: bool
    display_name: str
    enabled: bool
    created_utc: str
    last_scanned_utc: Optional[str] = None
    video_count: int = Field(0, description="Cached entry count; refreshed on demand.")
    total_size_bytes: int = Field(0, description="Cached total original size; refreshed on demand.")


class ScopesResponse(BaseModel):
    results: List[ScopeModel] = Field(default_factory=list)


class LogRow(BaseModel):
    id: int
    ts_utc: str
    level: str
    component: Optional[str] = None
    message: str


class LogsResponse(BaseModel):
    limit: int
    results: List[LogRow] = Field(default_factory=list)
