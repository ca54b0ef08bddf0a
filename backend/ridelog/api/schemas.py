"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, Field


# ============================================================================
# Activity Schemas
# ============================================================================

class ActivitySummaryResponse(BaseModel):
    """Summary of an activity for listing."""
    id: str
    name: str
    source_file: str
    sport: str
    start_time: Optional[str] = None
    duration_s: float
    distance_km: float
    sample_count: int
    lap_count: int
    has_gps: bool
    valid: bool


class LapSummaryResponse(BaseModel):
    """Per-lap aggregate."""
    lap: int
    start_s: float
    end_s: float
    duration_s: float
    sample_count: int
    distance_km: float


class ActivityMetadataResponse(BaseModel):
    """Full metadata for an activity."""
    id: str
    name: str
    source_file: str
    sport: str
    start_time: Optional[str] = None
    rec_int_secs: float
    device_type: str
    file_format: str
    tags: dict[str, str]
    duration_s: float
    distance_km: float
    sample_count: int
    has_gps: bool
    valid: bool
    errors: list[str]
    time_range: tuple[float, float]  # (start_s, end_s)
    laps: list[LapSummaryResponse]


class ActivitySamplesResponse(BaseModel):
    """Full sample series as parallel channel arrays."""
    metadata: ActivityMetadataResponse

    secs: list[float]
    cad: list[float]
    hr: list[float]
    km: list[float]
    kph: list[float]
    nm: list[float]
    watts: list[float]
    alt: list[float]
    lon: list[float]
    lat: list[float]
    headwind: list[float]
    rcad: list[float]
    lap: list[int]


class ActivityReloadRequest(BaseModel):
    """Request to re-decode an activity with different smart recording settings."""
    smart_recording: Optional[bool] = None
    high_water_mark: Optional[int] = Field(default=None, ge=1, le=3600)


# ============================================================================
# Folder Management Schemas
# ============================================================================

class SetFolderRequest(BaseModel):
    """Request to set the data folder."""
    path: str


class FolderInfoResponse(BaseModel):
    """Information about the current data folder."""
    path: Optional[str]
    file_count: int


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
