"""
API routes for decoded activities.
"""

from pathlib import Path
from typing import Optional

import numpy as np
from fastapi import APIRouter, HTTPException, Query

from ridelog.api.schemas import (
    ActivityMetadataResponse,
    ActivityReloadRequest,
    ActivitySamplesResponse,
    ActivitySummaryResponse,
    ErrorResponse,
    FolderInfoResponse,
    LapSummaryResponse,
    SetFolderRequest,
)
from ridelog.models.activity import CHANNELS, Activity
from ridelog.services.repository import get_repository


router = APIRouter(prefix="/activities", tags=["activities"])

NOT_FOUND = {404: {"model": ErrorResponse}}


def _clean_array(arr: np.ndarray) -> list[float]:
    """Convert numpy array to a JSON friendly list."""
    return [float(x) for x in arr]


def _get_or_404(activity_id: str) -> Activity:
    activity = get_repository().get_activity(activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail=f"Activity not found: {activity_id}")
    return activity


def _build_metadata_response(activity: Activity) -> ActivityMetadataResponse:
    """Build metadata response from an Activity."""
    source = activity.source_file
    return ActivityMetadataResponse(
        id=activity.id,
        name=source.stem if source is not None else activity.id,
        source_file=str(source) if source is not None else "",
        sport=activity.sport.value,
        start_time=activity.start_time.isoformat() if activity.start_time else None,
        rec_int_secs=activity.rec_int_secs,
        device_type=activity.device_type,
        file_format=activity.file_format,
        tags=activity.tags,
        duration_s=activity.duration_s,
        distance_km=activity.distance_km,
        sample_count=activity.sample_count,
        has_gps=activity.has_gps,
        valid=activity.is_valid,
        errors=list(activity.errors),
        time_range=activity.get_time_range(),
        laps=[
            LapSummaryResponse(
                lap=lap.lap,
                start_s=lap.start_s,
                end_s=lap.end_s,
                duration_s=lap.duration_s,
                sample_count=lap.sample_count,
                distance_km=lap.distance_km,
            )
            for lap in activity.lap_summaries()
        ],
    )


@router.get("", response_model=list[ActivitySummaryResponse])
async def list_activities():
    """
    List all decoded activities.

    Returns summaries sorted by start time (newest first).
    """
    repo = get_repository()
    return [
        ActivitySummaryResponse(
            id=s.id,
            name=s.name,
            source_file=s.source_file,
            sport=s.sport,
            start_time=s.start_time,
            duration_s=s.duration_s,
            distance_km=s.distance_km,
            sample_count=s.sample_count,
            lap_count=s.lap_count,
            has_gps=s.has_gps,
            valid=s.valid,
        )
        for s in repo.list_activities()
    ]


@router.get("/{activity_id}", response_model=ActivityMetadataResponse, responses=NOT_FOUND)
async def get_activity_metadata(activity_id: str):
    """
    Get metadata and lap summaries for an activity.
    """
    return _build_metadata_response(_get_or_404(activity_id))


@router.get("/{activity_id}/samples", response_model=ActivitySamplesResponse, responses=NOT_FOUND)
async def get_activity_samples(
    activity_id: str,
    start_s: Optional[float] = Query(None, description="First second to include"),
    end_s: Optional[float] = Query(None, description="Last second to include"),
):
    """
    Get the resampled series of an activity as channel arrays.

    Optionally restricted to [start_s, end_s] seconds from activity start.
    """
    activity = _get_or_404(activity_id)

    if start_s is not None and end_s is not None and start_s > end_s:
        raise HTTPException(status_code=400, detail="Invalid time range")

    arrays = activity.to_arrays()
    mask = np.ones(activity.sample_count, dtype=np.bool_)
    if start_s is not None:
        mask &= arrays["secs"] >= start_s
    if end_s is not None:
        mask &= arrays["secs"] <= end_s

    channels = {
        name: _clean_array(arrays[name][mask])
        for name in CHANNELS
        if name != "lap"
    }
    return ActivitySamplesResponse(
        metadata=_build_metadata_response(activity),
        lap=[int(x) for x in arrays["lap"][mask]],
        **channels,
    )


@router.post("/{activity_id}/reload", response_model=ActivityMetadataResponse, responses=NOT_FOUND)
async def reload_activity(activity_id: str, request: ActivityReloadRequest):
    """
    Re-decode an activity with overridden smart recording settings.

    Useful to compare the raw series (smart recording off) with the
    gap-filled one, or to try a different high-water mark.
    """
    repo = get_repository()

    if not repo.has_activity(activity_id):
        raise HTTPException(status_code=404, detail=f"Activity not found: {activity_id}")

    activity = repo.reload_activity(
        activity_id,
        smart_recording=request.smart_recording,
        high_water_mark=request.high_water_mark,
    )

    if activity is None:
        raise HTTPException(status_code=500, detail="Failed to reload activity")

    return _build_metadata_response(activity)


# ============================================================================
# Folder Management Routes
# ============================================================================

folder_router = APIRouter(prefix="/folder", tags=["folder"])


@folder_router.get("", response_model=FolderInfoResponse)
async def get_folder_info():
    """Get information about the current data folder."""
    repo = get_repository()

    return FolderInfoResponse(
        path=str(repo.data_folder) if repo.data_folder else None,
        file_count=repo.file_count,
    )


@folder_router.post("", response_model=FolderInfoResponse)
async def set_folder(request: SetFolderRequest):
    """
    Set the data folder to scan for TCX files.

    This will clear the current cache and re-scan.
    """
    repo = get_repository()

    path = Path(request.path)
    if not path.exists():
        raise HTTPException(status_code=400, detail=f"Folder does not exist: {request.path}")
    if not path.is_dir():
        raise HTTPException(status_code=400, detail=f"Path is not a directory: {request.path}")

    count = repo.set_data_folder(path)

    return FolderInfoResponse(
        path=str(path),
        file_count=count,
    )


@folder_router.post("/rescan", response_model=FolderInfoResponse)
async def rescan_folder():
    """
    Rescan the current data folder for new TCX files.
    """
    repo = get_repository()

    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    repo.clear_cache()
    count = repo.scan_folder(repo.data_folder)

    return FolderInfoResponse(
        path=str(repo.data_folder),
        file_count=count,
    )
