import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

import worker
from dependencies import get_delivery_queue, get_storage_queue
from errors import ValidationError
from models import AssetOverrides, Recording, StorageProvider
from profiles import get_profile
from queues import DeliveryQueue, StorageQueue

logger = logging.getLogger(__name__)
router = APIRouter()


class RecordingIn(BaseModel):
    id: str
    name: str = ""
    local_uri: str
    station_id: str
    created_at: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    category_code: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    lufs: Optional[float] = None
    trim_start_ms: Optional[int] = None

    def to_recording(self) -> Recording:
        return Recording(**self.model_dump())


class DeliverRequest(BaseModel):
    recording: RecordingIn
    overrides: Optional[AssetOverrides] = None
    ext: Optional[str] = None
    extra_meta: Optional[dict[str, Union[str, int, float]]] = None


class ExportRequest(BaseModel):
    recording: RecordingIn
    provider: StorageProvider


@router.post("/deliver")
def deliver(req: DeliverRequest, queue: DeliveryQueue = Depends(get_delivery_queue)):
    """Queue a recording for playout delivery and nudge the worker."""
    recording = req.recording.to_recording()
    profile = get_profile(recording.station_id)
    try:
        job = queue.enqueue_recording(recording, profile, req.overrides, req.ext, req.extra_meta)
    except ValidationError as e:
        raise HTTPException(400, str(e))

    logger.info(f"Delivery queued: recording={recording.id} path={job.remote_path}")
    worker.wake()
    return {
        "job_id": job.id,
        "status": job.status.value,
        "remote_path": job.remote_path,
        "sidecar_name": job.sidecar_name,
    }


@router.post("/export")
def export(req: ExportRequest, queue: StorageQueue = Depends(get_storage_queue)):
    """Queue a recording for the cloud mirror."""
    recording = req.recording.to_recording()
    try:
        job = queue.enqueue_export(recording, req.provider)
    except ValidationError as e:
        raise HTTPException(400, str(e))

    logger.info(f"Export queued: recording={recording.id} provider={req.provider.value} path={job.remote_path}")
    worker.wake()
    return {"job_id": job.id, "status": job.status.value, "remote_path": job.remote_path}
