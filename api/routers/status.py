import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies import get_delivery_queue, get_storage_queue
from errors import InvalidTransition, JobNotFound
from queues import DeliveryQueue, StorageQueue

logger = logging.getLogger(__name__)
router = APIRouter()


def _job_to_dict(job) -> dict:
    return {
        "id": job.id,
        "station_id": job.station_id,
        "remote_path": job.remote_path,
        "status": job.status.value,
        "progress": job.progress,
        "error": job.error,
        "retries": job.retries,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
    }


def _pick_queue(name: str, delivery: DeliveryQueue, storage: StorageQueue):
    if name == "delivery":
        return delivery
    if name == "storage":
        return storage
    raise HTTPException(404, "Unknown queue")


def _owning_queue(job_id: str, delivery: DeliveryQueue, storage: StorageQueue):
    for queue in (delivery, storage):
        try:
            queue.get(job_id)
            return queue
        except JobNotFound:
            continue
    raise HTTPException(404, "Job not found")


@router.get("/queues/{name}")
def list_queue(
    name: str,
    delivery: DeliveryQueue = Depends(get_delivery_queue),
    storage: StorageQueue = Depends(get_storage_queue),
):
    """Pollable job list for the queue screens."""
    queue = _pick_queue(name, delivery, storage)
    return {"jobs": [_job_to_dict(j) for j in queue.list_jobs()]}


@router.post("/queues/{name}/clear-completed")
def clear_completed(
    name: str,
    delivery: DeliveryQueue = Depends(get_delivery_queue),
    storage: StorageQueue = Depends(get_storage_queue),
):
    removed = _pick_queue(name, delivery, storage).clear_completed()
    return {"removed": removed}


@router.get("/jobs/{job_id}")
def get_job(
    job_id: str,
    delivery: DeliveryQueue = Depends(get_delivery_queue),
    storage: StorageQueue = Depends(get_storage_queue),
):
    """Single job (for polling one transfer)."""
    queue = _owning_queue(job_id, delivery, storage)
    return _job_to_dict(queue.get(job_id))


@router.post("/jobs/{job_id}/retry")
def retry_job(
    job_id: str,
    delivery: DeliveryQueue = Depends(get_delivery_queue),
    storage: StorageQueue = Depends(get_storage_queue),
):
    queue = _owning_queue(job_id, delivery, storage)
    try:
        queue.retry(job_id)
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _job_to_dict(queue.get(job_id))


@router.post("/jobs/{job_id}/pause")
def pause_job(job_id: str, storage: StorageQueue = Depends(get_storage_queue)):
    try:
        job = storage.pause(job_id)
    except JobNotFound:
        raise HTTPException(404, "Job not found")
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _job_to_dict(job)


@router.post("/jobs/{job_id}/resume")
def resume_job(job_id: str, storage: StorageQueue = Depends(get_storage_queue)):
    try:
        job = storage.resume(job_id)
    except JobNotFound:
        raise HTTPException(404, "Job not found")
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return _job_to_dict(job)


@router.delete("/jobs/{job_id}")
def delete_job(
    job_id: str,
    delivery: DeliveryQueue = Depends(get_delivery_queue),
    storage: StorageQueue = Depends(get_storage_queue),
):
    _owning_queue(job_id, delivery, storage).remove(job_id)
    return {"ok": True}
