import logging

from fastapi import APIRouter, Depends

from dependencies import require_admin
from models import StationProfile
from profiles import copy_playout_from, get_profile, reset_profile, set_profile

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/admin/profile/{station_id}")
def get_station_profile(station_id: str, auth=Depends(require_admin)):
    return get_profile(station_id).model_dump(mode="json")


@router.put("/admin/profile/{station_id}")
def update_station_profile(station_id: str, profile: StationProfile, auth=Depends(require_admin)):
    saved = set_profile(station_id, profile)
    logger.info(f"Playout set to {saved.playout.value}, delivery via {saved.delivery.method.value} for {station_id}")
    return saved.model_dump(mode="json")


@router.delete("/admin/profile/{station_id}")
def delete_station_profile(station_id: str, auth=Depends(require_admin)):
    """Drop the stored profile; the next lookup recreates the defaults."""
    reset_profile(station_id)
    return {"ok": True}


@router.post("/admin/profile/{station_id}/copy-from/{source_station_id}")
def copy_station_profile(station_id: str, source_station_id: str, auth=Depends(require_admin)):
    return copy_playout_from(source_station_id, station_id).model_dump(mode="json")
