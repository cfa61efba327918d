import logging

from database import delete_profile_body, load_profile_body, save_profile_body
from models import (
    CategoryMappings,
    DeliveryConfig,
    DeliveryMethod,
    PlayoutVendor,
    ProfileDefaults,
    SidecarConfig,
    SidecarType,
    StationProfile,
)
from sidecars import MYRIAD_CSV_FIELDS

logger = logging.getLogger(__name__)


def build_default_profile(station_id: str, station_name: str | None = None) -> StationProfile:
    return StationProfile(
        id=station_id,
        name=station_name or "Station",
        playout=PlayoutVendor.MYRIAD,
        delivery=DeliveryConfig(method=DeliveryMethod.LOCAL, host=None, remote_path="DropIn"),
        defaults=ProfileDefaults(
            file_format="wav",
            sample_rate_hz=44100,
            bit_depth=16,
            loudness_lufs=-16.0,
            true_peak_dbtp=-1.0,
            category="Links",
            eom_sec=0.5,
        ),
        sidecar=SidecarConfig(type=SidecarType.CSV, fields=[f for f in MYRIAD_CSV_FIELDS if f != "filename"]),
        mappings=CategoryMappings(
            categories={
                "Links": ["Links", "VT", "LINKS"],
                "News": ["News", "Bulletins"],
                "Promos": ["Promos"],
                "Imaging": ["Imaging", "SFX"],
            }
        ),
    )


def get_profile(station_id: str) -> StationProfile:
    """Stored profile for the station; the first lookup creates and saves the defaults."""
    body = load_profile_body(station_id)
    if body is not None:
        return StationProfile.model_validate(body)
    profile = build_default_profile(station_id)
    save_profile_body(station_id, profile.model_dump(mode="json"))
    logger.info(f"Created default profile for station {station_id}")
    return profile


def set_profile(station_id: str, profile: StationProfile) -> StationProfile:
    # a profile only ever belongs to the station it is stored under
    profile = profile.model_copy(update={"id": station_id})
    save_profile_body(station_id, profile.model_dump(mode="json"))
    logger.info(f"Profile updated for station {station_id}")
    return profile


def reset_profile(station_id: str) -> None:
    delete_profile_body(station_id)
    logger.info(f"Profile reset for station {station_id}")


def copy_playout_from(from_station_id: str, to_station_id: str) -> StationProfile:
    """Copy vendor, sidecar, category mappings and format/loudness defaults onto another station."""
    src = get_profile(from_station_id)
    dst = get_profile(to_station_id)
    defaults = dst.defaults.model_copy(
        update={
            "file_format": src.defaults.file_format,
            "bit_depth": src.defaults.bit_depth,
            "loudness_lufs": src.defaults.loudness_lufs,
            "true_peak_dbtp": src.defaults.true_peak_dbtp,
        }
    )
    merged = dst.model_copy(
        update={
            "playout": src.playout,
            "sidecar": src.sidecar.model_copy(deep=True),
            "mappings": src.mappings.model_copy(deep=True),
            "defaults": defaults,
        }
    )
    return set_profile(to_station_id, merged)
