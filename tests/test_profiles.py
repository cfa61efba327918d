import profiles
from models import DeliveryMethod, PlayoutVendor, SidecarType, StationProfile


def test_first_lookup_creates_defaults(temp_db):
    profile = profiles.get_profile("stn1")

    assert profile.id == "stn1"
    assert profile.playout == PlayoutVendor.MYRIAD
    assert profile.delivery.method == DeliveryMethod.LOCAL
    assert profile.delivery.remote_path == "DropIn"
    assert profile.defaults.category == "Links"
    assert profile.defaults.eom_sec == 0.5
    assert profile.sidecar.type == SidecarType.CSV
    assert "VT" in profile.mappings.categories["Links"]
    assert profiles.get_profile("stn1") == profile


def test_set_profile_pins_station_id_and_round_trips(temp_db):
    profile = profiles.build_default_profile("other").model_copy(update={"playout": PlayoutVendor.ENCO})
    saved = profiles.set_profile("stn2", profile)

    assert saved.id == "stn2"
    loaded = profiles.get_profile("stn2")
    assert loaded == saved
    assert StationProfile.model_validate_json(loaded.model_dump_json()) == loaded


def test_reset_restores_defaults(temp_db):
    profiles.set_profile("stn1", profiles.build_default_profile("stn1").model_copy(update={"name": "Renamed"}))
    profiles.reset_profile("stn1")
    assert profiles.get_profile("stn1").name == "Station"


def test_copy_playout_from(temp_db):
    src = profiles.build_default_profile("a")
    src = src.model_copy(
        update={
            "playout": PlayoutVendor.MAIRLIST,
            "sidecar": src.sidecar.model_copy(update={"type": SidecarType.MMD}),
            "defaults": src.defaults.model_copy(update={"loudness_lufs": -23.0, "category": "News"}),
        }
    )
    profiles.set_profile("a", src)

    merged = profiles.copy_playout_from("a", "b")

    assert merged.id == "b"
    assert merged.playout == PlayoutVendor.MAIRLIST
    assert merged.sidecar.type == SidecarType.MMD
    assert merged.defaults.loudness_lufs == -23.0
    # station-specific defaults are not copied
    assert merged.defaults.category == "Links"
