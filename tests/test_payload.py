from dataclasses import replace

import payload
from models import AssetOverrides


def test_falls_back_to_recording_then_profile_then_literals(recording, profile):
    rec = replace(recording, category=None, lufs=-18.2, trim_start_ms=1500)
    asset = payload.build(rec, profile)

    assert asset.external_id == "rec-123"
    assert asset.title == "Morning Show"
    assert asset.artist == "Presenter"
    assert asset.category == "Links"
    assert asset.loudness_lufs == -18.2
    assert asset.intro_sec == 1.5
    assert asset.eom_sec == 0.5
    assert asset.notes == "Uploaded from App"
    assert asset.explicit is False


def test_overrides_win(recording, profile):
    overrides = AssetOverrides(
        title="Drive Home",
        artist="Sam",
        category="News",
        intro_sec=0.0,
        eom_sec=1.2,
        explicit=True,
        isrc="GBABC2600001",
        embargo_start="2026-03-06T00:00:00Z",
    )
    asset = payload.build(recording, profile, overrides)

    assert (asset.title, asset.artist, asset.category) == ("Drive Home", "Sam", "News")
    assert asset.intro_sec == 0.0
    assert asset.eom_sec == 1.2
    assert asset.explicit is True
    assert asset.isrc == "GBABC2600001"
    assert asset.embargo_start == "2026-03-06T00:00:00Z"


def test_optional_fields_stay_none(recording, profile):
    rec = replace(recording, name="")
    asset = payload.build(rec, profile, AssetOverrides(title=""))

    assert asset.title == "Untitled"
    for field in ("true_peak_db", "intro_sec", "hook_in", "hook_out", "isrc", "embargo_start", "expires_at"):
        assert getattr(asset, field) is None


def test_vendor_alias_folds_to_canonical_category(recording, profile):
    asset = payload.build(replace(recording, category="vt"), profile)
    assert asset.category == "Links"

    asset = payload.build(replace(recording, category="Features"), profile)
    assert asset.category == "Features"


def test_build_is_deterministic_and_leaves_inputs_alone(recording, profile):
    before = profile.model_dump()
    first = payload.build(recording, profile, AssetOverrides(title="X"))
    second = payload.build(recording, profile, AssetOverrides(title="X"))

    assert first == second
    assert profile.model_dump() == before
    assert recording.name == "Morning Show"
