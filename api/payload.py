from typing import Optional

from models import AssetOverrides, CanonicalAsset, Recording, StationProfile

DEFAULT_TITLE = "Untitled"
DEFAULT_ARTIST = "Presenter"
DEFAULT_NOTES = "Uploaded from App"


def _first_text(*values: Optional[str]) -> Optional[str]:
    for v in values:
        if v:
            return v
    return None


def _first_value(*values):
    for v in values:
        if v is not None:
            return v
    return None


def resolve_category(category: str, profile: StationProfile) -> str:
    """Fold a vendor alias back to its canonical category name."""
    wanted = category.strip().lower()
    for canonical, aliases in profile.mappings.categories.items():
        if canonical.lower() == wanted:
            return canonical
        if any(alias.lower() == wanted for alias in aliases):
            return canonical
    return category


def build(recording: Recording, profile: StationProfile, overrides: Optional[AssetOverrides] = None) -> CanonicalAsset:
    """
    Normalize a recording plus user overrides into a CanonicalAsset.

    Each field resolves override -> value measured on the recording ->
    profile default -> fixed literal. Pure: same inputs, same asset.
    """
    o = overrides or AssetOverrides()

    intro_from_trim = recording.trim_start_ms / 1000 if recording.trim_start_ms else None
    category = _first_text(o.category, recording.category, profile.defaults.category)

    return CanonicalAsset(
        external_id=recording.id,
        title=_first_text(o.title, recording.name) or DEFAULT_TITLE,
        artist=_first_text(o.artist) or DEFAULT_ARTIST,
        category=resolve_category(category, profile) if category else "",
        loudness_lufs=_first_value(o.loudness_lufs, recording.lufs),
        true_peak_db=o.true_peak_db,
        intro_sec=_first_value(o.intro_sec, intro_from_trim),
        eom_sec=_first_value(o.eom_sec, profile.defaults.eom_sec),
        hook_in=o.hook_in,
        hook_out=o.hook_out,
        explicit=bool(o.explicit) if o.explicit is not None else False,
        isrc=_first_text(o.isrc),
        embargo_start=_first_text(o.embargo_start),
        expires_at=_first_text(o.expires_at),
        notes=_first_text(o.notes) or DEFAULT_NOTES,
    )
