import re
import unicodedata
from datetime import datetime
from typing import Optional

_DISALLOWED = re.compile(r"[^A-Za-z0-9\s\-_]")
_WHITESPACE = re.compile(r"\s+")

MAX_EXPORT_TAGS = 3


def sanitize(text: str) -> str:
    """Strip diacritics and punctuation, hyphenate whitespace runs."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _DISALLOWED.sub("", stripped).strip()
    return _WHITESPACE.sub("-", cleaned)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def encode_staging_path(
    category: str,
    title: str,
    external_id: str,
    intro: Optional[float] = None,
    eom: Optional[float] = None,
    ext: str = "wav",
    extra_meta: Optional[dict] = None,
) -> str:
    """
    Build "{Category}/{Title}__{ExternalId}[__{tokens}].{ext}".

    ISRC, embargo and expiry never go into filenames; only the sidecar carries them.
    """
    safe_cat = sanitize(category or "Other")
    safe_title = sanitize(title or "Untitled")

    tokens = []
    if intro is not None:
        tokens.append(f"intro={intro:.1f}")
    if eom is not None:
        tokens.append(f"eom={eom:.1f}")
    for key, value in (extra_meta or {}).items():
        if value is None or value == "":
            continue
        tokens.append(f"{sanitize(str(key))}={value}")

    meta = "__{" + ",".join(tokens) + "}" if tokens else ""
    return f"{safe_cat}/{safe_title}__{external_id}{meta}.{ext}"


def encode_export_filename(
    category: Optional[str],
    subcategory: Optional[str],
    tags: Optional[list],
    title: Optional[str],
    id: Optional[str],
    created_at,
    ext: Optional[str] = None,
) -> str:
    """Flat filename for exports; the minute stamp keeps repeated exports of one title apart."""
    safe_cat = sanitize(category or "Other")
    safe_sub = sanitize(subcategory) if subcategory else ""
    safe_title = sanitize(title or id or "Recording")
    ext = (ext or "m4a").lower()
    stamp = _parse_timestamp(created_at).strftime("%Y%m%d_%H%M")

    tags_part = ""
    if tags:
        safe_tags = [t for t in (sanitize(str(tag)) for tag in tags) if t][:MAX_EXPORT_TAGS]
        tags_part = "-".join(safe_tags)

    left = "_".join(p for p in (safe_cat, safe_sub, tags_part) if p)
    prefix = f"{left}__" if left else ""
    return f"{prefix}{safe_title}__{stamp}.{ext}"


def build_cloud_dir(station_id: str, created_at, category_code: Optional[str] = None) -> str:
    d = _parse_timestamp(created_at)
    return f"{station_id}/{d:%Y}/{d:%m}/{d:%d}/{category_code or 'other'}/"
