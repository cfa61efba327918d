"""
Playout sidecar writers.

A sidecar is the metadata file a playout system picks up next to the audio
during import. Which writer runs is decided by the (sidecar type, vendor) pair
in SIDECAR_WRITERS; the table must cover every combination, which is checked
when this module is imported.
"""

import csv
import io
import itertools
import os
from typing import Callable, NamedTuple, Optional
from xml.sax.saxutils import escape

from models import CanonicalAsset, PlayoutVendor, SidecarType, StationProfile

MYRIAD_CSV_FIELDS = [
    "filename",
    "title",
    "artist",
    "category",
    "intro_sec",
    "eom_sec",
    "explicit",
    "isrc",
    "external_id",
    "embargo_start",
    "expires_at",
    "notes",
]

ENCO_CSV_FIELDS = [
    "filename",
    "title",
    "artist",
    "category",
    "intro_sec",
    "eom_sec",
    "explicit",
    "external_id",
    "embargo_start",
    "expires_at",
]

DEFAULT_RAMP_SEC = 0.0
DEFAULT_FADE_OUT_SEC = -0.5

_ATTR_ENTITIES = {'"': "&quot;"}


class Sidecar(NamedTuple):
    name: Optional[str]
    body: Optional[str]


NO_SIDECAR = Sidecar(None, None)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _csv(fields: list[str], filename: str, a: CanonicalAsset) -> str:
    values = {"filename": filename, **a.model_dump()}
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([_text(values[f]) for f in fields])
    return ",".join(fields) + "\n" + buf.getvalue().rstrip("\n")


def myriad_csv(filename: str, a: CanonicalAsset) -> str:
    return _csv(MYRIAD_CSV_FIELDS, filename, a)


def enco_csv(filename: str, a: CanonicalAsset) -> str:
    return _csv(ENCO_CSV_FIELDS, filename, a)


def myriad_xml(filename: str, a: CanonicalAsset) -> str:
    lines = [
        "<MyriadImport>",
        f"  <File>{escape(filename)}</File>",
        f"  <Title>{escape(a.title)}</Title>",
        f"  <Artist>{escape(a.artist)}</Artist>",
        f"  <Category>{escape(a.category)}</Category>",
    ]
    # absent cue values are left out rather than written empty
    if a.intro_sec is not None:
        lines.append(f'  <Intro seconds="{a.intro_sec}"/>')
    if a.eom_sec is not None:
        lines.append(f'  <EOM seconds="{a.eom_sec}"/>')
    lines += [
        f"  <Explicit>{_text(a.explicit)}</Explicit>",
        f"  <ISRC>{escape(_text(a.isrc))}</ISRC>",
        f"  <ExternalID>{escape(a.external_id)}</ExternalID>",
        f"  <Embargo>{escape(_text(a.embargo_start))}</Embargo>",
        f"  <Expires>{escape(_text(a.expires_at))}</Expires>",
        f"  <Notes>{escape(_text(a.notes))}</Notes>",
        "</MyriadImport>",
    ]
    return "\n".join(lines)


def mairlist_mmd(filename: str, a: CanonicalAsset) -> str:
    ramp = a.intro_sec if a.intro_sec is not None else DEFAULT_RAMP_SEC
    fade_out = -abs(a.eom_sec) if a.eom_sec is not None else DEFAULT_FADE_OUT_SEC

    def attr(name: str, value) -> str:
        return f'    <Attribute Name="{name}" Value="{escape(_text(value), _ATTR_ENTITIES)}" />'

    return "\n".join(
        [
            '<mAirListElement version="1.0">',
            "  <Attributes>",
            attr("title", a.title),
            attr("artist", a.artist),
            attr("extid", a.external_id),
            attr("category", a.category),
            attr("isrc", a.isrc),
            attr("explicit", a.explicit),
            attr("embargo_start", a.embargo_start),
            attr("expires_at", a.expires_at),
            "  </Attributes>",
            "  <CueData>",
            '    <CuePoint Type="FadeIn" Position="0.000" />',
            f'    <CuePoint Type="Ramp" Position="{ramp:.3f}" />',
            f'    <CuePoint Type="FadeOut" Position="{fade_out:.3f}" />',
            '    <CuePoint Type="CueIn" Position="0.000" />',
            f'    <CuePoint Type="CueOut" Position="{fade_out:.3f}" />',
            "  </CueData>",
            "</mAirListElement>",
        ]
    )


Writer = Callable[[str, CanonicalAsset], str]

SIDECAR_WRITERS: dict[tuple[SidecarType, PlayoutVendor], Optional[Writer]] = {
    (SidecarType.NONE, PlayoutVendor.MYRIAD): None,
    (SidecarType.NONE, PlayoutVendor.MAIRLIST): None,
    (SidecarType.NONE, PlayoutVendor.ENCO): None,
    (SidecarType.NONE, PlayoutVendor.GENERIC): None,
    (SidecarType.CSV, PlayoutVendor.MYRIAD): myriad_csv,
    (SidecarType.CSV, PlayoutVendor.MAIRLIST): myriad_csv,
    (SidecarType.CSV, PlayoutVendor.ENCO): enco_csv,
    (SidecarType.CSV, PlayoutVendor.GENERIC): myriad_csv,
    (SidecarType.XML, PlayoutVendor.MYRIAD): myriad_xml,
    (SidecarType.XML, PlayoutVendor.MAIRLIST): myriad_xml,
    (SidecarType.XML, PlayoutVendor.ENCO): myriad_xml,
    (SidecarType.XML, PlayoutVendor.GENERIC): myriad_xml,
    (SidecarType.MMD, PlayoutVendor.MYRIAD): mairlist_mmd,
    (SidecarType.MMD, PlayoutVendor.MAIRLIST): mairlist_mmd,
    (SidecarType.MMD, PlayoutVendor.ENCO): mairlist_mmd,
    (SidecarType.MMD, PlayoutVendor.GENERIC): mairlist_mmd,
}


def _check_writers_cover_all_pairs():
    missing = [pair for pair in itertools.product(SidecarType, PlayoutVendor) if pair not in SIDECAR_WRITERS]
    if missing:
        names = ", ".join(f"{t.value}/{v.value}" for t, v in missing)
        raise RuntimeError(f"No sidecar writer registered for: {names}")


_check_writers_cover_all_pairs()


def sidecar_name(filename: str, sidecar_type: SidecarType) -> str:
    return f"{os.path.splitext(filename)[0]}.{sidecar_type.value}"


def build(profile: StationProfile, filename: str, asset: CanonicalAsset) -> Sidecar:
    """
    Render the sidecar for `filename` under this profile.

    Returns NO_SIDECAR when the profile asks for none; callers skip the write.
    `filename` may include a directory prefix, which the sidecar name keeps.
    """
    sidecar_type = profile.sidecar.type
    writer = SIDECAR_WRITERS.get((sidecar_type, profile.playout))
    if writer is None:
        return NO_SIDECAR
    return Sidecar(sidecar_name(filename, sidecar_type), writer(os.path.basename(filename), asset))
