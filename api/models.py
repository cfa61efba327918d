from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PlayoutVendor(str, Enum):
    MYRIAD = "myriad"
    MAIRLIST = "mairlist"
    ENCO = "enco"
    GENERIC = "generic"


class DeliveryMethod(str, Enum):
    DROPBOX = "dropbox"
    SFTP = "sftp"
    SMB = "smb"
    S3 = "s3"
    AZURE = "azure"
    GCP = "gcp"
    API = "api"
    LOCAL = "local"


class SidecarType(str, Enum):
    NONE = "none"
    CSV = "csv"
    XML = "xml"
    MMD = "mmd"


class StorageProvider(str, Enum):
    GDRIVE = "gdrive"
    ONEDRIVE = "onedrive"
    DROPBOX = "dropbox"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    CONNECTING = "connecting"
    UPLOADING = "uploading"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"


class StorageStatus(str, Enum):
    PENDING = "pending"
    CONNECTING = "connecting"
    UPLOADING = "uploading"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"
    PAUSED = "paused"


IN_FLIGHT = {"connecting", "uploading", "verifying"}


@dataclass
class Recording:
    id: str
    name: str
    local_uri: str
    station_id: str
    created_at: str
    category: Optional[str] = None
    subcategory: Optional[str] = None
    category_code: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    lufs: Optional[float] = None
    trim_start_ms: Optional[int] = None


class CanonicalAsset(BaseModel):
    model_config = {"frozen": True}

    external_id: str
    title: str
    artist: str
    category: str
    loudness_lufs: Optional[float] = None
    true_peak_db: Optional[float] = None
    intro_sec: Optional[float] = None
    eom_sec: Optional[float] = None
    hook_in: Optional[float] = None
    hook_out: Optional[float] = None
    explicit: bool = False
    isrc: Optional[str] = None
    embargo_start: Optional[str] = None  # ISO8601
    expires_at: Optional[str] = None  # ISO8601
    notes: Optional[str] = None


class AssetOverrides(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    category: Optional[str] = None
    loudness_lufs: Optional[float] = None
    true_peak_db: Optional[float] = None
    intro_sec: Optional[float] = None
    eom_sec: Optional[float] = None
    hook_in: Optional[float] = None
    hook_out: Optional[float] = None
    explicit: Optional[bool] = None
    isrc: Optional[str] = None
    embargo_start: Optional[str] = None
    expires_at: Optional[str] = None
    notes: Optional[str] = None


class DeliveryConfig(BaseModel):
    method: DeliveryMethod = DeliveryMethod.LOCAL
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    private_key: Optional[str] = None
    share_or_bucket: Optional[str] = None
    remote_path: str = "DropIn"  # folder prefix on the remote side
    api_base: Optional[str] = None
    api_key: Optional[str] = None


class ProfileDefaults(BaseModel):
    file_format: str = "wav"  # 'wav' | 'mp3'
    sample_rate_hz: int = 44100
    bit_depth: int = 16
    loudness_lufs: float = -16.0
    true_peak_dbtp: float = -1.0
    category: str = "Links"
    eom_sec: float = 0.5


class SidecarConfig(BaseModel):
    type: SidecarType = SidecarType.CSV
    fields: list[str] = Field(default_factory=list)


class CategoryMappings(BaseModel):
    categories: dict[str, list[str]] = Field(default_factory=dict)  # canonical -> vendor aliases


class StationProfile(BaseModel):
    id: str
    name: str = "Station"
    playout: PlayoutVendor = PlayoutVendor.MYRIAD
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    defaults: ProfileDefaults = Field(default_factory=ProfileDefaults)
    sidecar: SidecarConfig = Field(default_factory=SidecarConfig)
    mappings: CategoryMappings = Field(default_factory=CategoryMappings)


class DeliveryJob(BaseModel):
    id: str
    station_id: str
    local_uri: str
    profile: StationProfile
    asset: CanonicalAsset
    file_ext: str
    remote_path: str  # relative to the backend root
    sidecar_name: Optional[str] = None
    sidecar_body: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    progress: float = 0.0
    error: Optional[str] = None
    retries: int = 0
    created_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None


class StorageJob(BaseModel):
    id: str
    station_id: str
    provider: StorageProvider
    local_uri: str
    remote_path: str
    status: StorageStatus = StorageStatus.PENDING
    progress: float = 0.0
    error: Optional[str] = None
    retries: int = 0
    created_at: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
