"""
Persisted delivery and storage-mirror queues.

Both queues share one lifecycle:

    pending -> connecting -> uploading -> verifying -> complete
                    \\-----------\\------------\\----> failed

and the storage queue adds `paused`, toggled from/to `pending` by the user.
A pump walks the list in insertion order and drives each pending job through
the whole machine before touching the next one. The list is saved after every
transition, so a crash leaves the job at its last recorded state. Nothing is
retried or resumed without a user asking for it.
"""

import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import naming
import payload
import sidecars
from alerts import alert_delivery_failed
from delivery import Delivery, check_config, open_delivery
from errors import InvalidTransition, JobNotFound, ValidationError, VerifyMismatch
from models import (
    IN_FLIGHT,
    AssetOverrides,
    DeliveryConfig,
    DeliveryJob,
    DeliveryStatus,
    Recording,
    StationProfile,
    StorageJob,
    StorageProvider,
    StorageStatus,
)

logger = logging.getLogger(__name__)

DELIVERY_TIMEOUT_S = float(os.environ.get("DELIVERY_TIMEOUT_S", "300"))

# storage policy: which providers may receive exports, and how large a file may be
STORAGE_ALLOWED_PROVIDERS = [
    p.strip() for p in os.environ.get("STORAGE_ALLOWED_PROVIDERS", "gdrive,onedrive,dropbox").split(",") if p.strip()
]
STORAGE_MAX_FILE_MB = float(os.environ.get("STORAGE_MAX_FILE_MB", "1024"))

PROGRESS_CONNECTING = 0.15
PROGRESS_UPLOADING = 0.5
PROGRESS_VERIFYING = 0.9
PROGRESS_COMPLETE = 1.0

INTERRUPTED_ERROR = "Interrupted before completion"


class JobStore(Protocol):
    def load(self) -> list[dict]: ...

    def save(self, items: list[dict]) -> None: ...


BackendOpener = Callable[[str, DeliveryConfig, str], Delivery]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _JobQueue:
    """Shared list handling and pump loop; subclasses supply the transfer itself."""

    job_model = DeliveryJob
    kind = "delivery"

    def __init__(
        self,
        store: JobStore,
        opener: BackendOpener = open_delivery,
        timeout_s: Optional[float] = DELIVERY_TIMEOUT_S,
    ):
        self.store = store
        self.opener = opener
        self.timeout_s = timeout_s
        self._list_lock = threading.RLock()
        self._pump_lock = threading.Lock()

    # -- list access ---------------------------------------------------

    def _load(self) -> list:
        return [self.job_model.model_validate(item) for item in self.store.load()]

    def _save(self, jobs: list):
        self.store.save([job.model_dump(mode="json") for job in jobs])

    def list_jobs(self) -> list:
        with self._list_lock:
            return self._load()

    def get(self, job_id: str):
        for job in self.list_jobs():
            if job.id == job_id:
                return job
        raise JobNotFound(job_id)

    def enqueue(self, job):
        if not job.remote_path or not job.remote_path.strip():
            raise ValidationError("Remote path is empty")
        if not job.local_uri:
            raise ValidationError("No local source to deliver")
        with self._list_lock:
            jobs = self._load()
            jobs.append(job)
            self._save(jobs)
        logger.info(f"Enqueued {self.kind} job {job.id} -> {job.remote_path}")
        return job

    def _update(self, job_id: str, expect: Optional[str] = None, **changes):
        """Copy-and-replace the list with one job changed.

        With `expect`, the change only applies while the job still has that
        status. Returns None if the job was removed or its status has moved on.
        """
        with self._list_lock:
            jobs = self._load()
            for i, job in enumerate(jobs):
                if job.id == job_id:
                    if expect is not None and job.status.value != expect:
                        return None
                    jobs[i] = job.model_copy(update=changes)
                    self._save(jobs)
                    if "status" in changes:
                        logger.info(f"{self.kind} job {job_id}: {job.status.value} -> {changes['status'].value}")
                    return jobs[i]
        return None

    def remove(self, job_id: str):
        with self._list_lock:
            jobs = self._load()
            kept = [job for job in jobs if job.id != job_id]
            if len(kept) == len(jobs):
                raise JobNotFound(job_id)
            self._save(kept)
        logger.info(f"Removed {self.kind} job {job_id}")

    def clear_completed(self) -> int:
        with self._list_lock:
            jobs = self._load()
            kept = [job for job in jobs if job.status.value != "complete"]
            self._save(kept)
        removed = len(jobs) - len(kept)
        if removed:
            logger.info(f"Cleared {removed} completed {self.kind} job(s)")
        return removed

    def fail_interrupted(self) -> int:
        """Mark jobs a previous process left mid-transfer as failed so the user can retry them."""
        with self._list_lock:
            jobs = self._load()
            stuck = 0
            for i, job in enumerate(jobs):
                if job.status.value in IN_FLIGHT:
                    jobs[i] = job.model_copy(
                        update={"status": type(job.status)("failed"), "error": INTERRUPTED_ERROR, "finished_at": _now()}
                    )
                    stuck += 1
            if stuck:
                self._save(jobs)
        if stuck:
            logger.warning(f"Marked {stuck} interrupted {self.kind} job(s) as failed")
        return stuck

    # -- pump ----------------------------------------------------------

    def _call(self, fn, *args, **kwargs):
        """Run one backend call, giving up after timeout_s.

        The call runs on a daemon thread, so a hung call only blocks that thread
        and never holds up process exit.
        """
        if not self.timeout_s:
            return fn(*args, **kwargs)
        outcome = {}

        def run():
            try:
                outcome["result"] = fn(*args, **kwargs)
            except Exception as e:
                outcome["error"] = e

        thread = threading.Thread(target=run, name=f"{self.kind}-io", daemon=True)
        thread.start()
        thread.join(self.timeout_s)
        if thread.is_alive():
            raise TimeoutError(f"Transfer timed out after {self.timeout_s:g}s")
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("result")

    def _transfer(self, job):
        raise NotImplementedError

    def _start(self, job, connecting) -> bool:
        """Claim a pending job for this pump. False if a user call moved it first."""
        started = self._update(
            job.id,
            expect="pending",
            status=connecting,
            started_at=job.started_at or _now(),
            error=None,
            progress=PROGRESS_CONNECTING,
        )
        if started is None:
            logger.info(f"{self.kind} job {job.id} is no longer pending; skipping")
            return False
        return True

    def _fail(self, job, error: str):
        return self._update(job.id, status=type(job.status)("failed"), error=error, finished_at=_now())

    def pump(self) -> None:
        """Drive every pending job, one at a time, to complete or failed."""
        with self._pump_lock:
            for job_id in [job.id for job in self.list_jobs()]:
                try:
                    job = self.get(job_id)
                except JobNotFound:
                    continue
                if job.status.value != "pending":
                    continue
                try:
                    self._transfer(job)
                except VerifyMismatch as e:
                    logger.error(f"{self.kind} job {job.id}: {e}")
                    self._on_failed(self._fail(job, VerifyMismatch.friendly))
                except Exception as e:
                    logger.error(f"{self.kind} job {job.id} failed: {e}", exc_info=True)
                    self._on_failed(self._fail(job, str(e) or f"{self.kind.capitalize()} failed"))

    def _on_failed(self, job):
        pass

    def retry(self, job_id: str) -> None:
        with self._list_lock:
            job = self.get(job_id)
            if job.status.value != "failed":
                raise InvalidTransition(f"Job {job_id} is {job.status.value}, only failed jobs can be retried")
            self._update(job_id, status=type(job.status)("pending"), error=None, progress=0.0, retries=job.retries + 1)
        self.pump()


class DeliveryQueue(_JobQueue):
    job_model = DeliveryJob
    kind = "delivery"

    def enqueue_recording(
        self,
        recording: Recording,
        profile: StationProfile,
        overrides: Optional[AssetOverrides] = None,
        ext: Optional[str] = None,
        extra_meta: Optional[dict] = None,
    ) -> DeliveryJob:
        if not recording.local_uri:
            raise ValidationError("Recording has no local audio to deliver")
        check_config(profile.delivery.method, profile.delivery)
        ext = ext or profile.defaults.file_format
        asset = payload.build(recording, profile, overrides)
        remote_path = naming.encode_staging_path(
            asset.category,
            asset.title,
            asset.external_id,
            asset.intro_sec,
            asset.eom_sec,
            ext,
            extra_meta,
        )
        sidecar = sidecars.build(profile, remote_path, asset)
        job = DeliveryJob(
            id=str(uuid.uuid4()),
            station_id=recording.station_id,
            local_uri=recording.local_uri,
            profile=profile,
            asset=asset,
            file_ext=ext,
            remote_path=remote_path,
            sidecar_name=sidecar.name,
            sidecar_body=sidecar.body,
            created_at=_now(),
        )
        return self.enqueue(job)

    def _transfer(self, job: DeliveryJob):
        if not self._start(job, DeliveryStatus.CONNECTING):
            return
        backend = self.opener(job.profile.delivery.method, job.profile.delivery, job.station_id)

        self._update(job.id, status=DeliveryStatus.UPLOADING, progress=PROGRESS_UPLOADING)
        self._call(backend.put, job.remote_path, source_path=job.local_uri)
        if job.sidecar_name and job.sidecar_body is not None:
            staged = job.sidecar_name + ".part"
            self._call(backend.put, staged, data=job.sidecar_body.encode("utf-8"))
            self._call(backend.rename, staged, job.sidecar_name)

        self._update(job.id, status=DeliveryStatus.VERIFYING, progress=PROGRESS_VERIFYING)
        if not self._call(backend.verify, job.remote_path):
            raise VerifyMismatch(job.remote_path)

        self._update(job.id, status=DeliveryStatus.COMPLETE, progress=PROGRESS_COMPLETE, finished_at=_now())

    def _on_failed(self, job):
        if job is not None:
            alert_delivery_failed(job)


class StorageQueue(_JobQueue):
    job_model = StorageJob
    kind = "storage"

    def __init__(
        self,
        store: JobStore,
        opener: BackendOpener = open_delivery,
        timeout_s: Optional[float] = DELIVERY_TIMEOUT_S,
        config: Optional[DeliveryConfig] = None,
        allowed_providers: Optional[list[str]] = None,
        max_file_mb: Optional[float] = None,
    ):
        super().__init__(store, opener, timeout_s)
        self.config = config or DeliveryConfig()
        self.allowed_providers = STORAGE_ALLOWED_PROVIDERS if allowed_providers is None else allowed_providers
        self.max_file_mb = STORAGE_MAX_FILE_MB if max_file_mb is None else max_file_mb

    def enqueue_export(self, recording: Recording, provider: StorageProvider) -> StorageJob:
        ext = os.path.splitext(recording.local_uri)[1].lstrip(".") or None
        filename = naming.encode_export_filename(
            recording.category,
            recording.subcategory,
            recording.tags,
            recording.name,
            recording.id,
            recording.created_at,
            ext,
        )
        folder = naming.build_cloud_dir(recording.station_id, recording.created_at, recording.category_code)
        job = StorageJob(
            id=str(uuid.uuid4()),
            station_id=recording.station_id,
            provider=provider,
            local_uri=recording.local_uri,
            remote_path=folder + filename,
            created_at=_now(),
        )
        return self.enqueue(job)

    def _check_policy(self, job: StorageJob) -> int:
        """Raise PermissionError if the export breaks the storage policy; returns the file size."""
        if job.provider.value not in self.allowed_providers:
            raise PermissionError(f"Provider {job.provider.value} is blocked by storage policy")
        size = os.path.getsize(job.local_uri)
        size_mb = size / (1024 * 1024)
        if size_mb > self.max_file_mb:
            raise PermissionError(f"File is {size_mb:.2f} MB, over the {self.max_file_mb:g} MB storage policy limit")
        return size

    def _transfer(self, job: StorageJob):
        if not self._start(job, StorageStatus.CONNECTING):
            return
        size = self._check_policy(job)
        backend = self.opener(job.provider.value, self.config, job.station_id)

        self._update(job.id, status=StorageStatus.UPLOADING, progress=PROGRESS_UPLOADING)
        self._call(backend.put, job.remote_path, source_path=job.local_uri)

        self._update(job.id, status=StorageStatus.VERIFYING, progress=PROGRESS_VERIFYING)
        if not self._call(backend.verify, job.remote_path):
            raise VerifyMismatch(job.remote_path)

        self._update(job.id, status=StorageStatus.COMPLETE, progress=PROGRESS_COMPLETE, finished_at=_now())
        logger.info(
            f"Audit: upload station={job.station_id} provider={job.provider.value} "
            f"object={job.remote_path} size={size}"
        )

    def _toggle(self, job_id: str, current: StorageStatus, target: StorageStatus) -> StorageJob:
        with self._list_lock:
            job = self.get(job_id)
            if job.status != current:
                raise InvalidTransition(
                    f"Job {job_id} is {job.status.value}, only {current.value} jobs can be set {target.value}"
                )
            return self._update(job_id, status=target)

    def pause(self, job_id: str) -> StorageJob:
        return self._toggle(job_id, StorageStatus.PENDING, StorageStatus.PAUSED)

    def resume(self, job_id: str) -> StorageJob:
        return self._toggle(job_id, StorageStatus.PAUSED, StorageStatus.PENDING)
