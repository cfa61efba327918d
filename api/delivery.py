"""
Delivery backends.

Every transport offers the same three calls: put, rename, verify. `put` never
leaves a half-written file at the final path: it writes a temporary sibling and
moves it into place. `verify` is existence plus nonzero size, nothing more.

Methods without a registered implementation stage locally. That is the
documented default, and `is_registered` tells the two cases apart.
"""

import logging
import os
import shutil
from typing import Optional, Protocol

import httpx

from errors import ValidationError
from models import DeliveryConfig

logger = logging.getLogger(__name__)

STAGING_DIR = os.environ.get("STAGING_DIR", "/media/staging")
HTTP_TIMEOUT_S = float(os.environ.get("DELIVERY_HTTP_TIMEOUT_S", "60"))

TMP_SUFFIX = ".tmp"


class Delivery(Protocol):
    def put(self, dest_path: str, source_path: Optional[str] = None, data: Optional[bytes] = None) -> None: ...

    def rename(self, from_path: str, to_path: str) -> None: ...

    def verify(self, path: str) -> bool: ...


def _check_source(source_path: Optional[str], data: Optional[bytes]):
    if source_path is None and data is None:
        raise OSError("Nothing to upload: no source file or payload given")
    if source_path is not None and data is not None:
        raise OSError("Give either a source file or a payload, not both")


class LocalDelivery:
    """Stages files in a local directory tree that mirrors the remote layout."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _resolve(self, rel_path: str) -> str:
        full = os.path.normpath(os.path.join(self.root, rel_path.lstrip("/")))
        if full != self.root and not full.startswith(self.root + os.sep):
            raise OSError(f"Path escapes staging root: {rel_path}")
        return full

    def put(self, dest_path: str, source_path: Optional[str] = None, data: Optional[bytes] = None) -> None:
        _check_source(source_path, data)
        final = self._resolve(dest_path)
        os.makedirs(os.path.dirname(final), exist_ok=True)
        tmp = final + TMP_SUFFIX
        try:
            if source_path is not None:
                shutil.copyfile(source_path, tmp)
            else:
                with open(tmp, "wb") as f:
                    f.write(data)
            os.replace(tmp, final)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.info(f"Staged {final}")

    def rename(self, from_path: str, to_path: str) -> None:
        src = self._resolve(from_path)
        dest = self._resolve(to_path)
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        os.replace(src, dest)

    def verify(self, path: str) -> bool:
        full = self._resolve(path)
        return os.path.isfile(full) and os.path.getsize(full) > 0


class WebDavDelivery:
    """
    Generic HTTP drop folder spoken over WebDAV verbs.

    MKCOL creates parent collections, PUT uploads to a temporary name, MOVE
    renames into place and HEAD answers verify. HTTP failures surface as OSError
    so the queue treats them like any other transport error.
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, remote_path: str = "", client: Optional[httpx.Client] = None):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.Client(base_url=base_url, headers=headers, timeout=HTTP_TIMEOUT_S)
        self.prefix = remote_path.strip("/")

    def _url(self, path: str) -> str:
        path = path.lstrip("/")
        return f"/{self.prefix}/{path}" if self.prefix else f"/{path}"

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            raise OSError(f"{method} {path} failed: {e}") from e
        return response

    def _ensure_parents(self, path: str):
        parts = path.strip("/").split("/")[:-1]
        for i in range(1, len(parts) + 1):
            response = self._request("MKCOL", "/".join(parts[:i]) + "/")
            # 405: collection already exists
            if response.status_code not in (201, 405):
                raise OSError(f"MKCOL {'/'.join(parts[:i])} returned HTTP {response.status_code}")

    def put(self, dest_path: str, source_path: Optional[str] = None, data: Optional[bytes] = None) -> None:
        _check_source(source_path, data)
        self._ensure_parents(dest_path)
        tmp = dest_path + TMP_SUFFIX
        if source_path is not None:
            with open(source_path, "rb") as f:
                response = self._request("PUT", tmp, content=f.read())
        else:
            response = self._request("PUT", tmp, content=data)
        if response.status_code not in (200, 201, 204):
            raise OSError(f"PUT {dest_path} returned HTTP {response.status_code}")
        self.rename(tmp, dest_path)
        logger.info(f"Uploaded {dest_path} to {self.client.base_url}")

    def rename(self, from_path: str, to_path: str) -> None:
        self._ensure_parents(to_path)
        destination = str(self.client.build_request("MOVE", self._url(to_path)).url)
        response = self._request("MOVE", from_path, headers={"Destination": destination, "Overwrite": "T"})
        if response.status_code not in (201, 204):
            raise OSError(f"MOVE {from_path} -> {to_path} returned HTTP {response.status_code}")

    def verify(self, path: str) -> bool:
        response = self._request("HEAD", path)
        if response.status_code != 200:
            return False
        return int(response.headers.get("Content-Length", "0") or 0) > 0


def _open_local(config: DeliveryConfig, station_id: str) -> Delivery:
    return LocalDelivery(os.path.join(STAGING_DIR, station_id))


def _check_webdav(config: DeliveryConfig):
    if not config.api_base:
        raise ValidationError("API delivery has no api_base configured")


def _open_webdav(config: DeliveryConfig, station_id: str) -> Delivery:
    _check_webdav(config)
    return WebDavDelivery(config.api_base, config.api_key, config.remote_path)


BACKENDS = {
    "local": _open_local,
    "api": _open_webdav,
}

CONFIG_CHECKS = {
    "api": _check_webdav,
}


def is_registered(method: str) -> bool:
    return str(getattr(method, "value", method)) in BACKENDS


def backend_for(method: str):
    """Registry lookup; anything not wired up stages locally."""
    return BACKENDS.get(str(getattr(method, "value", method)), _open_local)


def check_config(method: str, config: DeliveryConfig) -> None:
    """Raise ValidationError if a registered method is missing settings it cannot run without."""
    check = CONFIG_CHECKS.get(str(getattr(method, "value", method)))
    if check:
        check(config)


def open_delivery(method: str, config: DeliveryConfig, station_id: str) -> Delivery:
    key = str(getattr(method, "value", method))
    if not is_registered(key):
        logger.info(f"Delivery method '{key}' has no transport yet; staging locally")
    return backend_for(key)(config, station_id)
