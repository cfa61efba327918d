import os

from fastapi import Header, HTTPException

from database import SqliteJobStore
from queues import DeliveryQueue, StorageQueue

ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

_delivery_queue: DeliveryQueue | None = None
_storage_queue: StorageQueue | None = None


def get_delivery_queue() -> DeliveryQueue:
    global _delivery_queue
    if _delivery_queue is None:
        _delivery_queue = DeliveryQueue(SqliteJobStore("delivery"))
    return _delivery_queue


def get_storage_queue() -> StorageQueue:
    global _storage_queue
    if _storage_queue is None:
        _storage_queue = StorageQueue(SqliteJobStore("storage"))
    return _storage_queue


def require_admin(x_admin_token: str = Header(None)):
    if not ADMIN_TOKEN:
        raise HTTPException(500, "ADMIN_TOKEN not configured")
    if x_admin_token != ADMIN_TOKEN:
        raise HTTPException(403, "Invalid admin token")
