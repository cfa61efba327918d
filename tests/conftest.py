import pytest

import database
import delivery
from database import MemoryJobStore
from models import Recording
from profiles import build_default_profile
from queues import DeliveryQueue, StorageQueue


class FakeBackend:
    """In-memory transport that can be told to fail put or verify."""

    def __init__(self, fail_put: str | None = None, verify_ok: bool = True):
        self.fail_put = fail_put
        self.verify_ok = verify_ok
        self.files: dict[str, bytes] = {}
        self.calls: list[tuple] = []

    def put(self, dest_path, source_path=None, data=None):
        self.calls.append(("put", dest_path))
        if self.fail_put:
            raise OSError(self.fail_put)
        if source_path is not None:
            with open(source_path, "rb") as f:
                data = f.read()
        self.files[dest_path] = data

    def rename(self, from_path, to_path):
        self.calls.append(("rename", from_path, to_path))
        self.files[to_path] = self.files.pop(from_path)

    def verify(self, path):
        self.calls.append(("verify", path))
        return self.verify_ok and bool(self.files.get(path))


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "delivery.db"))
    database.init_db()
    return tmp_path / "delivery.db"


@pytest.fixture
def staging_dir(tmp_path, monkeypatch):
    root = tmp_path / "staging"
    monkeypatch.setattr(delivery, "STAGING_DIR", str(root))
    return root


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "take1.wav"
    path.write_bytes(b"RIFF" + b"\x00" * 64)
    return path


@pytest.fixture
def recording(audio_file):
    return Recording(
        id="rec-123",
        name="Morning Show",
        local_uri=str(audio_file),
        station_id="stn1",
        created_at="2026-03-05T07:45:12",
        category="Links",
        category_code="links",
    )


@pytest.fixture
def profile():
    return build_default_profile("stn1", "Test FM")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def delivery_queue(backend):
    return DeliveryQueue(MemoryJobStore(), opener=lambda method, config, station_id: backend, timeout_s=None)


@pytest.fixture
def storage_queue(backend):
    return StorageQueue(MemoryJobStore(), opener=lambda method, config, station_id: backend, timeout_s=None)
