from datetime import datetime, timezone
from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from pdf_dev_server.config import ServerConfig
from pdf_dev_server.main import create_app
from pdf_dev_server.app.models.entry import RemoteEntry
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError

TEST_HOST = "localhost"
TEST_PORT = 8888

PDF_CONTENT = bytes(range(256)) * 4  # 1KB with every byte value


class MemoryStorage(StorageBackend):
    """In-memory stand-in for the remote object storage."""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str, str]] = {}
        self.fail_with = None
        self.list_calls: List[dict] = []

    def _check(self):
        if self.fail_with:
            raise StorageError(self.fail_with)

    async def list(self, prefix="", limit=100, offset=0, sort_by="name", order="asc"):
        self.list_calls.append({"prefix": prefix, "limit": limit, "offset": offset,
                                "sort_by": sort_by, "order": order})
        self._check()
        names = sorted(name for name in self.objects if name.startswith(prefix))
        return [RemoteEntry(name=name, updated_at=self.objects[name][2])
                for name in names[offset:offset + limit]]

    def get_public_url(self, name):
        return f"https://storage.example.com/pdfs/{name}"

    async def upload(self, name, data, content_type, overwrite=False):
        self._check()
        if name in self.objects and not overwrite:
            raise StorageError("The resource already exists")
        self.objects[name] = (data, content_type, datetime.now(timezone.utc).isoformat())

    async def remove(self, names):
        self._check()
        for name in names:
            self.objects.pop(name, None)


@pytest.fixture
def site_root(tmp_path):
    """A served root with a few files, plus a secret next to it."""
    root = tmp_path / "root"
    (root / "test" / "pdfs").mkdir(parents=True)
    (root / "test" / "resources").mkdir(parents=True)
    (root / "web").mkdir()
    (root / "docs").mkdir()

    (root / "test" / "pdfs" / "basicapi.pdf").write_bytes(PDF_CONTENT)
    (root / "test" / "resources" / "favicon.ico").write_bytes(b"\x00\x00\x01\x00icon")
    (root / "web" / "viewer.html").write_text("<html>viewer</html>")
    (root / "docs" / "notes.log").write_text("some notes")
    (root / "empty.bin").write_bytes(b"")

    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def server_config(site_root, tmp_path):
    return ServerConfig(
        root=str(site_root),
        host=TEST_HOST,
        port=TEST_PORT,
        data_dir=str(tmp_path / "data"),
        temp_dir=str(tmp_path / "temp"),
    )


@pytest.fixture
def client(server_config, storage):
    app = create_app(server_config, storage=storage)
    with TestClient(app) as test_client:
        yield test_client
