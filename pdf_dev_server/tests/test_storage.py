import json

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from pdf_dev_server.config import ServerConfig
from pdf_dev_server.main import create_app
from pdf_dev_server.app.server import create_storage
from pdf_dev_server.app.services.storage_backend import StorageError
from pdf_dev_server.app.services.storage_manager import StorageManager
from pdf_dev_server.app.services.supabase_storage import SupabaseStorage

SUPABASE_URL = "https://project.supabase.co"


@pytest_asyncio.fixture
async def local_storage(tmp_path):
    storage = StorageManager(tmp_path / "data", tmp_path / "temp", "http://localhost:8888")
    await storage.initialize()
    return storage


@pytest.mark.asyncio
async def test_local_upload_list_remove(local_storage):
    await local_storage.upload("b.pdf", b"bbb", "application/pdf")
    await local_storage.upload("a.pdf", b"aaaa", "application/pdf")

    entries = await local_storage.list()
    assert [entry.name for entry in entries] == ["a.pdf", "b.pdf"]
    assert all(entry.updated_at for entry in entries)

    blob_path, size, content_type = await local_storage.locate("a.pdf")
    assert blob_path.read_bytes() == b"aaaa"
    assert size == 4
    assert content_type == "application/pdf"

    await local_storage.remove(["a.pdf"])
    assert [entry.name for entry in await local_storage.list()] == ["b.pdf"]
    assert await local_storage.locate("a.pdf") is None


@pytest.mark.asyncio
async def test_local_list_paging_and_prefix(local_storage):
    for name in ("x1.pdf", "x2.pdf", "y1.pdf"):
        await local_storage.upload(name, b"data", "application/pdf")

    assert [e.name for e in await local_storage.list(prefix="x")] == ["x1.pdf", "x2.pdf"]
    assert [e.name for e in await local_storage.list(limit=1, offset=1)] == ["x2.pdf"]
    assert [e.name for e in await local_storage.list(order="desc")] == ["y1.pdf", "x2.pdf", "x1.pdf"]


@pytest.mark.asyncio
async def test_local_find_by_name_is_exact(local_storage):
    await local_storage.upload("report.pdf", b"data", "application/pdf")
    assert [e.name for e in await local_storage.find_by_name("report.pdf")] == ["report.pdf"]
    assert await local_storage.find_by_name("report") == []


@pytest.mark.asyncio
async def test_local_overwrite(local_storage):
    await local_storage.upload("a.pdf", b"one", "application/pdf")
    with pytest.raises(StorageError):
        await local_storage.upload("a.pdf", b"two", "application/pdf", overwrite=False)
    await local_storage.upload("a.pdf", b"three", "application/pdf", overwrite=True)

    blob_path, _, _ = await local_storage.locate("a.pdf")
    assert blob_path.read_bytes() == b"three"


@pytest.mark.asyncio
async def test_local_names_cannot_escape_data_dir(local_storage, tmp_path):
    await local_storage.upload("../../outside.pdf", b"data", "application/pdf")
    assert not (tmp_path.parent / "outside.pdf").exists()
    blob_path, _, _ = await local_storage.locate("../../outside.pdf")
    assert local_storage.data_dir in blob_path.parents


@pytest.mark.asyncio
async def test_local_initialize_cleans_temp(tmp_path):
    temp_dir = tmp_path / "temp"
    temp_dir.mkdir()
    (temp_dir / "leftover_temp.blob").write_bytes(b"junk")

    storage = StorageManager(tmp_path / "data", temp_dir, "http://localhost:8888")
    await storage.initialize()
    assert list(temp_dir.iterdir()) == []


def test_local_public_url():
    storage = StorageManager("data", "temp", "http://localhost:8888/")
    assert storage.get_public_url("my file.pdf") == "http://localhost:8888/storage/my%20file.pdf"


def test_storage_selection(tmp_path):
    local_config = ServerConfig(supabase_url=None, supabase_key=None, data_dir=str(tmp_path))
    assert isinstance(create_storage(local_config), StorageManager)

    remote_config = ServerConfig(supabase_url=SUPABASE_URL, supabase_key="key")
    assert isinstance(create_storage(remote_config), SupabaseStorage)


def test_local_blobs_are_served(server_config):
    """Test an upload through the local backend can be fetched from its public URL."""
    server_config.supabase_url = None
    with TestClient(create_app(server_config)) as client:
        pdf = b"%PDF-1.4 local storage"
        response = client.post("/upload", files={"pdf": ("my doc.pdf", pdf, "application/pdf")})
        assert response.status_code == 200

        response = client.get("/storage/my%20doc.pdf")
        assert response.status_code == 200
        assert response.content == pdf
        assert response.headers["content-type"] == "application/pdf"

        response = client.get("/storage/my%20doc.pdf", headers={"Range": "bytes=1-3"})
        assert response.status_code == 206
        assert response.content == pdf[1:4]

        response = client.get("/web/pdfs/")
        assert "my doc.pdf" in response.text
        assert "localhost%3A8888%2Fstorage%2Fmy%2520doc.pdf" in response.text

        assert client.post("/delete", data={"filename": "my doc.pdf"}).json() == {"success": True}
        assert client.get("/storage/my%20doc.pdf").status_code == 404


def make_supabase(handler):
    return SupabaseStorage(SUPABASE_URL, "secret-key", "pdfs", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_supabase_list():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=[
            {"name": "a.pdf", "id": "1", "updated_at": "2024-01-01T00:00:00Z", "metadata": {}},
            {"name": "b.pdf", "id": "2", "updated_at": None},
        ])

    storage = make_supabase(handler)
    entries = await storage.list(limit=100)
    await storage.close()

    assert [(e.name, e.updated_at) for e in entries] == [("a.pdf", "2024-01-01T00:00:00Z"), ("b.pdf", None)]
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/storage/v1/object/list/pdfs"
    assert request.headers["apikey"] == "secret-key"
    assert request.headers["authorization"] == "Bearer secret-key"
    assert json.loads(request.content) == {
        "prefix": "", "limit": 100, "offset": 0, "sortBy": {"column": "name", "order": "asc"},
    }


@pytest.mark.asyncio
async def test_supabase_find_by_name_filters_exact():
    def handler(request):
        assert json.loads(request.content)["search"] == "report.pdf"
        return httpx.Response(200, json=[{"name": "old-report.pdf"}, {"name": "report.pdf"}])

    storage = make_supabase(handler)
    assert [e.name for e in await storage.find_by_name("report.pdf")] == ["report.pdf"]
    await storage.close()


@pytest.mark.asyncio
async def test_supabase_upload_and_remove():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"Key": "pdfs/x"})

    storage = make_supabase(handler)
    await storage.upload("my file.pdf", b"%PDF", "application/pdf", overwrite=True)
    await storage.remove(["my file.pdf"])
    await storage.close()

    upload, remove = requests
    assert upload.method == "POST"
    assert upload.url.raw_path == b"/storage/v1/object/pdfs/my%20file.pdf"
    assert upload.headers["x-upsert"] == "true"
    assert upload.headers["content-type"] == "application/pdf"
    assert upload.content == b"%PDF"
    assert remove.method == "DELETE"
    assert json.loads(remove.content) == {"prefixes": ["my file.pdf"]}


@pytest.mark.asyncio
async def test_supabase_error_message():
    def handler(request):
        return httpx.Response(400, json={"statusCode": "404", "error": "Not found", "message": "Bucket not found"})

    storage = make_supabase(handler)
    with pytest.raises(StorageError, match="Bucket not found"):
        await storage.list()
    await storage.close()


@pytest.mark.asyncio
async def test_supabase_connection_error():
    def handler(request):
        raise httpx.ConnectError("Connection failed")

    storage = make_supabase(handler)
    with pytest.raises(StorageError, match="Error contacting storage"):
        await storage.upload("a.pdf", b"x", "application/pdf")
    await storage.close()


def test_supabase_public_url():
    storage = SupabaseStorage(SUPABASE_URL + "/", "key", "pdfs")
    assert storage.get_public_url("a b.pdf") == f"{SUPABASE_URL}/storage/v1/object/public/pdfs/a%20b.pdf"
