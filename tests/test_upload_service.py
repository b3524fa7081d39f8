import re
import time
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock, MagicMock

from services.upload_service.app.main import app
from core.config import settings
from core.models import StoredObject
from core.storage import StorageError
from core.utils import now_millis
from services.upload_service.app.routers.bundle_upload import RequestBodyTooLarge, capped_stream

UPLOAD_URL = "/api/bundle/js-upload"
ADAPTER_PATH = "services.upload_service.app.routers.bundle_upload.get_storage_adapter"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def mock_adapter():
    adapter = MagicMock()
    adapter.backend_name = "mock"
    adapter.payloads = []

    def _store(key, stream, content_type):
        # The upload stream is closed once the request finishes, so read it here
        stream.seek(0)
        adapter.payloads.append(stream.read())
        return StoredObject(key=key, location=f"https://cdn.example.com/bundles/{key}")

    adapter.store.side_effect = _store
    with patch(ADAPTER_PATH, new_callable=AsyncMock) as mock_get_adapter:
        mock_get_adapter.return_value = adapter
        yield adapter


def _bundle(name="bundle.js", content=b"console.log('hi');", media_type="text/javascript"):
    return {settings.UPLOAD_FIELD_NAME: (name, content, media_type)}


# --- Meta endpoints ---
def test_health_check(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    json_response = response.json()
    assert json_response["status"] == "ok"
    assert json_response["max_upload_size_bytes"] == settings.MAX_UPLOAD_SIZE_BYTES

def test_read_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert "/api/bundle/js-upload" in response.json()["message"]


# --- Accepted uploads ---
def test_upload_bundle_success(client: TestClient, mock_adapter: MagicMock):
    content = b"x" * 10_000_000 # 10MB bundle
    received_at = now_millis()
    response = client.post(UPLOAD_URL, files=_bundle(content=content))

    assert response.status_code == 200
    body = response.json()
    assert set(body.keys()) == {"image", "location"}
    match = re.fullmatch(r"bundle-(\d+)\.js", body["image"])
    assert match is not None
    assert int(match.group(1)) >= received_at
    assert body["location"] == f"https://cdn.example.com/bundles/{body['image']}"

    mock_adapter.store.assert_called_once()
    key, _, content_type = mock_adapter.store.call_args[0]
    assert key == body["image"]
    assert content_type == "text/javascript"
    assert mock_adapter.payloads == [content]

def test_upload_jsx_with_charset_parameter(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, files=_bundle(name="App.JSX", media_type="text/javascript; charset=utf-8"))

    assert response.status_code == 200
    assert re.fullmatch(r"App-\d+\.JSX", response.json()["image"])

def test_identical_uploads_get_distinct_keys(client: TestClient, mock_adapter: MagicMock):
    first = client.post(UPLOAD_URL, files=_bundle())
    time.sleep(0.005)
    second = client.post(UPLOAD_URL, files=_bundle())

    assert first.json()["image"] != second.json()["image"]
    assert first.json()["location"] != second.json()["location"]
    assert mock_adapter.store.call_count == 2

@patch("services.upload_service.app.routers.bundle_upload.now_millis", return_value=1718031234567)
def test_key_suffix_is_receipt_time(mock_now, client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, files=_bundle())

    assert response.json()["image"] == "bundle-1718031234567.js"


# --- Size gate ---
def test_upload_too_large_is_rejected_before_storage(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, files=_bundle(content=b"x" * 25_000_000))

    assert response.status_code == 200
    body = response.json()
    assert "location" not in body
    assert body["error"]["code"] == "LIMIT_FILE_SIZE"
    assert body["error"]["field"] == settings.UPLOAD_FIELD_NAME
    assert body["error"]["limit"] == settings.MAX_UPLOAD_SIZE_BYTES
    mock_adapter.store.assert_not_called()

def test_size_check_runs_before_type_check(client: TestClient, mock_adapter: MagicMock):
    # Oversized AND wrong type: the size error wins
    with patch.object(settings, "MAX_UPLOAD_SIZE_BYTES", 10):
        response = client.post(UPLOAD_URL, files=_bundle(name="image.png", content=b"x" * 100, media_type="image/png"))

    assert response.status_code == 200
    assert response.json()["error"]["code"] == "LIMIT_FILE_SIZE"
    mock_adapter.store.assert_not_called()

def test_declared_content_length_gate(client: TestClient, mock_adapter: MagicMock):
    with patch.object(settings, "MAX_UPLOAD_SIZE_BYTES", 10), patch.object(settings, "MULTIPART_OVERHEAD_BYTES", 0):
        response = client.post(UPLOAD_URL, files=_bundle(content=b"x" * 5))

    assert response.status_code == 200
    assert response.json()["error"]["code"] == "LIMIT_FILE_SIZE"
    mock_adapter.store.assert_not_called()

def test_file_exactly_at_limit_is_accepted(client: TestClient, mock_adapter: MagicMock):
    with patch.object(settings, "MAX_UPLOAD_SIZE_BYTES", 64):
        response = client.post(UPLOAD_URL, files=_bundle(content=b"x" * 64))

    assert response.status_code == 200
    assert "location" in response.json()

def test_chunked_body_is_stopped_once_over_limit(client: TestClient, mock_adapter: MagicMock):
    boundary = "bundleboundary"
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{settings.UPLOAD_FIELD_NAME}"; filename="bundle.js"\r\n'
        "Content-Type: text/javascript\r\n\r\n"
    ).encode()

    def body():
        yield head
        for _ in range(200):
            yield b"x" * 1000
        yield f"\r\n--{boundary}--\r\n".encode()

    # A generator body is sent chunked, without Content-Length
    with patch.object(settings, "MAX_UPLOAD_SIZE_BYTES", 10), patch.object(settings, "MULTIPART_OVERHEAD_BYTES", 0):
        response = client.post(
            UPLOAD_URL,
            content=body(),
            headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
        )

    assert response.status_code == 200
    assert response.json()["error"]["code"] == "LIMIT_FILE_SIZE"
    mock_adapter.store.assert_not_called()

@pytest.mark.asyncio
async def test_capped_stream_stops_reading_past_limit():
    class ChunkedRequest:
        def __init__(self, chunks):
            self.chunks = chunks
            self.pulled = 0

        async def stream(self):
            for chunk in self.chunks:
                self.pulled += 1
                yield chunk

    request = ChunkedRequest([b"x" * 1000] * 200)
    received = []
    with pytest.raises(RequestBodyTooLarge) as exc_info:
        async for chunk in capped_stream(request, limit=2500):
            received.append(chunk)

    assert request.pulled == 3
    assert len(received) == 2
    assert exc_info.value.received == 3000

@pytest.mark.asyncio
async def test_capped_stream_passes_body_under_limit():
    class SmallRequest:
        async def stream(self):
            yield b"let a;"
            yield b""

    chunks = [chunk async for chunk in capped_stream(SmallRequest(), limit=6)]
    assert b"".join(chunks) == b"let a;"

def test_multipart_without_boundary_is_bad_request(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, content=b"garbage", headers={"Content-Type": "multipart/form-data"})

    assert response.status_code == 400
    mock_adapter.store.assert_not_called()


# --- Type gate ---
@pytest.mark.parametrize("name,media_type", [
    ("image.png", "image/png"),
    ("bundle.js", "image/png"),
    ("notes.txt", "text/javascript"),
    ("bundle.json", "application/json"),
    ("bundle", "text/javascript"),
])
def test_type_rejected(name, media_type, client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, files=_bundle(name=name, media_type=media_type))

    assert response.status_code == 200
    assert response.json() == {"error": "Error: JS Only!"}
    mock_adapter.store.assert_not_called()


# --- No file ---
def test_no_body_means_no_file_selected(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL)

    assert response.status_code == 200
    assert response.json() == "Error: No File Selected"
    mock_adapter.store.assert_not_called()

def test_other_field_means_no_file_selected(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, files={"uploadJS": ("bundle.js", b"x", "text/javascript")})

    assert response.status_code == 200
    body = response.json()
    assert body == "Error: No File Selected"
    assert not isinstance(body, dict)

def test_text_field_with_upload_name_means_no_file_selected(client: TestClient, mock_adapter: MagicMock):
    response = client.post(UPLOAD_URL, data={settings.UPLOAD_FIELD_NAME: "not-a-file"})

    assert response.status_code == 200
    assert response.json() == "Error: No File Selected"


# --- Storage failures ---
def test_storage_failure_is_reported_as_bad_gateway(client: TestClient, mock_adapter: MagicMock):
    mock_adapter.store.side_effect = StorageError("Supabase Storage upload failed: The resource already exists")

    response = client.post(UPLOAD_URL, files=_bundle())

    assert response.status_code == 502
    assert response.json() == {"error": "Supabase Storage upload failed: The resource already exists"}

@patch(ADAPTER_PATH, new_callable=AsyncMock)
def test_storage_unavailable_is_reported_as_bad_gateway(mock_get_adapter, client: TestClient):
    mock_get_adapter.side_effect = StorageError("Storage bucket not configured")

    response = client.post(UPLOAD_URL, files=_bundle())

    assert response.status_code == 502
    assert response.json() == {"error": "Storage bucket not configured"}

@patch(ADAPTER_PATH, new_callable=AsyncMock)
def test_storage_not_touched_on_rejection(mock_get_adapter, client: TestClient):
    client.post(UPLOAD_URL, files=_bundle(name="image.png", media_type="image/png"))
    client.post(UPLOAD_URL)

    mock_get_adapter.assert_not_called()
