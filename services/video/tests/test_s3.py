from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from app import s3
from app.config import Settings
from app.exceptions import StorageUploadFailed


class _RecordingClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.uploads: list[tuple[bytes, str, str, dict]] = []

    async def upload_fileobj(self, body, bucket: str, key: str, ExtraArgs: dict) -> None:
        if self.error is not None:
            raise self.error
        # Only an async file object can be awaited here
        self.uploads.append((await body.read(), bucket, key, ExtraArgs))


class _Session:
    def __init__(self, client: _RecordingClient) -> None:
        self._client = client
        self.client_kwargs: dict = {}

    @asynccontextmanager
    async def client(self, service: str, **kwargs):
        self.client_kwargs = kwargs
        yield self._client


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> _RecordingClient:
    recording = _RecordingClient()
    monkeypatch.setattr(s3, "_s3_session", lambda settings: _Session(recording))
    return recording


@pytest.fixture
def remuxed(tmp_path: Path) -> str:
    path = tmp_path / "clip.mp4.processing"
    path.write_bytes(b"faststart-bytes")
    return str(path)


@pytest.mark.asyncio
async def test_put_streams_file_with_content_type(
    client: _RecordingClient, remuxed: str,
) -> None:
    store = s3.S3ObjectStore(Settings())
    await store.put("tubely-test", "landscape/abc.mp4", remuxed, "video/mp4")
    assert client.uploads == [
        (b"faststart-bytes", "tubely-test", "landscape/abc.mp4", {"ContentType": "video/mp4"}),
    ]


@pytest.mark.asyncio
async def test_put_maps_client_error(client: _RecordingClient, remuxed: str) -> None:
    client.error = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject",
    )
    with pytest.raises(StorageUploadFailed) as exc_info:
        await s3.S3ObjectStore(Settings()).put("tubely-test", "k.mp4", remuxed, "video/mp4")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_put_missing_file(client: _RecordingClient, tmp_path: Path) -> None:
    with pytest.raises(StorageUploadFailed):
        await s3.S3ObjectStore(Settings()).put(
            "tubely-test", "k.mp4", str(tmp_path / "gone.mp4"), "video/mp4",
        )
    assert client.uploads == []
