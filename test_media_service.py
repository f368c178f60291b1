import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from training_portal.services.media_service import MediaService

# Async tests
pytestmark = pytest.mark.asyncio


class FakeBlob:
    def __init__(self, bucket, path):
        self.bucket = bucket
        self.path = path
        self.metadata = None

    def upload_from_string(self, content, content_type=None):
        self.bucket.objects[self.path] = content

    def download_as_bytes(self, start=None, end=None):
        content = self.bucket.objects[self.path]
        if start is None:
            return content
        return content[start:end + 1]

    def delete(self):
        self.bucket.objects.pop(self.path)


class FakeBucket:
    def __init__(self):
        self.objects = {}

    def blob(self, path):
        return FakeBlob(self, path)


@pytest.fixture
def service(fake_db):
    svc = MediaService()
    svc.db = fake_db
    svc._bucket = FakeBucket()
    return svc


def _upload(content, filename, content_type):
    return UploadFile(file=io.BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


async def test_video_upload_stores_blob_and_metadata(service):
    record = await service.upload("video", _upload(b"0123456789", "Intro.MP4", "video/mp4"),
                                  uploaded_by="admin_1", duration=12.5)

    assert record["path"].startswith("videos/")
    assert record["path"].endswith(".mp4")
    assert record["size"] == 10
    assert record["duration"] == 12.5
    assert service._bucket.objects[record["path"]] == b"0123456789"
    assert (await service.get_media("video", record["id"]))["original_name"] == "Intro.MP4"


async def test_iter_bytes_streams_requested_range_in_chunks(service):
    record = await service.upload("video", _upload(b"abcdefghij", "clip.mp4", "video/mp4"), uploaded_by="admin_1")

    chunks = list(service.iter_bytes(record, 2, 8, chunk_size=3))

    assert chunks == [b"cde", b"fgh", b"i"]


async def test_video_endpoint_rejects_non_video(service):
    with pytest.raises(HTTPException) as exc:
        await service.upload("video", _upload(b"%PDF", "notes.pdf", "application/pdf"), uploaded_by="admin_1")
    assert exc.value.status_code == 400
    assert exc.value.detail == "Only video files are allowed"


async def test_file_type_guessed_from_name_and_empty_rejected(service):
    record = await service.upload("file", _upload(b"%PDF-1.4", "notes.pdf", "application/octet-stream"),
                                  uploaded_by="admin_1")
    assert record["mime_type"] == "application/pdf"

    with pytest.raises(HTTPException) as exc:
        await service.upload("file", _upload(b"", "empty.txt", "text/plain"), uploaded_by="admin_1")
    assert exc.value.detail == "File is empty"


async def test_disallowed_file_type(service):
    with pytest.raises(HTTPException) as exc:
        await service.upload("file", _upload(b"MZ", "tool.exe", "application/x-msdownload"), uploaded_by="admin_1")
    assert exc.value.detail == "Invalid file type"


async def test_delete_removes_blob_and_record(service):
    record = await service.upload("file", _upload(b"hello", "readme.txt", "text/plain"), uploaded_by="admin_1")

    assert await service.delete_media("file", record["id"]) is True
    assert service._bucket.objects == {}
    assert await service.get_media("file", record["id"]) is None
    assert await service.delete_media("file", record["id"]) is False
