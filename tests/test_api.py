import time

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from api.files import resolve_download_path
from core.dispatcher import ConversionDispatcher
from core.job_registry import JobRegistry
from main import create_app
from helpers import VALID_URL, FakeExtractor


@pytest.fixture
def extractor():
    return FakeExtractor(title="track")


@pytest.fixture
def client(downloads_dir, extractor):
    dispatcher = ConversionDispatcher(JobRegistry(), extractor, downloads_dir)
    app = create_app(dispatcher)
    with TestClient(app) as test_client:
        yield test_client


def poll(client: TestClient, task_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/status/{task_id}").json()
        if body["status"] != "processing" or time.monotonic() > deadline:
            return body
        time.sleep(0.05)


def test_convert_and_download(client, downloads_dir):
    response = client.post("/convert", data={"youtube_url": VALID_URL})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"

    status = poll(client, body["task_id"])
    assert status["status"] == "completed"
    assert "error" not in status

    audio = client.get(f"/download/{status['filename']}")
    assert audio.status_code == 200
    assert audio.content == b"data"
    assert audio.headers["content-type"] == "audio/mpeg"
    assert audio.headers["content-disposition"].startswith("attachment")

    thumb = client.get(f"/thumbnail/{status['thumbnail']}")
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/jpeg"
    assert thumb.headers["cache-control"] == "public, max-age=3600"


def test_convert_rejects_other_sites(client, extractor):
    response = client.post("/convert", data={"youtube_url": "https://vimeo.com/123"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Please provide a valid YouTube URL"
    assert extractor.calls == []


def test_convert_requires_url(client):
    assert client.post("/convert", data={}).status_code == 422


def test_failed_job_reports_error(downloads_dir):
    extractor = FakeExtractor(returncode=1, stderr="ERROR: network unreachable")
    dispatcher = ConversionDispatcher(JobRegistry(), extractor, downloads_dir)

    with TestClient(create_app(dispatcher)) as client:
        task_id = client.post("/convert", data={"youtube_url": VALID_URL}).json()["task_id"]
        status = poll(client, task_id)

    assert status["status"] == "failed"
    assert "network unreachable" in status["error"]
    assert "filename" not in status


def test_unknown_task(client):
    response = client.get("/status/does-not-exist")

    assert response.status_code == 200
    assert response.json() == {"status": "not_found", "error": "Task not found"}


def test_download_missing_file(client):
    assert client.get("/download/nothing.mp3").status_code == 404
    assert client.get("/thumbnail/nothing.png").status_code == 404


def test_thumbnail_media_type_follows_extension(client, downloads_dir):
    (downloads_dir / "cover.webp").write_bytes(b"img")

    response = client.get("/thumbnail/cover.webp")

    assert response.headers["content-type"] == "image/webp"


def test_download_path_cannot_escape_root(tmp_path, downloads_dir):
    secret = tmp_path / "secret.txt"
    secret.write_text("nope")

    for name in ("../secret.txt", str(secret), "sub/../../secret.txt"):
        with pytest.raises(HTTPException) as excinfo:
            resolve_download_path(downloads_dir, name)
        assert excinfo.value.status_code == 403


def test_download_path_inside_root(downloads_dir):
    nested = downloads_dir / "job" / "song.mp3"
    nested.parent.mkdir()
    nested.write_bytes(b"data")

    assert resolve_download_path(downloads_dir, "job/song.mp3") == nested.resolve()
