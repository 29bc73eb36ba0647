from pathlib import Path

from core.status import StatusQuery


def test_unknown_job(registry):
    assert StatusQuery(registry).status("nope") == {"status": "not_found", "error": "Task not found"}


def test_processing(registry):
    registry.create("job-1")
    assert StatusQuery(registry).status("job-1") == {"status": "processing"}


def test_completed_with_thumbnail(registry):
    registry.create("job-1")
    registry.complete("job-1", Path("abc") / "song.mp3", Path("abc") / "song.jpg")

    assert StatusQuery(registry).status("job-1") == {
        "status": "completed",
        "filename": "abc/song.mp3",
        "thumbnail": "abc/song.jpg",
    }


def test_completed_without_thumbnail(registry):
    registry.create("job-1")
    registry.complete("job-1", Path("song.mp3"))

    assert StatusQuery(registry).status("job-1") == {"status": "completed", "filename": "song.mp3"}


def test_failed(registry):
    registry.create("job-1")
    registry.fail("job-1", "yt-dlp execution failed: network unreachable")

    assert StatusQuery(registry).status("job-1") == {
        "status": "failed",
        "error": "yt-dlp execution failed: network unreachable",
    }
