import subprocess
from pathlib import Path

import pytest

from asmr_studio.core.errors import MediaError
from asmr_studio.services import media_service


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace ffmpeg with a function that writes the requested output file."""
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        Path(cmd[-1]).write_bytes(b"jpeg")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(media_service.subprocess, "run", run)
    return calls


async def test_extract_thumbnail_builds_ffmpeg_command(tmp_path, fake_ffmpeg):
    out = await media_service.extract_video_thumbnail(tmp_path / "in.mp4", tmp_path / "thumbs" / "t.jpg")

    assert out.read_bytes() == b"jpeg"
    (cmd,) = fake_ffmpeg
    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-ss") + 1] == "00:00:01"
    assert cmd[cmd.index("-s") + 1] == "400x300"
    assert cmd[cmd.index("-frames:v") + 1] == "1"


async def test_extract_thumbnail_failure_raises_media_error(tmp_path, monkeypatch):
    def run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, output="", stderr="Invalid data found")

    monkeypatch.setattr(media_service.subprocess, "run", run)

    with pytest.raises(MediaError, match="Invalid data found"):
        await media_service.extract_video_thumbnail(tmp_path / "in.mp4", tmp_path / "t.jpg")


async def test_missing_ffmpeg_raises_media_error(tmp_path, monkeypatch):
    def run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(media_service.subprocess, "run", run)

    with pytest.raises(MediaError, match="ffmpeg not found"):
        await media_service.extract_video_thumbnail(tmp_path / "in.mp4", tmp_path / "t.jpg", ffmpeg_path="nope")


async def test_process_and_upload_video(tmp_path, fake_ffmpeg, fake_storage, media_config):
    video = tmp_path / "rain.mp4"
    video.write_bytes(b"mp4")

    urls = await media_service.process_and_upload_video(fake_storage, video, "Rain", media_config)

    keys = [key for _, key, _ in fake_storage.uploads]
    assert keys[0].startswith("videos/video-rain-")
    assert keys[1].startswith("thumbnails/thumbnail-Rain-")
    assert urls["video_url"] == f"https://cdn.example.com/{keys[0]}"
    assert urls["thumbnail_url"] == f"https://cdn.example.com/{keys[1]}"
    # temp thumbnail removed
    assert list(Path(media_config.temp_dir).glob("*.jpg")) == []


async def test_upload_sample_videos_skips_failures(tmp_path, fake_ffmpeg, storage_factory, media_config):
    samples = tmp_path / "samples"
    samples.mkdir()
    for name in ("a-bubbles.mp4", "b-broken.mp4", "c-whisper.mp4"):
        (samples / name).write_bytes(b"mp4")
    (samples / "notes.txt").write_text("ignored")

    storage = storage_factory(fail_on="b-broken")
    results = await media_service.upload_sample_videos(storage, samples, media_config)

    assert [r["id"] for r in results] == ["fallback-1", "fallback-2"]
    assert [r["original_filename"] for r in results] == ["a-bubbles.mp4", "c-whisper.mp4"]
    assert results[0]["title"] == "a-bubbles"


async def test_upload_sample_videos_missing_directory(tmp_path, fake_storage, media_config):
    with pytest.raises(MediaError):
        await media_service.upload_sample_videos(fake_storage, tmp_path / "nope", media_config)
