# FILE: asmr_studio/services/media_service.py
import asyncio
import logging
import subprocess
import time
from pathlib import Path
from typing import Dict, List

from asmr_studio.core.config import MediaConfig
from asmr_studio.core.errors import MediaError
from asmr_studio.services.storage_service import R2Storage, generate_unique_filename

logger = logging.getLogger("asmr-studio.media")


def _thumbnail_command(ffmpeg_path: str, video_path: Path, output_path: Path, timestamp: str, size: str) -> List[str]:
    return [
        ffmpeg_path,
        "-y",
        "-ss",
        timestamp,
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-s",
        size,
        str(output_path),
    ]


async def extract_video_thumbnail(
    video_path: Path,
    output_path: Path,
    *,
    ffmpeg_path: str = "ffmpeg",
    timestamp: str = "00:00:01",
    size: str = "400x300",
) -> Path:
    """Grab a single frame with ffmpeg."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = _thumbnail_command(ffmpeg_path, Path(video_path), output_path, timestamp, size)

    try:
        await asyncio.to_thread(subprocess.run, cmd, check=True, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise MediaError(f"ffmpeg not found at {ffmpeg_path!r}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()[-500:]
        raise MediaError(f"Thumbnail extraction failed for {video_path}: {stderr}") from exc

    if not output_path.exists():
        raise MediaError(f"ffmpeg produced no thumbnail for {video_path}")
    return output_path


async def process_and_upload_video(
    storage: R2Storage,
    video_path: Path,
    video_title: str,
    media: MediaConfig,
) -> Dict[str, str]:
    """Extract a thumbnail from a local video and publish both."""
    video_path = Path(video_path)
    video_filename = generate_unique_filename(video_path.name, "video")
    thumbnail_filename = generate_unique_filename(f"{video_title}.jpg", "thumbnail")
    temp_thumbnail = Path(media.temp_dir) / f"thumbnail-{int(time.time() * 1000)}.jpg"

    try:
        await extract_video_thumbnail(
            video_path,
            temp_thumbnail,
            ffmpeg_path=media.ffmpeg_path,
            timestamp=media.thumbnail_timestamp,
            size=media.thumbnail_size,
        )
        video_url = await storage.upload_file(video_path, f"videos/{video_filename}", "video/mp4")
        thumbnail_url = await storage.upload_file(temp_thumbnail, f"thumbnails/{thumbnail_filename}", "image/jpeg")
    finally:
        try:
            temp_thumbnail.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to clean up temporary thumbnail %s: %s", temp_thumbnail, exc)

    return {"video_url": video_url, "thumbnail_url": thumbnail_url}


async def upload_sample_videos(
    storage: R2Storage,
    directory: Path,
    media: MediaConfig,
) -> List[Dict[str, str]]:
    """Publish every .mp4 in ``directory``; one failure does not stop the batch."""
    directory = Path(directory)
    if not directory.is_dir():
        raise MediaError(f"Sample videos directory not found: {directory}")

    results: List[Dict[str, str]] = []
    for file in sorted(directory.glob("*.mp4")):
        title = file.stem
        logger.info("Processing %s...", file.name)
        try:
            urls = await process_and_upload_video(storage, file, title, media)
        except Exception as exc:
            logger.error("Failed to upload %s: %s", file.name, exc)
            continue

        results.append({
            "id": f"fallback-{len(results) + 1}",
            "title": title,
            "video_url": urls["video_url"],
            "thumbnail_url": urls["thumbnail_url"],
            "original_filename": file.name,
        })
        logger.info("Uploaded %s", file.name)

    return results
