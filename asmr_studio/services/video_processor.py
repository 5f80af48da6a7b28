# FILE: asmr_studio/services/video_processor.py
"""
Fetch-and-publish pipeline for finished generation tasks.

    downloading -> uploading -> persisting -> completing -> done
                 (any failure -> failed, temp files removed)

No retries: every external call is attempted once. Only the ledger tagging
at the end is allowed to fail without failing the pipeline.
"""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Union

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from asmr_studio.core.config import MediaConfig
from asmr_studio.core.errors import DownloadError, PersistenceError
from asmr_studio.models.video import Video
from asmr_studio.schemas.videos import (
    CompletedVideo,
    DownloadedFile,
    VideoMetadata,
    VideoProcessingResult,
)
from asmr_studio.services.credits_manager import record_video_completion

logger = logging.getLogger("asmr-studio.videos")

ProgressCallback = Callable[[int, int], None]
PathLike = Union[str, Path]

CHUNK_SIZE = 64 * 1024


def cleanup_temp_files(file_paths: Iterable[Optional[PathLike]]) -> None:
    for file_path in file_paths:
        if not file_path:
            continue
        path = Path(file_path)
        try:
            if path.exists():
                path.unlink()
                logger.info("Cleaned up temporary file: %s", path)
        except OSError as exc:
            logger.warning("Failed to clean up temporary file %s: %s", path, exc)


async def _gather_all(*aws: Awaitable):
    """Run together; if one fails, cancel the rest and re-raise the first error."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class VideoProcessor:
    def __init__(
        self,
        storage,
        media: MediaConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.media = media
        self._transport = transport

    @property
    def temp_dir(self) -> Path:
        return Path(self.media.temp_dir)

    def _timeout(self) -> httpx.Timeout:
        # read timeout = max silence between two chunks, not total duration
        return httpx.Timeout(30.0, read=self.media.download_timeout_seconds)

    async def download_video(
        self,
        url: str,
        file_name: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DownloadedFile:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.temp_dir / file_name

        logger.info("Downloading %s -> %s", url, file_path)
        try:
            file_size = await self._stream_to_file(url, file_path, on_progress)
        except BaseException:
            cleanup_temp_files([file_path])
            raise

        logger.info("Download completed: %s (%s bytes)", file_path.name, file_size)
        return DownloadedFile(file_path=file_path, file_size=file_size)

    async def _stream_to_file(
        self,
        url: str,
        file_path: Path,
        on_progress: Optional[ProgressCallback],
    ) -> int:
        downloaded = 0
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), transport=self._transport) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise DownloadError(f"HTTP {response.status_code}: {response.reason_phrase}")

                    total = int(response.headers.get("content-length") or 0)
                    with file_path.open("wb") as handle:
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            handle.write(chunk)
                            downloaded += len(chunk)
                            if total:
                                logger.debug(
                                    "Download progress %s: %s%% (%s/%s bytes)",
                                    file_path.name, round(downloaded / total * 100), downloaded, total,
                                )
                            if on_progress:
                                on_progress(downloaded, total)
        except httpx.TimeoutException as exc:
            raise DownloadError("Download timeout") from exc
        except httpx.HTTPError as exc:
            raise DownloadError(f"Download failed: {exc}") from exc
        return downloaded

    async def process_kie_video_and_thumbnail(
        self,
        video_url: str,
        thumbnail_url: str,
        metadata: VideoMetadata,
    ) -> VideoProcessingResult:
        """Download both files, then upload both. Both temp files go away on failure."""
        task_id = metadata.task_id
        timestamp = int(time.time() * 1000)
        video_name = f"kie-video-{task_id}-{timestamp}.mp4"
        thumbnail_name = f"kie-thumbnail-{task_id}-{timestamp}.jpg"
        local_paths: List[Path] = [self.temp_dir / video_name, self.temp_dir / thumbnail_name]

        logger.info("Processing video and thumbnail for task %s", task_id)
        try:
            video_file, thumbnail_file = await _gather_all(
                self.download_video(video_url, video_name),
                self.download_video(thumbnail_url, thumbnail_name),
            )

            short_id = task_id[:8]
            public_video_url, public_thumbnail_url = await _gather_all(
                self.storage.upload_file(
                    video_file.file_path, f"videos/video-{timestamp}-{short_id}.mp4", "video/mp4"
                ),
                self.storage.upload_file(
                    thumbnail_file.file_path, f"thumbnails/thumb-{timestamp}-{short_id}.jpg", "image/jpeg"
                ),
            )
        except BaseException as exc:
            logger.error("Error processing video for task %s: %s", task_id, exc)
            cleanup_temp_files(local_paths)
            raise

        logger.info("Upload complete for task %s: %s", task_id, public_video_url)
        return VideoProcessingResult(
            video_url=public_video_url,
            thumbnail_url=public_thumbnail_url,
            video_file_size=video_file.file_size,
            thumbnail_file_size=thumbnail_file.file_size,
            local_video_path=video_file.file_path,
            local_thumbnail_path=thumbnail_file.file_path,
        )

    async def save_video_to_database(
        self,
        db: AsyncSession,
        result: VideoProcessingResult,
        metadata: VideoMetadata,
    ) -> str:
        now = datetime.utcnow()
        video = Video(
            user_id=metadata.user_id or None,
            task_id=metadata.task_id,
            title=f"ASMR Video {now.date().isoformat()}",
            description="AI-generated ASMR video via KIE API",
            prompt=metadata.original_prompt or "Generated via KIE API",
            triggers=list(metadata.triggers),
            category="Object",
            status="ready",
            credit_cost=self.media.video_credit_cost,
            duration=metadata.duration or "5s",
            resolution=metadata.quality or "720p",
            aspect_ratio=metadata.aspect_ratio or "16:9",
            preview_url=result.video_url,
            download_url=result.video_url,
            thumbnail_url=result.thumbnail_url,
            file_size=result.video_file_size,
            provider=self.media.provider,
            generation_completed_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(video)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Database error saving video for task %s: %s", metadata.task_id, exc)
            raise PersistenceError(f"Failed to save video to database: {exc}") from exc

        if not video.id:
            raise PersistenceError("Failed to save video to database: No data returned")

        logger.info("Video saved to database with ID: %s", video.id)
        return video.id

    async def complete_video_processing(
        self,
        db: AsyncSession,
        video_url: str,
        thumbnail_url: str,
        metadata: VideoMetadata,
    ) -> CompletedVideo:
        result = await self.process_kie_video_and_thumbnail(video_url, thumbnail_url, metadata)
        try:
            video_id = await self.save_video_to_database(db, result, metadata)

            if metadata.user_id:
                completion = await record_video_completion(db, metadata.user_id, metadata.task_id, video_id)
                if not completion.success:
                    logger.warning("Failed to record video completion: %s", completion.error)
        finally:
            cleanup_temp_files([result.local_video_path, result.local_thumbnail_path])

        return CompletedVideo(
            video_id=video_id,
            video_url=result.video_url,
            thumbnail_url=result.thumbnail_url,
        )
