# =========================================================
# FILE: /asmr_studio/schemas/videos.py
# =========================================================

import re
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, validator

# task ids end up in temp file names
TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def check_task_id(value: str) -> str:
    if not value or not TASK_ID_PATTERN.match(value):
        raise ValueError("task_id may only contain letters, digits, '-' and '_'")
    return value


class VideoMetadata(BaseModel):
    task_id: str
    user_id: Optional[str] = None
    original_prompt: Optional[str] = None
    triggers: List[str] = Field(default_factory=list)
    duration: Optional[str] = None
    quality: Optional[str] = None
    aspect_ratio: Optional[str] = None

    @validator("task_id")
    def validate_task_id(cls, value: str):
        return check_task_id(value)


class DownloadedFile(BaseModel):
    file_path: Path
    file_size: int


class VideoProcessingResult(BaseModel):
    video_url: str
    thumbnail_url: str
    video_file_size: int
    thumbnail_file_size: int
    local_video_path: Path
    local_thumbnail_path: Path


class CompletedVideo(BaseModel):
    video_id: str
    video_url: str
    thumbnail_url: str


class VideoGenerationRequest(BaseModel):
    prompt: str
    triggers: List[str] = Field(default_factory=list)
    duration: Optional[str] = None
    quality: Optional[str] = None
    aspect_ratio: Optional[str] = None

    @validator("prompt")
    def validate_prompt(cls, value: str):
        if not value or not value.strip():
            raise ValueError("Prompt cannot be empty")
        return value.strip()


class VideoGenerationResponse(BaseModel):
    task_id: str
    status: str
    credits_charged: int
    remaining_credits: int


class GenerationCallback(BaseModel):
    task_id: str
    status: Literal["success", "failed"]
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    prompt: Optional[str] = None
    triggers: List[str] = Field(default_factory=list)
    duration: Optional[str] = None
    quality: Optional[str] = None
    aspect_ratio: Optional[str] = None
    error: Optional[str] = None

    @validator("task_id")
    def validate_task_id(cls, value: str):
        return check_task_id(value)


class VideoOut(BaseModel):
    id: str
    task_id: str
    title: str
    status: str
    preview_url: Optional[str]
    thumbnail_url: Optional[str]
    file_size: Optional[int]
    created_at: datetime
