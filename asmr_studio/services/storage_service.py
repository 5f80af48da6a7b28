# FILE: asmr_studio/services/storage_service.py
import asyncio
import logging
import secrets
import time
from pathlib import Path
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from asmr_studio.core.config import StorageConfig
from asmr_studio.core.errors import StorageError

logger = logging.getLogger("asmr-studio.storage")


def generate_unique_filename(original_name: str, prefix: Optional[str] = None) -> str:
    """name-<ms timestamp>-<random>.ext, optionally prefixed."""
    path = Path(original_name)
    stamp = int(time.time() * 1000)
    random_part = secrets.token_hex(3)
    head = f"{prefix}-" if prefix else ""
    return f"{head}{path.stem}-{stamp}-{random_part}{path.suffix}"


class R2Storage:
    """Cloudflare R2 through the S3 API. Objects are served from a public endpoint."""

    def __init__(self, config: StorageConfig, client=None):
        self.config = config
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.config.is_complete:
                raise StorageError(
                    "R2 configuration is incomplete. Set R2_ACCOUNT_ID, R2_BUCKET_NAME, "
                    "R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY."
                )
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                endpoint_url=self.config.endpoint_url,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                region_name=self.config.region,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def public_url(self, key: str) -> str:
        return self.config.public_url(key)

    def put_object(self, key: str, body: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.config.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Error uploading %s to R2: %s", key, exc)
            raise StorageError(f"Failed to upload {key} to R2: {exc}") from exc
        return self.public_url(key)

    async def upload_file(self, file_path: Path, key: str, content_type: str) -> str:
        body = await asyncio.to_thread(Path(file_path).read_bytes)
        url = await asyncio.to_thread(self.put_object, key, body, content_type)
        logger.info("Uploaded %s (%s bytes) -> %s", key, len(body), url)
        return url

    async def upload_image(self, buffer: bytes, filename: str, content_type: str) -> str:
        key = f"images/{generate_unique_filename(filename, 'image')}"
        return await asyncio.to_thread(self.put_object, key, buffer, content_type)
