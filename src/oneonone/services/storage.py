"""Blob storage for recording audio and meeting attachments.

Two backends share one async interface (save/load/delete):

- S3Storage: boto3 client (works against AWS or MinIO via endpoint_url).
  boto3 is synchronous, so every call runs in asyncio.to_thread().
  Transport errors are retried with tenacity (3 attempts, exponential
  backoff 1-10s). Reads that miss in S3 fall back to the local
  directory, which covers files written before the bucket was configured.
- LocalStorage: files under LOCAL_STORAGE_DIR.

Failures surface as ExternalServiceError so the API maps them to 502.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.oneonone.config import Settings
from src.oneonone.core.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

_s3_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(
        (EndpointConnectionError, ConnectionClosedError, ConnectTimeoutError, ReadTimeoutError)
    ),
    reraise=True,
)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class LocalStorage:
    """Stores blobs as files below a base directory."""

    backend = "local"

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        path = (self._base_dir / key).resolve()
        if self._base_dir.resolve() not in path.parents:
            raise ExternalServiceError(f"Invalid storage key: {key}")
        return path

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise ExternalServiceError(f"Failed to store file: {exc}") from exc
        logger.info("storage.saved", backend=self.backend, key=key, size=len(data))
        return key

    async def load(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ExternalServiceError(f"Stored file not found: {key}") from exc
        except OSError as exc:
            raise ExternalServiceError(f"Failed to read file: {exc}") from exc

    async def delete(self, key: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(path.unlink, True)
        logger.info("storage.deleted", backend=self.backend, key=key)


class S3Storage:
    """Stores blobs in an S3 bucket.

    Args:
        settings: Application settings carrying bucket and credentials.
        fallback: Optional LocalStorage consulted when a key is missing in S3.
    """

    backend = "s3"

    def __init__(self, settings: Settings, fallback: LocalStorage | None = None) -> None:
        self._bucket = settings.AWS_S3_BUCKET
        self._fallback = fallback
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.AWS_S3_ENDPOINT_URL,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_S3_REGION,
            config=BotoConfig(signature_version="s3v4"),
        )

    @_s3_retry
    async def _put(self, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self._client.put_object,
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    @_s3_retry
    async def _get(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()

        return await asyncio.to_thread(_read)

    @_s3_retry
    async def _remove(self, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=key)

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await self._put(key, data, content_type)
        except (ClientError, EndpointConnectionError, ConnectionClosedError,
                ConnectTimeoutError, ReadTimeoutError) as exc:
            raise ExternalServiceError(f"Failed to upload file to storage: {exc}") from exc
        logger.info("storage.saved", backend=self.backend, key=key, size=len(data))
        return key

    async def load(self, key: str) -> bytes:
        try:
            return await self._get(key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _MISSING_KEY_CODES and self._fallback is not None:
                logger.info("storage.s3_miss_local_fallback", key=key)
                return await self._fallback.load(key)
            raise ExternalServiceError(f"Failed to read file from storage: {exc}") from exc
        except (EndpointConnectionError, ConnectionClosedError,
                ConnectTimeoutError, ReadTimeoutError) as exc:
            raise ExternalServiceError(f"Storage unavailable: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._remove(key)
        except (ClientError, EndpointConnectionError, ConnectionClosedError,
                ConnectTimeoutError, ReadTimeoutError) as exc:
            raise ExternalServiceError(f"Failed to delete file from storage: {exc}") from exc
        logger.info("storage.deleted", backend=self.backend, key=key)


def build_storage(settings: Settings) -> S3Storage | LocalStorage:
    """S3 when a bucket is configured, the local directory otherwise."""
    local = LocalStorage(settings.LOCAL_STORAGE_DIR)
    if settings.AWS_S3_BUCKET:
        return S3Storage(settings, fallback=local)
    return local
