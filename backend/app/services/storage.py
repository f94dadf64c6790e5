"""Object stores holding file bytes.

Two backends share one surface: ``LocalObjectStore`` keeps objects under a
directory and cannot sign URLs; ``S3ObjectStore`` talks to any
S3-compatible service through the MinIO client and can hand out
presigned download URLs.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from datetime import timedelta
from typing import BinaryIO, Optional, Protocol

import urllib3
from minio import Minio
from minio.error import MinioException, S3Error

from app.core.config import Settings

logger = logging.getLogger(__name__)

MAX_PRESIGN_SECONDS = 7 * 24 * 3600
_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}


class StorageError(Exception):
    """Base class for object store failures."""


class ObjectMissing(StorageError):
    """Metadata points at an object the store does not have."""


class ObjectStoreFailure(StorageError):
    """Transient backend failure (I/O, network, 5xx)."""


class PresignUnsupported(StorageError):
    """The backend has no signed-URL capability."""


class ObjectTooLarge(StorageError):
    """Upload exceeded the size cap; nothing was kept."""


class _CappedReader:
    """File-like wrapper that fails once more than max_size bytes were read."""

    def __init__(self, data: BinaryIO, max_size: int):
        self.data = data
        self.max_size = max_size
        self.consumed = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self.data.read(size)
        self.consumed += len(chunk)
        if self.consumed > self.max_size:
            raise ObjectTooLarge(f"Upload exceeds {self.max_size} bytes")
        return chunk


class ObjectStore(Protocol):
    def put(self, key: str, data: BinaryIO, *, content_type: str, max_size: Optional[int] = None) -> int:
        ...

    def open_read_stream(self, key: str) -> BinaryIO:
        ...

    def presign_download(
        self,
        key: str,
        ttl_seconds: int,
        *,
        content_disposition: str,
        content_type: Optional[str] = None,
    ) -> str:
        ...

    def delete(self, key: str) -> None:
        ...


def new_object_key(file_name: str) -> str:
    """Random object key keeping the original extension."""
    ext = os.path.splitext(file_name)[1].lower()
    if len(ext) > 16 or not ext[1:].isalnum():
        ext = ""
    return f"{uuid.uuid4().hex}{ext}"


class LocalObjectStore:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.dirname(path) != self.root:
            raise ObjectMissing(f"Invalid object key {key!r}")
        return path

    def put(self, key: str, data: BinaryIO, *, content_type: str, max_size: Optional[int] = None) -> int:
        path = self._path(key)
        if max_size is not None:
            data = _CappedReader(data, max_size)
        try:
            with open(path, "wb") as out:
                shutil.copyfileobj(data, out, 1024 * 1024)
            return os.path.getsize(path)
        except ObjectTooLarge:
            os.remove(path)
            raise
        except OSError as exc:
            raise ObjectStoreFailure(str(exc)) from exc

    def open_read_stream(self, key: str) -> BinaryIO:
        path = self._path(key)
        try:
            return open(path, "rb")
        except FileNotFoundError as exc:
            raise ObjectMissing(key) from exc
        except OSError as exc:
            raise ObjectStoreFailure(str(exc)) from exc

    def presign_download(
        self,
        key: str,
        ttl_seconds: int,
        *,
        content_disposition: str,
        content_type: Optional[str] = None,
    ) -> str:
        raise PresignUnsupported("Local storage cannot issue signed URLs")

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ObjectStoreFailure(str(exc)) from exc


class S3ObjectStore:
    def __init__(self, client: Minio, bucket: str):
        self.client = client
        self.bucket = bucket

    def _translate(self, key: str, exc: Exception) -> StorageError:
        if isinstance(exc, S3Error) and exc.code in _MISSING_CODES:
            return ObjectMissing(key)
        return ObjectStoreFailure(str(exc))

    def ensure_bucket(self) -> None:
        try:
            if not self.client.bucket_exists(bucket_name=self.bucket):
                self.client.make_bucket(bucket_name=self.bucket)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            logger.error("Failed to ensure bucket '%s': %s", self.bucket, exc)
            raise ObjectStoreFailure(str(exc)) from exc

    def put(self, key: str, data: BinaryIO, *, content_type: str, max_size: Optional[int] = None) -> int:
        if max_size is not None:
            # The client aborts the multipart upload when reading raises
            data = _CappedReader(data, max_size)
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=data,
                length=-1,
                part_size=10 * 1024 * 1024,
                content_type=content_type,
            )
            return self.stat(key)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise self._translate(key, exc) from exc

    def stat(self, key: str) -> int:
        try:
            info = self.client.stat_object(bucket_name=self.bucket, object_name=key)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise self._translate(key, exc) from exc
        return int(info.size or 0)

    def open_read_stream(self, key: str) -> BinaryIO:
        try:
            return self.client.get_object(bucket_name=self.bucket, object_name=key)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise self._translate(key, exc) from exc

    def presign_download(
        self,
        key: str,
        ttl_seconds: int,
        *,
        content_disposition: str,
        content_type: Optional[str] = None,
    ) -> str:
        expires = timedelta(seconds=max(1, min(int(ttl_seconds), MAX_PRESIGN_SECONDS)))
        response_headers = {"response-content-disposition": content_disposition}
        if content_type:
            response_headers["response-content-type"] = content_type
        try:
            return self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=key,
                expires=expires,
                response_headers=response_headers,
            )
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise self._translate(key, exc) from exc

    def delete(self, key: str) -> None:
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise self._translate(key, exc) from exc


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.USE_S3:
        if not (settings.S3_ENDPOINT and settings.S3_ACCESS_KEY and settings.S3_SECRET_KEY):
            raise RuntimeError("STORAGE_BACKEND=s3 requires S3_ENDPOINT, S3_ACCESS_KEY and S3_SECRET_KEY")
        client = Minio(
            endpoint=settings.S3_ENDPOINT,
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            secure=settings.S3_SECURE,
            region=settings.S3_REGION,
        )
        logger.info("S3 object store initialised for %s (bucket %s).", settings.S3_ENDPOINT, settings.S3_BUCKET)
        return S3ObjectStore(client, settings.S3_BUCKET)
    logger.info("Local object store at %s.", settings.UPLOAD_DIR)
    return LocalObjectStore(settings.UPLOAD_DIR)
