"""Download delivery: stream the bytes ourselves or redirect to a signed URL.

The adapter is picked once at composition time from the active object
store; the share service only ever sees ``DownloadDeliveryAdapter``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Dict, Iterator, Protocol, TypeVar, Union
from urllib.parse import quote

from app.core.config import Settings
from app.core.errors import StorageUnavailableError
from app.models.file import FileMeta
from app.services.storage import (
    LocalObjectStore,
    ObjectMissing,
    ObjectStore,
    ObjectStoreFailure,
    S3ObjectStore,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB chunk size

T = TypeVar("T")


def content_disposition(file_name: str) -> str:
    # URL encode the filename to handle non-ASCII characters
    return f"attachment; filename*=UTF-8''{quote(file_name)}"


@dataclass
class StreamDescriptor:
    stream: BinaryIO
    media_type: str
    headers: Dict[str, str] = field(default_factory=dict)

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        try:
            while chunk := self.stream.read(chunk_size):
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self.stream.close()


@dataclass(frozen=True)
class RedirectDescriptor:
    url: str
    expires_in: int

    def close(self) -> None:
        pass


DeliveryDescriptor = Union[StreamDescriptor, RedirectDescriptor]


class DownloadDeliveryAdapter(Protocol):
    def deliver(self, file: FileMeta) -> DeliveryDescriptor:
        ...


class _RetryingDelivery:
    def __init__(
        self,
        *,
        retry_attempts: int = 0,
        retry_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.retry_attempts = max(0, retry_attempts)
        self.retry_delay = retry_delay
        self.sleep = sleep

    def _with_retry(self, file: FileMeta, action: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return action()
            except ObjectMissing as exc:
                logger.error("Object for file %s missing from storage", file.id)
                raise StorageUnavailableError() from exc
            except ObjectStoreFailure as exc:
                if attempt >= self.retry_attempts:
                    logger.error("Storage failed for file %s after %d attempts: %s", file.id, attempt + 1, exc)
                    raise StorageUnavailableError() from exc
                attempt += 1
                logger.warning("Transient storage failure for file %s, retry %d: %s", file.id, attempt, exc)
                self.sleep(self.retry_delay)


class StreamDelivery(_RetryingDelivery):
    """Serve bytes through the application (local disk backend)."""

    def __init__(self, store: ObjectStore, **kwargs):
        super().__init__(**kwargs)
        self.store = store

    def deliver(self, file: FileMeta) -> StreamDescriptor:
        stream = self._with_retry(file, lambda: self.store.open_read_stream(file.storage_path))
        return StreamDescriptor(
            stream=stream,
            media_type=file.mime_type or "application/octet-stream",
            headers={
                "Content-Disposition": content_disposition(file.file_name),
                "Content-Length": str(file.file_size),
            },
        )


class RedirectDelivery(_RetryingDelivery):
    """Hand the client a short-lived signed URL (S3-compatible backend)."""

    def __init__(self, store: S3ObjectStore, *, ttl_seconds: int = 3600, **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.ttl_seconds = ttl_seconds

    def _presign(self, file: FileMeta) -> str:
        # Signing is offline, so check the object exists before sending the client there
        self.store.stat(file.storage_path)
        return self.store.presign_download(
            file.storage_path,
            self.ttl_seconds,
            content_disposition=content_disposition(file.file_name),
            content_type=file.mime_type,
        )

    def deliver(self, file: FileMeta) -> RedirectDescriptor:
        url = self._with_retry(file, lambda: self._presign(file))
        return RedirectDescriptor(url=url, expires_in=self.ttl_seconds)


def build_delivery(settings: Settings, store: ObjectStore) -> DownloadDeliveryAdapter:
    retry = {
        "retry_attempts": settings.STORAGE_RETRY_ATTEMPTS,
        "retry_delay": settings.STORAGE_RETRY_DELAY_SECONDS,
    }
    if isinstance(store, S3ObjectStore):
        return RedirectDelivery(store, ttl_seconds=settings.SHARE_LINK_TTL_SECONDS, **retry)
    if isinstance(store, LocalObjectStore):
        return StreamDelivery(store, **retry)
    raise TypeError(f"No delivery adapter for {type(store).__name__}")
