import io
import os
from datetime import timedelta
from types import SimpleNamespace

import pytest
from minio.error import MinioException

from app import crud, schemas
from app.core.config import Settings
from app.core.errors import StorageUnavailableError
from app.services.delivery import (
    RedirectDelivery,
    RedirectDescriptor,
    StreamDelivery,
    StreamDescriptor,
    build_delivery,
    content_disposition,
)
from app.services.storage import (
    LocalObjectStore,
    ObjectMissing,
    ObjectStoreFailure,
    ObjectTooLarge,
    PresignUnsupported,
    S3ObjectStore,
)


class FakeMinio:
    """Just enough of the MinIO client surface for stat and presign."""

    def __init__(self, objects=None, fail_times=0):
        self.objects = dict(objects or {})
        self.fail_times = fail_times
        self.presigned = []

    def put_object(self, bucket_name, object_name, data, length, part_size, content_type):
        self.objects[object_name] = len(data.read())

    def stat_object(self, bucket_name, object_name):
        if self.fail_times:
            self.fail_times -= 1
            raise MinioException("connection reset")
        return SimpleNamespace(size=self.objects[object_name])

    def presigned_get_object(self, bucket_name, object_name, expires, response_headers=None):
        self.presigned.append(
            {"bucket": bucket_name, "key": object_name, "expires": expires, "headers": response_headers}
        )
        return f"https://s3.example.com/{bucket_name}/{object_name}?X-Amz-Signature=abc"


class FlakyStore:
    def __init__(self, inner, failures, error=ObjectStoreFailure):
        self.inner = inner
        self.failures = failures
        self.error = error
        self.calls = 0

    def open_read_stream(self, key):
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise self.error("disk hiccup")
        return self.inner.open_read_stream(key)


def test_content_disposition_encodes_non_ascii_names():
    assert content_disposition("résumé 2026.pdf") == (
        "attachment; filename*=UTF-8''r%C3%A9sum%C3%A9%202026.pdf"
    )


def test_stream_delivery_describes_the_file(object_store, owned_file):
    descriptor = StreamDelivery(object_store).deliver(owned_file)

    assert isinstance(descriptor, StreamDescriptor)
    assert descriptor.media_type == "application/pdf"
    assert descriptor.headers["Content-Length"] == str(owned_file.file_size)
    assert descriptor.headers["Content-Disposition"] == content_disposition("report.pdf")
    assert b"".join(descriptor.iter_chunks(chunk_size=4)) == b"%PDF-1.4 quarterly numbers"
    assert descriptor.stream.closed


def test_stream_delivery_missing_object_is_not_retried(object_store, owned_file):
    object_store.delete(owned_file.storage_path)
    flaky = FlakyStore(object_store, failures=0)
    sleeps = []

    with pytest.raises(StorageUnavailableError):
        StreamDelivery(flaky, retry_attempts=3, sleep=sleeps.append).deliver(owned_file)

    assert flaky.calls == 1
    assert sleeps == []


def test_stream_delivery_retries_transient_failures(object_store, owned_file):
    flaky = FlakyStore(object_store, failures=2)
    sleeps = []

    descriptor = StreamDelivery(
        flaky, retry_attempts=2, retry_delay=0.5, sleep=sleeps.append
    ).deliver(owned_file)

    descriptor.close()
    assert flaky.calls == 3
    assert sleeps == [0.5, 0.5]


def test_stream_delivery_gives_up_after_retries(object_store, owned_file):
    flaky = FlakyStore(object_store, failures=5)

    with pytest.raises(StorageUnavailableError):
        StreamDelivery(flaky, retry_attempts=1, sleep=lambda _: None).deliver(owned_file)

    assert flaky.calls == 2


def test_redirect_delivery_presigns_with_headers(owned_file):
    client = FakeMinio(objects={owned_file.storage_path: owned_file.file_size})
    store = S3ObjectStore(client, "securecloud")

    descriptor = RedirectDelivery(store, ttl_seconds=600).deliver(owned_file)

    assert isinstance(descriptor, RedirectDescriptor)
    assert descriptor.expires_in == 600
    assert descriptor.url.startswith("https://s3.example.com/securecloud/")
    signed = client.presigned[0]
    assert signed["key"] == owned_file.storage_path
    assert signed["expires"] == timedelta(seconds=600)
    assert signed["headers"]["response-content-disposition"] == content_disposition("report.pdf")
    assert signed["headers"]["response-content-type"] == "application/pdf"


def test_redirect_delivery_fails_closed_when_storage_is_down(owned_file):
    client = FakeMinio(objects={owned_file.storage_path: owned_file.file_size}, fail_times=10)
    store = S3ObjectStore(client, "securecloud")

    with pytest.raises(StorageUnavailableError):
        RedirectDelivery(store, retry_attempts=1, sleep=lambda _: None).deliver(owned_file)

    assert client.presigned == []


def test_presign_ttl_is_clamped(owned_file):
    client = FakeMinio()
    store = S3ObjectStore(client, "securecloud")

    store.presign_download("k", 30 * 24 * 3600, content_disposition="attachment")
    store.presign_download("k", 0, content_disposition="attachment")

    assert client.presigned[0]["expires"] == timedelta(days=7)
    assert client.presigned[1]["expires"] == timedelta(seconds=1)


def test_local_store_cannot_presign(object_store):
    with pytest.raises(PresignUnsupported):
        object_store.presign_download("anything", 60, content_disposition="attachment")


def test_local_store_rejects_keys_outside_its_root(object_store):
    with pytest.raises(ObjectMissing):
        object_store.open_read_stream("../outside.txt")


def test_local_store_round_trips_bytes(object_store):
    size = object_store.put("notes.txt", io.BytesIO(b"hello"), content_type="text/plain")

    with object_store.open_read_stream("notes.txt") as stream:
        assert stream.read() == b"hello"
    assert size == 5


def test_local_store_refuses_oversized_upload(object_store):
    with pytest.raises(ObjectTooLarge):
        object_store.put("big.bin", io.BytesIO(b"x" * 64), content_type="application/octet-stream", max_size=16)

    assert not os.path.exists(os.path.join(object_store.root, "big.bin"))
    assert object_store.put("ok.bin", io.BytesIO(b"x" * 16), content_type="text/plain", max_size=16) == 16


def test_s3_store_refuses_oversized_upload():
    client = FakeMinio()
    store = S3ObjectStore(client, "securecloud")

    with pytest.raises(ObjectTooLarge):
        store.put("big.bin", io.BytesIO(b"x" * 64), content_type="text/plain", max_size=16)

    assert "big.bin" not in client.objects
    assert store.put("ok.bin", io.BytesIO(b"hello"), content_type="text/plain", max_size=16) == 5


def test_build_delivery_follows_the_store(tmp_path):
    settings = Settings()

    assert isinstance(build_delivery(settings, LocalObjectStore(str(tmp_path))), StreamDelivery)
    redirect = build_delivery(settings, S3ObjectStore(FakeMinio(), "bucket"))
    assert isinstance(redirect, RedirectDelivery)
    assert redirect.ttl_seconds == settings.SHARE_LINK_TTL_SECONDS


def test_consume_through_redirect_counts_the_download(db, make_service, owner, owned_file):
    client = FakeMinio(objects={owned_file.storage_path: owned_file.file_size})
    service = make_service(delivery=RedirectDelivery(S3ObjectStore(client, "securecloud")))
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id, max_downloads=1))

    descriptor = service.consume_share(view.share_token)

    assert isinstance(descriptor, RedirectDescriptor)
    share = crud.share.get(db, id=view.id)
    db.refresh(share)
    assert share.download_count == 1


def test_consume_through_failed_presign_keeps_quota(db, make_service, owner, owned_file):
    client = FakeMinio(objects={owned_file.storage_path: owned_file.file_size}, fail_times=10)
    delivery = RedirectDelivery(S3ObjectStore(client, "securecloud"), sleep=lambda _: None)
    service = make_service(delivery=delivery)
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id, max_downloads=1))

    with pytest.raises(StorageUnavailableError):
        service.consume_share(view.share_token)

    share = crud.share.get(db, id=view.id)
    db.refresh(share)
    assert share.download_count == 0
