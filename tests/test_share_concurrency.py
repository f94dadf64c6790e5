import threading

from app import crud, schemas
from app.core.errors import GoneError
from app.services.share_service import ShareLifecycleService

from conftest import BASE_URL


class BarrierDelivery:
    """Holds every consumer after the gates until all of them got there."""

    def __init__(self, inner, barrier):
        self.inner = inner
        self.barrier = barrier

    def deliver(self, file):
        self.barrier.wait(timeout=10)
        return self.inner.deliver(file)


def test_conditional_increment_stops_at_quota(db, service, owner, owned_file):
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id, max_downloads=1))

    assert crud.share.try_increment_download(db, share_id=view.id) is True
    assert crud.share.try_increment_download(db, share_id=view.id) is False

    share = crud.share.get(db, id=view.id)
    db.refresh(share)
    assert share.download_count == 1


def test_conditional_increment_is_unbounded_without_quota(db, service, owner, owned_file):
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id))

    for _ in range(5):
        assert crud.share.try_increment_download(db, share_id=view.id) is True


def test_conditional_increment_on_deleted_share(db, service, owner, owned_file):
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id))
    crud.share.remove(db, id=view.id)

    assert crud.share.try_increment_download(db, share_id=view.id) is False


def test_concurrent_consumers_of_last_download(
    db, session_factory, service, delivery, clock, owner, owned_file
):
    view = service.create_share(owner.id, schemas.ShareCreate(file_id=owned_file.id, max_downloads=1))
    consumers = 2
    barrier = threading.Barrier(consumers)
    outcomes = []
    lock = threading.Lock()

    def consume():
        session = session_factory()
        try:
            worker = ShareLifecycleService(
                session,
                delivery=BarrierDelivery(delivery, barrier),
                base_url=BASE_URL,
                clock=clock,
            )
            try:
                worker.consume_share(view.share_token).close()
                outcome = "delivered"
            except GoneError as exc:
                outcome = exc.code
            except Exception as exc:  # surfaced through the assertion below
                outcome = repr(exc)
            with lock:
                outcomes.append(outcome)
        finally:
            session.close()

    threads = [threading.Thread(target=consume) for _ in range(consumers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["delivered", "download_limit_reached"]
    share = crud.share.get(db, id=view.id)
    db.refresh(share)
    assert share.download_count == 1
