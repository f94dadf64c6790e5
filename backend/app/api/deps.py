from functools import lru_cache
from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app import crud, models
from app.core import security
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.delivery import DownloadDeliveryAdapter, build_delivery
from app.services.share_service import ShareLifecycleService
from app.services.storage import ObjectStore, build_object_store

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token/form"
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def _default_object_store() -> ObjectStore:
    return build_object_store(settings)


def get_object_store() -> ObjectStore:
    return _default_object_store()


def get_delivery(store: ObjectStore = Depends(get_object_store)) -> DownloadDeliveryAdapter:
    return build_delivery(settings, store)


def get_share_service(
    db: Session = Depends(get_db),
    delivery: DownloadDeliveryAdapter = Depends(get_delivery),
) -> ShareLifecycleService:
    return ShareLifecycleService(db, delivery=delivery, base_url=settings.FRONTEND_URL)


def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = security.decode_token(token)
    if not payload or not payload.get("sub"):
        raise credentials_exception
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise credentials_exception
    user = crud.user.get(db, id=user_id)
    if not user:
        raise credentials_exception
    return user
