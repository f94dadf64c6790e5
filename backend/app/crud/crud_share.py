import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.logging import redact_token
from app.crud.base import CRUDBase
from app.models.file import FileMeta
from app.models.share import Share

logger = logging.getLogger(__name__)

TOKEN_INSERT_ATTEMPTS = 3


class ShareTokenCollision(RuntimeError):
    """Every generated token collided with an existing share."""


class CRUDShare(CRUDBase[Share]):
    def create_with_token(
        self,
        db: Session,
        *,
        token_factory: Callable[[], str],
        file_id: int,
        shared_by: int,
        created_at: datetime,
        shared_with_email: Optional[str] = None,
        password_hash: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        max_downloads: Optional[int] = None,
    ) -> Share:
        # The unique index on share_token is the real guard; regenerate on violation
        for attempt in range(1, TOKEN_INSERT_ATTEMPTS + 1):
            token = token_factory()
            db_obj = Share(
                share_token=token,
                file_id=file_id,
                shared_by=shared_by,
                shared_with_email=shared_with_email,
                password_hash=password_hash,
                expires_at=expires_at,
                max_downloads=max_downloads,
                download_count=0,
                created_at=created_at,
            )
            try:
                db.add(db_obj)
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    "Share token collision on attempt %d (token=%s)", attempt, redact_token(token)
                )
                continue
            db.refresh(db_obj)
            return db_obj
        raise ShareTokenCollision("Failed to create a unique share token")

    def get_by_token(self, db: Session, *, share_token: str) -> Optional[Share]:
        return db.query(Share).filter(Share.share_token == share_token).first()

    def get_multi_by_file(self, db: Session, *, file_id: int) -> List[Share]:
        return (
            db.query(Share)
            .filter(Share.file_id == file_id)
            .order_by(Share.created_at.desc(), Share.id.desc())
            .all()
        )

    def get_multi_by_recipient(self, db: Session, *, email: str) -> List[Share]:
        return (
            db.query(Share)
            .join(FileMeta, Share.file_id == FileMeta.id)
            .options(joinedload(Share.file), joinedload(Share.sharer))
            .filter(
                Share.shared_with_email == email.lower(),
                FileMeta.is_deleted == False
            )
            .order_by(Share.created_at.desc(), Share.id.desc())
            .all()
        )

    def try_increment_download(self, db: Session, *, share_id: int) -> bool:
        """
        Count one download unless the quota is already used up.

        Single conditional UPDATE, so two concurrent consumers of the last
        remaining download cannot both succeed. Returns False when no row
        changed (quota exhausted or share deleted meanwhile).
        """
        stmt = (
            update(Share)
            .where(
                Share.id == share_id,
                or_(
                    Share.max_downloads.is_(None),
                    Share.download_count < Share.max_downloads,
                ),
            )
            .values(download_count=Share.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

share = CRUDShare(Share)
