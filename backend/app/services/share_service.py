"""Share-link lifecycle: creation, gating and controlled download.

Every token operation runs the same gates in a fixed order and stops at
the first failure:

1. existence  - unknown token            -> NotFound
2. expiry     - ``now > expires_at``      -> Gone (share_expired)
3. quota      - ``count >= max``          -> Gone (download_limit_reached)
4. password   - only for operations that disclose content or bytes
                missing                   -> Unauthorized (password_required)
                mismatch                  -> Unauthorized (invalid_password)

A dead link therefore never asks for a password, and an unknown token
reveals nothing beyond "not found".

Downloads are counted with a conditional UPDATE after the gates pass; if
another request took the last download in between, the update changes no
row and the consumer gets a late quota failure instead of an extra
download.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core import security
from app.core.errors import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
    download_limit_reached,
    invalid_password,
    password_required,
    share_expired,
    share_not_found,
)
from app.core.logging import redact_token
from app.models.file import FileMeta
from app.models.share import Share
from app.schemas.share import (
    ShareCreate,
    SharedFileInfo,
    SharedFileRef,
    SharePeek,
    SharerInfo,
    ShareSummary,
    ShareValidation,
    ShareView,
)
from app.services.delivery import DeliveryDescriptor, DownloadDeliveryAdapter
from app.services.share_access import can_manage
from app.services.share_tokens import generate_share_token, is_well_formed_token

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC, matching how DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ShareLifecycleService:
    def __init__(
        self,
        db: Session,
        *,
        delivery: DownloadDeliveryAdapter,
        base_url: str,
        clock: Clock = utcnow,
        hash_password: Callable[[str], str] = security.get_password_hash,
        verify_password: Callable[[str, str], bool] = security.verify_password,
        token_factory: Callable[[], str] = generate_share_token,
    ):
        self.db = db
        self.delivery = delivery
        self.base_url = base_url.rstrip("/")
        self.clock = clock
        self.hash_password = hash_password
        self.verify_password = verify_password
        self.token_factory = token_factory

    # -- creation ---------------------------------------------------------

    def create_share(self, requester_user_id: int, share_in: ShareCreate) -> ShareView:
        self._validate_options(share_in)

        file = crud.file.resolve_owned_file(self.db, file_id=share_in.file_id)
        if file is None:
            raise NotFoundError("File not found", code="file_not_found")
        if file.user_id != requester_user_id:
            raise ForbiddenError()

        now = self.clock()
        expires_at = None
        if share_in.expires_in_days is not None:
            # Wall-clock elapsed time, sub-second precision is whatever the float gives
            expires_at = now + timedelta(seconds=share_in.expires_in_days * SECONDS_PER_DAY)

        password_hash = None
        if share_in.password is not None:
            password_hash = self.hash_password(share_in.password)
        recipient = share_in.shared_with_email.lower() if share_in.shared_with_email else None

        share = crud.share.create_with_token(
            self.db,
            token_factory=self.token_factory,
            file_id=file.id,
            shared_by=requester_user_id,
            created_at=now,
            shared_with_email=recipient,
            password_hash=password_hash,
            expires_at=expires_at,
            max_downloads=share_in.max_downloads,
        )
        logger.info(
            "Share %s created for file %s by user %s (token=%s)",
            share.id, file.id, requester_user_id, redact_token(share.share_token),
        )
        return self._to_view(share)

    def _validate_options(self, share_in: ShareCreate) -> None:
        if share_in.password is not None and not share_in.password.strip():
            raise ValidationError("password must not be empty")
        max_downloads = share_in.max_downloads
        if max_downloads is not None and max_downloads < 1:
            raise ValidationError("max_downloads must be a positive integer")
        days = share_in.expires_in_days
        if days is not None and (not math.isfinite(days) or days <= 0):
            raise ValidationError("expires_in_days must be a positive number")

    # -- gating -----------------------------------------------------------

    def _open_gates(self, token: str) -> Share:
        """Existence, expiry and quota gates, in that order."""
        share = None
        if is_well_formed_token(token):
            share = crud.share.get_by_token(self.db, share_token=token)
        if share is None:
            logger.info("Share lookup failed (token=%s)", redact_token(token))
            raise share_not_found()

        if share.expires_at is not None and self.clock() > share.expires_at:
            logger.info("Share %s expired at %s", share.id, share.expires_at.isoformat())
            raise share_expired()

        if share.max_downloads is not None and share.download_count >= share.max_downloads:
            logger.info("Share %s reached its download limit", share.id)
            raise download_limit_reached()

        return share

    def _check_password(self, share: Share, password: Optional[str]) -> None:
        if not share.password_hash:
            return
        if not password:
            raise password_required()
        if not self.verify_password(password, share.password_hash):
            logger.info("Share %s rejected a wrong password", share.id)
            raise invalid_password()

    def _resolve_file(self, share: Share) -> FileMeta:
        file = crud.file.resolve_owned_file(self.db, file_id=share.file_id)
        if file is None:
            logger.warning("Share %s points at missing file %s", share.id, share.file_id)
            raise NotFoundError("File not found", code="file_not_found")
        return file

    # -- token operations -------------------------------------------------

    def peek_share(self, token: str) -> SharePeek:
        """Non-sensitive metadata; read-only, never asks for the password."""
        share = self._open_gates(token)
        file = self._resolve_file(share)
        remaining = None
        if share.max_downloads is not None:
            remaining = share.max_downloads - share.download_count
        return SharePeek(
            requires_password=bool(share.password_hash),
            file=SharedFileInfo(name=file.file_name, size=file.file_size, mime_type=file.mime_type),
            expires_at=share.expires_at,
            downloads_remaining=remaining,
        )

    def validate_share_password(self, token: str, password: Optional[str]) -> ShareValidation:
        share = self._open_gates(token)
        if not share.password_hash:
            return ShareValidation(valid=True)
        if not password:
            raise password_required()
        return ShareValidation(valid=self.verify_password(password, share.password_hash))

    def consume_share(self, token: str, password: Optional[str] = None) -> DeliveryDescriptor:
        share = self._open_gates(token)
        self._check_password(share, password)
        file = self._resolve_file(share)

        # Commits below expire the loaded rows; keep plain ids
        share_id, file_id = share.id, file.id
        descriptor = self.delivery.deliver(file)
        if not crud.share.try_increment_download(self.db, share_id=share_id):
            descriptor.close()
            if crud.share.get(self.db, id=share_id) is None:
                logger.info("Share %s was deleted during download", share_id)
                raise share_not_found()
            logger.info("Share %s lost the race for its last download", share_id)
            raise download_limit_reached()

        logger.info("Share %s download delivered (file %s)", share_id, file_id)
        return descriptor

    # -- management -------------------------------------------------------

    def list_shares_for_file(
        self, file_id: int, requester_user_id: int, requester_email: Optional[str]
    ) -> List[ShareView]:
        file = crud.file.resolve_owned_file(self.db, file_id=file_id)
        if file is None:
            raise NotFoundError("File not found", code="file_not_found")
        if file.user_id != requester_user_id:
            raise ForbiddenError()
        shares = crud.share.get_multi_by_file(self.db, file_id=file_id)
        return [
            self._to_view(share)
            for share in shares
            if can_manage(share, requester_user_id, requester_email)
        ]

    def list_shares_for_recipient(self, email: str) -> List[ShareSummary]:
        now = self.clock()
        summaries = []
        for share in crud.share.get_multi_by_recipient(self.db, email=email):
            if share.expires_at is not None and now > share.expires_at:
                continue
            file, sharer = share.file, share.sharer
            summaries.append(
                ShareSummary(
                    id=share.id,
                    share_token=share.share_token,
                    file=SharedFileRef(
                        id=file.id, name=file.file_name, size=file.file_size, mime_type=file.mime_type
                    ),
                    shared_by=SharerInfo(id=sharer.id, name=sharer.username, email=sharer.email),
                    shared_at=share.created_at,
                    expires_at=share.expires_at,
                    permissions=share.permission_list,
                    is_password_protected=bool(share.password_hash),
                    download_count=share.download_count,
                    max_downloads=share.max_downloads,
                )
            )
        return summaries

    def delete_share(
        self, share_id: int, requester_user_id: int, requester_email: Optional[str]
    ) -> None:
        share = crud.share.get(self.db, id=share_id)
        if share is None:
            raise NotFoundError("Share not found", code="share_not_found")
        if not can_manage(share, requester_user_id, requester_email):
            raise ForbiddenError()
        crud.share.remove(self.db, id=share.id)
        logger.info("Share %s deleted by user %s", share_id, requester_user_id)

    # -- views ------------------------------------------------------------

    def share_url(self, token: str) -> str:
        return f"{self.base_url}/share/{token}"

    def _to_view(self, share: Share) -> ShareView:
        return ShareView(
            id=share.id,
            file_id=share.file_id,
            share_token=share.share_token,
            share_url=self.share_url(share.share_token),
            shared_with_email=share.shared_with_email,
            requires_password=bool(share.password_hash),
            expires_at=share.expires_at,
            max_downloads=share.max_downloads,
            download_count=share.download_count,
            created_at=share.created_at,
        )
