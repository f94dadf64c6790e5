from typing import Optional

from app.models.share import Share


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.strip().lower()


def can_manage(share: Share, acting_user_id: int, acting_user_email: Optional[str]) -> bool:
    """True for the creator of the share, or for the recipient it is addressed to."""
    if share.shared_by == acting_user_id:
        return True
    recipient = _normalize_email(share.shared_with_email)
    return recipient is not None and recipient == _normalize_email(acting_user_email)
