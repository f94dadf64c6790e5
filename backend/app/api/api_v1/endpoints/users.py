from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import crud, models, schemas
from app.api import deps
from app.core import security
from app.core.errors import UnauthorizedError, ValidationError

router = APIRouter()


@router.get("/me", response_model=schemas.User)
def read_user_me(
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Get current user.
    """
    return current_user


@router.post("/me/2fa/setup", response_model=schemas.TwoFactorSetup)
def setup_two_factor(
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Generate a fresh TOTP secret. It only takes effect once confirmed via /me/2fa/enable.
    """
    if current_user.two_factor_enabled:
        raise ValidationError("Two-factor authentication is already enabled")
    secret = security.generate_totp_secret()
    crud.user.set_totp_secret(db, user=current_user, secret=secret)
    return schemas.TwoFactorSetup(
        secret=secret,
        otpauth_uri=security.get_totp_uri(current_user.email, secret),
    )


@router.post("/me/2fa/enable", response_model=schemas.User)
def enable_two_factor(
    *,
    db: Session = Depends(deps.get_db),
    body: schemas.TwoFactorCode,
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    if not current_user.totp_secret:
        raise ValidationError("Run two-factor setup first")
    if not security.verify_totp(current_user.totp_secret, body.code):
        raise UnauthorizedError("Invalid two-factor code", code="invalid_two_factor_code")
    return crud.user.set_two_factor(db, user=current_user, enabled=True)


@router.post("/me/2fa/disable", response_model=schemas.User)
def disable_two_factor(
    *,
    db: Session = Depends(deps.get_db),
    body: schemas.TwoFactorCode,
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    if not current_user.two_factor_enabled:
        return current_user
    if not security.verify_totp(current_user.totp_secret, body.code):
        raise UnauthorizedError("Invalid two-factor code", code="invalid_two_factor_code")
    return crud.user.set_two_factor(db, user=current_user, enabled=False)
