import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app import crud, schemas
from app.api import deps
from app.core import security
from app.core.errors import UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def _login(db: Session, email: str, password: str) -> schemas.LoginResponse:
    user = crud.user.authenticate(db, email=email, password=password)
    if not user:
        raise UnauthorizedError("Incorrect email or password", code="invalid_credentials")

    if user.two_factor_enabled:
        # Password step passed; the client must now exchange this for a real token
        return schemas.LoginResponse(
            requires_two_factor=True,
            temp_token=security.create_two_factor_token(user.id, user.email),
        )

    logger.info("User %s logged in", user.id)
    return schemas.LoginResponse(access_token=security.create_access_token(user.id, user.email))


@router.post("/register", response_model=schemas.User, status_code=201)
def register(
    *,
    db: Session = Depends(deps.get_db),
    user_in: schemas.UserCreate,
) -> Any:
    """
    Create new user.
    """
    if crud.user.get_by_email(db, email=user_in.email):
        raise ValidationError("A user with this email already exists", code="email_taken")
    user = crud.user.create(db, obj_in=user_in)
    logger.info("User %s registered", user.id)
    return user


@router.post("/access-token", response_model=schemas.LoginResponse)
def login_access_token(
    *,
    db: Session = Depends(deps.get_db),
    login_in: schemas.LoginRequest,
) -> Any:
    """
    Email/password login. Accounts with 2FA get a temp token instead of an access token.
    """
    return _login(db, login_in.email, login_in.password)


@router.post("/access-token/form", response_model=schemas.LoginResponse)
def login_access_token_form(
    db: Session = Depends(deps.get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Any:
    """
    OAuth2 compatible token login (username field carries the email).
    """
    return _login(db, form_data.username, form_data.password)


@router.post("/two-factor", response_model=schemas.Token)
def login_two_factor(
    *,
    db: Session = Depends(deps.get_db),
    body: schemas.TwoFactorLogin,
) -> Any:
    """
    Second login step: trade the temp token plus a TOTP code for an access token.
    """
    payload = security.decode_token(body.temp_token, expected_type=security.TWO_FACTOR_TOKEN_TYPE)
    if not payload:
        raise UnauthorizedError("Two-factor session expired, log in again", code="two_factor_required")

    user = crud.user.get(db, id=int(payload["sub"]))
    if not user or not user.two_factor_enabled:
        raise UnauthorizedError("Two-factor session expired, log in again", code="two_factor_required")
    if not security.verify_totp(user.totp_secret, body.code):
        raise UnauthorizedError("Invalid two-factor code", code="invalid_two_factor_code")

    logger.info("User %s logged in with 2FA", user.id)
    return schemas.Token(access_token=security.create_access_token(user.id, user.email))
