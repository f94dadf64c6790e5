from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import pyotp
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from app.core.config import settings

ACCESS_TOKEN_TYPE = "access"
TWO_FACTOR_TOKEN_TYPE = "2fa"

_PASSWORD_HASHER = PasswordHasher()


def get_password_hash(password: str) -> str:
    return _PASSWORD_HASHER.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-effort comparison of a plaintext against a stored argon2 hash."""
    try:
        return _PASSWORD_HASHER.verify(hashed_password, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def _create_token(
    subject: Any, email: str, token_type: str, expires_delta: timedelta
) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"sub": str(subject), "email": email, "type": token_type, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: Any, email: str, expires_delta: Optional[timedelta] = None
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _create_token(subject, email, ACCESS_TOKEN_TYPE, expires_delta)


def create_two_factor_token(subject: Any, email: str) -> str:
    """Short-lived token proving the password step of a 2FA login."""
    return _create_token(
        subject,
        email,
        TWO_FACTOR_TOKEN_TYPE,
        timedelta(minutes=settings.TWO_FACTOR_TOKEN_EXPIRE_MINUTES),
    )


def decode_token(token: str, *, expected_type: str = ACCESS_TOKEN_TYPE) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


# TOTP two-factor
def generate_totp_secret() -> str:
    return pyotp.random_base32()


def get_totp_uri(email: str, secret: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=settings.PROJECT_NAME)


def verify_totp(secret: Optional[str], code: Optional[str]) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code.strip(), valid_window=1)
