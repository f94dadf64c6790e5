"""Share token minting.

A token is the only capability needed to address a share anonymously, so
it carries 256 bits from the OS CSPRNG, URL-safe base64 without padding
(43 characters).
"""

import re
import secrets

TOKEN_BYTES = 32

_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]{43}")


def generate_share_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def is_well_formed_token(token: str) -> bool:
    """Cheap shape check so garbage never reaches the database."""
    return bool(token) and _TOKEN_PATTERN.fullmatch(token) is not None
