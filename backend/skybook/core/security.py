from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import jwt

from skybook.core.config import settings

# Tokens are issued by the identity service; this backend only needs to read them.
# create_access_token exists for tooling and tests that have to mint a token locally.
DEFAULT_TOKEN_TTL = timedelta(minutes=60)

def create_access_token(subject: str | Any, roles: list[str], expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(tz=timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire, "roles": roles}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode an access token without role verification.
    Raises jwt.PyJWTError if invalid and returns the payload as a dict.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    return payload


def identity_from_payload(payload: dict[str, Any]) -> tuple[str, list[str]]:
    """Return (email, roles) from a decoded token; email is lower-cased."""
    sub = (payload.get("sub") or "").strip().lower()
    if not sub:
        raise ValueError("Missing subject")
    roles = payload.get("roles") or []
    if not isinstance(roles, list):
        roles = [roles]
    return sub, roles
