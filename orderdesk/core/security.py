from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import jwt

from ..config.settings import get_settings
from ..config.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()


# JWT Token handling
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create JWT access token.

    ``data`` carries ``sub`` (user id), ``tenant_id``, ``role`` and ``name``.
    Tokens are issued by the identity service; this helper exists for
    tooling and tests.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(seconds=settings.JWT_ACCESS_TOKEN_EXPIRES))

    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access"
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode JWT access token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        log_security_event("TOKEN_EXPIRED", details="JWT token has expired")
        return None
    except jwt.InvalidTokenError as e:
        log_security_event("INVALID_TOKEN", details=f"Invalid JWT token: {str(e)}")
        return None

    if payload.get("type") != "access":
        log_security_event("INVALID_TOKEN", details="Not an access token")
        return None
    return payload
