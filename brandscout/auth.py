"""Requester identity for the discovery API.

Requests carry a bearer JSON Web Token; its ``sub`` claim identifies the
requester for rate limiting.  Tokens are issued by whatever system owns the
users (or by ``brandscout token`` during development) and signed with the
shared secret from configuration.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings

# Bearer scheme for retrieving the token from the Authorization header
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    subject: str,
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Generate a JWT access token for ``subject``.

    The token payload includes an expiration claim (`exp`) calculated from
    `expires_delta`, defaulting to the configured token lifetime.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_subject(token: str, settings: Settings) -> Optional[str]:
    """Return the ``sub`` claim of a valid token, or ``None``."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_requester_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Extract the requester id from the bearer token.

    Raises HTTP 401 if the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    subject = decode_subject(credentials.credentials, settings)
    if subject is None:
        raise credentials_exception
    return subject
