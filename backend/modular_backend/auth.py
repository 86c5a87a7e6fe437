"""Authentication helpers and FastAPI security dependency.

Bearer tokens are JWTs signed with `settings.JWT_SECRET`. The request
middleware decodes the token of every request into the claims of the
request scope; an invalid or missing token leaves the request anonymous.
Routes that need a caller depend on `require_principal`, which raises 401
for anonymous requests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .bootstrap import try_current_scope
from .config import settings

logger = logging.getLogger("modular_backend.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def issue_token(subject: str, expires_hours: int = 24, **claims) -> str:
    """Sign a token for `subject` carrying the extra `claims`."""
    if not subject or not subject.strip():
        raise ValueError("subject cannot be blank")
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": int(now.timestamp()), "exp": int((now + timedelta(hours=expires_hours)).timestamp())}
    payload.update(claims)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="invalid token")


def claims_from_request(request: Request) -> Optional[dict]:
    """Claims of the request's bearer token, or None when absent or invalid."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    try:
        return decode_token(token.strip())
    except HTTPException as exc:
        logger.info("anonymous_request reason=%s", exc.detail)
        return None


def require_principal(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> dict:
    """FastAPI dependency returning the claims of the authenticated caller."""
    scope = try_current_scope()
    if scope is not None and scope.claims:
        return scope.claims
    if credentials is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return decode_token(credentials.credentials)
