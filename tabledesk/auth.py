from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional

import jwt
from fastapi import Request

from .errors import NotAuthenticated

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "admin_token"
TOKEN_HEADER = "x-auth-token"
TOKEN_QUERY = "token"
ALGORITHM = "HS256"

NO_TOKEN_MESSAGE = "No token provided. Access denied."
BAD_TOKEN_MESSAGE = "Invalid or expired token. Access denied."


def issue_token(user: Dict[str, Any], secret: str, expires_in: int) -> str:
    now = int(time.time())
    claims = {
        "id": str(user["id"]),
        "email": user.get("email"),
        "username": user.get("username"),
        "role": user.get("role"),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.info("token rejected: %s", e)
        raise NotAuthenticated(BAD_TOKEN_MESSAGE)


def extract_token(request: Request) -> Optional[str]:
    # header, then x-auth-token, then cookie, then ?token=
    auth = request.headers.get("authorization")
    if auth:
        parts = auth.split(" ", 1)
        if len(parts) == 2 and parts[1].strip():
            return parts[1].strip()
    return (
        request.headers.get(TOKEN_HEADER)
        or request.cookies.get(TOKEN_COOKIE)
        or request.query_params.get(TOKEN_QUERY)
        or None
    )


def require_admin(request: Request) -> Dict[str, Any]:
    """FastAPI dependency: verified token claims or NotAuthenticated."""
    token = extract_token(request)
    if not token:
        raise NotAuthenticated(NO_TOKEN_MESSAGE)
    claims = verify_token(token, request.app.state.settings.jwt_secret)
    request.state.admin = claims
    return claims


def optional_admin(request: Request) -> Optional[Dict[str, Any]]:
    try:
        return require_admin(request)
    except NotAuthenticated:
        return None
