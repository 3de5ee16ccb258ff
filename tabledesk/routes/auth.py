from __future__ import annotations
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import ORJSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import TOKEN_COOKIE, issue_token, require_admin
from ..config import Settings
from ..deps import get_db, get_settings
from ..errors import NotAuthenticated, ValidationError, database_errors
from ..model.users import authenticate_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    login_name = (payload.get("email") or payload.get("username") or "")
    login_name = str(login_name).strip()
    password = payload.get("password") or ""
    if not login_name or not password:
        raise ValidationError("Email/username and password are required")

    with database_errors("Error during login"):
        user = await authenticate_admin(db, login_name, str(password))
    if user is None:
        raise NotAuthenticated("Invalid credentials")

    token = issue_token(user, settings.jwt_secret, settings.jwt_expires_in)
    logger.info("admin %s logged in", user.get("email") or user.get("username"))
    resp = ORJSONResponse({
        "success": True,
        "token": token,
        "user": {k: user.get(k) for k in ("id", "email", "username", "role")},
    })
    resp.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax",
                    max_age=settings.jwt_expires_in)
    return resp


@router.get("/me")
async def me(admin: Dict[str, Any] = Depends(require_admin)):
    return {"success": True, "admin": admin}
