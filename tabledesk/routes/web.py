from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_303_SEE_OTHER

from ..auth import TOKEN_COOKIE, issue_token, optional_admin, require_admin
from ..config import Settings
from ..deps import get_db, get_settings
from ..model.users import authenticate_admin, contact_details

logger = logging.getLogger(__name__)

templates = Jinja2Templates(
    directory=str(Path(__file__).resolve().parent.parent / "templates")
)

router = APIRouter(tags=["pages"])


def _safe_next(next_url: Optional[str]) -> str:
    # only local paths; never bounce to another host
    if not next_url or not next_url.startswith("/") \
            or next_url.startswith("//"):
        return "/dashboard"
    return next_url


# ----------------------------
# Login / logout
# ----------------------------
@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request, next: Optional[str] = "/dashboard",
    admin: Optional[Dict[str, Any]] = Depends(optional_admin),
):
    if admin:
        return RedirectResponse(url=_safe_next(next),
                                status_code=HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(
        request, "login.html",
        {"title": "Admin Login", "next": _safe_next(next), "error": None},
    )


@router.post("/login", response_class=HTMLResponse)
async def login_submit(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next: str = Form("/dashboard"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = await authenticate_admin(db, username.strip(), password)
    except SQLAlchemyError as e:
        logger.error("login lookup failed: %s", e)
        user = None
    if user is None:
        return templates.TemplateResponse(
            request, "login.html",
            {"title": "Admin Login", "next": _safe_next(next),
             "error": "Invalid credentials."},
            status_code=401,
        )

    token = issue_token(user, settings.jwt_secret, settings.jwt_expires_in)
    resp = RedirectResponse(url=_safe_next(next),
                            status_code=HTTP_303_SEE_OTHER)
    resp.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax",
                    max_age=settings.jwt_expires_in)
    return resp


@router.get("/logout")
async def logout():
    resp = RedirectResponse(url="/login", status_code=HTTP_303_SEE_OTHER)
    resp.delete_cookie(TOKEN_COOKIE)
    return resp


# ----------------------------
# Admin pages
# ----------------------------
@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request, admin: Dict[str, Any] = Depends(require_admin)
):
    return templates.TemplateResponse(
        request, "dashboard.html", {"title": "Dashboard", "admin": admin}
    )


@router.get("/tables", response_class=HTMLResponse)
async def tables_page(
    request: Request, admin: Dict[str, Any] = Depends(require_admin)
):
    return templates.TemplateResponse(
        request, "tables.html", {"title": "Database Tables", "admin": admin}
    )


@router.get("/tables/{table_name}", response_class=HTMLResponse)
async def table_viewer_page(
    request: Request, table_name: str,
    admin: Dict[str, Any] = Depends(require_admin),
):
    return templates.TemplateResponse(
        request, "table_viewer.html",
        {"title": f"Table: {table_name}", "table_name": table_name,
         "admin": admin},
    )


# ----------------------------
# Subscription checkout + payment result pages (public)
# ----------------------------
@router.get("/", response_class=HTMLResponse)
async def subscription_page(
    request: Request,
    userId: Optional[str] = None,
    package: Optional[str] = None,
    amount: Optional[str] = None,
    billingCycle: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    if not (userId and package and amount):
        return RedirectResponse(url="/dashboard",
                                status_code=HTTP_303_SEE_OTHER)
    try:
        contact = await contact_details(db, userId)
    except SQLAlchemyError as e:
        # still render the page; the payer can type an email
        logger.error("could not load user %s: %s", userId, e)
        contact = {"email": "", "phone": ""}

    return templates.TemplateResponse(
        request, "subscription.html",
        {
            "title": "Subscription",
            "user_id": userId,
            "user_email": contact["email"],
            "user_phone": contact["phone"],
            "status": status or "pending",
            "package": package,
            "billing_cycle": billingCycle or "monthly",
            "amount": amount,
        },
    )


PAYMENT_OUTCOMES = {
    "success": "Payment Successful",
    "cancelled": "Payment Cancelled",
    "failed": "Payment Failed",
}


@router.get("/payment/{outcome}", response_class=HTMLResponse)
async def payment_result_page(request: Request, outcome: str):
    if outcome not in PAYMENT_OUTCOMES:
        return RedirectResponse(url="/login", status_code=HTTP_303_SEE_OTHER)
    q = request.query_params
    return templates.TemplateResponse(
        request, "payment_result.html",
        {
            "title": PAYMENT_OUTCOMES[outcome],
            "outcome": outcome,
            "tx_ref": q.get("txRef", ""),
            "transaction_id": q.get("transactionId", ""),
            "user_id": q.get("userId", ""),
            "package": q.get("package", ""),
            "billing_cycle": q.get("billingCycle", ""),
            "amount": q.get("amount", ""),
        },
    )
