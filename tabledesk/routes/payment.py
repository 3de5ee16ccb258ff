from __future__ import annotations
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import ORJSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER

from ..config import Settings
from ..deps import get_http, get_payments, get_settings
from ..errors import ValidationError
from ..helpers import now_ms
from ..infra.timings import timeit
from ..payments import (
    CheckoutRequest, PaymentAdapter, customer_name, parse_amount,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])

# callback parameters forwarded to the result pages
FORWARDED = ("userId", "package", "billingCycle", "amount")


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


@router.post("/initialize")
async def initialize_payment(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
    payments: PaymentAdapter = Depends(get_payments),
):
    user_id = str(payload.get("userId") or "")
    email = payload.get("userEmail") or ""
    pkg = payload.get("package") or ""
    raw_amount = payload.get("amount")
    if not user_id or not email or not raw_amount or not pkg:
        raise ValidationError("Missing required payment parameters")

    amount = parse_amount(raw_amount)
    billing_cycle = payload.get("billingCycle") or "monthly"
    status = payload.get("status") or "pending"
    tx_ref = f"{settings.payment_tx_prefix}-{user_id}-{now_ms()}"

    callback_query = urlencode({
        "userId": user_id,
        "package": pkg,
        "billingCycle": billing_cycle,
        "amount": raw_amount,
        "status": status,
    })
    req: CheckoutRequest = {
        "tx_ref": tx_ref,
        "amount": amount,
        "currency": settings.payment_currency,
        "redirect_url":
            f"{_base_url(request)}/payment/callback?{callback_query}",
        "customer": {
            "email": email,
            "phone_number": payload.get("userPhone") or "",
            "name": customer_name(user_id),
        },
        "title": settings.payment_title,
        "description": f"{str(pkg).upper()} Package - {billing_cycle} billing",
        "meta": {
            "userId": user_id,
            "package": pkg,
            "billingCycle": billing_cycle,
            "status": status,
        },
    }

    async with timeit("payment.initialize"):
        link = await payments.create_checkout(http, req)
    logger.info("payment %s initialized for user %s", tx_ref, user_id)
    return {"success": True, "paymentLink": link, "txRef": tx_ref}


@router.get("/callback")
async def payment_callback(request: Request):
    q = request.query_params
    status = q.get("status")
    params = {
        "txRef": q.get("tx_ref", ""),
        "transactionId": q.get("transaction_id", ""),
    }
    params.update({k: q.get(k, "") for k in FORWARDED})

    if status == "successful":
        dest = "/payment/success"
    elif status == "cancelled":
        params.pop("transactionId")
        dest = "/payment/cancelled"
    else:
        dest = "/payment/failed"
    logger.info("payment callback %s: %s", params["txRef"], status)
    return RedirectResponse(
        url=f"{dest}?{urlencode(params)}", status_code=HTTP_303_SEE_OTHER
    )


@router.post("/verify")
async def verify_payment(
    payload: Dict[str, Any] = Body(...),
    http: httpx.AsyncClient = Depends(get_http),
    payments: PaymentAdapter = Depends(get_payments),
):
    tx_ref = payload.get("txRef")
    if not tx_ref:
        raise ValidationError("Transaction reference is required")

    async with timeit("payment.verify"):
        ok, data = await payments.verify(http, str(tx_ref))
    if ok:
        return {"success": True, "message": "Payment verified successfully",
                "transaction": data.get("data")}
    logger.info("payment %s not verified", tx_ref)
    return ORJSONResponse(
        {"success": False, "message": "Payment verification failed",
         "data": data},
        status_code=400,
    )
