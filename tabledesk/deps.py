from __future__ import annotations
from typing import AsyncIterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings
from .model.tabledata import TableDataService
from .payments import PaymentAdapter


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.sessionmaker() as session:
        yield session


def table_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TableDataService:
    return TableDataService(
        db, schema=settings.db_schema, max_limit=settings.max_page_limit
    )


def get_http(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http", None)
    if client is None:
        raise RuntimeError("HTTP client not initialized")
    return client


def get_payments(request: Request) -> PaymentAdapter:
    return request.app.state.payments
