from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import ORJSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_admin
from ..config import Settings
from ..deps import get_db, get_settings, table_service
from ..errors import database_errors
from ..helpers import parse_positive_int
from ..model import adhoc
from ..model.querybuilder import DEFAULT_LIMIT, DEFAULT_PAGE
from ..model.tabledata import TableDataService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api", tags=["database"], dependencies=[Depends(require_admin)]
)


# ----------------------------
# Catalog
# ----------------------------
@router.get("/tables")
async def list_tables(svc: TableDataService = Depends(table_service)):
    with database_errors("Error fetching tables"):
        tables = await svc.list_tables()
    return {"success": True, "tables": tables}


@router.get("/tables/{table_name}/structure")
async def table_structure(
    table_name: str, svc: TableDataService = Depends(table_service)
):
    with database_errors("Error fetching table structure"):
        structure = await svc.structure(table_name)
    return {"success": True, "structure": structure}


# ----------------------------
# Rows
# ----------------------------
@router.get("/tables/{table_name}/data")
async def table_data(
    table_name: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    searchColumn: Optional[str] = None,
    svc: TableDataService = Depends(table_service),
):
    page_n = parse_positive_int(page, DEFAULT_PAGE)
    limit_n = parse_positive_int(limit, DEFAULT_LIMIT)
    logger.info("fetching %s page=%d limit=%d", table_name, page_n, limit_n)
    with database_errors("Error fetching table data"):
        result = await svc.list_rows(
            table_name, page=page_n, limit=limit_n,
            search=search or None, search_column=searchColumn or None,
        )
    return {"success": True, **result}


@router.get("/tables/{table_name}/data/{row_id}")
async def get_record(
    table_name: str, row_id: str,
    svc: TableDataService = Depends(table_service),
):
    with database_errors("Error fetching record"):
        row = await svc.get_row(table_name, row_id)
    return {"success": True, "data": row}


@router.post("/tables/{table_name}/data", status_code=201)
async def create_record(
    table_name: str,
    fields: Dict[str, Any] = Body(...),
    svc: TableDataService = Depends(table_service),
):
    with database_errors("Error creating record"):
        row = await svc.create_row(table_name, fields)
    logger.info("created record in %s", table_name)
    return ORJSONResponse(
        {"success": True, "message": "Record created successfully",
         "data": row},
        status_code=201,
    )


@router.put("/tables/{table_name}/data/{row_id}")
async def update_record(
    table_name: str, row_id: str,
    fields: Dict[str, Any] = Body(...),
    svc: TableDataService = Depends(table_service),
):
    with database_errors("Error updating record"):
        row = await svc.update_row(table_name, row_id, fields)
    logger.info("updated record %s in %s", row_id, table_name)
    return {"success": True, "message": "Record updated successfully",
            "data": row}


@router.delete("/tables/{table_name}/data/{row_id}")
async def delete_record(
    table_name: str, row_id: str,
    svc: TableDataService = Depends(table_service),
):
    with database_errors("Error deleting record"):
        row = await svc.delete_row(table_name, row_id)
    logger.info("deleted record %s from %s", row_id, table_name)
    return {"success": True, "message": "Record deleted successfully",
            "data": row}


# ----------------------------
# Ad-hoc SQL
# ----------------------------
@router.post("/query")
async def run_query(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    sql = payload.get("query")
    if sql is not None and not isinstance(sql, str):
        sql = str(sql)
    with database_errors("Error executing query"):
        result = await adhoc.run_statement(
            db, sql, mode=settings.adhoc_query_mode
        )
    return {"success": True, **result}
