from __future__ import annotations
import math
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import RecordNotFound
from ..helpers import row_to_dict
from ..infra.timings import timeit
from . import querybuilder as qb
from .schema import SchemaInspector

MAX_OFFSET = 2 ** 63 - 1


class TableDataService:
    """CRUD over any base table of the inspected schema.

    Each operation is one transaction: catalog lookups first, then the data
    statement built from what the catalog returned.
    """

    def __init__(self, db: AsyncSession, schema: str = "public",
                 max_limit: int = 1000,
                 inspector: Optional[SchemaInspector] = None) -> None:
        self.db = db
        self.max_limit = max_limit
        self.inspector = inspector or SchemaInspector(db, schema=schema)

    async def _fetch_one(self, stmt: qb.Statement) -> Optional[dict]:
        result = await self.db.execute(text(stmt.sql), stmt.params)
        row = result.mappings().first()
        return row_to_dict(row) if row is not None else None

    async def list_tables(self) -> list[dict]:
        async with timeit("tables.list_tables"):
            async with self.db.begin():
                return await self.inspector.list_tables()

    async def structure(self, table_name: str) -> dict:
        async with timeit("tables.structure"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
        return {
            "columns": [c.to_dict() for c in table.columns],
            "primaryKeys": list(table.primary_keys),
        }

    async def list_rows(
        self, table_name: str, *,
        page: int = qb.DEFAULT_PAGE, limit: int = qb.DEFAULT_LIMIT,
        search: Optional[str] = None, search_column: Optional[str] = None,
    ) -> dict:
        limit = max(1, min(limit, self.max_limit))
        # OFFSET is a bigint; pages past that are empty anyway
        page = max(1, min(page, MAX_OFFSET // limit + 1))
        offset = (page - 1) * limit

        async with timeit("tables.list_rows"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
                select = qb.select_page(
                    table, limit=limit, offset=offset,
                    search=search, search_column=search_column,
                )
                counter = qb.count(
                    table, search=search, search_column=search_column
                )
                result = await self.db.execute(
                    text(select.sql), select.params
                )
                rows = [row_to_dict(r) for r in result.mappings().all()]
                total = int((await self.db.execute(
                    text(counter.sql), counter.params
                )).scalar_one())

        return {
            "data": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        }

    async def get_row(self, table_name: str, pk_value: Any) -> dict:
        async with timeit("tables.get_row"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
                row = await self._fetch_one(qb.select_one(table, pk_value))
        if row is None:
            raise RecordNotFound()
        return row

    async def create_row(
        self, table_name: str, fields: Mapping[str, Any]
    ) -> dict:
        async with timeit("tables.create_row"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
                row = await self._fetch_one(qb.insert(table, fields))
        return row

    async def update_row(
        self, table_name: str, pk_value: Any, fields: Mapping[str, Any]
    ) -> dict:
        async with timeit("tables.update_row"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
                row = await self._fetch_one(
                    qb.update(table, pk_value, fields)
                )
        if row is None:
            raise RecordNotFound()
        return row

    async def delete_row(self, table_name: str, pk_value: Any) -> dict:
        async with timeit("tables.delete_row"):
            async with self.db.begin():
                table = await self.inspector.describe(table_name)
                row = await self._fetch_one(qb.delete(table, pk_value))
        if row is None:
            raise RecordNotFound()
        return row
