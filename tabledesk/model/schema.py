"""Catalog introspection over ``information_schema``.

Nothing here is cached: every call goes back to the catalog, so descriptors
always reflect the live schema at the time of the request.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NoOrderColumn, NoPrimaryKey, TableNotFound

# preferred ordering columns when a table has no primary key
FALLBACK_ORDER_COLUMNS = ("created_at", "id")


SQL_LIST_TABLES = """
    SELECT table_name, table_schema
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

SQL_TABLE_EXISTS = """
    SELECT 1
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_name = :table
      AND table_type = 'BASE TABLE'
"""

SQL_COLUMNS = """
    SELECT column_name, data_type, is_nullable, column_default,
           character_maximum_length, ordinal_position,
           udt_schema, udt_name
    FROM information_schema.columns
    WHERE table_schema = :schema
      AND table_name = :table
    ORDER BY ordinal_position
"""

SQL_PRIMARY_KEYS = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.table_schema = :schema
      AND tc.table_name = :table
      AND tc.constraint_type = 'PRIMARY KEY'
    ORDER BY kcu.ordinal_position
"""


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    data_type: str
    is_nullable: bool
    default: Optional[str]
    max_length: Optional[int]
    position: int
    is_primary_key: bool = False
    # underlying type, e.g. pg_catalog.interval or public.mood for enums
    udt_schema: Optional[str] = None
    udt_name: Optional[str] = None

    def to_dict(self) -> dict:
        # same shape as an information_schema.columns row
        return {
            "column_name": self.name,
            "data_type": self.data_type,
            "character_maximum_length": self.max_length,
            "is_nullable": "YES" if self.is_nullable else "NO",
            "column_default": self.default,
            "ordinal_position": self.position,
            "is_primary_key": self.is_primary_key,
        }


@dataclass(frozen=True)
class TableInfo:
    name: str
    schema: str
    columns: Tuple[ColumnInfo, ...]
    primary_keys: Tuple[str, ...] = ()

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def column(self, name: str) -> ColumnInfo:
        for c in self.columns:
            if c.name == name:
                return c
        raise KeyError(name)

    @property
    def primary_key(self) -> Optional[str]:
        # composite keys: first key column is used for point lookups
        return self.primary_keys[0] if self.primary_keys else None

    def require_primary_key(self) -> str:
        if self.primary_key is None:
            raise NoPrimaryKey(self.name)
        return self.primary_key

    def order_column(self) -> str:
        if self.primary_key is not None:
            return self.primary_key
        for name in FALLBACK_ORDER_COLUMNS:
            if self.has_column(name):
                return name
        raise NoOrderColumn(self.name)


class SchemaInspector:
    def __init__(self, db: AsyncSession, schema: str = "public") -> None:
        self.db = db
        self.schema = schema

    async def list_tables(self) -> List[dict]:
        result = await self.db.execute(
            text(SQL_LIST_TABLES), {"schema": self.schema}
        )
        return [dict(r) for r in result.mappings().all()]

    async def table_exists(self, table_name: str) -> bool:
        result = await self.db.execute(
            text(SQL_TABLE_EXISTS),
            {"schema": self.schema, "table": table_name},
        )
        return result.first() is not None

    async def primary_keys(self, table_name: str) -> List[str]:
        result = await self.db.execute(
            text(SQL_PRIMARY_KEYS),
            {"schema": self.schema, "table": table_name},
        )
        return [r["column_name"] for r in result.mappings().all()]

    async def columns(
        self, table_name: str, primary_keys: Tuple[str, ...] = ()
    ) -> List[ColumnInfo]:
        result = await self.db.execute(
            text(SQL_COLUMNS), {"schema": self.schema, "table": table_name}
        )
        return [
            ColumnInfo(
                name=r["column_name"],
                data_type=r["data_type"],
                is_nullable=(r["is_nullable"] == "YES"),
                default=r["column_default"],
                max_length=r["character_maximum_length"],
                position=int(r["ordinal_position"]),
                is_primary_key=r["column_name"] in primary_keys,
                udt_schema=r.get("udt_schema"),
                udt_name=r.get("udt_name"),
            )
            for r in result.mappings().all()
        ]

    async def describe(self, table_name: str) -> TableInfo:
        if not await self.table_exists(table_name):
            raise TableNotFound(table_name)
        pks = tuple(await self.primary_keys(table_name))
        cols = await self.columns(table_name, primary_keys=pks)
        return TableInfo(
            name=table_name,
            schema=self.schema,
            columns=tuple(cols),
            primary_keys=pks,
        )
