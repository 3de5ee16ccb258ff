"""Free-form SQL behind a keyword denylist.

The denylist is a plain substring match on the upper-cased statement. It is
not a parser and not a security boundary: comment tricks and destructive
verbs that are not on the list get through. Statements run one at a time
as asyncpg prepared statements, so a payload holding several commands is
refused by the server ("cannot insert multiple commands into a prepared
statement") and surfaces as a database error. The ``read-only`` mode also
narrows the gate to single read statements.
"""
from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ForbiddenOperation, ValidationError
from ..helpers import row_to_dict
from ..infra.timings import timeit

logger = logging.getLogger(__name__)

DENYLIST = (
    "DROP",
    "TRUNCATE",
    "DELETE FROM",
    "ALTER TABLE",
    "CREATE TABLE",
    "DROP TABLE",
)

READ_ONLY_PREFIXES = ("SELECT", "WITH", "SHOW", "EXPLAIN", "VALUES")

FORBIDDEN_MESSAGE = "This operation is not allowed for security reasons"


def denied_keyword(sql: str) -> Optional[str]:
    upper = sql.upper()
    for keyword in DENYLIST:
        if keyword in upper:
            return keyword
    return None


def check_statement(sql: Optional[str], mode: str = "denylist") -> str:
    if not sql or not sql.strip():
        raise ValidationError("SQL query is required")

    keyword = denied_keyword(sql)
    if keyword is not None:
        logger.warning("ad-hoc query rejected, contains %r", keyword)
        raise ForbiddenOperation(FORBIDDEN_MESSAGE)

    if mode == "read-only":
        body = sql.strip().rstrip(";").strip()
        if ";" in body or not body.upper().startswith(READ_ONLY_PREFIXES):
            logger.warning("ad-hoc query rejected by read-only mode")
            raise ForbiddenOperation(FORBIDDEN_MESSAGE)
    return sql


async def run_statement(db: AsyncSession, sql: str,
                        mode: str = "denylist") -> dict:
    check_statement(sql, mode)
    async with timeit("query.adhoc"):
        async with db.begin():
            conn = await db.connection()
            # driver-level execution: no ":name" bind parsing on raw input
            result = await conn.exec_driver_sql(sql)
            if result.returns_rows:
                rows = [row_to_dict(r) for r in result.mappings().all()]
                row_count = len(rows)
            else:
                rows = []
                row_count = result.rowcount
    return {"data": rows, "rowCount": row_count}
