"""Dynamic statement builders for arbitrary catalog tables.

Identifiers (schema, table and column names) are only ever taken from a
``TableInfo`` built from the catalog, and user supplied column names are
checked against it before they are quoted into the SQL text. Values always
travel as bound parameters.
"""
from __future__ import annotations
import json
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import ValidationError
from .schema import ColumnInfo, TableInfo

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)


def quote_ident(name: str) -> str:
    # statements go through text(): a bare ":x" inside a name would bind
    escaped = name.replace('"', '""').replace(":", "\\:")
    return '"' + escaped + '"'


def qualified_name(table: TableInfo) -> str:
    return f"{quote_ident(table.schema)}.{quote_ident(table.name)}"


# ----------------------------
# Value coercion
# ----------------------------
_INT_TYPES = {"smallint", "integer", "bigint"}
_FLOAT_TYPES = {"real", "double precision"}
_DECIMAL_TYPES = {"numeric", "decimal"}
_TEXT_TYPES = {"text", "character varying", "character", "citext"}
_JSON_TYPES = {"json", "jsonb"}
_SCALAR_TYPES = {"boolean", "uuid", "date"}
_TRUE = {"true", "t", "yes", "y", "1", "on"}
_FALSE = {"false", "f", "no", "n", "0", "off"}


def _driver_native(data_type: str) -> bool:
    dt = data_type.lower()
    return (
        dt in _INT_TYPES or dt in _FLOAT_TYPES or dt in _DECIMAL_TYPES
        or dt in _TEXT_TYPES or dt in _JSON_TYPES or dt in _SCALAR_TYPES
        or dt.startswith("time")
    )


def cast_type(column: ColumnInfo) -> Optional[str]:
    """Server-side type for values sent as text, None if bound directly.

    interval, bytea, inet, money, enums and the like have no Python
    conversion here; they travel as text and the server casts them.
    """
    if _driver_native(column.data_type) or not column.udt_name:
        return None
    if column.udt_schema:
        return f"{quote_ident(column.udt_schema)}.{quote_ident(column.udt_name)}"
    return quote_ident(column.udt_name)


def placeholder(column: ColumnInfo, name: str, value: Any) -> str:
    target = cast_type(column)
    # arrays arrive as JSON lists, which the driver encodes itself
    if target is None or isinstance(value, (list, tuple)):
        return f":{name}"
    return f"CAST(CAST(:{name} AS text) AS {target})"


def _parse_datetime(raw: str) -> datetime:
    raw = raw.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def _to_timestamp(data_type: str, value: Any) -> datetime:
    ts = value if isinstance(value, datetime) else _parse_datetime(str(value))
    if "without time zone" in data_type and ts.tzinfo is not None:
        # naive columns take UTC wall time
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value} is not an integer")
        return int(value)
    return int(str(value).strip())


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"{value!r} is not a boolean")


def coerce_value(column: ColumnInfo, value: Any) -> Any:
    """Convert a JSON/path value to what the driver expects for the column.

    asyncpg does not cast text to the column type on its own, so a path id
    of ``"5"`` has to become ``5`` for an integer key.
    """
    if value is None:
        return None
    dt = column.data_type.lower()
    try:
        if dt in _INT_TYPES:
            return _to_int(value)
        if dt in _FLOAT_TYPES:
            return float(value)
        if dt in _DECIMAL_TYPES:
            return Decimal(str(value))
        if dt == "boolean":
            return _to_bool(value)
        if dt == "uuid":
            return value if isinstance(value, uuid.UUID) \
                else uuid.UUID(str(value))
        if dt == "date":
            return value if isinstance(value, date) \
                else date.fromisoformat(str(value).strip())
        if dt.startswith("timestamp"):
            return _to_timestamp(dt, value)
        if dt.startswith("time"):
            return value if isinstance(value, time) \
                else time.fromisoformat(str(value).strip())
        if dt in _JSON_TYPES:
            return value if isinstance(value, str) else json.dumps(value)
        if dt in _TEXT_TYPES:
            return value if isinstance(value, str) else str(value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise ValidationError(
            f'Invalid value for column "{column.name}" ({column.data_type})',
            error=str(e),
        )
    if cast_type(column) is not None and not isinstance(value, (list, tuple)):
        return value if isinstance(value, str) else str(value)
    # arrays and types without catalog info go to the driver untouched
    return value


def writable_columns(
    table: TableInfo, fields: Mapping[str, Any],
    exclude: Iterable[str] = (),
) -> List[str]:
    # unknown keys are dropped silently; payload order is kept
    skip = set(exclude)
    known = set(table.column_names)
    return [k for k in fields if k in known and k not in skip]


def _search_predicate(
    table: TableInfo, search: Optional[str], search_column: Optional[str],
) -> tuple[str, Dict[str, Any]]:
    # shared by select_page() and count() so both always filter alike
    if not search or not search_column:
        return "", {}
    if not table.has_column(search_column):
        raise ValidationError(
            f'Column "{search_column}" does not exist in table "{table.name}"'
        )
    return (
        f" WHERE {quote_ident(search_column)}::text ILIKE :search",
        {"search": f"%{search}%"},
    )


# ----------------------------
# Builders
# ----------------------------
def select_page(
    table: TableInfo, *, limit: int, offset: int,
    search: Optional[str] = None, search_column: Optional[str] = None,
) -> Statement:
    where, params = _search_predicate(table, search, search_column)
    order = quote_ident(table.order_column())
    sql = (
        f"SELECT * FROM {qualified_name(table)}{where}"
        f" ORDER BY {order} DESC LIMIT :limit OFFSET :offset"
    )
    return Statement(sql, {**params, "limit": limit, "offset": offset})


def count(
    table: TableInfo, *,
    search: Optional[str] = None, search_column: Optional[str] = None,
) -> Statement:
    where, params = _search_predicate(table, search, search_column)
    return Statement(
        f"SELECT COUNT(*) AS count FROM {qualified_name(table)}{where}",
        params,
    )


def _pk_filter(table: TableInfo, pk_value: Any) -> tuple[str, Dict[str, Any]]:
    pk = table.require_primary_key()
    column = table.column(pk)
    value = coerce_value(column, pk_value)
    return (
        f"{quote_ident(pk)} = {placeholder(column, 'pk', value)}",
        {"pk": value},
    )


def select_one(table: TableInfo, pk_value: Any) -> Statement:
    where, params = _pk_filter(table, pk_value)
    return Statement(
        f"SELECT * FROM {qualified_name(table)} WHERE {where}", params
    )


def insert(table: TableInfo, fields: Mapping[str, Any]) -> Statement:
    cols = writable_columns(table, fields)
    if not cols:
        raise ValidationError("No valid columns provided")
    params = {
        f"v{i}": coerce_value(table.column(c), fields[c])
        for i, c in enumerate(cols)
    }
    names = ", ".join(quote_ident(c) for c in cols)
    placeholders = ", ".join(
        placeholder(table.column(c), f"v{i}", params[f"v{i}"])
        for i, c in enumerate(cols)
    )
    return Statement(
        f"INSERT INTO {qualified_name(table)} ({names})"
        f" VALUES ({placeholders}) RETURNING *",
        params,
    )


def update(
    table: TableInfo, pk_value: Any, fields: Mapping[str, Any]
) -> Statement:
    table.require_primary_key()
    # no key column is ever settable, composite keys included
    cols = writable_columns(table, fields, exclude=table.primary_keys)
    if not cols:
        raise ValidationError("No valid columns to update")
    where, params = _pk_filter(table, pk_value)
    for i, c in enumerate(cols):
        params[f"v{i}"] = coerce_value(table.column(c), fields[c])
    assignments = ", ".join(
        f"{quote_ident(c)} = "
        f"{placeholder(table.column(c), f'v{i}', params[f'v{i}'])}"
        for i, c in enumerate(cols)
    )
    return Statement(
        f"UPDATE {qualified_name(table)} SET {assignments}"
        f" WHERE {where} RETURNING *",
        params,
    )


def delete(table: TableInfo, pk_value: Any) -> Statement:
    where, params = _pk_filter(table, pk_value)
    return Statement(
        f"DELETE FROM {qualified_name(table)} WHERE {where} RETURNING *",
        params,
    )
