from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ----------------------------
# Error taxonomy
# ----------------------------
class TableDeskError(Exception):
    """Base error. Carries the HTTP status and the envelope message."""
    status_code = 500

    def __init__(self, message: str, error: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_envelope(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class ValidationError(TableDeskError):
    status_code = 400


class NotFound(TableDeskError):
    status_code = 404


class TableNotFound(NotFound):
    def __init__(self, table_name: str):
        super().__init__(f'Table "{table_name}" not found')
        self.table_name = table_name


class RecordNotFound(NotFound):
    def __init__(self):
        super().__init__("Record not found")


class NoPrimaryKey(TableDeskError):
    status_code = 400

    def __init__(self, table_name: str):
        super().__init__("Table does not have a primary key")
        self.table_name = table_name


class NoOrderColumn(TableDeskError):
    status_code = 400

    def __init__(self, table_name: str):
        super().__init__(
            f'Table "{table_name}" has no suitable ordering column '
            "(no primary key, created_at or id)"
        )
        self.table_name = table_name


class NotAuthenticated(TableDeskError):
    status_code = 401


class GatewayAuthError(TableDeskError):
    # the payment gateway refused our credentials
    status_code = 401


class ForbiddenOperation(TableDeskError):
    status_code = 403


class UpstreamError(TableDeskError):
    status_code = 500


class ConfigurationError(TableDeskError):
    status_code = 500


def describe_db_error(exc: SQLAlchemyError) -> str:
    # the driver's own text, without SQLAlchemy's statement dump
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


@contextmanager
def database_errors(message: str) -> Iterator[None]:
    """Turn any SQLAlchemy error raised inside the block into a 500.

        with database_errors("Error fetching table data"):
            rows = await service.list_rows(...)
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("%s: %s", message, e)
        raise UpstreamError(message, error=describe_db_error(e)) from e
