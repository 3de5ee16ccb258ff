import time
import re
from datetime import timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional


# ----------------------------
# Helpers
# ----------------------------
def now_ms() -> int:
    return int(time.time() * 1000)


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    email = email.strip()
    # simple but effective email check
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email) is not None


def parse_positive_int(raw: Any, default: int) -> int:
    # "abc", "", None, 0 and negatives all fall back to the default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def jsonable(value: Any) -> Any:
    # orjson handles datetime/date/time/UUID/dict/list natively
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, list):
        return [jsonable(v) for v in value]
    return value


def row_to_dict(row: Mapping[str, Any]) -> dict:
    return {k: jsonable(v) for k, v in row.items()}
