from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

ADHOC_MODES = ("denylist", "read-only")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_schema: str = "public"
    jwt_secret: str = "dev-secret-change-me"
    jwt_expires_in: int = 24 * 60 * 60  # seconds
    max_page_limit: int = 1000
    adhoc_query_mode: str = "denylist"  # 'denylist' | 'read-only'

    # hosted checkout
    flutterwave_secret_key: str = ""
    flutterwave_base_url: str = "https://api.flutterwave.com/v3"
    payment_currency: str = "NGN"
    payment_tx_prefix: str = "TABLEDESK"
    payment_title: str = "Subscription Payment"

    http_timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        load_dotenv(env_file)
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set")

        mode = os.getenv("ADHOC_QUERY_MODE", "denylist").strip().lower()
        if mode not in ADHOC_MODES:
            raise ValueError(
                f"ADHOC_QUERY_MODE must be one of {ADHOC_MODES}, got {mode!r}"
            )

        return cls(
            database_url=database_url,
            db_schema=os.getenv("DB_SCHEMA", "public"),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            jwt_expires_in=_env_int("JWT_EXPIRES_IN", 24 * 60 * 60),
            max_page_limit=max(1, _env_int("MAX_PAGE_LIMIT", 1000)),
            adhoc_query_mode=mode,
            flutterwave_secret_key=os.getenv(
                "FLUTTERWAVE_SECRET_KEY", ""
            ).strip(),
            flutterwave_base_url=os.getenv(
                "FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3"
            ).rstrip("/"),
            payment_currency=os.getenv("PAYMENT_CURRENCY", "NGN"),
            payment_tx_prefix=os.getenv("PAYMENT_TX_PREFIX", "TABLEDESK"),
            payment_title=os.getenv("PAYMENT_TITLE", "Subscription Payment"),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "10.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
