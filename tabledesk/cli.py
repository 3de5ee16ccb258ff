#!/usr/bin/env python3
from __future__ import annotations
import argparse
import asyncio
import os
import sys
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, configure_logging
from .errors import describe_db_error
from .helpers import is_valid_email
from .infra.sql import make_async_engine
from .model import querybuilder as qb
from .model.schema import ColumnInfo, SchemaInspector
from .model.users import upsert_admin


def format_column(col: ColumnInfo) -> str:
    length = f"({col.max_length})" if col.max_length else ""
    nullable = "NULL" if col.is_nullable else "NOT NULL"
    default = f" DEFAULT {col.default}" if col.default else ""
    pk = " [PK]" if col.is_primary_key else ""
    return f"{col.name}: {col.data_type}{length} {nullable}{default}{pk}"


async def check_tables(settings: Settings) -> List[str]:
    engine, SessionAsync = make_async_engine(settings.database_url)
    lines = []
    try:
        async with SessionAsync() as db:
            inspector = SchemaInspector(db, schema=settings.db_schema)
            tables = await inspector.list_tables()
            lines.append(f"Found {len(tables)} tables in schema "
                         f"{settings.db_schema!r}")
            lines.append("=" * 80)
            for t in tables:
                info = await inspector.describe(t["table_name"])
                counter = qb.count(info)
                rows = (await db.execute(text(counter.sql))).scalar_one()
                pks = ", ".join(info.primary_keys) or "None"
                lines.append("")
                lines.append(f"Table: {info.name}")
                lines.append(f"   Rows: {rows}")
                lines.append(f"   Primary Key(s): {pks}")
                lines.append(f"   Columns ({len(info.columns)}):")
                for col in info.columns:
                    lines.append(f"      - {format_column(col)}")
            lines.append("")
            lines.append("=" * 80)
    finally:
        await engine.dispose()
    return lines


async def setup_admin(settings: Settings, email: str, username: str,
                      password: str) -> str:
    engine, SessionAsync = make_async_engine(settings.database_url)
    try:
        async with SessionAsync() as db:
            user, created = await upsert_admin(
                db, email=email, username=username, password=password
            )
    finally:
        await engine.dispose()
    verb = "Created" if created else "Updated"
    return (f"{verb} admin user id={user['id']} email={user['email']} "
            f"username={user['username']} role={user['role']}")


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(
        prog="tabledesk",
        description="TableDesk admin backend: serve and operator tasks",
    )
    ap.add_argument(
        "--env-file", default=None,
        help="Read settings from this .env file (default: ./.env if present)"
    )
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser(
        "check-tables",
        help="Print every table with row count, keys and columns"
    )

    p_admin = sub.add_parser(
        "setup-admin", help="Create or update the admin user"
    )
    p_admin.add_argument(
        "--email", default=None,
        help="Admin email (default: $ADMIN_EMAIL)"
    )
    p_admin.add_argument(
        "--username", default=None,
        help="Admin username (default: $ADMIN_USERNAME or 'admin')"
    )
    p_admin.add_argument(
        "--password", default=None,
        help="Admin password (default: $ADMIN_PASSWORD)"
    )

    p_serve = sub.add_parser("serve", help="Run the HTTP server")
    p_serve.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    p_serve.add_argument("--port", type=int,
                         default=int(os.getenv("PORT", "3000")))

    args = ap.parse_args(argv)

    settings = Settings.from_env(args.env_file)
    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn
        uvicorn.run("tabledesk.server:create_app", factory=True,
                    host=args.host, port=args.port)
        return 0

    try:
        if args.command == "check-tables":
            for line in asyncio.run(check_tables(settings)):
                print(line)
            print("Database check complete!")
        elif args.command == "setup-admin":
            # .env is loaded by now, so fall back to it here
            email = args.email or os.getenv("ADMIN_EMAIL")
            username = args.username or os.getenv("ADMIN_USERNAME", "admin")
            password = args.password or os.getenv("ADMIN_PASSWORD")
            if not is_valid_email(email):
                ap.error("setup-admin needs a valid --email")
            if not password:
                ap.error("setup-admin needs --password")
            print(asyncio.run(setup_admin(
                settings, email.strip(), username, password
            )))
    except SQLAlchemyError as e:
        print(f"!! Database error: {describe_db_error(e)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
