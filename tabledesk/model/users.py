from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import bcrypt
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # not a bcrypt hash
        return False


async def find_user(db: AsyncSession, login: str) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        text("""
            SELECT id, email, username, password_hash, role, is_active
            FROM users
            WHERE email = :login OR username = :login
            LIMIT 1
        """),
        {"login": login},
    )
    row = result.mappings().first()
    return dict(row) if row is not None else None


async def authenticate_admin(
    db: AsyncSession, login: str, password: str
) -> Optional[Dict[str, Any]]:
    """Return the admin user for these credentials, or None."""
    async with db.begin():
        user = await find_user(db, login)
    if user is None:
        logger.info("login failed: unknown user %s", login)
        return None
    if not check_password(password, user.get("password_hash")):
        logger.info("login failed: bad password for %s", login)
        return None
    if user.get("role") != ADMIN_ROLE or not user.get("is_active"):
        logger.info("login failed: %s is not an active admin", login)
        return None
    user.pop("password_hash", None)
    return user


async def upsert_admin(
    db: AsyncSession, *, email: str, username: str, password: str
) -> tuple[Dict[str, Any], bool]:
    """Create or update the admin account. Returns (user, created)."""
    hashed = hash_password(password)
    async with db.begin():
        existing = (await db.execute(
            text("""
                SELECT id FROM users
                WHERE email = :email OR username = :username
                LIMIT 1
            """),
            {"email": email, "username": username},
        )).mappings().first()

        if existing is not None:
            result = await db.execute(
                text("""
                    UPDATE users
                    SET email = :email,
                        username = :username,
                        password_hash = :password_hash,
                        role = :role,
                        is_active = TRUE,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id
                    RETURNING id, email, username, role
                """),
                {"email": email, "username": username,
                 "password_hash": hashed, "role": ADMIN_ROLE,
                 "id": existing["id"]},
            )
            return dict(result.mappings().one()), False

        result = await db.execute(
            text("""
                INSERT INTO users (
                  email, username, password_hash, first_name, last_name,
                  role, is_active, created_at, updated_at
                ) VALUES (
                  :email, :username, :password_hash, 'Admin', 'User',
                  :role, TRUE, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP
                )
                RETURNING id, email, username, role
            """),
            {"email": email, "username": username,
             "password_hash": hashed, "role": ADMIN_ROLE},
        )
        return dict(result.mappings().one()), True


async def contact_details(db: AsyncSession, user_id: str) -> Dict[str, str]:
    # users.id may be integer or uuid; compare as text to accept either
    async with db.begin():
        row = (await db.execute(
            text("SELECT email, phone FROM users WHERE id::text = :id"),
            {"id": str(user_id)},
        )).mappings().first()
    if row is None:
        return {"email": "", "phone": ""}
    return {"email": row["email"] or "", "phone": row["phone"] or ""}
