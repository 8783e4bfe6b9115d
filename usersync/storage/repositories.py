"""
User persistence helpers.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

import asyncpg
from pydantic import BaseModel, Field

from usersync.storage.database import Database


class User(BaseModel):
    id: str
    name: str
    username: str
    email_address: str
    source: str
    created_at: Optional[datetime] = None


class UserCreate(BaseModel):
    name: str
    username: str
    email_address: str = Field(..., description="Lower-cased e-mail")
    source: str


def _to_user(row: dict) -> User:
    return User(**{**row, "id": str(row["id"])})


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserRepository:
    """SQL over the `users` table."""

    _COLUMNS = "id, name, username, email_address, source, created_at"

    def __init__(self, database: Database):
        self.database = database

    async def all(self) -> List[User]:
        rows = await self.database.fetch(f"SELECT {self._COLUMNS} FROM users ORDER BY id")
        return [_to_user(row) for row in rows]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        try:
            key = int(user_id)
        except (TypeError, ValueError):
            return None
        row = await self.database.fetch_one(
            f"SELECT {self._COLUMNS} FROM users WHERE id = $1",
            key,
        )
        return _to_user(row) if row else None

    async def get_by_emails_with_source(
        self,
        emails: Sequence[str],
        source: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[User]:
        if not emails:
            return []
        rows = await self.database.fetch(
            f"""
            SELECT {self._COLUMNS}
            FROM users
            WHERE email_address = ANY($1::text[]) AND source = $2
            """,
            [normalize_email(e) for e in emails],
            source,
            conn=conn,
        )
        return [_to_user(row) for row in rows]

    async def create(self, data: UserCreate, conn: Optional[asyncpg.Connection] = None) -> str:
        user_id = await self.database.fetch_val(
            """
            INSERT INTO users (name, username, email_address, source)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            data.name,
            data.username,
            normalize_email(data.email_address),
            data.source,
            conn=conn,
        )
        return str(user_id)

    async def count(self) -> int:
        return int(await self.database.fetch_val("SELECT count(*) FROM users") or 0)
