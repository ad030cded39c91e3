"""User repository for identity-level accounts and role assignments."""

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, NewType

UserId = NewType("UserId", str)


@dataclass
class User:
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    is_active: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class UserRepository:
    """Repository for users and user_roles rows."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_by_id(self, user_id: str) -> User | None:
        """Get a user by ID."""
        row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_many(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Batch-load users keyed by ID with a single query."""
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM users WHERE id IN ({placeholders})", ids
        ).fetchall()
        return {row["id"]: self._row_to_user(row) for row in rows}

    def find_by_email(self, email: str) -> User | None:
        """Find a user by email, ignoring case."""
        row = self.conn.execute(
            "SELECT * FROM users WHERE LOWER(email) = LOWER(?)", (email,)
        ).fetchone()
        return self._row_to_user(row) if row else None

    def upsert_profile(self, user: User) -> User:
        """Create the user row or overwrite its profile fields.

        The auth provider may already have inserted a bare row for this ID.
        """
        now = datetime.now().isoformat()
        self.conn.execute("""
            INSERT INTO users (id, email, first_name, last_name, phone_number, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                email = excluded.email,
                first_name = excluded.first_name,
                last_name = excluded.last_name,
                phone_number = excluded.phone_number,
                is_active = excluded.is_active,
                updated_at = excluded.updated_at
        """, (
            user.id, user.email, user.first_name, user.last_name,
            user.phone_number, int(user.is_active), now, now,
        ))
        return self.get_by_id(user.id)

    def add_role(self, user_id: str, role: str) -> str:
        """Tag an account with a role. Returns the role row ID."""
        role_id = str(uuid.uuid4())
        self.conn.execute(
            "INSERT INTO user_roles (id, user_id, role) VALUES (?, ?, ?)",
            (role_id, user_id, role),
        )
        return role_id

    def get_roles(self, user_id: str) -> list[str]:
        rows = self.conn.execute(
            "SELECT role FROM user_roles WHERE user_id = ? ORDER BY role", (user_id,)
        ).fetchall()
        return [row["role"] for row in rows]

    def _row_to_user(self, row) -> User:
        """Convert a database row to a User object."""
        return User(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            phone_number=row["phone_number"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
