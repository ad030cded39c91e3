"""Login identities and sessions backing the portal's sign-in."""

import json
import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import bcrypt

from doctor_portal.errors import AuthorizationError, DependencyError
from doctor_portal.prescription_review.database.connection import Datastore
from doctor_portal.prescription_review.database.user_repository import UserId

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials"


class AuthProviderError(Exception):
    """Raised when the auth provider rejects an admin operation."""
    pass


@dataclass
class AuthIdentity:
    id: UserId
    email: str
    metadata: dict = field(default_factory=dict)


@dataclass
class Session:
    access_token: str
    user_id: UserId
    email: str
    created_at: str | None = None


class AuthProvider:
    """Password identities with opaque session tokens.

    Admin operations (creating and deleting identities) need the
    service-role key; signing in needs the anon key.
    """

    def __init__(
        self,
        datastore: Datastore,
        anon_key: str | None = None,
        service_role_key: str | None = None,
        bcrypt_rounds: int = 12,
    ):
        self.datastore = datastore
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.bcrypt_rounds = bcrypt_rounds

    @property
    def has_admin_access(self) -> bool:
        return bool(self.service_role_key)

    def admin_create_identity(self, email: str, password: str, metadata: dict | None = None) -> AuthIdentity:
        """Create a login identity and the bare users row that mirrors it."""
        self._require_admin()
        identity = AuthIdentity(id=UserId(str(uuid.uuid4())), email=email, metadata=metadata or {})
        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)
        ).decode("utf-8")
        now = datetime.now().isoformat()

        try:
            with self.datastore.transaction() as conn:
                conn.execute(
                    "INSERT INTO auth_identities (id, email, password_hash, metadata, created_at) VALUES (?, ?, ?, ?, ?)",
                    (identity.id, email, password_hash, json.dumps(identity.metadata), now),
                )
                conn.execute(
                    """INSERT INTO users (id, email, first_name, last_name, is_active, created_at, updated_at)
                       VALUES (?, ?, ?, ?, 0, ?, ?)""",
                    (
                        identity.id, email, identity.metadata.get("first_name"),
                        identity.metadata.get("last_name"), now, now,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise AuthProviderError("A user with this email address has already been registered") from e

        logger.info("Created auth identity %s", identity.id)
        return identity

    def admin_delete_identity(self, identity_id: str) -> None:
        """Delete an identity, its sessions and its mirrored users row."""
        self._require_admin()
        with self.datastore.transaction() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE identity_id = ?", (identity_id,))
            conn.execute("DELETE FROM auth_identities WHERE id = ?", (identity_id,))
            conn.execute("DELETE FROM user_roles WHERE user_id = ?", (identity_id,))
            conn.execute("DELETE FROM users WHERE id = ?", (identity_id,))
        logger.info("Deleted auth identity %s", identity_id)

    def sign_in_with_password(self, email: str, password: str) -> Session:
        """Check credentials and open a session. Same error for unknown email and bad password."""
        if not self.anon_key:
            raise DependencyError("Sign-in is not configured")

        with self.datastore.reader() as conn:
            row = conn.execute(
                "SELECT id, email, password_hash FROM auth_identities WHERE LOWER(email) = LOWER(?)",
                (email.strip(),),
            ).fetchone()

        if not row or not bcrypt.checkpw(password.encode("utf-8"), row["password_hash"].encode("utf-8")):
            raise AuthorizationError(INVALID_CREDENTIALS)

        session = Session(
            access_token=secrets.token_urlsafe(32),
            user_id=UserId(row["id"]),
            email=row["email"],
            created_at=datetime.now().isoformat(),
        )
        with self.datastore.transaction() as conn:
            conn.execute(
                "INSERT INTO auth_sessions (access_token, identity_id, created_at) VALUES (?, ?, ?)",
                (session.access_token, session.user_id, session.created_at),
            )
        return session

    def get_session(self, access_token: str) -> Session | None:
        """Look up an open session by its token."""
        with self.datastore.reader() as conn:
            row = conn.execute(
                """SELECT s.access_token, s.identity_id, s.created_at, i.email
                   FROM auth_sessions s
                   JOIN auth_identities i ON i.id = s.identity_id
                   WHERE s.access_token = ?""",
                (access_token,),
            ).fetchone()
        if not row:
            return None
        return Session(
            access_token=row["access_token"],
            user_id=UserId(row["identity_id"]),
            email=row["email"],
            created_at=row["created_at"],
        )

    def sign_out(self, session: Session) -> None:
        with self.datastore.transaction() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE access_token = ?", (session.access_token,))

    def _require_admin(self) -> None:
        if not self.has_admin_access:
            raise AuthProviderError("Admin operations require the service-role key")
