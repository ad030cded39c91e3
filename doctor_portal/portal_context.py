"""Per-caller context handed to every portal action."""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Callable

from doctor_portal.auth_provider import AuthProvider, Session
from doctor_portal.config import Settings
from doctor_portal.errors import AuthorizationError
from doctor_portal.prescription_review.database.connection import Datastore
from doctor_portal.prescription_review.database.doctor_repository import Doctor, DoctorRepository

logger = logging.getLogger(__name__)


@dataclass
class PortalContext:
    """Datastore handle, auth provider and the signed-in session, if any."""
    datastore: Datastore
    auth: AuthProvider
    session: Session | None = None
    revalidation_listeners: list[Callable[[str], None]] = field(default_factory=list)

    def require_session(self) -> Session:
        if self.session is None:
            raise AuthorizationError("Not signed in")
        return self.session

    def on_revalidate(self, listener: Callable[[str], None]) -> None:
        """Register a callback fired with each view path that went stale."""
        self.revalidation_listeners.append(listener)

    def revalidate(self, *paths: str) -> None:
        for path in paths:
            logger.debug("Revalidating %s", path)
            for listener in self.revalidation_listeners:
                listener(path)


def create_context(settings: Settings) -> PortalContext:
    """Build a context from settings, creating the schema if needed."""
    datastore = Datastore(settings.database_path)
    datastore.init_schema()
    auth = AuthProvider(
        datastore,
        anon_key=settings.anon_key,
        service_role_key=settings.service_role_key,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    return PortalContext(datastore=datastore, auth=auth)


def resolve_acting_doctor(ctx: PortalContext, conn: sqlite3.Connection) -> Doctor:
    """Find the Doctor row for the signed-in account.

    Decisions are stamped with Doctor.id, never the session's user ID.
    """
    session = ctx.require_session()
    doctor = DoctorRepository(conn).get_by_user_id(session.user_id)
    if doctor is None:
        raise AuthorizationError("Doctor profile not found")
    return doctor
