"""Environment configuration for the doctor portal."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

from doctor_portal.prescription_review.database.connection import DEFAULT_DB_PATH

load_dotenv(override=True)


@dataclass
class Settings:
    """Datastore location, access keys and runtime knobs."""
    database_path: Path = DEFAULT_DB_PATH
    anon_key: str | None = None
    # Admin-level key: creating auth identities during registration
    service_role_key: str | None = None
    bcrypt_rounds: int = 12
    log_level: str = "INFO"

    @property
    def is_configured(self) -> bool:
        return bool(self.anon_key and self.service_role_key)


def load_settings() -> Settings:
    """Read settings from the environment (and .env, loaded at import)."""
    return Settings(
        database_path=Path(os.getenv("PORTAL_DATABASE_PATH") or DEFAULT_DB_PATH),
        anon_key=os.getenv("PORTAL_ANON_KEY"),
        service_role_key=os.getenv("PORTAL_SERVICE_ROLE_KEY"),
        bcrypt_rounds=int(os.getenv("PORTAL_BCRYPT_ROUNDS", "12")),
        log_level=os.getenv("PORTAL_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Route portal logs through rich."""
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
