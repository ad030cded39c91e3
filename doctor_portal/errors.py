"""Error taxonomy and the action boundary that turns errors into results."""

import functools
import logging
import sqlite3

from doctor_portal.results import ActionResult

logger = logging.getLogger(__name__)

GENERIC_DEPENDENCY_MESSAGE = "The service is temporarily unavailable. Please try again."


class PortalError(Exception):
    """Base class for failures that are reported to the caller as results."""
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Malformed, missing or duplicate input."""
    code = "validation"

    def __init__(self, message: str, field_errors: dict[str, str] | None = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class NotFoundError(PortalError):
    """A referenced row does not exist."""
    code = "not_found"


class AuthorizationError(PortalError):
    """No session, or the session has no doctor profile."""
    code = "authorization"


class ConflictError(PortalError):
    """The row changed underneath us (e.g. request already decided)."""
    code = "conflict"


class DependencyError(PortalError):
    """The datastore or auth provider failed. The message is always user-safe."""
    code = "dependency"

    def __init__(self, message: str = GENERIC_DEPENDENCY_MESSAGE):
        super().__init__(message)


def portal_action(default_data=None):
    """Catch everything at the operation boundary and return an ActionResult.

    The wrapped function returns an ActionResult on success and raises
    PortalError subclasses on expected failures.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ValidationError as e:
                logger.info("%s rejected: %s %s", func.__name__, e.message, e.field_errors)
                return ActionResult.failure(e, data=_fresh(default_data))
            except PortalError as e:
                logger.warning("%s failed: %s", func.__name__, e.message)
                return ActionResult.failure(e, data=_fresh(default_data))
            except sqlite3.Error:
                logger.exception("%s: datastore error", func.__name__)
                return ActionResult.failure(DependencyError(), data=_fresh(default_data))
            except Exception:
                logger.exception("%s: unexpected error", func.__name__)
                return ActionResult.failure(DependencyError(), data=_fresh(default_data))
        return wrapper
    return decorator


def _fresh(default):
    """Copy mutable defaults so callers never share a list between results."""
    if isinstance(default, (list, dict)):
        return type(default)()
    return default
