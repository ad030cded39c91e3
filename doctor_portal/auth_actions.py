"""Doctor registration, sign-in and sign-out."""

import logging
import sqlite3

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from doctor_portal.auth_provider import AuthProviderError
from doctor_portal.errors import DependencyError, ValidationError, portal_action
from doctor_portal.portal_context import PortalContext
from doctor_portal.prescription_review.database.doctor_repository import (
    Doctor,
    DoctorAddress,
    DoctorId,
    DoctorRepository,
)
from doctor_portal.prescription_review.database.user_repository import User, UserRepository
from doctor_portal.results import ActionResult, SessionUser

logger = logging.getLogger(__name__)

LICENSE_TAKEN = "This license number is already registered"
EMAIL_TAKEN = "This email address is already registered"
NO_DOCTOR_PROFILE = "No doctor profile found. Please contact support."
NOT_VERIFIED = "Your account has not been activated yet. Please wait for the confirmation email."


class RegistrationModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class Address(RegistrationModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)


class DoctorRegistration(RegistrationModel):
    """Sign-up form payload. Field aliases match the form's field names."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    title: str | None = None
    specialty: str | None = None
    license_number: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    address: Address

    @field_validator("title", "specialty", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


@portal_action()
def register_doctor(ctx: PortalContext, data: dict | DoctorRegistration) -> ActionResult:
    """Create an auth identity plus the user, role and doctor rows.

    The user, role and doctor rows commit in one transaction. If that fails,
    the auth identity is deleted again. The approval-request row is
    best-effort.
    """
    registration = _parse_registration(data)

    if not ctx.auth.has_admin_access:
        raise DependencyError("Datastore configuration is missing")

    with ctx.datastore.reader() as conn:
        if DoctorRepository(conn).license_number_exists(registration.license_number):
            raise ValidationError(LICENSE_TAKEN, {"licenseNumber": LICENSE_TAKEN})
        if UserRepository(conn).find_by_email(registration.email):
            raise ValidationError(EMAIL_TAKEN, {"email": EMAIL_TAKEN})

    try:
        identity = ctx.auth.admin_create_identity(
            registration.email,
            registration.password,
            metadata={"first_name": registration.first_name, "last_name": registration.last_name},
        )
    except AuthProviderError as e:
        logger.warning("Auth identity creation failed for %s: %s", registration.email, e)
        raise ValidationError(EMAIL_TAKEN, {"email": EMAIL_TAKEN}) from e

    try:
        with ctx.datastore.transaction() as conn:
            users = UserRepository(conn)
            users.upsert_profile(User(
                id=identity.id,
                email=registration.email,
                first_name=registration.first_name,
                last_name=registration.last_name,
                phone_number=registration.phone_number,
                is_active=False,
            ))
            users.add_role(identity.id, "doctor")
            doctor = DoctorRepository(conn).create(Doctor(
                id=DoctorId(""),
                user_id=identity.id,
                license_number=registration.license_number,
                title=registration.title,
                specialty=registration.specialty,
                phone_number=registration.phone_number,
                address=DoctorAddress(
                    street=registration.address.street,
                    city=registration.address.city,
                    postal_code=registration.address.postal_code,
                    country=registration.address.country,
                ),
                is_verified=False,
                is_approved=False,
            ))
    except Exception as e:
        _discard_identity(ctx, identity.id)
        if isinstance(e, sqlite3.IntegrityError) and "license_number" in str(e):
            raise ValidationError(LICENSE_TAKEN, {"licenseNumber": LICENSE_TAKEN}) from e
        raise

    try:
        with ctx.datastore.transaction() as conn:
            DoctorRepository(conn).create_approval_request(doctor.id)
    except sqlite3.Error:
        # Doctor can still be approved manually
        logger.warning("Could not queue approval request for doctor %s", doctor.id, exc_info=True)

    logger.info("Registered doctor %s (user %s), awaiting verification", doctor.id, identity.id)
    return ActionResult.ok()


@portal_action()
def sign_in(ctx: PortalContext, email: str, password: str) -> ActionResult:
    """Sign in a verified doctor. Unverified or profile-less accounts are signed out again."""
    session = ctx.auth.sign_in_with_password(email, password)

    with ctx.datastore.reader() as conn:
        doctor = DoctorRepository(conn).get_by_user_id(session.user_id)

    if doctor is None or not doctor.is_verified:
        ctx.auth.sign_out(session)
        message = NO_DOCTOR_PROFILE if doctor is None else NOT_VERIFIED
        logger.info("Sign-in refused for %s: %s", session.user_id, message)
        return ActionResult(success=False, error=message, error_code="authorization", not_verified=True)

    ctx.session = session
    return ActionResult.ok(
        {"accessToken": session.access_token},
        user=SessionUser(id=session.user_id, email=session.email),
    )


@portal_action()
def sign_out(ctx: PortalContext) -> ActionResult:
    if ctx.session is not None:
        ctx.auth.sign_out(ctx.session)
        ctx.session = None
    return ActionResult.ok()


def _parse_registration(data: dict | DoctorRegistration) -> DoctorRegistration:
    """Validate the payload, mapping schema errors onto form field names."""
    if isinstance(data, DoctorRegistration):
        return data
    try:
        return DoctorRegistration.model_validate(data)
    except SchemaError as e:
        field_errors = {}
        for error in e.errors():
            field_name = ".".join(str(part) for part in error["loc"])
            field_errors.setdefault(field_name, error["msg"])
        raise ValidationError("Please check the highlighted fields", field_errors) from e


def _discard_identity(ctx: PortalContext, identity_id: str) -> None:
    """Best-effort cleanup of an auth identity after a failed registration."""
    try:
        ctx.auth.admin_delete_identity(identity_id)
    except (sqlite3.Error, AuthProviderError):
        logger.exception("Could not delete auth identity %s after failed registration", identity_id)
