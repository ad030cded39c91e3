"""The signed-in doctor's own profile."""

import logging
import sqlite3

from pydantic import Field, field_validator
from pydantic import ValidationError as SchemaError

from doctor_portal.auth_actions import LICENSE_TAKEN, Address, RegistrationModel
from doctor_portal.errors import ValidationError, portal_action
from doctor_portal.portal_context import PortalContext, resolve_acting_doctor
from doctor_portal.prescription_review.database.doctor_repository import (
    Doctor,
    DoctorAddress,
    DoctorRepository,
)
from doctor_portal.results import ActionResult, DoctorProfileView

logger = logging.getLogger(__name__)


class ProfileUpdate(RegistrationModel):
    """Partial profile edit. Only fields present in the payload are written."""
    title: str | None = None
    specialty: str | None = None
    license_number: str | None = Field(default=None, min_length=1)
    phone_number: str | None = None
    address: Address | None = None

    @field_validator("title", "specialty", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


@portal_action()
def get_doctor_profile(ctx: PortalContext) -> ActionResult:
    with ctx.datastore.reader() as conn:
        doctor = resolve_acting_doctor(ctx, conn)
    return ActionResult.ok(_to_view(doctor))


@portal_action()
def update_doctor_profile(ctx: PortalContext, changes: dict) -> ActionResult:
    """Apply a partial profile edit. A license number must stay unique."""
    try:
        update = ProfileUpdate.model_validate(changes)
    except SchemaError as e:
        field_errors = {
            ".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()
        }
        raise ValidationError("Please check the highlighted fields", field_errors) from e

    updates = update.model_dump(exclude_unset=True)
    if "license_number" in updates and not updates["license_number"]:
        raise ValidationError(
            "Please check the highlighted fields", {"licenseNumber": "A license number is required"}
        )
    if "address" in updates and updates["address"] is not None:
        updates["address"] = DoctorAddress(**updates["address"])

    with ctx.datastore.transaction() as conn:
        doctor = resolve_acting_doctor(ctx, conn)
        doctors = DoctorRepository(conn)
        license_number = updates.get("license_number")
        if license_number and doctors.license_number_exists(license_number, exclude_doctor_id=doctor.id):
            raise ValidationError(LICENSE_TAKEN, {"licenseNumber": LICENSE_TAKEN})
        try:
            updated = doctors.update_profile(doctor.id, updates)
        except sqlite3.IntegrityError as e:
            if "license_number" in str(e):
                raise ValidationError(LICENSE_TAKEN, {"licenseNumber": LICENSE_TAKEN}) from e
            raise

    logger.info("Doctor %s updated profile fields %s", doctor.id, sorted(updates))
    ctx.revalidate("/profile")
    return ActionResult.ok(_to_view(updated))


def _to_view(doctor: Doctor) -> DoctorProfileView:
    address = doctor.address
    return DoctorProfileView(
        id=doctor.id,
        user_id=doctor.user_id,
        title=doctor.title,
        specialty=doctor.specialty,
        license_number=doctor.license_number,
        phone_number=doctor.phone_number,
        address={
            "street": address.street,
            "city": address.city,
            "postalCode": address.postal_code,
            "country": address.country,
        } if address else None,
        is_verified=doctor.is_verified,
    )
