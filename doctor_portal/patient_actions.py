"""Read-only patient lookups for doctors."""

import logging
from typing import Iterable

from doctor_portal.errors import NotFoundError, portal_action
from doctor_portal.identity_resolver import PatientRef, calculate_age, display_name, resolve_identity
from doctor_portal.portal_context import PortalContext
from doctor_portal.prescription_review.database.patient_repository import PatientRepository
from doctor_portal.prescription_review.database.user_repository import UserRepository
from doctor_portal.results import ActionResult, PatientInfo, PatientSummary

logger = logging.getLogger(__name__)


@portal_action(default_data={})
def get_patient_names(
    ctx: PortalContext, patient_ids: Iterable[str], fallback_name: str = "Unknown"
) -> ActionResult:
    """Map each patient ID to a display name. Unknown IDs get the fallback."""
    ctx.require_session()
    ids = [patient_id for patient_id in patient_ids if patient_id]
    if not ids:
        return ActionResult.ok({})

    with ctx.datastore.reader() as conn:
        patients = PatientRepository(conn).get_many(ids)
        users = UserRepository(conn).get_many(p.user_id for p in patients.values() if p.user_id)

    names = {}
    for patient_id in ids:
        identity = resolve_identity(PatientRef(patient_id), patients, users)
        names[patient_id] = identity.display_name(fallback_name)
    return ActionResult.ok(names)


@portal_action()
def get_patient_info(ctx: PortalContext, patient_id: str, fallback_name: str = "Unknown") -> ActionResult:
    ctx.require_session()
    with ctx.datastore.reader() as conn:
        patient = PatientRepository(conn).get_by_id(patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        user = UserRepository(conn).get_by_id(patient.user_id) if patient.user_id else None

    first_name = (user.first_name if user else None) or ""
    last_name = (user.last_name if user else None) or ""
    return ActionResult.ok(PatientInfo(
        id=patient.id,
        user_id=patient.user_id,
        name=display_name(first_name, last_name, fallback_name),
        age=calculate_age(patient.birth_date),
        email=(user.email if user else None) or "",
        first_name=first_name,
        last_name=last_name,
    ))


@portal_action(default_data=[])
def list_patients(ctx: PortalContext, search: str | None = None, fallback_name: str = "Unknown") -> ActionResult:
    """All patients, newest first, optionally filtered by name or email."""
    ctx.require_session()
    with ctx.datastore.reader() as conn:
        rows = PatientRepository(conn).list_with_users()

    patients = [
        PatientSummary(
            id=row["id"],
            full_name=display_name(row["first_name"], row["last_name"], fallback_name),
            email=row["email"] or "",
            birth_date=row["birth_date"],
            created_at=row["created_at"],
        )
        for row in rows
    ]

    needle = (search or "").strip().lower()
    if needle:
        patients = [
            p for p in patients
            if needle in p.full_name.lower() or needle in p.email.lower()
        ]

    logger.debug("Listed %d patients (search=%r)", len(patients), search)
    return ActionResult.ok(patients)
