"""Doctor-facing actions on prescription requests: listings and decisions."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from doctor_portal.errors import ConflictError, NotFoundError, ValidationError, portal_action
from doctor_portal.portal_context import PortalContext, resolve_acting_doctor
from doctor_portal.prescription_review.database.doctor_repository import Doctor
from doctor_portal.prescription_review.database.patient_repository import PatientRepository
from doctor_portal.prescription_review.database.prescription_repository import (
    Prescription,
    PrescriptionRepository,
)
from doctor_portal.prescription_review.database.request_repository import PrescriptionRequestRepository
from doctor_portal.request_listing import RequestListingService, plan_from_request
from doctor_portal.request_lifecycle import (
    REVIEWABLE_STATUSES,
    RequestStatus,
    can_transition,
    sources_for,
    views_affected_by,
)
from doctor_portal.results import ActionResult, DashboardSummary

logger = logging.getLogger(__name__)


# Listings

@portal_action(default_data=[])
def list_pending_requests(ctx: PortalContext, fallback_name: str = "N/A") -> ActionResult:
    """Requests waiting for a decision (new or info requested)."""
    ctx.require_session()
    requests = RequestListingService(ctx.datastore, fallback_name).list_by_status(REVIEWABLE_STATUSES)
    return ActionResult.ok(requests)


@portal_action(default_data=[])
def list_approved_requests(ctx: PortalContext, fallback_name: str = "Unknown") -> ActionResult:
    ctx.require_session()
    requests = RequestListingService(ctx.datastore, fallback_name).list_by_status({RequestStatus.APPROVED})
    return ActionResult.ok(requests)


@portal_action(default_data=[])
def list_denied_requests(ctx: PortalContext, fallback_name: str = "Unknown") -> ActionResult:
    ctx.require_session()
    requests = RequestListingService(ctx.datastore, fallback_name).list_by_status({RequestStatus.DENIED})
    return ActionResult.ok(requests)


@portal_action()
def get_dashboard_summary(ctx: PortalContext) -> ActionResult:
    """Fetch pending requests, approved requests and patient count in parallel.

    Each branch opens its own connection. If any branch fails, the whole
    summary fails.
    """
    ctx.require_session()

    def count_patients() -> int:
        with ctx.datastore.reader() as conn:
            return PatientRepository(conn).count()

    listing = RequestListingService(ctx.datastore)
    with ThreadPoolExecutor(max_workers=3) as pool:
        pending_future = pool.submit(listing.list_by_status, REVIEWABLE_STATUSES)
        approved_future = pool.submit(listing.list_by_status, {RequestStatus.APPROVED})
        patients_future = pool.submit(count_patients)
        pending = pending_future.result()
        approved = approved_future.result()
        patient_count = patients_future.result()

    return ActionResult.ok(DashboardSummary(
        pending_requests=pending,
        pending_count=len(pending),
        approved_count=len(approved),
        patient_count=patient_count,
    ))


# Decisions

@portal_action()
def approve_request(ctx: PortalContext, request_id: str, notes: str | None = None) -> ActionResult:
    """Approve a pending request and issue its prescription.

    The status change and the prescription insert commit together; if the
    insert fails the request keeps its previous status.
    """
    notes = _clean_notes(notes)

    with ctx.datastore.transaction() as conn:
        doctor = resolve_acting_doctor(ctx, conn)
        requests = PrescriptionRequestRepository(conn)
        request = requests.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Prescription request not found")

        _transition(requests, request_id, RequestStatus.APPROVED, doctor, notes)

        patient_id = request.patient_id
        if not patient_id and request.user_id:
            # Legacy rows reference the requester by user only
            patients = PatientRepository(conn).get_many_by_user_ids([request.user_id])
            patient_id = next(iter(patients), None)

        prescription = PrescriptionRepository(conn).create(Prescription(
            id="",
            request_id=request.id,
            patient_id=patient_id,
            doctor_id=doctor.id,
            status=RequestStatus.APPROVED.value,
            prescription_plan=plan_from_request(request),
            prescription_date=datetime.now().isoformat(),
            total_amount=request.total_amount,
            notes=notes,
            # Consent was captured when the patient submitted the request
            has_agreed_agb=True,
            has_agreed_privacy_policy=True,
        ))

    logger.info("Doctor %s approved request %s -> prescription %s", doctor.id, request_id, prescription.id)
    ctx.revalidate(*views_affected_by(RequestStatus.APPROVED))
    return ActionResult.ok({"prescriptionId": prescription.id})


@portal_action()
def deny_request(ctx: PortalContext, request_id: str, notes: str | None = None) -> ActionResult:
    """Deny a pending request. A reason is required."""
    notes = _clean_notes(notes)
    if not notes:
        raise ValidationError("Please provide a reason for the denial", {"notes": "A reason is required"})

    with ctx.datastore.transaction() as conn:
        doctor = resolve_acting_doctor(ctx, conn)
        _transition(PrescriptionRequestRepository(conn), request_id, RequestStatus.DENIED, doctor, notes)

    logger.info("Doctor %s denied request %s", doctor.id, request_id)
    ctx.revalidate(*views_affected_by(RequestStatus.DENIED))
    return ActionResult.ok()


@portal_action()
def request_additional_info(ctx: PortalContext, request_id: str, notes: str | None = None) -> ActionResult:
    """Ask the patient for more information before deciding."""
    notes = _clean_notes(notes)
    if not notes:
        raise ValidationError(
            "Please describe the information you need", {"notes": "A message is required"}
        )

    with ctx.datastore.transaction() as conn:
        doctor = resolve_acting_doctor(ctx, conn)
        _transition(PrescriptionRequestRepository(conn), request_id, RequestStatus.INFO_REQUESTED, doctor, notes)

    logger.info("Doctor %s requested more info on %s", doctor.id, request_id)
    ctx.revalidate(*views_affected_by(RequestStatus.INFO_REQUESTED))
    return ActionResult.ok()


# Private helpers

def _transition(
    requests: PrescriptionRequestRepository,
    request_id: str,
    target: RequestStatus,
    doctor: Doctor,
    notes: str | None,
) -> None:
    """Guarded status update. Distinguishes a missing request from a decided one."""
    moved = requests.transition_status(
        request_id,
        target.value,
        from_statuses=sources_for(target),
        doctor_id=doctor.id,
        doctor_notes=notes,
    )
    if moved:
        return

    current = requests.get_by_id(request_id)
    if current is None:
        raise NotFoundError("Prescription request not found")
    if can_transition(current.status, target):
        raise ConflictError("This request was changed by someone else. Please reload and try again")
    raise ConflictError(f"This request has already been {current.status.replace('_', ' ')}")


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None

