"""Batch-resolved listings of prescription requests by status."""

import json
import logging
from datetime import date
from typing import Iterable

from doctor_portal.identity_resolver import (
    display_name,
    profile_image_for,
    requester_ref,
    resolve_identity,
    UserRef,
)
from doctor_portal.prescription_review.database.connection import Datastore
from doctor_portal.prescription_review.database.doctor_repository import Doctor, DoctorRepository
from doctor_portal.prescription_review.database.patient_repository import PatientRepository
from doctor_portal.prescription_review.database.prescription_repository import (
    Prescription,
    PrescriptionRepository,
)
from doctor_portal.prescription_review.database.request_repository import (
    PrescriptionRequest,
    PrescriptionRequestRepository,
)
from doctor_portal.prescription_review.database.user_repository import User, UserRepository
from doctor_portal.request_lifecycle import RequestStatus, TERMINAL_STATUSES
from doctor_portal.results import ProductLine, ResolvedRequest

logger = logging.getLogger(__name__)


class PrescriptionPlanError(ValueError):
    """Raised when a stored prescription plan cannot be read."""
    pass


class RequestListingService:
    """Lists requests with their patients, users and doctors loaded in bulk.

    One query per entity family regardless of page size. Any query error
    propagates so callers never show a page full of unresolved names.
    """

    def __init__(self, datastore: Datastore, fallback_name: str = "N/A", today: date | None = None):
        self.datastore = datastore
        self.fallback_name = fallback_name
        self.today = today

    def list_by_status(self, statuses: Iterable[RequestStatus]) -> list[ResolvedRequest]:
        statuses = {RequestStatus(s) for s in statuses}
        # Denied listings reflect decision recency
        order_by = "updated_at" if statuses == {RequestStatus.DENIED} else "created_at"

        with self.datastore.reader() as conn:
            requests = PrescriptionRequestRepository(conn).list_by_status(
                [s.value for s in statuses], order_by=order_by
            )
            if not requests:
                return []

            patient_ids = {r.patient_id for r in requests if r.patient_id}
            request_user_ids = {r.user_id for r in requests if r.user_id}
            userref_ids = {
                ref.user_id
                for ref in (requester_ref(r.patient_id, r.user_id) for r in requests)
                if isinstance(ref, UserRef)
            }

            patient_repo = PatientRepository(conn)
            patients = patient_repo.get_many(patient_ids)
            patients.update(patient_repo.get_many_by_user_ids(userref_ids))

            decided_ids = {
                r.doctor_id for r in requests
                if r.doctor_id and RequestStatus(r.status) in TERMINAL_STATUSES
            }
            doctors = DoctorRepository(conn).get_many(decided_ids)

            user_ids = (
                request_user_ids
                | {p.user_id for p in patients.values() if p.user_id}
                | {d.user_id for d in doctors.values()}
            )
            users = UserRepository(conn).get_many(user_ids)

            approved_ids = [r.id for r in requests if r.status == RequestStatus.APPROVED]
            prescriptions = PrescriptionRepository(conn).get_by_request_ids(approved_ids)

        logger.debug(
            "Listing %s: %d requests, %d patients, %d users, %d doctors",
            sorted(s.value for s in statuses), len(requests), len(patients), len(users), len(doctors),
        )
        return [
            self._to_view(request, patients, users, doctors, prescriptions.get(request.id))
            for request in requests
        ]

    def _to_view(
        self,
        request: PrescriptionRequest,
        patients: dict,
        users: dict[str, User],
        doctors: dict[str, Doctor],
        prescription: Prescription | None,
    ) -> ResolvedRequest:
        identity = resolve_identity(
            requester_ref(request.patient_id, request.user_id), patients, users, self.today
        )
        name = identity.display_name(self.fallback_name)

        view = ResolvedRequest(
            id=request.id,
            external_id=request.external_id or request.id[:8],
            patient_id=request.patient_id or identity.patient.id or None,
            user_id=request.user_id or identity.user.id or None,
            patient_name=name,
            age=identity.age,
            request_date=request.created_at,
            status=request.status,
            medical_condition=request.medical_condition or "",
            preferences=request.preferences or "",
            medication_history=request.medication_history or "",
            additional_notes=request.additional_notes or "",
            doctor_notes=request.doctor_notes or "",
            total_amount=request.total_amount or 0,
            profile_image=profile_image_for(name, self.fallback_name),
            products=[
                ProductLine(id=p.product_id, name=p.name, quantity=p.quantity_grams)
                for p in request.products
            ],
        )

        if request.status == RequestStatus.APPROVED:
            view.approved_by = self._doctor_name(request.doctor_id, doctors, users)
            if prescription:
                view.prescription_id = prescription.id
                view.prescription_date = prescription.prescription_date
                if prescription.prescription_plan is not None:
                    view.prescription_plan = self._plan_products(prescription)
                    view.products = list(view.prescription_plan)
        elif request.status == RequestStatus.DENIED:
            view.denied_by = self._doctor_name(request.doctor_id, doctors, users)
            view.denied_date = request.updated_at

        return view

    def _doctor_name(self, doctor_id: str | None, doctors: dict[str, Doctor], users: dict[str, User]) -> str | None:
        if not doctor_id:
            return None
        doctor = doctors.get(doctor_id)
        user = users.get(doctor.user_id) if doctor else None
        if not user:
            return self.fallback_name
        name = display_name(user.first_name, user.last_name, self.fallback_name)
        if doctor.title and name != self.fallback_name:
            return f"{doctor.title} {name}"
        return name

    def _plan_products(self, prescription: Prescription) -> list[ProductLine]:
        try:
            return parse_prescription_plan(prescription.prescription_plan)
        except PrescriptionPlanError as e:
            logger.warning("Unreadable prescription plan on %s: %s", prescription.id, e)
            return []


def parse_prescription_plan(raw) -> list[ProductLine]:
    """Read a plan stored as JSON text or as an already-decoded list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PrescriptionPlanError(f"invalid JSON: {e.msg}") from e
    if not isinstance(raw, list):
        raise PrescriptionPlanError(f"expected a list, got {type(raw).__name__}")

    lines = []
    for item in raw:
        if not isinstance(item, dict):
            raise PrescriptionPlanError(f"expected an object per product, got {type(item).__name__}")
        try:
            quantity = float(item.get("quantity", item.get("quantity_grams")) or 0)
        except (TypeError, ValueError) as e:
            raise PrescriptionPlanError(f"bad quantity {item.get('quantity')!r}") from e
        lines.append(ProductLine(
            id=str(item.get("id") or item.get("product_id") or ""),
            name=str(item.get("name") or ""),
            quantity=quantity,
            unit=item.get("unit") or "g",
        ))
    return lines


def plan_from_request(request: PrescriptionRequest) -> str:
    """Snapshot a request's product lines as the prescription plan JSON."""
    return json.dumps([
        {"id": p.product_id, "name": p.name, "quantity": p.quantity_grams, "unit": "g"}
        for p in request.products
    ])
