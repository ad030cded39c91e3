"""Resolve who a prescription request belongs to.

A request points at its requester either through ``patient_id`` or, for
legacy rows, through a bare ``user_id``. Everything here is pure: callers
batch-load the patient and user maps first and pass them in.
"""

from dataclasses import dataclass
from datetime import date
from urllib.parse import quote

from doctor_portal.prescription_review.database.patient_repository import Patient
from doctor_portal.prescription_review.database.user_repository import User

GENERIC_PROFILE_IMAGE = "/user-icon.svg"


@dataclass(frozen=True)
class PatientRef:
    patient_id: str


@dataclass(frozen=True)
class UserRef:
    user_id: str


@dataclass(frozen=True)
class NoRef:
    pass


RequesterRef = PatientRef | UserRef | NoRef


@dataclass
class ResolvedIdentity:
    patient: Patient
    user: User
    age: int | None = None

    def display_name(self, fallback: str) -> str:
        return display_name(self.user.first_name, self.user.last_name, fallback)


def requester_ref(patient_id: str | None, user_id: str | None) -> RequesterRef:
    """Build the tagged reference for a request row. patient_id wins over user_id."""
    if patient_id:
        return PatientRef(patient_id)
    if user_id:
        return UserRef(user_id)
    return NoRef()


def empty_user(user_id: str = "") -> User:
    return User(id=user_id, email="", first_name=None, last_name=None)


def empty_patient(patient_id: str = "", user_id: str | None = None) -> Patient:
    return Patient(id=patient_id, user_id=user_id, birth_date=None)


def resolve_identity(
    ref: RequesterRef,
    patients_by_id: dict[str, Patient],
    users_by_id: dict[str, User],
    today: date | None = None,
) -> ResolvedIdentity:
    """Resolve the patient and user behind a request reference."""
    if isinstance(ref, PatientRef):
        patient = patients_by_id.get(ref.patient_id)
        user = users_by_id.get(patient.user_id) if patient and patient.user_id else None
        patient = patient or empty_patient(ref.patient_id)
        user = user or empty_user(patient.user_id or "")
    elif isinstance(ref, UserRef):
        user = users_by_id.get(ref.user_id) or empty_user(ref.user_id)
        # Best effort: the preloaded map may not contain this user's patient row
        patient = next(
            (p for p in patients_by_id.values() if p.user_id == ref.user_id),
            None,
        ) or empty_patient(user_id=ref.user_id)
    else:
        user = empty_user()
        patient = empty_patient()

    return ResolvedIdentity(
        patient=patient,
        user=user,
        age=calculate_age(patient.birth_date, today),
    )


def calculate_age(birth_date: str | date | None, today: date | None = None) -> int | None:
    """Full years elapsed since birth_date, or None if unknown, invalid or in the future."""
    if not birth_date:
        return None
    if isinstance(birth_date, str):
        try:
            birth_date = date.fromisoformat(birth_date.strip()[:10])
        except ValueError:
            return None

    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age if age >= 0 else None


def display_name(first_name: str | None, last_name: str | None, fallback: str) -> str:
    """Join first and last name, or return fallback when both are empty."""
    full_name = f"{first_name or ''} {last_name or ''}".strip()
    return full_name or fallback


def profile_image_for(name: str, fallback: str) -> str:
    """Placeholder avatar keyed by name, or the generic icon for unknown requesters."""
    if not name or name == fallback:
        return GENERIC_PROFILE_IMAGE
    return f"/placeholder.svg?height=64&width=64&query={quote(name)}"
