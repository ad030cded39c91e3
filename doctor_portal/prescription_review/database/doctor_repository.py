"""Doctor repository with profile, verification and approval-request operations."""

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, NewType

# Doctor.id, never interchangeable with the login identity's UserId
DoctorId = NewType("DoctorId", str)


@dataclass
class DoctorAddress:
    street: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""

    def to_json(self) -> str:
        return json.dumps({
            "street": self.street,
            "city": self.city,
            "postal_code": self.postal_code,
            "country": self.country,
        })

    @classmethod
    def from_json(cls, raw: str | None) -> "DoctorAddress | None":
        if not raw:
            return None
        data = json.loads(raw)
        return cls(
            street=data.get("street") or "",
            city=data.get("city") or "",
            postal_code=data.get("postal_code") or "",
            country=data.get("country") or "",
        )


@dataclass
class Doctor:
    id: DoctorId
    user_id: str
    license_number: str
    title: str | None = None
    specialty: str | None = None
    phone_number: str | None = None
    address: DoctorAddress | None = None
    is_verified: bool = False
    is_approved: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class DoctorRepository:
    """Repository for doctors and doctor_approval_requests rows."""

    # Fields a doctor can edit on their own profile
    PROFILE_FIELDS = ["title", "specialty", "license_number", "phone_number", "address"]

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(self, doctor: Doctor) -> Doctor:
        """Create a doctor profile row."""
        doctor.id = doctor.id or DoctorId(str(uuid.uuid4()))
        now = datetime.now().isoformat()

        self.conn.execute("""
            INSERT INTO doctors (
                id, user_id, title, specialty, license_number, phone_number,
                address, is_verified, is_approved, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            doctor.id, doctor.user_id, doctor.title, doctor.specialty,
            doctor.license_number, doctor.phone_number,
            doctor.address.to_json() if doctor.address else None,
            int(doctor.is_verified), int(doctor.is_approved), now, now,
        ))

        doctor.created_at = now
        doctor.updated_at = now
        return doctor

    def get_by_id(self, doctor_id: str) -> Doctor | None:
        """Get a doctor by ID."""
        row = self.conn.execute("SELECT * FROM doctors WHERE id = ?", (doctor_id,)).fetchone()
        return self._row_to_doctor(row) if row else None

    def get_by_user_id(self, user_id: str) -> Doctor | None:
        """Get the doctor profile belonging to a login identity."""
        row = self.conn.execute("SELECT * FROM doctors WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_doctor(row) if row else None

    def get_many(self, doctor_ids: Iterable[str]) -> dict[str, Doctor]:
        """Batch-load doctors keyed by ID with a single query."""
        ids = sorted({doctor_id for doctor_id in doctor_ids if doctor_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM doctors WHERE id IN ({placeholders})", ids
        ).fetchall()
        return {row["id"]: self._row_to_doctor(row) for row in rows}

    def license_number_exists(self, license_number: str, exclude_doctor_id: str | None = None) -> bool:
        """Check whether a license number is already registered."""
        query = "SELECT 1 FROM doctors WHERE license_number = ?"
        params: list = [license_number]
        if exclude_doctor_id:
            query += " AND id != ?"
            params.append(exclude_doctor_id)
        return self.conn.execute(query, params).fetchone() is not None

    def update_profile(self, doctor_id: str, updates: dict) -> Doctor | None:
        """Update editable profile fields. Unknown fields are ignored."""
        valid_updates = {}
        for field_name, value in updates.items():
            if field_name not in self.PROFILE_FIELDS:
                continue
            if field_name == "address" and isinstance(value, DoctorAddress):
                value = value.to_json()
            valid_updates[field_name] = value

        if valid_updates:
            set_clause = ", ".join(f"{name} = ?" for name in valid_updates)
            set_clause += ", updated_at = ?"
            values = list(valid_updates.values()) + [datetime.now().isoformat(), doctor_id]
            self.conn.execute(f"UPDATE doctors SET {set_clause} WHERE id = ?", values)

        return self.get_by_id(doctor_id)

    def set_verified(self, doctor_id: str, verified: bool = True) -> None:
        """Mark a doctor as verified and approved (admin process)."""
        self.conn.execute(
            "UPDATE doctors SET is_verified = ?, is_approved = ?, updated_at = ? WHERE id = ?",
            (int(verified), int(verified), datetime.now().isoformat(), doctor_id),
        )

    # Approval request methods

    def create_approval_request(self, doctor_id: str) -> str:
        """Queue a doctor for manual approval. Returns the request ID."""
        request_id = str(uuid.uuid4())
        self.conn.execute(
            "INSERT INTO doctor_approval_requests (id, doctor_id, status) VALUES (?, ?, 'pending')",
            (request_id, doctor_id),
        )
        return request_id

    def get_approval_requests(self, doctor_id: str) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM doctor_approval_requests WHERE doctor_id = ? ORDER BY created_at",
            (doctor_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    # Private helpers

    def _row_to_doctor(self, row) -> Doctor:
        """Convert a database row to a Doctor object."""
        return Doctor(
            id=DoctorId(row["id"]),
            user_id=row["user_id"],
            license_number=row["license_number"],
            title=row["title"],
            specialty=row["specialty"],
            phone_number=row["phone_number"],
            address=DoctorAddress.from_json(row["address"]),
            is_verified=bool(row["is_verified"]),
            is_approved=bool(row["is_approved"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
