"""Prescription repository: the artifact created when a request is approved."""

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable


@dataclass
class Prescription:
    id: str
    doctor_id: str
    status: str
    request_id: str | None = None
    patient_id: str | None = None
    prescription_plan: str | None = None
    prescription_date: str | None = None
    total_amount: float | None = None
    notes: str | None = None
    has_agreed_agb: bool = True
    has_agreed_privacy_policy: bool = True
    created_at: str | None = None
    updated_at: str | None = None


class PrescriptionRepository:
    """Repository for prescription rows."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(self, prescription: Prescription) -> Prescription:
        """Insert a prescription. Raises sqlite3.IntegrityError on a second one per request."""
        prescription.id = prescription.id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        self.conn.execute("""
            INSERT INTO prescriptions (
                id, request_id, patient_id, doctor_id, status, prescription_plan,
                prescription_date, total_amount, notes, has_agreed_agb,
                has_agreed_privacy_policy, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            prescription.id, prescription.request_id, prescription.patient_id,
            prescription.doctor_id, prescription.status, prescription.prescription_plan,
            prescription.prescription_date, prescription.total_amount, prescription.notes,
            int(prescription.has_agreed_agb), int(prescription.has_agreed_privacy_policy),
            now, now,
        ))

        prescription.created_at = now
        prescription.updated_at = now
        return prescription

    def get_by_id(self, prescription_id: str) -> Prescription | None:
        row = self.conn.execute(
            "SELECT * FROM prescriptions WHERE id = ?", (prescription_id,)
        ).fetchone()
        return self._row_to_prescription(row) if row else None

    def get_by_request_ids(self, request_ids: Iterable[str]) -> dict[str, Prescription]:
        """Batch-load prescriptions keyed by their originating request ID."""
        ids = sorted({request_id for request_id in request_ids if request_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM prescriptions WHERE request_id IN ({placeholders})", ids
        ).fetchall()
        return {row["request_id"]: self._row_to_prescription(row) for row in rows}

    def list_for_request(self, request_id: str) -> list[Prescription]:
        rows = self.conn.execute(
            "SELECT * FROM prescriptions WHERE request_id = ? ORDER BY created_at", (request_id,)
        ).fetchall()
        return [self._row_to_prescription(row) for row in rows]

    def _row_to_prescription(self, row) -> Prescription:
        """Convert a database row to a Prescription object."""
        return Prescription(
            id=row["id"],
            doctor_id=row["doctor_id"],
            status=row["status"],
            request_id=row["request_id"],
            patient_id=row["patient_id"],
            prescription_plan=row["prescription_plan"],
            prescription_date=row["prescription_date"],
            total_amount=row["total_amount"],
            notes=row["notes"],
            has_agreed_agb=bool(row["has_agreed_agb"]),
            has_agreed_privacy_policy=bool(row["has_agreed_privacy_policy"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
