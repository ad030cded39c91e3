"""Patient repository with batch lookups for request resolution."""

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable


@dataclass
class Patient:
    id: str
    user_id: str | None = None
    birth_date: str | None = None
    symptoms: str | None = None
    medications: str | None = None
    allergies: str | None = None
    chronic_diseases: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class PatientRepository:
    """Repository for patient rows. Doctors only read these."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(self, patient: Patient) -> Patient:
        """Create a new patient (seeding and tests; patients register elsewhere)."""
        patient.id = patient.id or str(uuid.uuid4())
        now = datetime.now().isoformat()
        created_at = patient.created_at or now

        self.conn.execute("""
            INSERT INTO patients (
                id, user_id, birth_date, symptoms, medications, allergies,
                chronic_diseases, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            patient.id, patient.user_id, patient.birth_date, patient.symptoms,
            patient.medications, patient.allergies, patient.chronic_diseases,
            created_at, now,
        ))

        patient.created_at = created_at
        patient.updated_at = now
        return patient

    def get_by_id(self, patient_id: str) -> Patient | None:
        """Get a patient by ID."""
        row = self.conn.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
        return self._row_to_patient(row) if row else None

    def get_many(self, patient_ids: Iterable[str]) -> dict[str, Patient]:
        """Batch-load patients keyed by ID with a single query."""
        ids = sorted({patient_id for patient_id in patient_ids if patient_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM patients WHERE id IN ({placeholders})", ids
        ).fetchall()
        return {row["id"]: self._row_to_patient(row) for row in rows}

    def get_many_by_user_ids(self, user_ids: Iterable[str]) -> dict[str, Patient]:
        """Batch-load patients belonging to the given users, keyed by patient ID."""
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM patients WHERE user_id IN ({placeholders})", ids
        ).fetchall()
        return {row["id"]: self._row_to_patient(row) for row in rows}

    def list_with_users(self) -> list[sqlite3.Row]:
        """All patients joined with their user row, newest first."""
        return self.conn.execute("""
            SELECT p.id, p.user_id, p.birth_date, p.created_at,
                   u.email, u.first_name, u.last_name
            FROM patients p
            LEFT JOIN users u ON u.id = p.user_id
            ORDER BY p.created_at DESC, p.id
        """).fetchall()

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM patients").fetchone()[0]

    def _row_to_patient(self, row) -> Patient:
        """Convert a database row to a Patient object."""
        return Patient(
            id=row["id"],
            user_id=row["user_id"],
            birth_date=row["birth_date"],
            symptoms=row["symptoms"],
            medications=row["medications"],
            allergies=row["allergies"],
            chronic_diseases=row["chronic_diseases"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
