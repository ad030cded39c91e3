"""Prescription request repository with status-guarded transitions."""

import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable


@dataclass
class RequestProduct:
    product_id: str
    name: str
    quantity_grams: float


@dataclass
class PrescriptionRequest:
    id: str
    status: str = "new"
    external_id: str | None = None
    patient_id: str | None = None
    user_id: str | None = None
    medical_condition: str | None = None
    preferences: str | None = None
    medication_history: str | None = None
    additional_notes: str | None = None
    doctor_id: str | None = None
    doctor_notes: str | None = None
    total_amount: float | None = None
    created_at: str | None = None
    updated_at: str | None = None
    products: list[RequestProduct] = field(default_factory=list)


class PrescriptionRequestRepository:
    """Repository for prescription_requests and their product lines."""

    # Allowed sort columns for listings
    ORDER_COLUMNS = {"created_at", "updated_at"}

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(self, request: PrescriptionRequest) -> PrescriptionRequest:
        """Create a request with its product lines (patient-facing side, seeding, tests)."""
        request.id = request.id or str(uuid.uuid4())
        now = datetime.now().isoformat()
        request.created_at = request.created_at or now
        request.updated_at = request.updated_at or request.created_at

        self.conn.execute("""
            INSERT INTO prescription_requests (
                id, external_id, patient_id, user_id, status, medical_condition,
                preferences, medication_history, additional_notes, doctor_id,
                doctor_notes, total_amount, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            request.id, request.external_id, request.patient_id, request.user_id,
            request.status, request.medical_condition, request.preferences,
            request.medication_history, request.additional_notes, request.doctor_id,
            request.doctor_notes, request.total_amount, request.created_at,
            request.updated_at,
        ))

        for product in request.products:
            self.conn.execute(
                "INSERT INTO request_products (request_id, product_id, quantity_grams) VALUES (?, ?, ?)",
                (request.id, product.product_id, product.quantity_grams),
            )

        return request

    def create_product(self, name: str, product_id: str | None = None) -> str:
        """Register a product in the catalogue. Returns its ID."""
        product_id = product_id or str(uuid.uuid4())
        self.conn.execute("INSERT INTO products (id, name) VALUES (?, ?)", (product_id, name))
        return product_id

    def get_by_id(self, request_id: str) -> PrescriptionRequest | None:
        """Get a request by ID, including its product lines."""
        row = self.conn.execute(
            "SELECT * FROM prescription_requests WHERE id = ?", (request_id,)
        ).fetchone()
        if not row:
            return None
        request = self._row_to_request(row)
        request.products = self._load_products([request.id]).get(request.id, [])
        return request

    def list_by_status(
        self,
        statuses: Iterable[str],
        order_by: str = "created_at",
    ) -> list[PrescriptionRequest]:
        """Get requests in any of the given statuses, newest first.

        Product lines are loaded with one extra query for the whole page.
        """
        if order_by not in self.ORDER_COLUMNS:
            raise ValueError(f"Cannot order requests by {order_by!r}")

        status_values = sorted(set(statuses))
        if not status_values:
            return []

        placeholders = ", ".join("?" for _ in status_values)
        rows = self.conn.execute(
            f"""SELECT * FROM prescription_requests
                WHERE status IN ({placeholders})
                ORDER BY {order_by} DESC, id""",
            status_values,
        ).fetchall()

        requests = [self._row_to_request(row) for row in rows]
        products = self._load_products([r.id for r in requests])
        for request in requests:
            request.products = products.get(request.id, [])
        return requests

    def transition_status(
        self,
        request_id: str,
        to_status: str,
        from_statuses: Iterable[str],
        doctor_id: str | None,
        doctor_notes: str | None,
    ) -> bool:
        """Move a request to a new status only if it is still in an expected one.

        Returns False when no row matched (missing or already decided).
        """
        expected = sorted(set(from_statuses))
        placeholders = ", ".join("?" for _ in expected)
        now = datetime.now().isoformat()

        cursor = self.conn.execute(
            f"""UPDATE prescription_requests
                SET status = ?, doctor_id = ?, doctor_notes = ?, updated_at = ?
                WHERE id = ? AND status IN ({placeholders})""",
            [to_status, doctor_id, doctor_notes, now, request_id, *expected],
        )
        return cursor.rowcount > 0

    # Private helpers

    def _load_products(self, request_ids: list[str]) -> dict[str, list[RequestProduct]]:
        """Batch-load product lines for many requests."""
        if not request_ids:
            return {}
        placeholders = ", ".join("?" for _ in request_ids)
        rows = self.conn.execute(
            f"""SELECT rp.request_id, rp.quantity_grams, p.id AS product_id, p.name
                FROM request_products rp
                JOIN products p ON p.id = rp.product_id
                WHERE rp.request_id IN ({placeholders})
                ORDER BY p.name, p.id""",
            request_ids,
        ).fetchall()

        products: dict[str, list[RequestProduct]] = {}
        for row in rows:
            products.setdefault(row["request_id"], []).append(
                RequestProduct(
                    product_id=row["product_id"],
                    name=row["name"],
                    quantity_grams=row["quantity_grams"],
                )
            )
        return products

    def _row_to_request(self, row) -> PrescriptionRequest:
        """Convert a database row to a PrescriptionRequest object."""
        return PrescriptionRequest(
            id=row["id"],
            status=row["status"],
            external_id=row["external_id"],
            patient_id=row["patient_id"],
            user_id=row["user_id"],
            medical_condition=row["medical_condition"],
            preferences=row["preferences"],
            medication_history=row["medication_history"],
            additional_notes=row["additional_notes"],
            doctor_id=row["doctor_id"],
            doctor_notes=row["doctor_notes"],
            total_amount=row["total_amount"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
