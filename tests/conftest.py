"""Shared pytest fixtures."""

import pytest

from doctor_portal.auth_provider import AuthProvider
from doctor_portal.portal_context import PortalContext
from doctor_portal.prescription_review.database import (
    Datastore,
    DoctorRepository,
    PatientRepository,
    PrescriptionRequestRepository,
    UserRepository,
)
from doctor_portal.prescription_review.database.doctor_repository import Doctor, DoctorAddress, DoctorId
from doctor_portal.prescription_review.database.patient_repository import Patient
from doctor_portal.prescription_review.database.request_repository import (
    PrescriptionRequest,
    RequestProduct,
)
from doctor_portal.prescription_review.database.user_repository import User, UserId

DOCTOR_EMAIL = "dr.house@example.com"
DOCTOR_PASSWORD = "correct-horse"


@pytest.fixture
def datastore(tmp_path):
    """A fresh database file per test."""
    store = Datastore(tmp_path / "portal.db")
    store.init_schema()
    return store


@pytest.fixture
def auth(datastore):
    # Lowest bcrypt cost keeps hashing fast
    return AuthProvider(datastore, anon_key="test-anon", service_role_key="test-service", bcrypt_rounds=4)


@pytest.fixture
def ctx(datastore, auth):
    return PortalContext(datastore=datastore, auth=auth)


@pytest.fixture
def make_doctor(datastore, auth):
    """Factory for doctors backed by a real auth identity."""
    def _make(
        email=DOCTOR_EMAIL,
        password=DOCTOR_PASSWORD,
        license_number="LIC-001",
        first_name="Gregory",
        last_name="House",
        title="Dr.",
        verified=True,
    ) -> Doctor:
        identity = auth.admin_create_identity(
            email, password, metadata={"first_name": first_name, "last_name": last_name}
        )
        with datastore.transaction() as conn:
            UserRepository(conn).upsert_profile(User(
                id=identity.id, email=email, first_name=first_name, last_name=last_name, is_active=verified,
            ))
            UserRepository(conn).add_role(UserId(identity.id), "doctor")
            doctor = DoctorRepository(conn).create(Doctor(
                id=DoctorId(""),
                user_id=identity.id,
                license_number=license_number,
                title=title,
                specialty="Internal Medicine",
                phone_number="555-0100",
                address=DoctorAddress("1 Main St", "Princeton", "08540", "USA"),
            ))
            if verified:
                DoctorRepository(conn).set_verified(doctor.id)
                doctor.is_verified = doctor.is_approved = True
        return doctor
    return _make


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def signed_in(ctx, doctor):
    """Context with the default doctor signed in."""
    ctx.session = ctx.auth.sign_in_with_password(DOCTOR_EMAIL, DOCTOR_PASSWORD)
    return ctx


@pytest.fixture
def seeded(datastore):
    """Patients, products and requests in every reviewable shape.

    Pending requests, newest first: r-info, r-legacy, r1, r-anon.
    """
    with datastore.transaction() as conn:
        users = UserRepository(conn)
        users.upsert_profile(User(id="u1", email="anna@example.com", first_name="Anna", last_name="Muster"))
        users.upsert_profile(User(id="u2", email="jonas@example.com", first_name="Jonas", last_name="Weber"))
        users.upsert_profile(User(id="u3", email="lea@example.com", first_name="Lea", last_name="Fischer"))

        patients = PatientRepository(conn)
        patients.create(Patient(id="p1", user_id="u1", birth_date="1990-01-01", created_at="2025-06-01T10:00:00"))
        patients.create(Patient(id="p2", user_id="u2", birth_date="1992-07-22", created_at="2025-06-02T10:00:00"))
        patients.create(Patient(id="p3", user_id="u3", birth_date="2000-06-15", created_at="2025-06-03T10:00:00"))

        requests = PrescriptionRequestRepository(conn)
        requests.create_product("Bedrocan", product_id="prod-a")
        requests.create_product("Bediol", product_id="prod-b")

        requests.create(PrescriptionRequest(
            id="r1", external_id="RX-1", patient_id="p1", status="new",
            medical_condition="Chronic pain", total_amount=95.0,
            created_at="2026-01-01T09:00:00",
            products=[RequestProduct(product_id="prod-a", name="Bedrocan", quantity_grams=10.0)],
        ))
        requests.create(PrescriptionRequest(
            id="r-info", external_id="RX-2", patient_id="p2", status="info_requested",
            medical_condition="Insomnia", created_at="2026-01-03T09:00:00",
            products=[
                RequestProduct(product_id="prod-b", name="Bediol", quantity_grams=5.0),
                RequestProduct(product_id="prod-a", name="Bedrocan", quantity_grams=2.5),
            ],
        ))
        # Legacy row: requester referenced by user only
        requests.create(PrescriptionRequest(
            id="r-legacy", user_id="u3", status="new", created_at="2026-01-02T09:00:00",
        ))
        # No requester reference at all
        requests.create(PrescriptionRequest(
            id="r-anon", status="new", created_at="2025-12-31T09:00:00",
        ))

    return datastore
