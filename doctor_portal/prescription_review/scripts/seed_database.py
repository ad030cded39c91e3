"""Seed the database with demo patients, products, requests and a verified doctor.

Run with ``python -m doctor_portal.prescription_review.scripts.seed_database``.
"""

from datetime import datetime, timedelta

from doctor_portal.auth_provider import AuthProvider, AuthProviderError
from doctor_portal.config import load_settings
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

DEMO_DOCTOR_EMAIL = "demo.doctor@example.com"
DEMO_DOCTOR_PASSWORD = "demo-password"

MOCK_USERS = [
    User(id="u-001", email="anna.schmidt@example.com", first_name="Anna", last_name="Schmidt", is_active=True),
    User(id="u-002", email="jonas.weber@example.com", first_name="Jonas", last_name="Weber", is_active=True),
    User(id="u-003", email="lea.fischer@example.com", first_name="Lea", last_name="Fischer", is_active=True),
    # Legacy account without a patient profile
    User(id="u-004", email="max.becker@example.com", first_name="Max", last_name="Becker", is_active=True),
]

MOCK_PATIENTS = [
    Patient(id="p-001", user_id="u-001", birth_date="1985-03-15", symptoms="Chronic back pain"),
    Patient(id="p-002", user_id="u-002", birth_date="1992-07-22", symptoms="Insomnia", allergies="Penicillin"),
    Patient(id="p-003", user_id="u-003", birth_date="1978-11-08", chronic_diseases="Migraine"),
]

MOCK_PRODUCTS = [
    ("prod-001", "Bedrocan"),
    ("prod-002", "Pedanios 22/1"),
    ("prod-003", "Bediol"),
]

# (request id, external id, patient id, user id, status, condition, products)
MOCK_REQUESTS = [
    ("r-001", "RX-1001", "p-001", None, "new", "Chronic back pain", [("prod-001", 10.0)]),
    ("r-002", "RX-1002", "p-002", None, "new", "Sleep disorder", [("prod-002", 5.0), ("prod-003", 5.0)]),
    ("r-003", "RX-1003", "p-003", None, "info_requested", "Migraine", [("prod-003", 15.0)]),
    ("r-004", "RX-1004", None, "u-004", "new", "Neuropathic pain", [("prod-001", 20.0)]),
]


def seed_demo_doctor(datastore: Datastore, auth: AuthProvider) -> None:
    """Create a verified demo doctor if auth admin access is configured."""
    if not auth.has_admin_access:
        print("  Skipping demo doctor (PORTAL_SERVICE_ROLE_KEY not set)")
        return

    try:
        identity = auth.admin_create_identity(
            DEMO_DOCTOR_EMAIL,
            DEMO_DOCTOR_PASSWORD,
            metadata={"first_name": "Clara", "last_name": "Hoffmann"},
        )
    except AuthProviderError:
        print(f"  Skipping demo doctor ({DEMO_DOCTOR_EMAIL} already exists)")
        return

    with datastore.transaction() as conn:
        users = UserRepository(conn)
        users.upsert_profile(User(
            id=identity.id,
            email=DEMO_DOCTOR_EMAIL,
            first_name="Clara",
            last_name="Hoffmann",
            phone_number="030-1234567",
            is_active=True,
        ))
        users.add_role(UserId(identity.id), "doctor")
        doctors = DoctorRepository(conn)
        doctor = doctors.create(Doctor(
            id=DoctorId(""),
            user_id=identity.id,
            license_number="DEMO-0001",
            title="Dr.",
            specialty="General Medicine",
            phone_number="030-1234567",
            address=DoctorAddress("Hauptstrasse 1", "Berlin", "10115", "Germany"),
        ))
        doctors.set_verified(doctor.id)

    print(f"  Created demo doctor {DEMO_DOCTOR_EMAIL} / {DEMO_DOCTOR_PASSWORD}")


def seed_database():
    """Initialize and seed the database with mock data."""
    settings = load_settings()
    datastore = Datastore(settings.database_path)

    print(f"Initializing database at {datastore.path}...")
    datastore.init_schema()

    with datastore.transaction() as conn:
        users = UserRepository(conn)
        patients = PatientRepository(conn)
        requests = PrescriptionRequestRepository(conn)

        print("Creating mock users and patients...")
        for user in MOCK_USERS:
            users.upsert_profile(user)
            if "patient" not in users.get_roles(user.id):
                users.add_role(UserId(user.id), "patient")
        for patient in MOCK_PATIENTS:
            if patients.get_by_id(patient.id):
                print(f"  Skipping patient {patient.id} (already exists)")
            else:
                patients.create(patient)
                print(f"  Created patient {patient.id}")

        print("Creating mock products...")
        existing_products = {row["id"] for row in conn.execute("SELECT id FROM products")}
        product_names = dict(MOCK_PRODUCTS)
        for product_id, name in MOCK_PRODUCTS:
            if product_id not in existing_products:
                requests.create_product(name, product_id=product_id)

        print("Creating mock prescription requests...")
        start = datetime.now() - timedelta(days=len(MOCK_REQUESTS))
        for offset, (request_id, external_id, patient_id, user_id, status, condition, lines) in enumerate(MOCK_REQUESTS):
            if requests.get_by_id(request_id):
                print(f"  Skipping request {external_id} (already exists)")
                continue
            requests.create(PrescriptionRequest(
                id=request_id,
                external_id=external_id,
                patient_id=patient_id,
                user_id=user_id,
                status=status,
                medical_condition=condition,
                total_amount=sum(quantity for _, quantity in lines) * 9.5,
                created_at=(start + timedelta(days=offset)).isoformat(),
                products=[
                    RequestProduct(product_id=product_id, name=product_names[product_id], quantity_grams=quantity)
                    for product_id, quantity in lines
                ],
            ))
            print(f"  Created request {external_id} ({status})")

    print("Creating demo doctor...")
    auth = AuthProvider(
        datastore,
        anon_key=settings.anon_key,
        service_role_key=settings.service_role_key,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    seed_demo_doctor(datastore, auth)

    print("\nDatabase seeded successfully!")
    print(f"  - {len(MOCK_PATIENTS)} patients")
    print(f"  - {len(MOCK_PRODUCTS)} products")
    print(f"  - {len(MOCK_REQUESTS)} prescription requests")


if __name__ == "__main__":
    seed_database()
