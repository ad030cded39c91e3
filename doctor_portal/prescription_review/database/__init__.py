from .connection import Datastore
from .doctor_repository import DoctorRepository
from .patient_repository import PatientRepository
from .prescription_repository import PrescriptionRepository
from .request_repository import PrescriptionRequestRepository
from .user_repository import UserRepository

__all__ = [
    "Datastore",
    "DoctorRepository",
    "PatientRepository",
    "PrescriptionRepository",
    "PrescriptionRequestRepository",
    "UserRepository",
]
