"""Pydantic result envelopes and view models returned by portal actions."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PortalModel(BaseModel):
    """Snake_case in Python, camelCase when serialized for the UI."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class ProductLine(PortalModel):
    id: str
    name: str
    quantity: float
    unit: str = "g"


class ResolvedRequest(PortalModel):
    """A prescription request joined with its patient, user and deciding doctor."""
    id: str
    external_id: str = Field(alias="external_id")
    patient_id: str | None = None
    user_id: str | None = None
    patient_name: str
    age: int | None = None
    request_date: str | None = None
    status: str
    medical_condition: str = ""
    preferences: str = ""
    medication_history: str = ""
    additional_notes: str = ""
    doctor_notes: str = ""
    total_amount: float = 0
    profile_image: str
    products: list[ProductLine] = Field(default_factory=list)

    # Terminal statuses only
    approved_by: str | None = None
    denied_by: str | None = None
    denied_date: str | None = None
    prescription_id: str | None = None
    prescription_date: str | None = None
    prescription_plan: list[ProductLine] | None = None


class PatientSummary(PortalModel):
    id: str
    full_name: str
    email: str
    birth_date: str | None = None
    created_at: str | None = None


class PatientInfo(PortalModel):
    id: str
    user_id: str | None = None
    name: str
    age: int | None = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""


class DoctorProfileView(PortalModel):
    id: str
    user_id: str
    title: str | None = None
    specialty: str | None = None
    license_number: str
    phone_number: str | None = None
    address: dict[str, str] | None = None
    is_verified: bool = False


class DashboardSummary(PortalModel):
    pending_requests: list[ResolvedRequest]
    pending_count: int
    approved_count: int
    patient_count: int


class SessionUser(PortalModel):
    id: str
    email: str


class ActionResult(PortalModel):
    """Discriminated result of every portal operation."""
    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None
    field_errors: dict[str, str] | None = None
    not_verified: bool | None = None
    user: SessionUser | None = None

    @classmethod
    def ok(cls, data: Any = None, **extra) -> "ActionResult":
        return cls(success=True, data=data, **extra)

    @classmethod
    def failure(cls, error, data: Any = None, **extra) -> "ActionResult":
        """Build a failed result from a PortalError."""
        field_errors = getattr(error, "field_errors", None) or None
        return cls(
            success=False,
            data=data,
            error=error.message,
            error_code=error.code,
            field_errors=field_errors,
            **extra,
        )

    def to_dict(self) -> dict:
        """Serialize with camelCase keys, omitting unset top-level fields."""
        dumped = self.model_dump(by_alias=True)
        return {key: value for key, value in dumped.items() if value is not None}
