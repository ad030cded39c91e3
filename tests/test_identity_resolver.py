"""Tests for requester resolution, age and display names."""

from datetime import date

import pytest

from doctor_portal.identity_resolver import (
    GENERIC_PROFILE_IMAGE,
    NoRef,
    PatientRef,
    UserRef,
    calculate_age,
    display_name,
    profile_image_for,
    requester_ref,
    resolve_identity,
)
from doctor_portal.prescription_review.database.patient_repository import Patient
from doctor_portal.prescription_review.database.user_repository import User


class TestCalculateAge:

    def test_day_before_birthday(self):
        assert calculate_age("2000-06-15", date(2024, 6, 14)) == 23

    def test_on_birthday(self):
        assert calculate_age("2000-06-15", date(2024, 6, 15)) == 24

    def test_earlier_month_same_day_counts(self):
        assert calculate_age("2000-06-15", date(2024, 5, 20)) == 23

    def test_accepts_timestamp_strings(self):
        assert calculate_age("1990-01-01T00:00:00+00:00", date(2026, 10, 19)) == 36

    def test_accepts_date_objects(self):
        assert calculate_age(date(1990, 1, 1), date(2026, 10, 19)) == 36

    @pytest.mark.parametrize("birth_date", [None, "", "not-a-date", "1990-13-45"])
    def test_missing_or_invalid_is_none(self, birth_date):
        assert calculate_age(birth_date, date(2024, 1, 1)) is None

    def test_future_birth_date_is_none(self):
        assert calculate_age("2030-01-01", date(2024, 1, 1)) is None

    def test_same_day_birth_is_zero(self):
        assert calculate_age("2024-01-01", date(2024, 1, 1)) == 0


class TestDisplayName:

    def test_both_names(self):
        assert display_name("Anna", "Muster", "N/A") == "Anna Muster"

    def test_missing_names_use_fallback(self):
        assert display_name(None, None, "Unknown") == "Unknown"
        assert display_name("", "", "N/A") == "N/A"

    def test_single_name_is_trimmed(self):
        assert display_name("Anna", None, "N/A") == "Anna"
        assert display_name(None, "Muster", "N/A") == "Muster"


class TestProfileImage:

    def test_fallback_name_gets_generic_icon(self):
        assert profile_image_for("N/A", "N/A") == GENERIC_PROFILE_IMAGE

    def test_named_requester_gets_placeholder(self):
        assert profile_image_for("Anna Muster", "N/A") == "/placeholder.svg?height=64&width=64&query=Anna%20Muster"


class TestRequesterRef:

    def test_patient_id_wins(self):
        assert requester_ref("p1", "u1") == PatientRef("p1")

    def test_user_id_only(self):
        assert requester_ref(None, "u1") == UserRef("u1")

    def test_neither(self):
        assert isinstance(requester_ref(None, None), NoRef)


class TestResolveIdentity:

    @pytest.fixture
    def patients(self):
        return {
            "p1": Patient(id="p1", user_id="u1", birth_date="1990-01-01"),
            "p2": Patient(id="p2", user_id=None, birth_date="1985-05-05"),
        }

    @pytest.fixture
    def users(self):
        return {"u1": User(id="u1", email="anna@example.com", first_name="Anna", last_name="Muster")}

    def test_patient_ref(self, patients, users):
        identity = resolve_identity(PatientRef("p1"), patients, users, today=date(2026, 10, 19))
        assert identity.patient.id == "p1"
        assert identity.user.id == "u1"
        assert identity.display_name("N/A") == "Anna Muster"
        assert identity.age == 36

    def test_patient_without_user_uses_fallback(self, patients, users):
        identity = resolve_identity(PatientRef("p2"), patients, users, today=date(2026, 10, 19))
        assert identity.display_name("N/A") == "N/A"
        assert identity.age == 41

    def test_unknown_patient_keeps_reference(self, patients, users):
        identity = resolve_identity(PatientRef("missing"), patients, users)
        assert identity.patient.id == "missing"
        assert identity.age is None
        assert identity.display_name("Unknown") == "Unknown"

    def test_user_ref_finds_patient_by_user(self, patients, users):
        identity = resolve_identity(UserRef("u1"), patients, users, today=date(2026, 10, 19))
        assert identity.patient.id == "p1"
        assert identity.age == 36

    def test_user_ref_without_patient(self, users):
        identity = resolve_identity(UserRef("u1"), {}, users)
        assert identity.display_name("N/A") == "Anna Muster"
        assert identity.patient.user_id == "u1"
        assert identity.age is None

    def test_no_ref(self, patients, users):
        identity = resolve_identity(NoRef(), patients, users)
        assert identity.display_name("N/A") == "N/A"
        assert identity.age is None
