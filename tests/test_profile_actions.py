"""Tests for the doctor's own profile."""

from doctor_portal.auth_actions import LICENSE_TAKEN
from doctor_portal.prescription_review.database import DoctorRepository
from doctor_portal.profile_actions import get_doctor_profile, update_doctor_profile


class TestGetDoctorProfile:

    def test_profile(self, signed_in, doctor):
        profile = get_doctor_profile(signed_in).data
        assert profile.id == doctor.id
        assert profile.license_number == "LIC-001"
        assert profile.address["postalCode"] == "08540"
        assert profile.to_dict()["isVerified"] is True

    def test_requires_session(self, ctx, doctor):
        assert get_doctor_profile(ctx).error_code == "authorization"


class TestUpdateDoctorProfile:

    def test_partial_update(self, signed_in):
        result = update_doctor_profile(signed_in, {"specialty": "Diagnostics", "phoneNumber": "555-0111"})
        assert result.success
        assert result.data.specialty == "Diagnostics"
        assert result.data.phone_number == "555-0111"
        assert result.data.title == "Dr."

    def test_address_update(self, signed_in):
        address = {"street": "2 Side St", "city": "Trenton", "postalCode": "08601", "country": "USA"}
        result = update_doctor_profile(signed_in, {"address": address})
        assert result.data.address == address

    def test_keeping_own_license_is_allowed(self, signed_in):
        assert update_doctor_profile(signed_in, {"licenseNumber": "LIC-001"}).success

    def test_license_taken_by_other_doctor(self, signed_in, make_doctor):
        make_doctor(email="wilson@example.com", license_number="LIC-002")
        result = update_doctor_profile(signed_in, {"licenseNumber": "LIC-002"})
        assert result.field_errors == {"licenseNumber": LICENSE_TAKEN}
        assert get_doctor_profile(signed_in).data.license_number == "LIC-001"

    def test_license_race_maps_to_field_error(self, signed_in, make_doctor, monkeypatch):
        make_doctor(email="wilson@example.com", license_number="LIC-002")
        monkeypatch.setattr(DoctorRepository, "license_number_exists", lambda self, *a, **kw: False)

        result = update_doctor_profile(signed_in, {"licenseNumber": "LIC-002", "specialty": "Oncology"})
        assert result.error_code == "validation"
        assert result.field_errors == {"licenseNumber": LICENSE_TAKEN}
        profile = get_doctor_profile(signed_in).data
        assert profile.license_number == "LIC-001"
        assert profile.specialty != "Oncology"

    def test_blank_title_and_specialty_are_cleared(self, signed_in):
        result = update_doctor_profile(signed_in, {"title": "", "specialty": "  "})
        assert result.success
        assert result.data.title is None
        assert result.data.specialty is None

    def test_license_cannot_be_cleared(self, signed_in):
        result = update_doctor_profile(signed_in, {"licenseNumber": None})
        assert "licenseNumber" in result.field_errors

    def test_revalidates_profile_view(self, signed_in):
        paths = []
        signed_in.on_revalidate(paths.append)
        update_doctor_profile(signed_in, {"title": "Prof. Dr."})
        assert paths == ["/profile"]
