"""Tests for prescription listings and doctor decisions."""

import sqlite3

import pytest

from doctor_portal.errors import GENERIC_DEPENDENCY_MESSAGE
from doctor_portal.prescription_actions import (
    approve_request,
    deny_request,
    get_dashboard_summary,
    list_approved_requests,
    list_denied_requests,
    list_pending_requests,
    request_additional_info,
)
from doctor_portal.prescription_review.database import (
    PrescriptionRepository,
    PrescriptionRequestRepository,
    UserRepository,
)


def load_request(datastore, request_id):
    with datastore.reader() as conn:
        return PrescriptionRequestRepository(conn).get_by_id(request_id)


def load_prescriptions(datastore, request_id):
    with datastore.reader() as conn:
        return PrescriptionRepository(conn).list_for_request(request_id)


class TestListings:

    def test_pending(self, signed_in, seeded):
        result = list_pending_requests(signed_in)
        assert result.success
        assert [r.id for r in result.data] == ["r-info", "r-legacy", "r1", "r-anon"]
        anon = result.data[-1]
        assert anon.patient_name == "N/A"

    def test_decided_listings_default_to_unknown(self, signed_in, seeded):
        deny_request(signed_in, "r-anon", "no patient on file")
        denied = list_denied_requests(signed_in)
        assert denied.data[0].patient_name == "Unknown"

    def test_requires_session(self, ctx, seeded):
        result = list_pending_requests(ctx)
        assert not result.success
        assert result.error_code == "authorization"
        assert result.data == []

    def test_datastore_failure_is_generic(self, signed_in, seeded, monkeypatch):
        def broken(self, user_ids):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(UserRepository, "get_many", broken)
        result = list_pending_requests(signed_in)
        assert not result.success
        assert result.data == []
        assert result.error == GENERIC_DEPENDENCY_MESSAGE
        assert "disk" not in result.error

    def test_empty_listing(self, signed_in, seeded):
        result = list_approved_requests(signed_in)
        assert result.success
        assert result.data == []


class TestDashboard:

    def test_counts(self, signed_in, seeded):
        summary = get_dashboard_summary(signed_in).data
        assert summary.pending_count == 4
        assert summary.approved_count == 0
        assert summary.patient_count == 3
        assert len(summary.pending_requests) == 4

    def test_counts_after_approval(self, signed_in, seeded):
        approve_request(signed_in, "r1", "ok")
        summary = get_dashboard_summary(signed_in).data
        assert summary.pending_count == 3
        assert summary.approved_count == 1

    def test_serialized_keys(self, signed_in, seeded):
        payload = get_dashboard_summary(signed_in).to_dict()
        assert payload["success"] is True
        assert {"pendingRequests", "pendingCount", "approvedCount", "patientCount"} == set(payload["data"])


class TestApprove:

    def test_approval_creates_one_prescription(self, signed_in, seeded, doctor):
        result = approve_request(signed_in, "r1", "looks good")
        assert result.success

        request = load_request(seeded, "r1")
        assert request.status == "approved"
        assert request.doctor_id == doctor.id
        assert request.doctor_notes == "looks good"

        prescriptions = load_prescriptions(seeded, "r1")
        assert len(prescriptions) == 1
        prescription = prescriptions[0]
        assert prescription.id == result.data["prescriptionId"]
        assert prescription.patient_id == "p1"
        assert prescription.doctor_id == doctor.id
        assert prescription.notes == "looks good"
        assert prescription.total_amount == 95.0
        assert prescription.has_agreed_agb and prescription.has_agreed_privacy_policy

    def test_stamps_doctor_id_not_session_user(self, signed_in, seeded, doctor):
        approve_request(signed_in, "r-info", None)
        request = load_request(seeded, "r-info")
        assert request.doctor_id == doctor.id
        assert request.doctor_id != signed_in.session.user_id

    def test_user_only_request_links_prescription_to_patient(self, signed_in, seeded):
        assert approve_request(signed_in, "r-legacy", "ok").success

        prescriptions = load_prescriptions(seeded, "r-legacy")
        assert len(prescriptions) == 1
        assert prescriptions[0].patient_id == "p3"

        approved = list_approved_requests(signed_in).data
        assert approved[0].patient_id == prescriptions[0].patient_id

    def test_unreferenced_request_has_no_patient(self, signed_in, seeded):
        assert approve_request(signed_in, "r-anon", None).success
        assert load_prescriptions(seeded, "r-anon")[0].patient_id is None

    def test_prescription_failure_rolls_back_status(self, signed_in, seeded, monkeypatch):
        def failing_create(self, prescription):
            raise sqlite3.IntegrityError("constraint failed")

        monkeypatch.setattr(PrescriptionRepository, "create", failing_create)
        result = approve_request(signed_in, "r-info", "ok")

        assert not result.success
        assert result.error == GENERIC_DEPENDENCY_MESSAGE
        request = load_request(seeded, "r-info")
        assert request.status == "info_requested"
        assert request.doctor_id is None
        assert load_prescriptions(seeded, "r-info") == []

    def test_second_approval_conflicts(self, signed_in, seeded):
        assert approve_request(signed_in, "r1", None).success
        result = approve_request(signed_in, "r1", None)
        assert not result.success
        assert result.error_code == "conflict"
        assert result.error == "This request has already been approved"
        assert len(load_prescriptions(seeded, "r1")) == 1

    def test_lost_update_asks_to_reload(self, signed_in, seeded, monkeypatch):
        monkeypatch.setattr(PrescriptionRequestRepository, "transition_status", lambda self, *a, **kw: False)
        result = approve_request(signed_in, "r1", None)
        assert result.error_code == "conflict"
        assert "reload" in result.error
        assert load_request(seeded, "r1").status == "new"
        assert load_prescriptions(seeded, "r1") == []

    def test_denied_request_cannot_be_approved(self, signed_in, seeded):
        deny_request(signed_in, "r1", "no")
        result = approve_request(signed_in, "r1", None)
        assert result.error_code == "conflict"
        assert load_prescriptions(seeded, "r1") == []

    def test_missing_request(self, signed_in, seeded):
        result = approve_request(signed_in, "nope", None)
        assert result.error_code == "not_found"

    def test_requires_session(self, ctx, seeded):
        result = approve_request(ctx, "r1", None)
        assert result.error_code == "authorization"
        assert load_request(seeded, "r1").status == "new"

    def test_session_without_doctor_profile(self, ctx, seeded):
        ctx.auth.admin_create_identity("nurse@example.com", "password123")
        ctx.session = ctx.auth.sign_in_with_password("nurse@example.com", "password123")
        result = approve_request(ctx, "r1", None)
        assert result.error == "Doctor profile not found"
        assert load_request(seeded, "r1").status == "new"

    def test_revalidates_affected_views(self, signed_in, seeded):
        paths = []
        signed_in.on_revalidate(paths.append)
        approve_request(signed_in, "r1", None)
        assert paths == ["/dashboard", "/prescriptions/open", "/prescriptions/approved"]


class TestDeny:

    def test_deny_records_reason(self, signed_in, seeded, doctor):
        result = deny_request(signed_in, "r1", "insufficient history")
        assert result.success
        request = load_request(seeded, "r1")
        assert request.status == "denied"
        assert request.doctor_notes == "insufficient history"
        assert request.doctor_id == doctor.id
        assert load_prescriptions(seeded, "r1") == []

    @pytest.mark.parametrize("notes", [None, "", "   "])
    def test_reason_required(self, signed_in, seeded, notes):
        result = deny_request(signed_in, "r1", notes)
        assert result.error_code == "validation"
        assert "notes" in result.field_errors
        assert load_request(seeded, "r1").status == "new"

    def test_cannot_deny_twice(self, signed_in, seeded):
        deny_request(signed_in, "r1", "no")
        result = deny_request(signed_in, "r1", "still no")
        assert result.error == "This request has already been denied"
        assert load_request(seeded, "r1").doctor_notes == "no"


class TestRequestAdditionalInfo:

    def test_moves_to_info_requested(self, signed_in, seeded):
        result = request_additional_info(signed_in, "r1", "Please upload your previous prescription")
        assert result.success
        request = load_request(seeded, "r1")
        assert request.status == "info_requested"
        assert request.doctor_notes == "Please upload your previous prescription"

    def test_can_ask_again(self, signed_in, seeded):
        assert request_additional_info(signed_in, "r-info", "One more thing").success

    def test_not_after_approval(self, signed_in, seeded):
        approve_request(signed_in, "r1", None)
        result = request_additional_info(signed_in, "r1", "Wait")
        assert result.error_code == "conflict"
        assert load_request(seeded, "r1").status == "approved"
