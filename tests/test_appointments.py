"""
Unit tests for appointments
"""
import pytest
from datetime import datetime, timezone

from familycare.core.exceptions import AccessDenied
from familycare.modules.appointments.schemas import (
    AppointmentCreate, AppointmentStatus, AppointmentStatusUpdate, AppointmentUpdate
)
from familycare.modules.family.schemas import MemberRole


def _new_appointment(parent_id, scheduled_at=None):
    return AppointmentCreate(
        parent_id=parent_id,
        doctor_name="Dr. Costa",
        specialty="Cardiology",
        scheduled_at=scheduled_at or datetime(2026, 11, 3, 14, 0, tzinfo=timezone.utc),
    )


def _appointment_notes(store):
    return [n for n in store.rows("notifications") if n["type"] == "appointment"]


class TestAppointments:
    def test_create_notifies_other_members(self, store, appointment_service, parent, users, add_member):
        add_member("bob")

        appointment = appointment_service.create_appointment(users["alice"], _new_appointment(parent.id))

        assert appointment.status == AppointmentStatus.SCHEDULED
        notes = _appointment_notes(store)
        assert [n["user_id"] for n in notes] == [users["bob"]]
        assert "03/11/2026" in notes[0]["message"]

    def test_viewer_cannot_schedule(self, appointment_service, parent, users, add_member):
        add_member("bob")

        with pytest.raises(AccessDenied):
            appointment_service.create_appointment(users["bob"], _new_appointment(parent.id))

    def test_completing_notifies_and_stores_outcome(self, store, appointment_service, parent, users, add_member):
        add_member("bob", role=MemberRole.EDITOR)
        appointment = appointment_service.create_appointment(users["bob"], _new_appointment(parent.id))

        updated = appointment_service.update_status(
            users["bob"], appointment.id,
            AppointmentStatusUpdate(status=AppointmentStatus.COMPLETED, outcome="Blood pressure stable"),
        )

        assert updated.status == AppointmentStatus.COMPLETED
        assert updated.outcome == "Blood pressure stable"
        titles = [n["title"] for n in _appointment_notes(store) if n["user_id"] == users["alice"]]
        assert "Appointment completed" in titles

    def test_rescheduling_does_not_notify(self, store, appointment_service, parent, users, add_member):
        add_member("bob")
        appointment = appointment_service.create_appointment(users["alice"], _new_appointment(parent.id))
        before = len(_appointment_notes(store))

        updated = appointment_service.update_appointment(users["alice"], appointment.id, AppointmentUpdate(
            scheduled_at=datetime(2026, 11, 4, 9, 0, tzinfo=timezone.utc)
        ))

        assert updated.scheduled_at == datetime(2026, 11, 4, 9, 0, tzinfo=timezone.utc)
        assert len(_appointment_notes(store)) == before

    def test_upcoming_and_calendar_filters(self, store, appointment_service, parent, users):
        store.seed("appointments", parent_id=parent.id, doctor_name="Dr. Past",
                   scheduled_at="2020-01-10T10:00:00+00:00", status="completed")
        future = appointment_service.create_appointment(
            users["alice"], _new_appointment(parent.id, datetime(2099, 1, 10, 10, 0, tzinfo=timezone.utc))
        )

        upcoming = appointment_service.list_appointments(users["alice"], parent.id, upcoming_only=True)
        january = appointment_service.get_calendar(users["alice"], parent.id, 2020, 1)

        assert [a.id for a in upcoming] == [future.id]
        assert [a.doctor_name for a in january] == ["Dr. Past"]

    def test_delete_requires_delete_flag(self, store, appointment_service, parent, users, add_member):
        add_member("bob", role=MemberRole.EDITOR)
        appointment = appointment_service.create_appointment(users["alice"], _new_appointment(parent.id))

        with pytest.raises(AccessDenied):
            appointment_service.delete_appointment(users["bob"], appointment.id)
        assert appointment_service.delete_appointment(users["alice"], appointment.id) is True
        assert store.rows("appointments") == []
