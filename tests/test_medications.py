"""
Unit tests for medications and dose confirmation
"""
import pytest
from datetime import datetime, timezone

from familycare.core.exceptions import AccessDenied, NotFound
from familycare.modules.family.schemas import MemberRole, PermissionFlags
from familycare.modules.medications.schemas import (
    DoseConfirmation, DoseStatus, MedicationCreate, MedicationFrequency, MedicationUpdate
)


def _new_medication(parent_id, **overrides):
    values = dict(parent_id=parent_id, name="Losartan", dosage="50mg",
                  frequency=MedicationFrequency.DAILY, times=["08:00", "20:00"])
    values.update(overrides)
    return MedicationCreate(**values)


class TestMedicationPermissions:
    """Edit and delete flags gate medication changes"""

    def test_admin_creates_and_other_members_are_notified(self, store, medication_service, parent, users, add_member):
        add_member("bob")

        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))

        assert medication.is_active is True
        assert medication.created_by == users["alice"]
        notes = [n for n in store.rows("notifications") if n["type"] == "medication"]
        assert [n["user_id"] for n in notes] == [users["bob"]]
        assert notes[0]["data"]["medication_id"] == medication.id

    def test_viewer_cannot_create(self, store, medication_service, parent, users, add_member):
        add_member("bob")

        with pytest.raises(AccessDenied):
            medication_service.create_medication(users["bob"], _new_medication(parent.id))
        assert store.rows("medications") == []

    def test_editor_cannot_delete_without_flag(self, medication_service, parent, users, add_member):
        add_member("bob", role=MemberRole.EDITOR)
        medication = medication_service.create_medication(users["bob"], _new_medication(parent.id))

        with pytest.raises(AccessDenied):
            medication_service.delete_medication(users["bob"], medication.id)

    def test_viewer_with_delete_override_can_delete(self, store, medication_service, parent, users, add_member):
        add_member("bob", permissions=PermissionFlags(can_view=True, can_edit=False, can_delete=True))
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))

        assert medication_service.delete_medication(users["bob"], medication.id) is True
        assert store.rows("medications") == []

    def test_outsider_cannot_read(self, medication_service, parent, users):
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))

        with pytest.raises(AccessDenied):
            medication_service.get_medication(users["dave"], medication.id)

    def test_unknown_medication_is_not_found(self, medication_service, users):
        with pytest.raises(NotFound):
            medication_service.get_medication(users["alice"], "missing")


class TestMedicationData:
    def test_times_must_be_hh_mm(self, parent):
        with pytest.raises(ValueError):
            _new_medication(parent.id, times=["8am"])

    def test_update_and_active_filter(self, medication_service, parent, users):
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))
        medication_service.create_medication(users["alice"], _new_medication(parent.id, name="Metformin"))

        updated = medication_service.update_medication(users["alice"], medication.id, MedicationUpdate(is_active=False))

        assert updated.is_active is False
        active = medication_service.list_medications(users["alice"], parent.id, active_only=True)
        assert [m.name for m in active] == ["Metformin"]
        assert len(medication_service.list_medications(users["alice"], parent.id)) == 2


class TestDoseConfirmation:
    """Any member who can view may log a dose"""

    def test_viewer_confirms_dose(self, store, medication_service, parent, users, add_member):
        add_member("bob")
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))

        log = medication_service.confirm_dose(users["bob"], medication.id, DoseConfirmation())

        assert log.status == DoseStatus.TAKEN
        assert log.confirmed_by == users["bob"]
        assert log.parent_id == parent.id

    def test_outsider_cannot_confirm(self, store, medication_service, parent, users):
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))

        with pytest.raises(AccessDenied):
            medication_service.confirm_dose(users["dave"], medication.id, DoseConfirmation())
        assert store.rows("medication_logs") == []

    def test_logs_newest_first(self, medication_service, parent, users):
        medication = medication_service.create_medication(users["alice"], _new_medication(parent.id))
        medication_service.confirm_dose(users["alice"], medication.id, DoseConfirmation(
            taken_at=datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc)
        ))
        medication_service.confirm_dose(users["alice"], medication.id, DoseConfirmation(
            taken_at=datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc), status=DoseStatus.SKIPPED
        ))

        logs = medication_service.list_logs(users["alice"], medication.id)

        assert [log.status for log in logs] == [DoseStatus.SKIPPED, DoseStatus.TAKEN]
