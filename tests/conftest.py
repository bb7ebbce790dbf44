"""
Pytest configuration and fixtures for familycare tests
"""
import pytest
import sys
import os

# Add parent directory to path to import familycare
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from familycare.config import Settings
from familycare.modules.appointments.service import AppointmentService
from familycare.modules.documents.service import DocumentService
from familycare.modules.documents.storage import SupabaseDocumentStorage
from familycare.modules.family.schemas import FamilyInvite, MemberRole
from familycare.modules.family.service import FamilyService
from familycare.modules.medications.service import MedicationService
from familycare.modules.notifications.service import NotificationService
from familycare.modules.parents.schemas import ParentCreate
from familycare.modules.parents.service import ParentService
from familycare.modules.reminders.jobs import ReminderJobs
from tests.fakes import FakePushSender, FakeSupabase


@pytest.fixture
def test_settings():
    """Settings independent of any .env file on the machine"""
    return Settings(
        _env_file=None,
        supabase_url="http://supabase.test",
        supabase_key="anon-key",
        vapid_subject="care@example.com",
        vapid_public_key="public",
        vapid_private_key="private",
        enable_scheduler=False,
        reminder_dedup_enabled=True,
    )


@pytest.fixture
def store():
    return FakeSupabase()


@pytest.fixture
def push():
    return FakePushSender()


@pytest.fixture
def notifications(store, push, test_settings):
    return NotificationService(store, push_sender=push, settings=test_settings)


@pytest.fixture
def family_service(store, notifications):
    return FamilyService(store, notifications=notifications)


@pytest.fixture
def parent_service(store, family_service):
    return ParentService(store, family_service=family_service)


@pytest.fixture
def medication_service(store, notifications):
    return MedicationService(store, notifications=notifications)


@pytest.fixture
def appointment_service(store, notifications):
    return AppointmentService(store, notifications=notifications)


@pytest.fixture
def document_service(store, notifications, test_settings):
    storage = SupabaseDocumentStorage(store, test_settings.documents_bucket)
    return DocumentService(store, storage=storage, notifications=notifications, settings=test_settings)


@pytest.fixture
def reminder_jobs(store, notifications, test_settings):
    return ReminderJobs(store, notifications=notifications, settings=test_settings)


@pytest.fixture
def users(store):
    """Registered profiles: alice, bob, carol and dave"""
    return {
        name: store.seed("profiles", email=f"{name}@example.com", full_name=name.capitalize())["id"]
        for name in ("alice", "bob", "carol", "dave")
    }


@pytest.fixture
def parent(parent_service, users):
    """Care recipient created by alice, who is its only admin"""
    return parent_service.create_parent(
        users["alice"], ParentCreate(name="Maria Silva", birth_date="1945-03-12")
    )


@pytest.fixture
def add_member(store, family_service, parent, users):
    """Invite a user as `role` and accept the invitation. Returns the membership id."""
    def _add(name, role=MemberRole.VIEWER, permissions=None):
        invite = family_service.invite(
            users["alice"],
            FamilyInvite(parent_id=parent.id, email=f"{name}@example.com", role=role, permissions=permissions),
        )
        family_service.accept_invite(users[name], invite.id)
        return invite.id
    return _add
