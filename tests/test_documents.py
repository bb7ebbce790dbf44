"""
Unit tests for document upload, storage rollback and signed URLs
"""
import pytest
from fastapi import HTTPException

from familycare.core.exceptions import AccessDenied
from familycare.modules.documents.schemas import DocumentCreate, DocumentType, DocumentUpdate
from familycare.modules.documents.storage import S3DocumentStorage, SupabaseDocumentStorage, get_document_storage
from familycare.modules.family.schemas import MemberRole

PDF = b"%PDF-1.4 exam results"


def _upload(document_service, user_id, parent_id, content=PDF, mime_type="application/pdf"):
    return document_service.upload_document(
        user_id,
        DocumentCreate(parent_id=parent_id, title="Blood test", type=DocumentType.EXAM, tags=["lab"]),
        content,
        "blood-test.PDF",
        mime_type,
    )


class TestUpload:
    def test_stores_blob_under_parent_and_writes_metadata(self, store, document_service, parent, users, add_member):
        add_member("bob")

        document = _upload(document_service, users["alice"], parent.id)

        assert document.file_path.startswith(f"{parent.id}/")
        assert document.file_path.endswith(".pdf")
        assert document.file_name == "blood-test.PDF"
        assert document.file_size == len(PDF)
        assert ("medical-documents", document.file_path) in store.storage.objects
        notes = [n for n in store.rows("notifications") if n["type"] == "document"]
        assert [n["user_id"] for n in notes] == [users["bob"]]

    def test_metadata_failure_removes_blob(self, store, document_service, parent, users):
        store.fail_next("documents", "insert")

        with pytest.raises(Exception) as exc_info:
            _upload(document_service, users["alice"], parent.id)

        assert exc_info.value.status_code == 500
        assert store.storage.objects == {}
        assert store.rows("documents") == []

    def test_storage_failure_writes_no_metadata(self, store, document_service, parent, users):
        store.storage.fail_uploads = True

        with pytest.raises(Exception):
            _upload(document_service, users["alice"], parent.id)
        assert store.rows("documents") == []

    def test_viewer_cannot_upload(self, store, document_service, parent, users, add_member):
        add_member("bob")

        with pytest.raises(AccessDenied):
            _upload(document_service, users["bob"], parent.id)
        assert store.storage.objects == {}

    def test_rejects_unsupported_type(self, document_service, parent, users):
        with pytest.raises(Exception) as exc_info:
            _upload(document_service, users["alice"], parent.id, mime_type="application/zip")
        assert exc_info.value.status_code == 400

    def test_rejects_oversized_file(self, document_service, parent, users, test_settings):
        content = b"x" * (test_settings.max_file_size + 1)

        with pytest.raises(Exception) as exc_info:
            _upload(document_service, users["alice"], parent.id, content=content)
        assert exc_info.value.status_code == 413


class TestDocumentAccess:
    def test_signed_url_for_viewer(self, document_service, parent, users, add_member):
        add_member("bob")
        document = _upload(document_service, users["alice"], parent.id)

        signed = document_service.get_signed_url(users["bob"], document.id)

        assert document.file_path in signed.url
        assert signed.expires_in == 3600

    def test_delete_removes_blob_and_row(self, store, document_service, parent, users, add_member):
        add_member("bob", role=MemberRole.EDITOR)
        document = _upload(document_service, users["bob"], parent.id)

        with pytest.raises(AccessDenied):
            document_service.delete_document(users["bob"], document.id)
        assert document_service.delete_document(users["alice"], document.id) is True

        assert store.storage.objects == {}
        assert store.rows("documents") == []

    def test_failed_row_delete_keeps_blob(self, store, document_service, parent, users):
        document = _upload(document_service, users["alice"], parent.id)
        store.fail_next("documents", "delete")

        with pytest.raises(HTTPException) as exc_info:
            document_service.delete_document(users["alice"], document.id)

        assert exc_info.value.status_code == 500
        assert [d["id"] for d in store.rows("documents")] == [document.id]
        assert ("medical-documents", document.file_path) in store.storage.objects

    def test_update_search_and_stats(self, document_service, parent, users):
        document = _upload(document_service, users["alice"], parent.id)
        _upload(document_service, users["alice"], parent.id)

        document_service.update_document(users["alice"], document.id, DocumentUpdate(
            title="Prescription March", type=DocumentType.PRESCRIPTION
        ))

        found = document_service.list_documents(users["alice"], parent.id, search="march")
        stats = document_service.get_stats(users["alice"], parent.id)

        assert [d.id for d in found] == [document.id]
        assert stats.total == 2
        assert stats.by_type == {"exam": 1, "prescription": 1}
        assert stats.total_size_bytes == 2 * len(PDF)


class TestStorageSelection:
    def test_supabase_storage_by_default(self, store, test_settings):
        assert isinstance(get_document_storage(store, test_settings), SupabaseDocumentStorage)

    def test_s3_when_configured(self, store, test_settings):
        s3_settings = test_settings.model_copy(update={
            "aws_access_key_id": "AKIA-TEST",
            "aws_secret_access_key": "secret",
            "s3_bucket_name": "care-docs",
        })

        storage = get_document_storage(store, s3_settings)

        assert isinstance(storage, S3DocumentStorage)
        assert storage.bucket_name == "care-docs"
