from supabase import Client
from familycare.modules.documents.schemas import (
    DocumentCreate, DocumentResponse, DocumentStats, DocumentType, DocumentUpdate, SignedUrlResponse
)
from familycare.modules.documents.storage import get_document_storage
from familycare.modules.notifications.schemas import NotificationType
from familycare.modules.notifications.service import NotificationService
from familycare.core.permissions import PermissionResolver
from familycare.core.exceptions import NotFound
from familycare.config import settings as default_settings, Settings
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException, status
import logging
import os
import time
import uuid

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/jpg", "application/pdf")


def build_file_path(parent_id: str, original_name: str) -> str:
    """<parent_id>/<millis>-<random><ext>; the original name is kept in the metadata row only."""
    ext = os.path.splitext(original_name)[1].lower()
    return f"{parent_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"


class DocumentService:
    def __init__(
        self,
        supabase: Client,
        storage=None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ):
        self.supabase = supabase
        self.settings = settings or default_settings
        self.storage = storage or get_document_storage(supabase, self.settings)
        self.access = PermissionResolver(supabase)
        self.notifications = notifications or NotificationService(supabase, settings=self.settings)

    def _get_row(self, document_id: str) -> dict:
        result = self.supabase.table("documents")\
            .select("*")\
            .eq("id", document_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise NotFound("Document not found")
        return result.data[0]

    def _parent_name(self, parent_id: str) -> str:
        result = self.supabase.table("parents")\
            .select("name")\
            .eq("id", parent_id)\
            .limit(1)\
            .execute()
        return result.data[0]["name"] if result.data else "your family member"

    def upload_document(
        self,
        user_id: str,
        document_data: DocumentCreate,
        file_content: bytes,
        file_name: str,
        mime_type: str,
    ) -> DocumentResponse:
        """Store the file, then its metadata row. The file is removed again if the row cannot be written."""
        self.access.check_permission(user_id, document_data.parent_id, "edit")

        if mime_type not in ALLOWED_MIME_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File type not allowed. Use JPEG, PNG or PDF.",
            )
        if len(file_content) > self.settings.max_file_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {self.settings.max_file_size} byte limit",
            )

        file_path = build_file_path(document_data.parent_id, file_name)
        try:
            self.storage.upload_file(file_content, file_path, mime_type)
        except Exception as e:
            logger.error(f"Failed to store document {file_path}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        try:
            result = self.supabase.table("documents").insert({
                **document_data.model_dump(mode="json", exclude_none=True),
                "file_path": file_path,
                "file_name": file_name,
                "file_size": len(file_content),
                "mime_type": mime_type,
                "uploaded_by": user_id,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save document")
            document = DocumentResponse(**result.data[0])
        except Exception as e:
            logger.error(f"Failed to save metadata for {file_path}, removing stored file: {e}")
            self.storage.delete_file(file_path)
            if isinstance(e, HTTPException):
                raise
            raise HTTPException(status_code=500, detail=str(e))

        try:
            others = self.access.list_active_member_ids(document.parent_id, exclude_user_id=user_id)
            if others:
                self.notifications.notify_users(
                    others,
                    NotificationType.DOCUMENT.value,
                    "New document added",
                    f"{document.title} was added for {self._parent_name(document.parent_id)}",
                    {"document_id": document.id, "parent_id": document.parent_id},
                )
        except Exception as e:
            logger.error(f"Error notifying family about document {document.id}: {e}")

        return document

    def get_document(self, user_id: str, document_id: str) -> DocumentResponse:
        row = self._get_row(document_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        return DocumentResponse(**row)

    def list_documents(
        self,
        user_id: str,
        parent_id: str,
        type: Optional[DocumentType] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[DocumentResponse]:
        self.access.check_permission(user_id, parent_id, "view")
        try:
            query = self.supabase.table("documents").select("*").eq("parent_id", parent_id)
            if type:
                query = query.eq("type", DocumentType(type).value)
            if search:
                query = query.ilike("title", f"%{search}%")
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [DocumentResponse(**d) for d in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_signed_url(self, user_id: str, document_id: str, expires_in: Optional[int] = None) -> SignedUrlResponse:
        row = self._get_row(document_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        expires = expires_in or self.settings.signed_url_expires_seconds
        try:
            return SignedUrlResponse(url=self.storage.get_signed_url(row["file_path"], expires), expires_in=expires)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_document(self, user_id: str, document_id: str, document_data: DocumentUpdate) -> DocumentResponse:
        row = self._get_row(document_id)
        self.access.check_permission(user_id, row["parent_id"], "edit")
        try:
            update_data = document_data.model_dump(mode="json", exclude_unset=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("documents")\
                .update(update_data)\
                .eq("id", document_id)\
                .execute()

            if not result.data:
                raise NotFound("Document not found")

            return DocumentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_document(self, user_id: str, document_id: str) -> bool:
        row = self._get_row(document_id)
        self.access.check_permission(user_id, row["parent_id"], "delete")
        try:
            self.supabase.table("documents").delete().eq("id", document_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not self.storage.delete_file(row["file_path"]):
            logger.warning(f"Stored file {row['file_path']} of document {document_id} could not be removed")
        return True

    def get_stats(self, user_id: str, parent_id: str) -> DocumentStats:
        self.access.check_permission(user_id, parent_id, "view")
        try:
            result = self.supabase.table("documents")\
                .select("type, file_size, created_at")\
                .eq("parent_id", parent_id)\
                .order("created_at", desc=True)\
                .execute()
            rows = result.data or []
            by_type = {}
            for doc in rows:
                by_type[doc["type"]] = by_type.get(doc["type"], 0) + 1
            return DocumentStats(
                total=len(rows),
                by_type=by_type,
                total_size_bytes=sum(doc.get("file_size") or 0 for doc in rows),
                last_upload=rows[0]["created_at"] if rows else None,
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
