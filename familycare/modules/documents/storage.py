import boto3
from botocore.exceptions import ClientError
from supabase import Client
from familycare.config import settings as default_settings, Settings
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class SupabaseDocumentStorage:
    """Document blobs in a private Supabase Storage bucket."""

    def __init__(self, supabase: Client, bucket: str):
        self.supabase = supabase
        self.bucket = bucket

    def upload_file(self, file_content: bytes, key: str, content_type: str) -> str:
        self.supabase.storage.from_(self.bucket).upload(
            key, file_content, {"content-type": content_type, "upsert": "false"}
        )
        return key

    def delete_file(self, key: str) -> bool:
        try:
            self.supabase.storage.from_(self.bucket).remove([key])
            return True
        except Exception as e:
            logger.error(f"Failed to delete {key} from bucket {self.bucket}: {str(e)}")
            return False

    def get_signed_url(self, key: str, expires_in: int) -> str:
        result = self.supabase.storage.from_(self.bucket).create_signed_url(key, expires_in)
        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise ValueError(f"No signed URL returned for {key}")
        return url


class S3DocumentStorage:
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or default_settings
        if not all([settings.aws_access_key_id, settings.aws_secret_access_key, settings.s3_bucket_name]):
            raise ValueError("AWS S3 credentials and bucket name must be configured")

        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region
        )
        self.bucket_name = settings.s3_bucket_name

    def upload_file(self, file_content: bytes, key: str, content_type: str) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=file_content,
                ContentType=content_type
            )
            return key
        except ClientError as e:
            logger.error(f"Failed to upload file to S3: {str(e)}")
            raise

    def delete_file(self, key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            logger.error(f"Failed to delete file from S3: {str(e)}")
            return False

    def get_signed_url(self, key: str, expires_in: int) -> str:
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=expires_in,
        )


def get_document_storage(supabase: Client, settings: Optional[Settings] = None):
    """S3 when AWS credentials and a bucket are configured, otherwise Supabase Storage."""
    settings = settings or default_settings
    if settings.aws_access_key_id and settings.aws_secret_access_key and settings.s3_bucket_name:
        return S3DocumentStorage(settings)
    return SupabaseDocumentStorage(supabase, settings.documents_bucket)
