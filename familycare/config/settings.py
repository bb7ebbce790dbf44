from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Tuple


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required by the scheduler (bypasses RLS)

    # Web Push (VAPID)
    vapid_subject: Optional[str] = None  # mailto: or https: contact
    vapid_public_key: Optional[str] = None
    vapid_private_key: Optional[str] = None
    push_icon: str = "/icon-192x192.png"
    push_badge: str = "/badge-72x72.png"
    push_ttl_seconds: int = 86400
    push_max_workers: int = 8
    notify_max_workers: int = 8

    # Documents
    documents_bucket: str = "medical-documents"
    max_file_size: int = 10 * 1024 * 1024
    signed_url_expires_seconds: int = 3600

    # AWS S3 (optional document storage, read from uppercase env vars automatically)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_bucket_name: Optional[str] = None

    # Scheduler
    enable_scheduler: bool = True
    medication_reminder_interval_minutes: int = 5
    medication_reminder_lead_minutes: int = 5
    appointment_reminder_time: str = "08:00"
    medication_expiry_time: str = "00:00"
    appointment_status_time: str = "00:30"
    notification_cleanup_time: str = "03:00"
    weekly_report_weekday: int = 6  # Monday=0 ... Sunday=6
    weekly_report_time: str = "20:00"
    notification_retention_days: int = 30
    reminder_dedup_enabled: bool = True
    reminder_delivery_retention_days: int = 7

    # App
    app_name: str = "familycare-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def push_enabled(self) -> bool:
        return bool(self.vapid_subject and self.vapid_public_key and self.vapid_private_key)

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @staticmethod
    def parse_time_of_day(value: str) -> Tuple[int, int]:
        """Parse "HH:MM" into (hour, minute)."""
        hour, minute = (int(part) for part in value.strip().split(":", 1))
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Invalid time of day: {value}")
        return hour, minute

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
