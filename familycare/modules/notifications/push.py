"""Web Push delivery over VAPID using pywebpush."""
import json
import logging
from typing import Any, Dict, Optional

from pywebpush import webpush, WebPushException

from familycare.config import Settings
from familycare.core.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)


class WebPushSender:
    def __init__(
        self,
        vapid_private_key: Optional[str],
        vapid_subject: Optional[str],
        ttl: int = 86400,
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout
        self._warned = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebPushSender":
        if not settings.push_enabled:
            return cls(None, None, ttl=settings.push_ttl_seconds)
        return cls(settings.vapid_private_key, settings.vapid_subject, ttl=settings.push_ttl_seconds)

    @property
    def enabled(self) -> bool:
        if self.vapid_private_key and self.vapid_subject:
            return True
        if not self._warned:
            logger.warning("VAPID keys not configured. Push notifications will not be sent.")
            self._warned = True
        return False

    def _claims(self) -> Dict[str, str]:
        subject = self.vapid_subject
        if subject and not subject.startswith(("mailto:", "https:")):
            subject = f"mailto:{subject}"
        # pywebpush mutates the claims dict (aud/exp), so build a fresh one per call
        return {"sub": subject}

    def send(self, endpoint: str, keys: Dict[str, str], payload: Dict[str, Any]) -> None:
        """Deliver one payload to one endpoint. Raises DeliveryFailure on any error."""
        try:
            webpush(
                subscription_info={"endpoint": endpoint, "keys": keys},
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims=self._claims(),
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise DeliveryFailure(endpoint, status_code, str(e)) from e
        except Exception as e:
            raise DeliveryFailure(endpoint, None, str(e)) from e
