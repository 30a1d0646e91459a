import json
import logging
import os
from typing import Any, Optional, Protocol

import requests
from pywebpush import WebPushException, webpush

from pulse.db.models import PushSubscription

logger = logging.getLogger(__name__)

VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY", "")
VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY", "")
VAPID_SUBJECT = os.getenv("VAPID_SUBJECT", "mailto:support@coachpulse.app")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
PUSH_TTL_SECONDS = int(os.getenv("PUSH_TTL_SECONDS", "86400"))

# Statuses a push service returns once a subscription no longer exists.
GONE_STATUS_CODES = frozenset({404, 410})


class PushDeliveryError(RuntimeError):
    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code

    @property
    def subscription_gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


class PushSender(Protocol):
    def send(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        ...


class WebPushSender:
    def __init__(
        self,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> None:
        self.private_key = private_key if private_key is not None else VAPID_PRIVATE_KEY
        self.public_key = public_key if public_key is not None else VAPID_PUBLIC_KEY
        self.subject = subject or VAPID_SUBJECT

    @property
    def configured(self) -> bool:
        return bool(self.private_key and self.public_key)

    def send(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        if not self.configured:
            logger.warning("push_skipped reason=vapid_keys_missing")
            raise PushDeliveryError(None, "VAPID keys are not configured")
        try:
            webpush(
                subscription_info={
                    "endpoint": subscription.endpoint,
                    "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
                },
                data=json.dumps(payload, separators=(",", ":")),
                vapid_private_key=self.private_key,
                vapid_claims={"sub": self.subject},
                ttl=PUSH_TTL_SECONDS,
                timeout=PUSH_TIMEOUT_SECONDS,
            )
        except WebPushException as exc:
            response = getattr(exc, "response", None)
            status = response.status_code if response is not None else None
            raise PushDeliveryError(status, f"Push delivery failed (status={status}): {str(exc)[:220]}") from exc
        except requests.RequestException as exc:
            # Timeouts and resets carry no status; the subscription stays.
            raise PushDeliveryError(None, f"Push transport error: {exc.__class__.__name__}: {str(exc)[:220]}") from exc


def get_push_sender() -> PushSender:
    return WebPushSender()
