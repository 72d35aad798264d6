"""Web push dispatch.

Subscriptions are stored per user; a household notification fans out to every
subscription of every user in the household. Delivery uses pywebpush with the
configured VAPID keys. Endpoints the push service reports as gone (404/410)
are deleted so they are not retried.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session

from ..db import upsert_insert
from ..models import PushSubscription, User
from ..schemas import PushSubscriptionIn
from ..settings import settings

logger = logging.getLogger("hearth.notifications")

STALE_STATUS_CODES = {404, 410}


@dataclass
class NotificationPayload:
    title: str
    body: str
    url: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    def to_json(self) -> str:
        return json.dumps({
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "data": self.data,
        })


@dataclass
class SendCounts:
    sent: int = 0
    total: int = 0

    def add(self, other: "SendCounts") -> "SendCounts":
        self.sent += other.sent
        self.total += other.total
        return self

    def as_dict(self) -> dict[str, int]:
        return {"sent": self.sent, "total": self.total}


Sender = Callable[..., Any]


class NotificationService:
    def __init__(self, db: Session, sender: Optional[Sender] = None):
        self.db = db
        self._sender = sender

    @property
    def enabled(self) -> bool:
        return settings.push_enabled

    def register_subscription(self, user_id: str, subscription: PushSubscriptionIn) -> None:
        """Create or re-point the subscription for this endpoint in one statement."""
        endpoint = str(subscription.endpoint)
        stmt = upsert_insert(self.db, PushSubscription).values(
            user_id=user_id,
            endpoint=endpoint,
            p256dh=subscription.keys.p256dh,
            auth=subscription.keys.auth,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscription.endpoint],
            set_={
                "user_id": stmt.excluded.user_id,
                "p256dh": stmt.excluded.p256dh,
                "auth": stmt.excluded.auth,
            },
        )
        self.db.execute(stmt)
        self.db.commit()

    def unregister_subscription(self, endpoint: str) -> None:
        self.db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).delete()
        self.db.commit()

    def send_push_notification(self, subscription: PushSubscription, payload: NotificationPayload) -> bool:
        """Deliver to one endpoint. Failures are logged and reported as False, never raised."""
        endpoint = subscription.endpoint
        send = self._sender or webpush
        try:
            send(
                subscription_info={
                    "endpoint": endpoint,
                    "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
                },
                data=payload.to_json(),
                vapid_private_key=settings.vapid_private_key,
                vapid_claims={"sub": settings.vapid_subject},
            )
            return True
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            logger.error(f"Failed to send push to {endpoint[:60]}: {e}")
            if status_code in STALE_STATUS_CODES:
                self.db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).delete()
                self.db.commit()
                logger.info("Removed invalid subscription")
            return False
        except Exception as e:
            logger.error(f"Failed to send push to {endpoint[:60]}: {e}")
            return False

    def _send_to_user(self, user_id: str, payload: NotificationPayload) -> SendCounts:
        subscriptions = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .all()
        )
        counts = SendCounts(total=len(subscriptions))
        for subscription in subscriptions:
            if self.send_push_notification(subscription, payload):
                counts.sent += 1
        return counts

    def send_user_notification(self, user_id: str, payload: NotificationPayload) -> dict[str, int]:
        if not self.enabled:
            logger.info("VAPID keys not configured")
            return SendCounts().as_dict()
        return self._send_to_user(user_id, payload).as_dict()

    def send_household_notification(self, household_id: str, payload: NotificationPayload) -> dict[str, int]:
        if not self.enabled:
            logger.info("VAPID keys not configured")
            return SendCounts().as_dict()

        user_ids = [
            row.id for row in self.db.query(User.id).filter(User.household_id == household_id).all()
        ]
        counts = SendCounts()
        for user_id in user_ids:
            counts.add(self._send_to_user(user_id, payload))

        logger.info(f"Sent {counts.sent}/{counts.total} notifications to household {household_id}")
        return counts.as_dict()
