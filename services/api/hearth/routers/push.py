from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..db import get_db
from ..deps import AuthContext, get_auth
from ..services.notifications import NotificationPayload, NotificationService

router = APIRouter()


def get_notifier(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.post("/subscribe", response_model=schemas.SuccessOut)
def subscribe(
    body: schemas.PushSubscriptionIn,
    auth: AuthContext = Depends(get_auth),
    notifier: NotificationService = Depends(get_notifier),
):
    notifier.register_subscription(auth.user_id, body)
    return {"success": True}


@router.post("/unsubscribe", response_model=schemas.SuccessOut)
def unsubscribe(
    body: schemas.PushUnsubscribeIn,
    auth: AuthContext = Depends(get_auth),
    notifier: NotificationService = Depends(get_notifier),
):
    notifier.unregister_subscription(str(body.endpoint))
    return {"success": True}


@router.post("/test", response_model=schemas.SendResult)
def send_test(
    auth: AuthContext = Depends(get_auth),
    notifier: NotificationService = Depends(get_notifier),
):
    """Send a test notification to every device of the caller."""
    return notifier.send_user_notification(
        auth.user_id,
        NotificationPayload(
            title="Test notification",
            body="Push notifications are working.",
            url="/",
        ),
    )
