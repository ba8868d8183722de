from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_notifier
from ..errors import ValidationError
from ..notifications import NotificationDispatcher

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/vapid-public-key", response_model=schemas.VapidPublicKey)
def vapid_public_key(notifier: NotificationDispatcher = Depends(get_notifier)):
    return {"public_key": notifier.vapid_keys.public_key}


@router.post("/register", response_model=schemas.RegisterResult)
def register_subscription(
    body: schemas.SubscriptionRegister,
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    if not body.order_id or not body.subscription:
        raise ValidationError("Missing required fields")

    notifier.register(body.order_id, body.username, body.subscription)
    return {"success": True}
