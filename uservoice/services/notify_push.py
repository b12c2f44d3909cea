# File: uservoice/services/notify_push.py
import json, logging
from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session
from uservoice.core.config import settings
from uservoice.models.push import PushSubscription

logger = logging.getLogger(__name__)

# push services answer these when a subscription no longer exists
GONE_STATUSES = (404, 410)


def push_enabled() -> bool:
    return bool(settings.vapid_private_key and settings.vapid_public_key)


def send_push(subscription: dict, payload: dict) -> bool:
    """Deliver one message; False means the subscription is gone for good."""
    if not push_enabled():
        return True
    try:
        webpush(
            subscription_info=subscription,
            data=json.dumps(payload),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": settings.vapid_sub},
        )
    except WebPushException as e:
        status = getattr(e.response, "status_code", None)
        if status in GONE_STATUSES:
            return False
        logger.warning("push to %s failed: %s", subscription.get("endpoint"), e)
    return True


def push_to_user(db: Session, user_id: int, payload: dict):
    if not push_enabled():
        return
    stale = []
    for sub in db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all():
        info = {"endpoint": sub.endpoint, "keys": {"p256dh": sub.p256dh, "auth": sub.auth}}
        if not send_push(info, payload):
            stale.append(sub)
    for sub in stale:
        db.delete(sub)
    if stale:
        db.commit()
        logger.info("removed %d expired push subscriptions of user %s", len(stale), user_id)
