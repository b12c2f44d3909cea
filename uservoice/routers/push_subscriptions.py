# File: uservoice/routers/push_subscriptions.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from uservoice.core.errors import ValidationError
from uservoice.core.security import get_current_user
from uservoice.db.session import get_db
from uservoice.models.push import PushSubscription
from uservoice.models.user import User

router = APIRouter(prefix="/api/push", tags=["push"])


@router.post("/subscribe")
def subscribe(sub: dict, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    endpoint = sub.get("endpoint")
    keys = sub.get("keys") or {}
    if not (endpoint and keys.get("p256dh") and keys.get("auth")):
        raise ValidationError("Invalid push subscription")
    # one row per endpoint; a browser re-subscribing under another account takes it over
    existing = db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()
    if existing:
        existing.user_id = user.id
        existing.p256dh = keys["p256dh"]
        existing.auth = keys["auth"]
    else:
        db.add(PushSubscription(user_id=user.id, endpoint=endpoint, p256dh=keys["p256dh"], auth=keys["auth"]))
    db.commit()
    return {"ok": True}


@router.post("/unsubscribe")
def unsubscribe(sub: dict, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    endpoint = sub.get("endpoint")
    if endpoint:
        db.query(PushSubscription).filter(
            PushSubscription.endpoint == endpoint, PushSubscription.user_id == user.id
        ).delete()
        db.commit()
    return {"ok": True}
