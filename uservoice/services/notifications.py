# File: uservoice/services/notifications.py
"""Background fan-out of request events to watchers (email + web push).

These run as FastAPI background tasks after the response is sent, so each
one opens its own session and logs instead of raising.
"""
import logging
from sqlalchemy.orm import Session

from uservoice.db.session import SessionLocal
from uservoice.models.comment import Comment
from uservoice.models.request import Request, RequestWatcher
from uservoice.models.user import User
from uservoice.services.notify_email import (
    send_comment_notification,
    send_mention_notification,
    send_status_update,
)
from uservoice.services.notify_push import push_to_user

logger = logging.getLogger(__name__)


def _watchers(db: Session, request_id: int, exclude: set[int]) -> list[User]:
    users = (
        db.query(User)
        .join(RequestWatcher, RequestWatcher.user_id == User.id)
        .filter(RequestWatcher.request_id == request_id, User.is_active.is_(True))
        .all()
    )
    return [u for u in users if u.id not in exclude]


def notify_status_change_safe(request_id: int, new_status: str, actor_id: int):
    db = SessionLocal()
    try:
        request = db.get(Request, request_id)
        if not request:
            return
        for user in _watchers(db, request_id, {actor_id}):
            send_status_update(user.email, request.id, request.title, new_status)
            push_to_user(db, user.id, {
                "title": f"Request #{request.id} updated",
                "body": f"{request.title} is now {new_status.replace('_', ' ')}",
                "url": f"/requests/{request.id}",
            })
    except Exception as e:
        logger.error(f"Failed to send status notifications for request {request_id}: {e}", exc_info=True)
    finally:
        db.close()


def notify_new_comment_safe(comment_id: int, mentioned_ids: list[int], notify_watchers: bool = True):
    db = SessionLocal()
    try:
        comment = db.get(Comment, comment_id)
        if not comment:
            return
        request = db.get(Request, comment.request_id)
        author = db.get(User, comment.user_id) if comment.user_id else None
        author_name = author.name if author else "Someone"

        mentioned = set(mentioned_ids or [])
        for user in db.query(User).filter(User.id.in_(mentioned or [0])).all():
            if author and user.id == author.id:
                continue
            send_mention_notification(user.email, request.id, request.title, author_name, comment.content)
            push_to_user(db, user.id, {
                "title": f"{author_name} mentioned you",
                "body": comment.content[:120],
                "url": f"/requests/{request.id}",
            })

        if not notify_watchers:
            return
        exclude = mentioned | ({author.id} if author else set())
        for user in _watchers(db, request.id, exclude):
            send_comment_notification(user.email, request.id, request.title, author_name, comment.content)
    except Exception as e:
        logger.error(f"Failed to send comment notifications for comment {comment_id}: {e}", exc_info=True)
    finally:
        db.close()
