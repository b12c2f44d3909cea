# File: uservoice/services/mentions.py

import re
from sqlalchemy.orm import Session
from uservoice.models.comment import CommentMention
from uservoice.models.project import ProjectMember
from uservoice.models.user import User

MENTION_RE = re.compile(r"@(\w+(?:\s+\w+)?)")


def extract_mentions(content: str) -> list[str]:
    """Unique ``@Name`` / ``@First Last`` tokens in order of appearance."""
    seen, out = set(), []
    for m in MENTION_RE.finditer(content or ""):
        name = m.group(1).strip()
        if name.lower() not in seen:
            seen.add(name.lower())
            out.append(name)
    return out


def resolve_mentions(db: Session, project_id: int, names: list[str]) -> list[User]:
    """Match names against project members: exact name first, then prefix."""
    if not names:
        return []
    members = (
        db.query(User)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(ProjectMember.project_id == project_id, User.is_active.is_(True))
        .all()
    )
    found: dict[int, User] = {}
    for name in names:
        needle = name.lower()
        exact = [u for u in members if (u.name or "").lower() == needle]
        # "@Ann hello" captures two words; fall back to the first one
        first_word = needle.split()[0]
        candidates = exact or [u for u in members if (u.name or "").lower().startswith(needle)] \
            or [u for u in members if (u.name or "").lower() == first_word] \
            or [u for u in members if (u.name or "").lower().startswith(first_word)]
        for u in candidates[:1]:
            found[u.id] = u
    return list(found.values())


def sync_comment_mentions(db: Session, comment_id: int, users: list[User]) -> list[int]:
    """Replace the stored mentions of a comment; returns newly mentioned user ids."""
    existing = {
        m.user_id for m in db.query(CommentMention).filter(CommentMention.comment_id == comment_id).all()
    }
    wanted = {u.id for u in users}
    if existing - wanted:
        (
            db.query(CommentMention)
            .filter(CommentMention.comment_id == comment_id, CommentMention.user_id.in_(existing - wanted))
            .delete(synchronize_session=False)
        )
    new_ids = sorted(wanted - existing)
    for uid in new_ids:
        db.add(CommentMention(comment_id=comment_id, user_id=uid))
    return new_ids
