# File: uservoice/services/seed.py
import random
from datetime import datetime, timedelta, timezone
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from uservoice.core.security import hash_password
from uservoice.models.comment import Comment
from uservoice.models.project import ProjectMember, ProjectRole
from uservoice.models.request import Request, RequestStatus
from uservoice.models.user import User, UserRole
from uservoice.models.vote import Vote, VoteType

SEED_PASSWORD = "password123"

SEED_USERS = [
    ("sarah@company.com", "Sarah Johnson"),
    ("mike@company.com", "Mike Chen"),
    ("emily@company.com", "Emily Davis"),
    ("james@company.com", "James Wilson"),
    ("lisa@company.com", "Lisa Park"),
    ("alex@company.com", "Alex Rodriguez"),
    ("jessica@company.com", "Jessica Lee"),
    ("david@company.com", "David Kim"),
    ("rachel@company.com", "Rachel Green"),
    ("tom@company.com", "Tom Anderson"),
]

# title, category, priority, status, team, region, business problem
DETAILED_REQUESTS = [
    ("Mobile App Performance Issues on Android", "bug", "high", "in_progress", "Manufacturing", "EMEA",
     "The Android app lags noticeably when loading the dashboard."),
    ("Add Dark Mode to Dashboard", "new_feature", "medium", "backlog", "Sales", "North America",
     "Many users work late hours and have asked for a dark theme."),
    ("Optimize Database Query Performance", "optimization", "high", "pending", "Service", "APAC",
     "Report generation takes over 30 seconds for large datasets."),
    ("Export Data to Excel Feature", "new_feature", "medium", "completed", "Energy", "Global",
     "Users copy data out of tables by hand."),
    ("Login Page Shows Error for Valid Credentials", "bug", "high", "pending", "Manufacturing", "EMEA",
     "Some users cannot log in with correct passwords."),
    ("Add Two-Factor Authentication", "new_feature", "high", "backlog", "Sales", "North America",
     "Enterprise clients require 2FA for compliance."),
    ("Reduce Page Load Time on Dashboard", "optimization", "medium", "in_progress", "Service", "APAC",
     "The main dashboard takes 4-5 seconds to load."),
    ("Notification Center Not Showing All Alerts", "bug", "medium", "pending", "Energy", "Global",
     "Users report missing notifications."),
    ("Add Bulk User Import via CSV", "new_feature", "low", "pending", "Manufacturing", "EMEA",
     "Onboarding large teams means creating accounts one by one."),
    ("Memory Leak in Real-time Updates", "bug", "high", "rejected", "Sales", "North America",
     "Browser memory keeps growing while the page is open."),
    ("Improve Search Functionality", "optimization", "medium", "completed", "Service", "APAC",
     "Search only matches exact terms."),
    ("Fix Timezone Display in Reports", "bug", "low", "completed", "Sales", "North America",
     "Reports show times in UTC."),
]

REQUEST_TITLES = [
    "Improve loading performance", "Add new dashboard widget", "Fix data sync issue", "Implement export feature",
    "Update user interface", "Optimize database queries", "Add email notifications", "Fix mobile layout",
    "Implement caching layer", "Fix PDF generation", "Add bulk import feature", "Fix authentication bug",
    "Optimize API responses", "Add activity logging", "Improve error handling", "Add custom reports",
]
CATEGORIES = ["bug", "new_feature", "optimization"]
PRIORITIES = ["low", "medium", "high"]
STATUSES = ["pending", "backlog", "in_progress", "completed", "rejected"]
TEAMS = ["Manufacturing", "Sales", "Service", "Energy"]
REGIONS = ["EMEA", "North America", "APAC", "Global"]
COMMENTS = [
    "This is really affecting our daily workflow. Hope this gets prioritized!",
    "We have a workaround for now but would love a proper fix.",
    "Our team has been waiting for this feature for months.",
    "+1 from our department. This is a pain point for us too.",
    "Is there an ETA on this? We need to plan around it.",
]
# (how many, min days ago, max days ago)
DISTRIBUTION = [(10, 0, 0), (20, 1, 6), (30, 7, 29), (25, 30, 89), (15, 90, 180)]


def _ensure_user(db: Session, email: str, name: str, password_hash: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, name=name, hashed_password=password_hash, role=UserRole.employee,
                is_active=True, is_verified=True)
    db.add(user)
    db.flush()
    return user


def _ensure_request(db: Session, project_id: int, title: str, **fields) -> tuple[Request, bool]:
    existing = db.query(Request).filter(Request.project_id == project_id, Request.title == title).first()
    if existing:
        return existing, False
    request = Request(project_id=project_id, title=title, **fields)
    db.add(request)
    db.flush()
    return request, True


def seed_project(db: Session, project_id: int, rng: random.Random | None = None) -> dict:
    """Fill a project with demo users, requests, votes and comments; safe to re-run."""
    # seeded per project so re-running regenerates the same titles and skips them
    rng = rng or random.Random(project_id)
    now = datetime.now(timezone.utc)
    password_hash = hash_password(SEED_PASSWORD)

    user_ids = []
    for email, name in SEED_USERS:
        user = _ensure_user(db, email, name, password_hash)
        user_ids.append(user.id)
        exists = db.query(ProjectMember).filter(
            ProjectMember.project_id == project_id, ProjectMember.user_id == user.id
        ).first()
        if not exists:
            db.add(ProjectMember(project_id=project_id, user_id=user.id, role=ProjectRole.member))

    new_requests = []
    for i, (title, category, priority, status, team, region, problem) in enumerate(DETAILED_REQUESTS):
        request, created = _ensure_request(
            db, project_id, title,
            user_id=user_ids[i % len(user_ids)], category=category, priority=priority,
            status=RequestStatus(status), team=team, region=region, business_problem=problem,
            created_at=now - timedelta(days=rng.randint(0, 30)),
        )
        if created:
            new_requests.append(request)

    num = 1
    for count, min_days, max_days in DISTRIBUTION:
        for _ in range(count):
            days_ago = rng.randint(min_days, max_days)
            title = f"{rng.choice(REQUEST_TITLES)} - {rng.choice(TEAMS)} {rng.choice(REGIONS)} #{num}"
            request, created = _ensure_request(
                db, project_id, title,
                user_id=rng.choice(user_ids), category=rng.choice(CATEGORIES),
                priority=rng.choice(PRIORITIES), status=RequestStatus(rng.choice(STATUSES)),
                team=rng.choice(TEAMS), region=rng.choice(REGIONS),
                business_problem=f"Request for {rng.choice(TEAMS)} team in {rng.choice(REGIONS)}.",
                created_at=now - timedelta(days=days_ago, hours=rng.randint(0, 23)),
            )
            if created:
                new_requests.append(request)
            num += 1

    for request in new_requests:
        voters = rng.sample(user_ids, len(user_ids))
        for uid in voters[:rng.randint(0, 8)]:
            db.add(Vote(request_id=request.id, user_id=uid, type=VoteType.upvote))
        for uid in voters[:rng.randint(0, 5)]:
            db.add(Vote(request_id=request.id, user_id=uid, type=VoteType.like))
        for i in range(rng.randint(0, 3)):
            db.add(Comment(request_id=request.id, user_id=voters[i % len(voters)], content=rng.choice(COMMENTS)))
    db.commit()

    return {
        "message": "Database seeded successfully",
        "users": db.query(func.count(User.id)).scalar(),
        "requests": db.query(func.count(Request.id)).filter(Request.project_id == project_id).scalar(),
        "votes": db.query(func.count(Vote.id)).scalar(),
        "comments": db.query(func.count(Comment.id)).scalar(),
    }


def unseed_project(db: Session, project_id: int) -> dict:
    """Remove the demo data of one project.

    Demo users lose their membership here and are deleted only once no
    other project still has them.
    """
    seed_users = db.query(User).filter(User.email.in_([e for e, _ in SEED_USERS])).all()
    if not seed_users:
        return {"message": "No seed data found", "deleted": {"users": 0, "requests": 0}}
    ids = [u.id for u in seed_users]
    project_requests = select(Request.id).where(Request.project_id == project_id)

    db.query(Vote).filter(Vote.user_id.in_(ids), Vote.request_id.in_(project_requests)) \
        .delete(synchronize_session=False)
    db.query(Comment).filter(Comment.user_id.in_(ids), Comment.request_id.in_(project_requests)) \
        .delete(synchronize_session=False)
    deleted_requests = (
        db.query(Request)
        .filter(Request.project_id == project_id, Request.user_id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.query(ProjectMember).filter(ProjectMember.project_id == project_id, ProjectMember.user_id.in_(ids)) \
        .delete(synchronize_session=False)

    still_member = {
        uid for (uid,) in db.query(ProjectMember.user_id).filter(ProjectMember.user_id.in_(ids)).all()
    }
    orphans = [u for u in seed_users if u.id not in still_member]
    for user in orphans:
        db.delete(user)
    db.commit()
    return {"message": "Seed data removed", "deleted": {"users": len(orphans), "requests": deleted_requests}}
