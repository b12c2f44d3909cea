# File: uservoice/routers/auth.py

import logging
import random, string
from datetime import datetime, timezone, timedelta
import jwt
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from uservoice.db.session import get_db
from uservoice.models.user import User, UserRole
from uservoice.models.project import Project, ProjectMember, ProjectRole
from uservoice.schemas.auth import (
    RegisterIn, LoginIn, VerifyCodeIn, RefreshIn, TokenPair, EmailOnly, ResetIn,
    PasswordChangeRequestIn, PasswordChangeIn,
)
from uservoice.schemas.user import user_out
from uservoice.core.config import settings
from uservoice.core.errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from uservoice.core.ratelimit import limiter, AUTH_LIMIT
from uservoice.core.security import (
    hash_password, verify_password, make_tokens, decode_token, get_current_user,
    make_email_token, parse_email_token,
)
from uservoice.services.notify_email import send_verification_code, send_reset_password, send_password_change_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

CODE_TTL_MINUTES = 60


def _new_code() -> tuple[str, datetime]:
    code = ''.join(random.choices(string.digits, k=6))
    return code, _now() + timedelta(minutes=CODE_TTL_MINUTES)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _join_default_project(db: Session, user: User):
    project = db.query(Project).filter(Project.slug == settings.default_project_slug).first()
    if not project:
        return
    exists = db.query(ProjectMember).filter(
        ProjectMember.project_id == project.id, ProjectMember.user_id == user.id
    ).first()
    if not exists:
        db.add(ProjectMember(project_id=project.id, user_id=user.id, role=ProjectRole.member))


def _session_payload(user: User) -> dict:
    return {**make_tokens(user.email, user.role.value), "user": user_out(user)}


@router.post("/register", status_code=201)
@limiter.limit(AUTH_LIMIT)
def register(request: Request, body: RegisterIn, db: Session = Depends(get_db)):
    if not settings.allow_self_registration:
        raise ForbiddenError("Self registration is disabled. Ask an administrator for an account.")

    email = body.email.lower()
    user = db.query(User).filter(User.email == email).first()
    if user and user.is_verified:
        raise ValidationError("Email already registered")

    code, expires = _new_code()
    if user:
        # unverified leftover from an earlier attempt: take over with the new details
        user.name = body.name
        user.hashed_password = hash_password(body.password)
    else:
        user = User(
            email=email,
            name=body.name,
            hashed_password=hash_password(body.password),
            role=UserRole.employee,
            is_active=True,
            is_verified=False,
        )
        db.add(user)
    user.email_verify_code = code
    user.email_verify_expires_at = expires
    db.commit()

    send_verification_code(user.email, code)
    return {"ok": True, "message": "Verification code sent. Check your inbox.", "email": user.email}


@router.post("/verify-code")
@limiter.limit(AUTH_LIMIT)
def verify_code(request: Request, body: VerifyCodeIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user:
        raise NotFoundError("User")
    if user.is_verified:
        raise ValidationError("Email is already verified")
    if not user.email_verify_code or not user.email_verify_expires_at:
        raise ValidationError("No verification code found. Please request a new one.")
    if _now() > user.email_verify_expires_at:
        raise ValidationError("Verification code has expired. Please request a new one.")
    if user.email_verify_code != body.code.strip():
        raise ValidationError("Invalid verification code")

    user.is_verified = True
    user.email_verify_code = None
    user.email_verify_expires_at = None
    user.last_login = datetime.now(timezone.utc)
    _join_default_project(db, user)
    db.commit()
    db.refresh(user)
    return _session_payload(user)


@router.post("/resend-code")
@limiter.limit(AUTH_LIMIT)
def resend_code(request: Request, body: EmailOnly, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if user and not user.is_verified:
        user.email_verify_code, user.email_verify_expires_at = _new_code()
        db.commit()
        send_verification_code(user.email, user.email_verify_code)
    return {"ok": True, "message": "If the account is awaiting verification, a new code has been sent."}


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
def login(request: Request, body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not user.hashed_password or not verify_password(body.password, user.hashed_password):
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise ForbiddenError("Your account has been deactivated. Please contact an administrator.")
    if not user.is_verified:
        raise ForbiddenError("Please verify your email address before signing in.")
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return _session_payload(user)


@router.post("/refresh", response_model=TokenPair)
@limiter.limit(AUTH_LIMIT)
def refresh(request: Request, body: RefreshIn, db: Session = Depends(get_db)):
    payload = decode_token(body.refresh_token, typ="refresh")
    user = db.query(User).filter(User.email == payload.get("sub")).first()
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise ForbiddenError("user_inactive")
    return make_tokens(user.email, user.role.value)


@router.get("/me")
def me(current: User = Depends(get_current_user)):
    return user_out(current)


@router.post("/forgot-password")
@limiter.limit(AUTH_LIMIT)
def forgot_password(request: Request, body: EmailOnly, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if user and user.is_active:
        send_reset_password(user.email, make_email_token(user.email, "reset"))
    return {"ok": True, "message": "If an account exists with this email, a password reset link has been sent."}


@router.post("/reset-password")
@limiter.limit(AUTH_LIMIT)
def reset_password(request: Request, body: ResetIn, db: Session = Depends(get_db)):
    try:
        email = parse_email_token(body.token, "reset")
    except jwt.ExpiredSignatureError:
        raise ValidationError("Password reset link has expired. Please request a new one.")
    except jwt.PyJWTError:
        raise ValidationError("Invalid or expired reset link. Please request a new password reset.")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFoundError("User")
    if not user.is_active:
        raise ForbiddenError("Account is deactivated. Please contact an administrator.")

    user.hashed_password = hash_password(body.password)
    user.must_change_password = False
    db.commit()
    return {"ok": True, "message": "Password reset successfully. You can now sign in with your new password."}


@router.post("/password/request-change")
@limiter.limit(AUTH_LIMIT)
def request_password_change(request: Request, body: PasswordChangeRequestIn,
                            user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(body.old_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")
    if body.old_password == body.new_password:
        raise ValidationError("New password must be different from the current one")

    code, expires = _new_code()
    user.password_change_code = code
    user.password_change_expires_at = expires
    user.pending_password_hash = hash_password(body.new_password)
    db.commit()

    send_password_change_code(user.email, code)
    return {"ok": True, "message": "A confirmation code has been sent to your email."}


@router.post("/password/change")
@limiter.limit(AUTH_LIMIT)
def change_password(request: Request, body: PasswordChangeIn,
                    user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not user.password_change_code or not user.pending_password_hash:
        raise ValidationError("No password change in progress")
    if user.password_change_expires_at and _now() > user.password_change_expires_at:
        raise ValidationError("Confirmation code has expired. Please start again.")
    if user.password_change_code != body.code.strip():
        raise ValidationError("Invalid confirmation code")

    user.hashed_password = user.pending_password_hash
    user.pending_password_hash = None
    user.password_change_code = None
    user.password_change_expires_at = None
    user.must_change_password = False
    db.commit()
    return {"ok": True, "message": "Password changed successfully"}
