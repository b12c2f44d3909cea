# File: uservoice/core/security.py
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import time, jwt
from sqlalchemy.orm import Session
from uservoice.core.config import settings
from uservoice.core.errors import UnauthorizedError, ForbiddenError
from passlib.hash import bcrypt_sha256
from uservoice.db.session import get_db
from uservoice.models.user import User, UserRole

ALGO = "HS256"
ACCESS_TTL = 15 * 60
REFRESH_TTL = 7 * 24 * 3600
EMAIL_TTL = 3600
bearer = HTTPBearer(auto_error=False)

def hash_password(raw: str) -> str:
    return bcrypt_sha256.hash(raw)

def verify_password(raw: str, hashed: str) -> bool:
    return bcrypt_sha256.verify(raw, hashed)

def _make_token(sub: str, role: str, ttl: int, typ: str) -> str:
    now = int(time.time())
    payload = {"sub": sub, "role": role, "typ": typ, "iat": now, "exp": now + ttl}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)

def make_tokens(email: str, role: str) -> dict:
    return {
        "access_token": _make_token(email, role, ACCESS_TTL, "access"),
        "refresh_token": _make_token(email, role, REFRESH_TTL, "refresh"),
        "token_type": "bearer",
        "expires_in": ACCESS_TTL,
    }

def decode_token(token: str, typ: str = "access") -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGO])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token")
    if payload.get("typ") != typ:
        raise UnauthorizedError("Invalid token")
    return payload

# Simple password reset tokens using JWT
def make_email_token(email: str, purpose: str) -> str:
    return jwt.encode(
        {"sub": email, "purpose": purpose, "exp": int(time.time()) + EMAIL_TTL},
        settings.jwt_secret,
        algorithm=ALGO,
    )

def parse_email_token(token: str, purpose: str) -> str:
    data = jwt.decode(token, settings.jwt_secret, algorithms=[ALGO])
    if data.get("purpose") != purpose:
        raise jwt.InvalidTokenError("bad purpose")
    return data["sub"]

def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     db: Session = Depends(get_db)) -> User:
    if not creds:
        raise UnauthorizedError("Not authenticated")
    payload = decode_token(creds.credentials)
    email = payload.get("sub")
    if not email:
        raise UnauthorizedError("Invalid token payload")
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise ForbiddenError("user_inactive")
    return user

def require_role(*roles):
    role_values = [r.value if isinstance(r, UserRole) else r for r in roles]
    def _dep(user: User = Depends(get_current_user)):
        if user.role.value not in role_values:
            raise ForbiddenError("Insufficient permissions")
        return user
    return _dep

require_super_admin = require_role(UserRole.super_admin)
