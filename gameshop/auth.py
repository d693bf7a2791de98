from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request, status
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gameshop.config import settings
from gameshop.dates import as_utc
from gameshop.db import SessionLocal
from gameshop.models import AccountStatus, AuthSession, Role, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def register_user(db: Session, username: str, email: str, password: str) -> User:
    username, email = username.strip(), email.strip().lower()
    taken = db.execute(
        select(User.id).where(or_(User.username == username, User.email == email))
    ).first()
    if taken:
        raise HTTPException(status_code=409, detail="username or email already taken")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=Role.USER,
        status=AccountStatus.ACTIVE,
        wallet_balance=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user %s registered", user.id)
    return user


def authenticate(db: Session, username_or_email: str, password: str) -> User:
    login = username_or_email.strip()
    user = db.execute(
        select(User).where(or_(User.username == login, User.email == login.lower()))
    ).scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="Account inactive")
    return user


def create_session(db: Session, user_id: int, ip_address: str | None = None, user_agent: str | None = None) -> str:
    token = secrets.token_hex(32)
    db.add(AuthSession(
        user_id=user_id,
        session_token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.session_ttl_hours),
        ip_address=ip_address,
        user_agent=user_agent,
    ))
    db.commit()
    return token


def revoke_session(db: Session, token: str, reason: str = "logout") -> bool:
    row = db.execute(
        select(AuthSession).where(AuthSession.session_token == token)
    ).scalar_one_or_none()
    if not row or row.revoked_at is not None:
        return False
    row.revoked_at = datetime.now(timezone.utc)
    row.revoked_reason = reason
    db.commit()
    return True


def session_token_from(request: Request) -> str | None:
    """Cookie first, then `Authorization: Bearer <token>`."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def resolve_identity(db: Session, token: str | None) -> Identity:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    row = db.execute(
        select(AuthSession, User)
        .join(User, User.id == AuthSession.user_id)
        .where(AuthSession.session_token == token)
    ).first()
    if not row:
        raise HTTPException(status_code=401, detail="Invalid session")

    session, user = row
    if session.revoked_at is not None:
        raise HTTPException(status_code=401, detail="Session revoked")
    expires_at = as_utc(session.expires_at)
    if expires_at and expires_at < datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Session expired")
    if user.status != AccountStatus.ACTIVE:
        raise HTTPException(status_code=403, detail="Account inactive")
    return Identity(user_id=user.id, role=user.role)


def get_identity(request: Request) -> Identity:
    with SessionLocal() as db:
        return resolve_identity(db, session_token_from(request))


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: admin only")
    return identity


def update_profile(db: Session, user_id: int, username: str | None, email: str | None) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    changes = {}
    if username is not None:
        changes["username"] = username.strip()
    if email is not None:
        changes["email"] = email.strip().lower()
    if not changes:
        return user

    clash = [getattr(User, field) == value for field, value in changes.items()]
    taken = db.execute(select(User.id).where(or_(*clash), User.id != user_id)).first()
    if taken:
        raise HTTPException(status_code=409, detail="username or email already taken")

    for field, value in changes.items():
        setattr(user, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="username or email already taken")
    db.refresh(user)
    logger.info("user %s updated profile fields %s", user_id, sorted(changes))
    return user
