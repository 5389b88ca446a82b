from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from models import AdminUser

DEFAULT_SESSION_HOURS = 8


@dataclass
class AdminSession:
    user_id: str
    username: str
    role: str
    session_id: str
    started_at: datetime
    expires_at: datetime


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def authenticate_admin(db: Session, username: str, password: str) -> Optional[AdminUser]:
    if not username or not password:
        return None
    user = db.scalar(select(AdminUser).where(AdminUser.username == username.strip()))
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_admin(db: Session, username: str, password: str, role: str = "admin") -> AdminUser:
    user = AdminUser(username=username.strip(), password_hash=hash_password(password), role=role)
    db.add(user)
    db.flush()
    return user


def get_admin_by_id(db: Session, user_id: str | uuid.UUID) -> Optional[AdminUser]:
    return db.get(AdminUser, uuid.UUID(str(user_id)))


def start_session(user: AdminUser, now: datetime, hours: int = DEFAULT_SESSION_HOURS) -> AdminSession:
    return AdminSession(
        user_id=str(user.id),
        username=user.username,
        role=user.role,
        session_id=str(uuid.uuid4()),
        started_at=now,
        expires_at=now + timedelta(hours=hours),
    )


def is_session_active(session: AdminSession | None, now: datetime) -> bool:
    return session is not None and now < session.expires_at
