from datetime import datetime, timedelta
import os
import secrets

from fastapi import Depends, Header, HTTPException, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.db import get_db
from app.models import User, UserSession

SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "12"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_session(
    db: Session,
    user: User,
    *,
    host_name: str | None = None,
    ip_address: str | None = None,
    ttl: timedelta | None = None,
) -> UserSession:
    now = datetime.utcnow()
    session = UserSession(
        session_id=secrets.token_urlsafe(32),
        user_id=user.id,
        host_name=host_name,
        ip_address=ip_address,
        created_at=now,
        expires_at=now + (ttl or timedelta(hours=SESSION_TTL_HOURS)),
    )
    db.add(session)
    db.flush()
    return session


def _session_id_from_header(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value.split(" ", 1)[1].strip()
    return value or None


def get_session_details(db: Session, session_id: str) -> tuple[UserSession, User] | None:
    row = (
        db.query(UserSession, User)
        .join(User, User.id == UserSession.user_id)
        .filter(UserSession.session_id == session_id)
        .first()
    )
    if row is None:
        return None
    session, user = row
    if session.expires_at is not None and session.expires_at < datetime.utcnow():
        return None
    return session, user


def get_current_user(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid session",
    )
    session_id = _session_id_from_header(authorization)
    if session_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="session_id header is missing")

    details = get_session_details(db, session_id)
    if details is None:
        raise credentials_exception
    _, user = details
    if not user.is_active:
        raise credentials_exception
    return user


def revoke_session(db: Session, authorization: str | None) -> bool:
    session_id = _session_id_from_header(authorization)
    if session_id is None:
        return False
    deleted = db.query(UserSession).filter(UserSession.session_id == session_id).delete()
    return bool(deleted)
