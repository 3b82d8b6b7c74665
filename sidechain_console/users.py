from datetime import UTC, datetime
from typing import Optional

from sqlalchemy.orm import Session

from sidechain_console.models import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).one_or_none()


def upsert_verified_user(db: Session, email: str) -> User:
    email = normalize_email(email)
    if not email:
        raise ValueError("email is required")

    user = get_user_by_email(db, email)
    if user is None:
        user = User(email=email)
        db.add(user)
    user.verified = True
    user.last_login_at = datetime.now(UTC)
    db.commit()
    db.refresh(user)
    return user
