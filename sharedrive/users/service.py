from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..common.errors import Conflict, ValidationError
from ..common.transaction import active_session, transaction
from ..models import User


def get_user_by_email(email: str, session: Session | None = None) -> User | None:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    session = active_session(session)
    return session.query(User).filter(func.lower(User.email) == normalized).one_or_none()


def create_user(name: str, email: str, password: str, session: Session | None = None) -> User:
    name = (name or "").strip()
    email = (email or "").strip().lower()

    if len(name) < 3:
        raise ValidationError("Name must be at least 3 characters.", code="INVALID_NAME")
    if "@" not in email:
        raise ValidationError("A valid email address is required.", code="INVALID_EMAIL")
    if len(password or "") < 8:
        raise ValidationError("Password must be at least 8 characters.", code="INVALID_PASSWORD")

    with transaction(session) as tx:
        if tx.query(User).filter(func.lower(User.name) == name.lower()).first() is not None:
            raise Conflict("Name is already taken.", code="USER_EXISTS")
        if get_user_by_email(email, session=tx) is not None:
            raise Conflict("Email is already registered.", code="USER_EXISTS")

        user = User(name=name, email=email)
        user.set_password(password)
        tx.add(user)
        tx.flush()

    return user
