from __future__ import annotations

from flask_jwt_extended import get_jwt_identity

from ..extensions import db
from ..models import User
from .errors import APIError


def current_user() -> User:
    """User behind the bearer token of the current request."""
    identity = get_jwt_identity()
    if identity is None:
        raise APIError("Authentication required.", code="UNAUTHENTICATED", status_code=401)

    try:
        user = db.session.get(User, int(identity))
    except (TypeError, ValueError):
        user = None
    if user is None:
        raise APIError("Invalid session.", code="UNAUTHENTICATED", status_code=401)
    return user
