from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..extensions import db
from .errors import StorageFailure


DEPTH_KEY = "sharedrive.transaction_depth"
AFTER_COMMIT_KEY = "sharedrive.after_commit"
AFTER_ROLLBACK_KEY = "sharedrive.after_rollback"


def active_session(session: Session | None = None) -> Session:
    return session if session is not None else db.session


def after_commit(session: Session, hook: Callable[[], None]) -> None:
    """Run ``hook`` once the outermost transaction on ``session`` has committed."""
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(hook)


def after_rollback(session: Session, hook: Callable[[], None]) -> None:
    """Run ``hook`` if the outermost transaction on ``session`` rolls back."""
    session.info.setdefault(AFTER_ROLLBACK_KEY, []).append(hook)


def _roll_back(session: Session) -> None:
    session.rollback()
    session.info.pop(AFTER_COMMIT_KEY, None)
    for hook in session.info.pop(AFTER_ROLLBACK_KEY, []):
        hook()


@contextmanager
def transaction(session: Session | None = None) -> Iterator[Session]:
    """Run one operation as a single unit of work.

    The yielded session must be passed to every helper the operation calls.
    Helpers flush but never commit. Only the outermost ``transaction`` on a
    session commits, so a caller may open one and hand its session to several
    service calls to make them all or nothing. Any exception rolls the whole
    unit back. Commit and rollback hooks run after the outermost block ends.
    """
    session = active_session(session)
    depth = session.info.get(DEPTH_KEY, 0)
    session.info[DEPTH_KEY] = depth + 1
    try:
        try:
            yield session
            if depth == 0:
                session.commit()
        finally:
            session.info[DEPTH_KEY] = depth
    except SQLAlchemyError as error:
        if depth == 0:
            current_app.logger.warning("Transaction rolled back after storage error: %s", error)
            _roll_back(session)
        raise StorageFailure("The storage layer rejected the operation.") from error
    except Exception:
        if depth == 0:
            _roll_back(session)
        raise

    if depth == 0:
        session.info.pop(AFTER_ROLLBACK_KEY, None)
        for hook in session.info.pop(AFTER_COMMIT_KEY, []):
            hook()
