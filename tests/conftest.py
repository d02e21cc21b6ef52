from __future__ import annotations

from pathlib import Path

import pytest
from flask_jwt_extended import create_access_token

from sharedrive import create_app
from sharedrive.extensions import db
from sharedrive.models import User
from sharedrive.users.service import create_user


@pytest.fixture
def app(tmp_path: Path):
    db_path = tmp_path / "test.db"
    storage_path = tmp_path / "storage"

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "STORAGE_ROOT": str(storage_path),
            "JWT_SECRET_KEY": "test-secret-key-at-least-32-bytes-long",
        }
    )

    with app.app_context():
        db.create_all()
        for name in ("alice", "bob", "carol"):
            create_user(name, f"{name}@example.com", f"{name}pass123")

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app) -> dict[str, int]:
    with app.app_context():
        return {user.name: user.id for user in User.query.all()}


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def blob_store(app):
    return app.extensions["blob_store"]


@pytest.fixture
def headers_for(app):
    def build(user_id: int) -> dict[str, str]:
        with app.app_context():
            token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {token}"}

    return build
