from __future__ import annotations

import os
from getpass import getpass

from sharedrive import create_app
from sharedrive.extensions import db
from sharedrive.users.service import create_user, get_user_by_email


def main() -> None:
    app = create_app()

    with app.app_context():
        db.create_all()

        name = os.getenv("SEED_USER_NAME", "admin")
        email = os.getenv("SEED_USER_EMAIL", "admin@example.com")
        password = os.getenv("SEED_USER_PASSWORD")

        user = get_user_by_email(email)
        if user is not None:
            print(f"User already exists: {user.name} <{user.email}>")
            return

        if not password:
            password = getpass("Password: ")
        user = create_user(name, email, password)
        print(f"Created user: {user.name} <{user.email}> (id={user.id})")


if __name__ == "__main__":
    main()
