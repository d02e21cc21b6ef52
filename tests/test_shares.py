from __future__ import annotations

from datetime import timedelta

import pytest

from sharedrive.common.errors import Conflict, NotFound, ValidationError
from sharedrive.extensions import db
from sharedrive.files.service import create_file
from sharedrive.folders.service import create_folder
from sharedrive.models import PublicFolderShare, SharedFolder, SharePermission, utc_now
from sharedrive.shares.service import (
    create_public_share,
    get_public_share,
    list_folders_shared_with,
    list_shared_users,
    remove_share,
    resolve_public_share,
    revoke_public_share,
    share_with_user,
    update_permission,
)


@pytest.fixture
def folder_id(ctx, users) -> int:
    return create_folder("Projects", users["alice"]).id


def test_share_with_user_creates_grant(folder_id, users):
    grant = share_with_user(folder_id, "Bob@Example.com", "edit")

    assert grant.user_id == users["bob"]
    assert grant.permission is SharePermission.EDIT
    assert [item.user_id for item in list_shared_users(folder_id)] == [users["bob"]]
    assert [item.folder_id for item in list_folders_shared_with(users["bob"])] == [folder_id]


def test_share_with_unknown_user(folder_id):
    with pytest.raises(NotFound) as error:
        share_with_user(folder_id, "nobody@example.com", "READ")
    assert error.value.code == "USER_NOT_FOUND"


def test_share_with_missing_folder(ctx):
    with pytest.raises(NotFound) as error:
        share_with_user(999_999, "bob@example.com", "READ")
    assert error.value.code == "FOLDER_NOT_FOUND"


def test_share_twice_conflicts(folder_id):
    share_with_user(folder_id, "bob@example.com", "READ")
    with pytest.raises(Conflict):
        share_with_user(folder_id, "bob@example.com", "EDIT")
    assert SharedFolder.query.count() == 1


def test_share_with_owner_is_rejected(folder_id):
    with pytest.raises(ValidationError):
        share_with_user(folder_id, "alice@example.com", "READ")


def test_share_with_unknown_permission(folder_id):
    with pytest.raises(ValidationError) as error:
        share_with_user(folder_id, "bob@example.com", "ADMIN")
    assert error.value.code == "INVALID_PERMISSION"


def test_update_permission(folder_id, users):
    share_with_user(folder_id, "bob@example.com", "READ")

    assert update_permission(folder_id, users["bob"], "EDIT", actor_id=users["alice"]) == 1
    grant = SharedFolder.query.filter_by(folder_id=folder_id, user_id=users["bob"]).one()
    assert grant.permission is SharePermission.EDIT

    # Nobody to update.
    assert update_permission(folder_id, users["carol"], "EDIT", actor_id=users["alice"]) == 0


def test_update_permission_rejects_self_and_bad_values(folder_id, users):
    share_with_user(folder_id, "bob@example.com", "READ")

    with pytest.raises(ValidationError):
        update_permission(folder_id, users["bob"], "EDIT", actor_id=users["bob"])
    with pytest.raises(ValidationError):
        update_permission(folder_id, users["bob"], "OWNER", actor_id=users["alice"])


def test_remove_share(folder_id, users):
    share_with_user(folder_id, "bob@example.com", "READ")

    assert remove_share(folder_id, users["bob"]) is True
    assert remove_share(folder_id, users["bob"]) is False
    assert list_shared_users(folder_id) == []


def test_public_share_round_trip(folder_id, app):
    token = create_public_share(folder_id)

    assert len(token) == app.config["PUBLIC_SHARE_TOKEN_BYTES"] * 2
    assert resolve_public_share(token).id == folder_id
    assert resolve_public_share("not-a-token") is None
    assert resolve_public_share("") is None


def test_public_share_is_replaced_not_duplicated(folder_id):
    first = create_public_share(folder_id)
    second = create_public_share(folder_id)

    assert first != second
    assert PublicFolderShare.query.count() == 1
    assert resolve_public_share(first) is None
    assert resolve_public_share(second).id == folder_id


def test_expired_public_share_resolves_to_none(folder_id):
    token = create_public_share(folder_id, expires_at=utc_now() + timedelta(days=1))
    share = get_public_share(folder_id)
    share.expires_at = utc_now() - timedelta(minutes=1)
    db.session.commit()

    assert resolve_public_share(token) is None


def test_public_share_rejects_past_expiry(folder_id):
    with pytest.raises(ValidationError):
        create_public_share(folder_id, expires_at=utc_now() - timedelta(days=1))


def test_revoke_public_share(folder_id):
    token = create_public_share(folder_id)

    assert revoke_public_share(folder_id) == 1
    assert revoke_public_share(folder_id) == 0
    assert resolve_public_share(token) is None


def test_share_routes_are_owner_only(client, headers_for, users, folder_id):
    share_with_user(folder_id, "bob@example.com", "EDIT")

    response = client.post(
        f"/folders/{folder_id}/shares",
        json={"email": "carol@example.com", "permission": "READ"},
        headers=headers_for(users["bob"]),
    )
    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "OWNER_REQUIRED"

    # Without any access the folder does not exist for the caller.
    response = client.get(f"/folders/{folder_id}/shares", headers=headers_for(users["carol"]))
    assert response.status_code == 404


def test_share_routes_for_owner(client, headers_for, users, folder_id):
    owner = headers_for(users["alice"])

    response = client.post(
        f"/folders/{folder_id}/shares",
        json={"email": "bob@example.com", "permission": "READ"},
        headers=owner,
    )
    assert response.status_code == 201
    assert response.get_json()["share"]["user_email"] == "bob@example.com"

    response = client.patch(f"/folders/{folder_id}/shares/{users['bob']}", json={"permission": "EDIT"}, headers=owner)
    assert response.status_code == 200

    response = client.get("/shares/shared-with-me", headers=headers_for(users["bob"]))
    items = response.get_json()["items"]
    assert [item["item"]["id"] for item in items] == [folder_id]
    assert items[0]["share"]["permission"] == "EDIT"

    response = client.delete(f"/folders/{folder_id}/shares/{users['bob']}", headers=owner)
    assert response.status_code == 200
    response = client.delete(f"/folders/{folder_id}/shares/{users['bob']}", headers=owner)
    assert response.status_code == 404


def test_public_link_routes(client, headers_for, users, folder_id):
    owner = headers_for(users["alice"])
    child = create_folder("Drafts", users["alice"], folder_id)
    child_id = child.id
    other_id = create_folder("Elsewhere", users["alice"]).id

    response = client.post(f"/folders/{folder_id}/public-share", json={"expires_in_days": 7}, headers=owner)
    assert response.status_code == 201
    token = response.get_json()["token"]

    response = client.get(f"/public/shares/{token}")
    body = response.get_json()
    assert response.status_code == 200
    assert body["item"]["id"] == folder_id
    assert body["permission"] == "READ"
    assert [item["id"] for item in body["children"]] == [child_id]

    response = client.get(f"/public/shares/{token}?folder_id={child_id}")
    assert [crumb["id"] for crumb in response.get_json()["breadcrumb"]] == [folder_id, child_id]

    assert client.get(f"/public/shares/{token}?folder_id={other_id}").status_code == 403

    inside = create_file(users["alice"], "inside.txt", b"visible", "text/plain", child_id)
    outside = create_file(users["alice"], "outside.txt", b"hidden", "text/plain", other_id)
    response = client.get(f"/public/shares/{token}/download/{inside.id}")
    assert response.status_code == 200
    assert response.data == b"visible"
    assert client.get(f"/public/shares/{token}/download/{outside.id}").status_code == 403

    response = client.get(f"/public/shares/{token}/files/{inside.id}")
    assert response.status_code == 200
    assert response.get_json()["item"]["name"] == "inside.txt"
    assert response.get_json()["permission"] == "READ"
    assert client.get(f"/public/shares/{token}/files/{outside.id}").status_code == 403
    assert client.get(f"/public/shares/not-a-token/files/{inside.id}").status_code == 404

    response = client.delete(f"/folders/{folder_id}/public-share", headers=owner)
    assert response.get_json() == {"deleted": 1}
    assert client.get(f"/public/shares/{token}").status_code == 404


def test_public_link_rejects_bad_expiry(client, headers_for, users, folder_id):
    response = client.post(
        f"/folders/{folder_id}/public-share",
        json={"expires_in_days": 0},
        headers=headers_for(users["alice"]),
    )
    assert response.status_code == 400
