from __future__ import annotations

import pytest

from sharedrive.access.gate import (
    get_accessible_file,
    get_accessible_folder,
    get_public_file,
    get_public_folder,
    require_file_permission,
    require_folder_permission,
)
from sharedrive.common.errors import NotFound, Unauthorized
from sharedrive.files.service import create_file
from sharedrive.folders.service import create_folder
from sharedrive.models import AccessLevel
from sharedrive.shares.service import create_public_share, share_with_user


@pytest.fixture
def tree(ctx, users) -> dict[str, int]:
    root = create_folder("root", users["alice"])
    child = create_folder("child", users["alice"], root.id)
    report = create_file(users["alice"], "report.txt", b"numbers", "text/plain", child.id)
    loose = create_file(users["alice"], "loose.txt", b"unfiled")
    other = create_folder("other", users["alice"])
    return {"root": root.id, "child": child.id, "report": report.id, "loose": loose.id, "other": other.id}


def test_folder_view_lists_contents(tree, users):
    access = get_accessible_folder(tree["root"], users["alice"])

    assert access.permission is AccessLevel.OWNER
    assert [child.id for child in access.children] == [tree["child"]]
    assert access.files == []


def test_invisible_folder_looks_missing(tree, users):
    with pytest.raises(NotFound):
        get_accessible_folder(tree["root"], users["bob"])
    with pytest.raises(NotFound):
        get_accessible_folder(999_999, users["alice"])


def test_require_folder_permission_levels(tree, users):
    share_with_user(tree["root"], "bob@example.com", "READ")

    folder, permission = require_folder_permission(tree["child"], users["bob"], AccessLevel.READ)
    assert folder.id == tree["child"]
    assert permission is AccessLevel.READ

    with pytest.raises(Unauthorized):
        require_folder_permission(tree["child"], users["bob"], AccessLevel.EDIT)


def test_file_owner_keeps_rights_wherever_the_file_is(tree, users):
    assert get_accessible_file(tree["loose"], users["alice"]).permission is AccessLevel.OWNER
    assert get_accessible_file(tree["report"], users["alice"]).permission is AccessLevel.OWNER


def test_file_access_follows_folder_grants(tree, users):
    share_with_user(tree["root"], "bob@example.com", "EDIT")

    access = require_file_permission(tree["report"], users["bob"], AccessLevel.EDIT)
    assert access.permission is AccessLevel.EDIT

    with pytest.raises(NotFound):
        get_accessible_file(tree["report"], users["carol"])


def test_unfiled_file_is_private_to_its_owner(tree, users):
    share_with_user(tree["root"], "bob@example.com", "EDIT")

    with pytest.raises(NotFound):
        get_accessible_file(tree["loose"], users["bob"])


def test_public_folder_stays_inside_the_share(tree):
    token = create_public_share(tree["root"])

    assert get_public_folder(token).folder.id == tree["root"]
    assert get_public_folder(token, tree["child"]).permission is AccessLevel.READ

    with pytest.raises(Unauthorized):
        get_public_folder(token, tree["other"])
    with pytest.raises(NotFound):
        get_public_folder("missing-token")


def test_public_file_stays_inside_the_share(tree, users):
    token = create_public_share(tree["root"])

    assert get_public_file(token, tree["report"]).file.id == tree["report"]
    with pytest.raises(Unauthorized):
        get_public_file(token, tree["loose"])

    child_token = create_public_share(tree["child"])
    other_file = create_file(users["alice"], "elsewhere.txt", b"x", folder_id=tree["other"])
    with pytest.raises(Unauthorized):
        get_public_file(child_token, other_file.id)
