from __future__ import annotations

import pytest

from sharedrive.access.resolver import has_any_access, is_descendant, resolve_permission
from sharedrive.extensions import db
from sharedrive.folders.service import create_folder
from sharedrive.models import AccessLevel, SharedFolder, SharePermission
from sharedrive.shares.service import share_with_user


@pytest.fixture
def chain(ctx, users) -> dict[str, int]:
    root = create_folder("root", users["alice"])
    child = create_folder("child", users["alice"], root.id)
    grandchild = create_folder("grandchild", users["alice"], child.id)
    return {"root": root.id, "child": child.id, "grandchild": grandchild.id}


def test_owner_wins_at_every_depth_even_with_grants(chain, users):
    # A stray grant row for the owner must never downgrade them.
    db.session.add(SharedFolder(folder_id=chain["child"], user_id=users["alice"], permission=SharePermission.READ))
    db.session.commit()

    for folder_id in chain.values():
        assert resolve_permission(folder_id, users["alice"]) is AccessLevel.OWNER


def test_nearest_grant_wins(chain, users):
    share_with_user(chain["root"], "bob@example.com", "READ")
    share_with_user(chain["child"], "bob@example.com", "EDIT")

    assert resolve_permission(chain["grandchild"], users["bob"]) is AccessLevel.EDIT
    assert resolve_permission(chain["child"], users["bob"]) is AccessLevel.EDIT
    assert resolve_permission(chain["root"], users["bob"]) is AccessLevel.READ


def test_nearest_grant_is_not_the_maximum(chain, users):
    share_with_user(chain["root"], "bob@example.com", "EDIT")
    share_with_user(chain["child"], "bob@example.com", "READ")

    assert resolve_permission(chain["grandchild"], users["bob"]) is AccessLevel.READ
    assert resolve_permission(chain["root"], users["bob"]) is AccessLevel.EDIT


def test_unrelated_user_has_no_access(chain, users):
    share_with_user(chain["root"], "bob@example.com", "EDIT")

    for folder_id in chain.values():
        assert resolve_permission(folder_id, users["carol"]) is None
        assert has_any_access(folder_id, users["carol"]) is False
    assert has_any_access(chain["grandchild"], users["bob"]) is True


def test_missing_folder_resolves_to_none(ctx, users):
    assert resolve_permission(999_999, users["alice"]) is None


def test_owner_of_nested_folder_is_owner_of_their_subtree(chain, users):
    share_with_user(chain["root"], "bob@example.com", "EDIT")
    bobs = create_folder("bob-space", users["bob"], chain["grandchild"])
    inner = create_folder("inner", users["bob"], bobs.id)

    assert bobs.owner_id == users["bob"]
    assert resolve_permission(inner.id, users["bob"]) is AccessLevel.OWNER
    # The root owner still reaches it through the ancestor walk.
    assert resolve_permission(inner.id, users["alice"]) is AccessLevel.OWNER
    assert resolve_permission(chain["grandchild"], users["bob"]) is AccessLevel.EDIT


def test_is_descendant(chain):
    assert is_descendant(chain["grandchild"], chain["root"]) is True
    assert is_descendant(chain["child"], chain["child"]) is True
    assert is_descendant(chain["root"], chain["grandchild"]) is False
    assert is_descendant(999_999, chain["root"]) is False


def test_access_levels_are_ordered():
    assert AccessLevel.OWNER > AccessLevel.EDIT > AccessLevel.READ
    assert AccessLevel.OWNER.satisfies(AccessLevel.EDIT)
    assert not AccessLevel.READ.satisfies(AccessLevel.EDIT)
    assert SharePermission.EDIT.access_level is AccessLevel.EDIT
