from __future__ import annotations

import io

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from ..access.gate import get_public_file, get_public_folder, require_folder_permission
from ..common.errors import NotFound, Unauthorized
from ..common.identity import current_user
from ..common.params import parse_nullable_int
from ..common.tree import get_breadcrumb
from ..extensions import db
from ..files.service import read_public_file
from ..models import AccessLevel, User
from .service import (
    create_public_share,
    expiry_from_days,
    get_public_share,
    list_folders_shared_with,
    list_shared_users,
    remove_share,
    resolve_public_share,
    revoke_public_share,
    share_with_user,
    update_permission,
)


shares_bp = Blueprint("shares", __name__)
public_shares_bp = Blueprint("public_shares", __name__)


def _ensure_owner(user: User, folder_id: int) -> None:
    folder, _ = require_folder_permission(folder_id, user.id, AccessLevel.READ)
    if folder.owner_id != user.id:
        raise Unauthorized("Only the owner can manage shares of this folder.", code="OWNER_REQUIRED")


@shares_bp.get("/folders/<int:folder_id>/shares")
@jwt_required()
def list_folder_shares(folder_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)
    return jsonify({"items": [grant.to_dict() for grant in list_shared_users(folder_id)]})


@shares_bp.post("/folders/<int:folder_id>/shares")
@jwt_required()
def create_folder_share(folder_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)

    payload = request.get_json(silent=True) or {}
    grant = share_with_user(folder_id, payload.get("email") or "", payload.get("permission") or "READ")
    return jsonify({"share": grant.to_dict()}), 201


@shares_bp.patch("/folders/<int:folder_id>/shares/<int:target_user_id>")
@jwt_required()
def update_folder_share(folder_id: int, target_user_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)

    payload = request.get_json(silent=True) or {}
    updated = update_permission(folder_id, target_user_id, payload.get("permission"), actor_id=user.id)
    if not updated:
        raise NotFound("User is not shared with this folder.", code="SHARE_NOT_FOUND")
    return jsonify({"updated": updated})


@shares_bp.delete("/folders/<int:folder_id>/shares/<int:target_user_id>")
@jwt_required()
def delete_folder_share(folder_id: int, target_user_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)

    if not remove_share(folder_id, target_user_id):
        raise NotFound("User is not shared with this folder.", code="SHARE_NOT_FOUND")
    return jsonify({"deleted": True})


@shares_bp.get("/shares/shared-with-me")
@jwt_required()
def shared_with_me():
    user = current_user()
    grants = list_folders_shared_with(user.id)
    items = [{"share": grant.to_dict(), "item": grant.folder.to_dict()} for grant in grants if grant.folder is not None]
    return jsonify({"items": items})


@shares_bp.post("/folders/<int:folder_id>/public-share")
@jwt_required()
def create_public_link(folder_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)

    payload = request.get_json(silent=True) or {}
    token = create_public_share(folder_id, expires_at=expiry_from_days(payload.get("expires_in_days")))
    share = get_public_share(folder_id)
    return jsonify({"token": token, "link": share.to_dict() if share else None}), 201


@shares_bp.delete("/folders/<int:folder_id>/public-share")
@jwt_required()
def delete_public_link(folder_id: int):
    user = current_user()
    _ensure_owner(user, folder_id)
    return jsonify({"deleted": revoke_public_share(folder_id)})


@public_shares_bp.get("/public/shares/<string:token>")
def public_folder(token: str):
    folder_id = parse_nullable_int(request.args.get("folder_id"), "folder_id")
    access = get_public_folder(token, folder_id)
    root = resolve_public_share(token)

    breadcrumb = get_breadcrumb(db.session, access.folder.id)
    if root is not None:
        ids = [crumb.id for crumb in breadcrumb]
        breadcrumb = breadcrumb[ids.index(root.id) :] if root.id in ids else breadcrumb

    return jsonify(
        {
            "root": root.to_dict() if root else None,
            "item": access.folder.to_dict(),
            "permission": access.permission.name,
            "children": [child.to_dict() for child in access.children],
            "files": [file.to_dict() for file in access.files],
            "breadcrumb": [crumb.to_dict() for crumb in breadcrumb],
        }
    )


@public_shares_bp.get("/public/shares/<string:token>/files/<int:file_id>")
def public_file(token: str, file_id: int):
    access = get_public_file(token, file_id)
    return jsonify({"item": access.file.to_dict(), "permission": access.permission.name})


@public_shares_bp.get("/public/shares/<string:token>/download/<int:file_id>")
def public_download(token: str, file_id: int):
    file, data = read_public_file(token, file_id)
    return send_file(io.BytesIO(data), as_attachment=True, download_name=file.name, mimetype=file.mime_type)
