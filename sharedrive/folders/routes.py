from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ..access.gate import get_accessible_folder
from ..common.identity import current_user
from ..common.params import parse_nullable_int
from ..common.tree import get_breadcrumb, list_root_folders
from ..extensions import db
from ..models import AccessLevel
from ..shares.service import get_public_share, list_shared_users
from .service import UNSET, create_folder, delete_folder_and_contents, update_folder


folders_bp = Blueprint("folders", __name__, url_prefix="/folders")


@folders_bp.get("")
@jwt_required()
def list_folders():
    user = current_user()
    folders = list_root_folders(db.session, user.id)
    return jsonify({"items": [folder.to_dict() for folder in folders]})


@folders_bp.post("")
@jwt_required()
def create():
    user = current_user()
    payload = request.get_json(silent=True) or {}
    parent_id = parse_nullable_int(payload.get("parent_id"), "parent_id")

    folder = create_folder(payload.get("name") or "", user.id, parent_id)
    return jsonify({"item": folder.to_dict()}), 201


@folders_bp.get("/<int:folder_id>")
@jwt_required()
def view(folder_id: int):
    user = current_user()
    access = get_accessible_folder(folder_id, user.id)

    body = {
        "item": access.folder.to_dict(),
        "permission": access.permission.name,
        "children": [child.to_dict() for child in access.children],
        "files": [file.to_dict() for file in access.files],
        "breadcrumb": [crumb.to_dict() for crumb in get_breadcrumb(db.session, folder_id)],
    }
    if access.permission is AccessLevel.OWNER:
        public_share = get_public_share(folder_id)
        body["shared_users"] = [grant.to_dict() for grant in list_shared_users(folder_id)]
        body["public_share"] = public_share.to_dict() if public_share else None
    return jsonify(body)


@folders_bp.patch("/<int:folder_id>")
@jwt_required()
def update(folder_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}

    changes = {}
    if "name" in payload:
        changes["name"] = payload.get("name") or ""
    if "parent_id" in payload:
        changes["parent_id"] = parse_nullable_int(payload.get("parent_id"), "parent_id")

    folder = update_folder(folder_id, user.id, name=changes.get("name", UNSET), parent_id=changes.get("parent_id", UNSET))
    return jsonify({"item": folder.to_dict()})


@folders_bp.delete("/<int:folder_id>")
@jwt_required()
def delete(folder_id: int):
    user = current_user()
    result = delete_folder_and_contents(folder_id, user.id)
    return jsonify({"deleted": True, **result.to_dict()})
