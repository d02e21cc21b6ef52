from __future__ import annotations

import io

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from ..access.gate import get_accessible_file
from ..common.errors import ValidationError
from ..common.identity import current_user
from ..common.params import parse_nullable_int
from ..common.tree import list_files_for_owner
from ..extensions import db
from .service import create_file, delete_file, move_file, read_file


files_bp = Blueprint("files", __name__, url_prefix="/files")


@files_bp.get("")
@jwt_required()
def list_files():
    user = current_user()
    files = list_files_for_owner(db.session, user.id)
    return jsonify({"items": [file.to_dict() for file in files]})


@files_bp.post("/upload")
@jwt_required()
def upload_file():
    user = current_user()

    file_obj = request.files.get("file")
    if file_obj is None:
        raise ValidationError("Multipart field 'file' is required.", code="INVALID_FILE")

    folder_id = parse_nullable_int(request.form.get("folder_id"), "folder_id")
    file = create_file(user.id, file_obj.filename or "", file_obj.read(), file_obj.mimetype, folder_id)
    return jsonify({"item": file.to_dict()}), 201


@files_bp.get("/<int:file_id>")
@jwt_required()
def details(file_id: int):
    user = current_user()
    access = get_accessible_file(file_id, user.id)
    return jsonify({"item": access.file.to_dict(), "permission": access.permission.name})


@files_bp.get("/<int:file_id>/download")
@jwt_required()
def download(file_id: int):
    user = current_user()
    file, data = read_file(file_id, user.id)
    return send_file(io.BytesIO(data), as_attachment=True, download_name=file.name, mimetype=file.mime_type)


@files_bp.patch("/<int:file_id>/move")
@jwt_required()
def move(file_id: int):
    user = current_user()
    payload = request.get_json(silent=True) or {}
    if "folder_id" not in payload:
        raise ValidationError("folder_id is required (use null to unfile).")

    file = move_file(file_id, user.id, parse_nullable_int(payload.get("folder_id"), "folder_id"))
    return jsonify({"item": file.to_dict()})


@files_bp.delete("/<int:file_id>")
@jwt_required()
def delete(file_id: int):
    user = current_user()
    result = delete_file(file_id, user.id)
    return jsonify({"deleted": True, **result.to_dict()})
