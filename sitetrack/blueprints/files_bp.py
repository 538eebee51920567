"""
Files Blueprint — administrator document library.

  GET    /api/files                    – list documents (any account)
  POST   /api/files/upload             – multipart: title + file (admin)
  GET    /api/files/drive/<driveId>    – download through the API (admin)
  DELETE /api/files/drive/<driveId>    – remove from storage and library (admin)
"""

from flask import Blueprint, jsonify, request

from sitetrack.blueprints._streaming import proxy_download
from sitetrack.middleware.permission_required import require_admin
from sitetrack.schemas import FileUploadPayload
from sitetrack.services import file_service

files_bp = Blueprint("files_bp", __name__, url_prefix="/api/files")


@files_bp.route("", methods=["GET"])
def list_files():
    return jsonify([f.to_dict() for f in file_service.list_files()])


@files_bp.route("/upload", methods=["POST"])
@require_admin
def upload_file():
    payload = FileUploadPayload.from_payload(request.form)
    record = file_service.upload_file(payload.title, request.files.get("file"))
    return jsonify({"message": "File uploaded successfully", "file": record.to_dict()})


@files_bp.route("/drive/<string:drive_id>", methods=["GET"])
@require_admin
def download_file(drive_id):
    upstream, record = file_service.open_file(drive_id)
    return proxy_download(upstream, record.title, record.mime_type)


@files_bp.route("/drive/<string:drive_id>", methods=["DELETE"])
@require_admin
def delete_file(drive_id):
    file_service.delete_file(drive_id)
    return jsonify({"message": "File deleted successfully"})
