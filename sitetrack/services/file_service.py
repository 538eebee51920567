"""
Administrator document library.

Uploaded documents live in the Drive admin folder; the database keeps only
the title, storage id and content type. Downloads are proxied so the caller
never needs Drive credentials.
"""

from __future__ import annotations

import logging
import os
import tempfile

from flask import current_app
from sqlalchemy import select

from sitetrack.core.exceptions import NotFoundError, StorageError, ValidationError
from sitetrack.integrations.drive_gateway import get_drive_gateway
from sitetrack.models import db
from sitetrack.models.library import UploadedFile
from sitetrack.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def list_files() -> list[UploadedFile]:
    stmt = select(UploadedFile).order_by(UploadedFile.uploaded_at.desc(), UploadedFile.id.desc())
    return list(db.session.execute(stmt).scalars())


def _get_by_drive_id(drive_id: str) -> UploadedFile:
    record = db.session.execute(
        select(UploadedFile).where(UploadedFile.drive_id == drive_id)
    ).scalar_one_or_none()
    if record is None:
        raise NotFoundError("File", drive_id)
    return record


def upload_file(title: str, upload) -> UploadedFile:
    """Push a werkzeug FileStorage to the admin folder and record it."""
    if upload is None or not upload.filename:
        raise ValidationError("Title and file are required", details={"file": "required"})

    original_name = os.path.basename(upload.filename)
    mime_type = upload.mimetype or DEFAULT_MIME_TYPE
    gateway = get_drive_gateway()

    with tempfile.TemporaryDirectory(prefix="sitetrack-") as tmp_dir:
        tmp_path = os.path.join(tmp_dir, original_name)
        upload.save(tmp_path)
        meta = gateway.upload_file(
            tmp_path,
            original_name,
            mime_type,
            current_app.config.get("DRIVE_ADMIN_FOLDER_ID"),
        )

    record = UploadedFile(
        title=title,
        drive_id=meta["id"],
        mime_type=mime_type,
        url=meta.get("webViewLink"),
    )
    db.session.add(record)
    commit_or_conflict("File", "drive_id", meta["id"])
    logger.info("Admin file %r uploaded as %s", title, record.drive_id)
    return record


def open_file(drive_id: str):
    """Return ``(streaming response, record)`` for a library document."""
    record = _get_by_drive_id(drive_id)
    return get_drive_gateway().open_stream(drive_id), record


def delete_file(drive_id: str) -> None:
    """Remove the document from Drive, then from the library."""
    record = _get_by_drive_id(drive_id)
    try:
        get_drive_gateway().delete_file(drive_id)
    except StorageError as exc:
        if exc.status_code != 404:
            raise
        logger.warning("Drive file %s already gone; removing library entry", drive_id)
    db.session.delete(record)
    db.session.commit()
    logger.info("Admin file %s deleted", drive_id)
