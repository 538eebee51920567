"""
Progress update service.

A site engineer submits a dated description with up to ten photos and one
video. The attachments are packaged and uploaded first; the record is only
written once the archive is safely in storage.
"""

from __future__ import annotations

import logging
import re

from flask import current_app
from sqlalchemy import select

from sitetrack.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
    TransitionError,
)
from sitetrack.integrations.drive_gateway import get_drive_gateway
from sitetrack.models import db
from sitetrack.models.records import STATUS_PENDING, Progress
from sitetrack.services import approval, packager
from sitetrack.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)

PROGRESS_ID_PREFIX = "Progress#"
_PROGRESS_ID_RE = re.compile(r"^Progress#(\d+)$")


def next_progress_id() -> str:
    """Return the next sequential business id (Progress#1, Progress#2, ...)."""
    last = db.session.execute(
        select(Progress.progress_id).order_by(Progress.id.desc()).limit(1)
    ).scalar()
    number = 1
    if last:
        match = _PROGRESS_ID_RE.match(last)
        if match:
            number = int(match.group(1)) + 1
    return f"{PROGRESS_ID_PREFIX}{number}"


def create_progress(payload, photos, videos, actor) -> Progress:
    """Package attachments, then persist a pending progress update."""
    cfg = current_app.config
    gateway = get_drive_gateway()
    bundle = packager.package(
        photos,
        videos,
        payload.date,
        gateway,
        folder_id=cfg.get("DRIVE_UPLOAD_FOLDER_ID"),
        max_photos=cfg.get("MAX_PHOTOS", packager.DEFAULT_MAX_PHOTOS),
        max_videos=cfg.get("MAX_VIDEOS", packager.DEFAULT_MAX_VIDEOS),
        max_bytes=cfg.get("MAX_ARCHIVE_BYTES", packager.DEFAULT_MAX_BYTES),
    )

    progress = Progress(
        progress_id=next_progress_id(),
        date=payload.day,
        description=payload.description,
        status=STATUS_PENDING,
        created_by=actor.id,
    )
    if bundle is not None:
        progress.attach_bundle(bundle)
    db.session.add(progress)
    try:
        commit_or_conflict("Progress update", "progress_id", progress.progress_id)
    except ConflictError:
        if bundle is not None:
            _discard_archive(gateway, bundle.storage_id)
        raise

    logger.info(
        "Progress %s submitted by %s (archive=%s)",
        progress.progress_id, actor.username, bundle.filename if bundle else None,
        extra={"record_type": "progress", "record_id": progress.id,
               "business_key": progress.progress_id, "user_id": actor.id},
    )
    return progress


def _discard_archive(gateway, storage_id: str) -> None:
    try:
        gateway.delete_file(storage_id)
    except StorageError as exc:
        logger.warning("Orphaned archive %s left in storage: %s", storage_id, exc)


def list_progress(user, start=None, end=None, status=None) -> list[Progress]:
    stmt = approval.visible_query(Progress, user, status)
    if start is not None:
        stmt = stmt.where(Progress.date >= start)
    if end is not None:
        stmt = stmt.where(Progress.date <= end)
    stmt = stmt.order_by(Progress.date.desc(), Progress.id.desc())
    return list(db.session.execute(stmt).scalars())


def get_progress(record_id: int, user) -> Progress:
    return approval.get_visible(Progress, record_id, user)


def update_description(record_id: int, description: str, actor) -> Progress:
    """Edit the description of the actor's own pending update."""
    progress = db.session.get(Progress, record_id)
    if progress is None:
        raise NotFoundError(Progress.RESOURCE, record_id)
    if progress.created_by != actor.id:
        raise AuthorizationError(actor.role, (Progress.CREATOR_ROLE,))
    if not progress.is_pending:
        raise TransitionError(
            Progress.RESOURCE,
            progress.status,
            message="Only pending progress updates can be edited",
        )
    progress.description = description
    db.session.commit()
    return progress


def open_archive(record_id: int, user):
    """Return ``(streaming response, filename, mime type)`` for the record's archive."""
    progress = approval.get_visible(Progress, record_id, user)
    if not progress.zip_drive_id:
        raise NotFoundError("Progress archive", progress.progress_id)
    upstream = get_drive_gateway().open_stream(progress.zip_drive_id)
    return upstream, progress.zip_filename, progress.zip_mime_type or packager.ARCHIVE_MIME_TYPE
