"""
Attachment packager — bundles a progress update's photos and video into one
ZIP archive and uploads it to Drive.

Pipeline (synchronous, one request):
    1. Count check: more than MAX_PHOTOS photos or MAX_VIDEOS videos fails
       before any archive work.
    2. Build the archive in memory (ZIP_DEFLATED, level 9), photos first,
       then the video, each under its original filename.
    3. Size check: compressed size over the limit fails; nothing is uploaded.
    4. Write the archive into a temporary directory, upload it, and remove
       the directory on every exit path.

Archive, size and upload failures surface as PackagingError; nothing is
retried.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone

from sitetrack.core.exceptions import (
    ArchiveTooLargeError,
    PackagingError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ARCHIVE_MIME_TYPE = "application/zip"
DEFAULT_MAX_PHOTOS = 10
DEFAULT_MAX_VIDEOS = 1
DEFAULT_MAX_BYTES = 100 * 1024 * 1024


@dataclass(frozen=True)
class Attachment:
    """One uploaded file held in memory."""

    filename: str
    data: bytes

    @classmethod
    def from_upload(cls, storage) -> Attachment:
        """Read a werkzeug FileStorage into an Attachment."""
        name = os.path.basename(storage.filename or "") or "attachment"
        return cls(filename=name, data=storage.read())


@dataclass(frozen=True)
class BundleRef:
    """Where an uploaded archive lives in external storage."""

    storage_id: str
    locator: str | None
    content_type: str
    filename: str
    uploaded_at: datetime
    size: int


def archive_filename(date_label: str) -> str:
    return f"progress_{date_label.replace(':', '-')}.zip"


def build_archive(attachments) -> bytes:
    """Compress attachments into a ZIP held in memory."""
    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for item in attachments:
                zf.writestr(item.filename, item.data)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
        raise PackagingError(f"Could not build attachment archive: {exc}") from exc
    return buf.getvalue()


def package(
    photos,
    videos,
    date_label: str,
    gateway,
    *,
    folder_id: str | None = None,
    max_photos: int = DEFAULT_MAX_PHOTOS,
    max_videos: int = DEFAULT_MAX_VIDEOS,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> BundleRef | None:
    """Archive and upload attachments; return None when there are none.

    Raises:
        ValidationError: too many photos or videos (checked first).
        ArchiveTooLargeError: compressed archive exceeds ``max_bytes``.
        PackagingError: archive or upload failure.
    """
    photos = list(photos or [])
    videos = list(videos or [])

    if len(photos) > max_photos:
        raise ValidationError(
            f"Max {max_photos} photos allowed", details={"photos": len(photos)}
        )
    if len(videos) > max_videos:
        raise ValidationError(
            f"Max {max_videos} video allowed", details={"video": len(videos)}
        )
    if not photos and not videos:
        return None

    data = build_archive(photos + videos)
    if len(data) > max_bytes:
        logger.warning(
            "Attachment archive rejected: %d bytes > %d", len(data), max_bytes,
            extra={"archive_bytes": len(data)},
        )
        raise ArchiveTooLargeError(len(data), max_bytes)

    filename = archive_filename(date_label)
    try:
        with tempfile.TemporaryDirectory(prefix="sitetrack-") as tmp_dir:
            tmp_path = os.path.join(tmp_dir, filename)
            with open(tmp_path, "wb") as fh:
                fh.write(data)
            meta = gateway.upload_file(tmp_path, filename, ARCHIVE_MIME_TYPE, folder_id)
    except (OSError, StorageError) as exc:
        raise PackagingError(f"Archive upload failed: {exc}") from exc

    logger.info(
        "Packaged %d photo(s) + %d video(s) into %s (%d bytes)",
        len(photos), len(videos), filename, len(data),
        extra={"archive_bytes": len(data)},
    )
    return BundleRef(
        storage_id=meta["id"],
        locator=meta.get("webViewLink"),
        content_type=ARCHIVE_MIME_TYPE,
        filename=filename,
        uploaded_at=datetime.now(timezone.utc),
        size=len(data),
    )
