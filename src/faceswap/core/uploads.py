"""Temporary upload handling for the swap endpoint.

This module isolates the transient-file lifecycle from the route handler:

- validate that exactly one ``face`` and one ``body`` file were sent
- copy each upload into the upload directory under a unique name
- delete those files again when the request is done

:func:`ingest_uploads` is an async context manager, so cleanup runs on every
exit path of the request (success, validation failure, remote error).  On
the success path the route leaves the context as soon as the remote job has
returned, which removes the inputs before the result is persisted.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from starlette.datastructures import UploadFile

from faceswap.core.errors import UnsupportedMediaTypeError, UploadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024

# Clients that cannot tell the type of a file send this generic value.
_GENERIC_CONTENT_TYPES = {"application/octet-stream"}


@dataclass(frozen=True)
class UploadedImage:
    """An uploaded file materialized on disk for the current request.

    Attributes:
        path: Location of the temporary file.
        field: Form field the file arrived in (``face`` or ``body``).
        size: File size in bytes.
    """

    path: Path
    field: str
    size: int


def pick_single_upload(files: Sequence[UploadFile] | None) -> UploadFile | None:
    """Return the only non-empty upload of a form field.

    Args:
        files: Files submitted under one field name, or ``None``.

    Returns:
        The upload, or ``None`` if the field was absent or empty.

    Raises:
        ValidationError: If more than one file was sent for the field.
    """
    if not files:
        return None
    if len(files) > 1:
        raise ValidationError("Only one face and one body image may be uploaded")

    upload = files[0]
    # Browsers submit an empty part with no filename for an untouched file input.
    if not upload.filename and not upload.size:
        return None
    return upload


def check_content_type(upload: UploadFile) -> None:
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if not content_type or content_type in _GENERIC_CONTENT_TYPES:
        return
    if not content_type.startswith("image/"):
        raise UnsupportedMediaTypeError()


async def save_upload(
    upload: UploadFile,
    field: str,
    uploads_dir: Path,
    max_bytes: int,
) -> UploadedImage:
    """Copy an upload into ``uploads_dir`` in chunks.

    Args:
        upload: Incoming multipart file.
        field: Form field name, used as the file name prefix.
        uploads_dir: Temporary upload directory (created if missing).
        max_bytes: Size limit for the file.

    Returns:
        The saved :class:`UploadedImage`.

    Raises:
        UploadTooLargeError: If the upload exceeds ``max_bytes``.
        ValidationError: If the upload is empty.
    """
    uploads_dir.mkdir(parents=True, exist_ok=True)
    path = uploads_dir / f"{field}_{uuid.uuid4().hex}"
    size = 0

    try:
        with open(path, "xb") as handle:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError(
                        f"Uploaded image exceeds the {max_bytes} byte limit"
                    )
                handle.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    if size == 0:
        path.unlink(missing_ok=True)
        raise ValidationError()

    logger.debug(f"Saved {field} upload to {path} ({size} bytes)")
    return UploadedImage(path=path, field=field, size=size)


def cleanup(images: Iterable[UploadedImage]) -> None:
    """Delete temporary upload files.

    Missing files are ignored and filesystem errors are logged, never raised,
    so this is safe to call while an earlier error is propagating.
    """
    for image in images:
        try:
            image.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete temporary upload {image.path}: {e}")


@asynccontextmanager
async def ingest_uploads(
    face_files: Sequence[UploadFile] | None,
    body_files: Sequence[UploadFile] | None,
    uploads_dir: Path,
    max_bytes: int,
) -> AsyncIterator[tuple[UploadedImage, UploadedImage]]:
    """Validate and materialize the face and body uploads for one request.

    Presence and content-type checks happen before anything is written, so
    a rejected request leaves nothing on disk.  Whatever was written is
    deleted when the context exits.

    Yields:
        ``(face, body)`` uploaded images.

    Raises:
        ValidationError: If either image is missing, duplicated, empty,
            too large, or not an image.
    """
    face_upload = pick_single_upload(face_files)
    body_upload = pick_single_upload(body_files)
    if face_upload is None or body_upload is None:
        raise ValidationError()

    check_content_type(face_upload)
    check_content_type(body_upload)

    saved: list[UploadedImage] = []
    try:
        saved.append(await save_upload(face_upload, "face", uploads_dir, max_bytes))
        saved.append(await save_upload(body_upload, "body", uploads_dir, max_bytes))
        yield saved[0], saved[1]
    finally:
        cleanup(saved)
        logger.debug(f"Cleaned up {len(saved)} temporary uploads")
