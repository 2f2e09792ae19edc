"""Submission filtering: turn raw files into live sources.

Only entries whose media type is an image kind become sources.  The media
type is sniffed from magic bytes first and falls back to the file
extension.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable
from functools import partial
from pathlib import Path

from imgrelay.errors import SubmissionError
from imgrelay.models import LiveSource

# Map of magic bytes to MIME types for sniffing.
_MAGIC_BYTES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),  # RIFF....WEBP
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
]

_SNIFF_BYTES = 16

IMAGE_PREFIX = "image/"


def sniff_media_type(data: bytes) -> str | None:
    """Detect an image MIME type from the first bytes of *data*."""
    for magic, mime in _MAGIC_BYTES:
        if data[:len(magic)] == magic:
            if magic == b"RIFF" and data[8:12] != b"WEBP":
                continue
            return mime
    return None


def guess_media_type(name: str, head: bytes = b"") -> str:
    """Best-effort media type for a file name and its leading bytes."""
    mime = sniff_media_type(head) if head else None
    if not mime:
        mime, _ = mimetypes.guess_type(name)
    return mime or "application/octet-stream"


def is_image_media_type(media_type: str | None, prefix: str = IMAGE_PREFIX) -> bool:
    return bool(media_type) and media_type.lower().startswith(prefix)


def source_from_bytes(
    name: str,
    data: bytes,
    media_type: str | None = None,
    prefix: str = IMAGE_PREFIX,
) -> LiveSource:
    """Wrap in-memory bytes as a live source.

    Raises
    ------
    SubmissionError
        If the (given or detected) media type is not an image kind.
    """
    mime = media_type or guess_media_type(name, data[:_SNIFF_BYTES])
    if not is_image_media_type(mime, prefix):
        raise SubmissionError(
            message=f"{name} is not an image ({mime})",
            context={"name": name, "media_type": mime},
        )
    return LiveSource.from_bytes(name, data, mime)


def source_from_path(path: str | Path, prefix: str = IMAGE_PREFIX) -> LiveSource:
    """Wrap a file on disk as a live source without reading all of it.

    Raises
    ------
    SubmissionError
        If the file is missing or its media type is not an image kind.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise SubmissionError(
            message=f"File not found: {path}",
            context={"name": str(path)},
        )
    with file_path.open("rb") as fh:
        head = fh.read(_SNIFF_BYTES)
    mime = guess_media_type(file_path.name, head)
    if not is_image_media_type(mime, prefix):
        raise SubmissionError(
            message=f"{file_path.name} is not an image ({mime})",
            context={"name": file_path.name, "media_type": mime},
        )
    return LiveSource(
        name=file_path.name,
        size=file_path.stat().st_size,
        media_type=mime,
        opener=partial(file_path.open, "rb"),
    )


def sources_from_paths(
    paths: Iterable[str | Path],
    prefix: str = IMAGE_PREFIX,
) -> tuple[list[LiveSource], list[SubmissionError]]:
    """Split *paths* into accepted sources and rejections, preserving order."""
    accepted: list[LiveSource] = []
    rejected: list[SubmissionError] = []
    for path in paths:
        try:
            accepted.append(source_from_path(path, prefix))
        except SubmissionError as exc:
            rejected.append(exc)
    return accepted, rejected
