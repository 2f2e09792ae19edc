"""Data models for the imgrelay pipeline.

The unit of work is :class:`Item`.  Its ``source`` is a tagged variant:
:class:`LiveSource` carries readable bytes and is the only kind that can be
processed; :class:`PlaceholderSource` carries metadata alone and appears
only on items restored from history.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Union

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ItemStatus(str, Enum):
    """Lifecycle states for an item tracked by the scheduler."""

    PENDING = "PENDING"
    """Submitted and waiting for the worker."""

    PROCESSING = "PROCESSING"
    """Being decoded, resized and encoded."""

    UPLOADING = "UPLOADING"
    """Encoded blob is being sent to the remote store."""

    COMPLETED = "COMPLETED"
    """Uploaded; ``remote_ref`` is set."""

    ERROR = "ERROR"
    """Failed; ``error_message`` is set."""

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.ERROR)

    @property
    def is_active(self) -> bool:
        return self in (ItemStatus.PROCESSING, ItemStatus.UPLOADING)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiveSource:
    """Handle to original binary content.

    Attributes
    ----------
    name:
        Display name, usually the original file name.
    size:
        Byte length of the content.
    media_type:
        MIME type, e.g. ``"image/png"``.
    opener:
        Zero-argument callable returning a fresh readable binary stream.
        Each read opens a new stream, so the source is never consumed.
    """

    name: str
    size: int
    media_type: str
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)

    def read_bytes(self) -> bytes:
        with self.opener() as stream:
            return stream.read()

    @classmethod
    def from_bytes(cls, name: str, data: bytes, media_type: str) -> LiveSource:
        return cls(
            name=name,
            size=len(data),
            media_type=media_type,
            opener=lambda: io.BytesIO(data),
        )


@dataclass(frozen=True)
class PlaceholderSource:
    """Metadata-only stand-in for a source whose bytes did not survive a restart."""

    name: str
    size: int
    media_type: str


Source = Union[LiveSource, PlaceholderSource]


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Item:
    """One unit of work tracked from submission to a terminal state.

    Only :class:`~imgrelay.pipeline.scheduler.IngestionScheduler` mutates
    an item; everyone else must treat it as read-only.

    Attributes
    ----------
    id:
        Opaque unique identifier assigned at submission.
    source:
        :class:`LiveSource` or :class:`PlaceholderSource`.
    status:
        Current :class:`ItemStatus`.
    progress:
        Advisory percentage (0-100).
    original_size:
        Byte length of the source, fixed at creation.
    processed_size:
        Byte length of the encoded blob.  Set from ``UPLOADING`` on.
    dimensions:
        Realized ``"WxH"`` string.  Set from ``UPLOADING`` on.
    remote_ref:
        Canonical URL returned by the remote store.  Set on ``COMPLETED``.
    error_message:
        Short failure cause.  Set on ``ERROR``.
    created_at / finished_at:
        UTC timestamps of submission and of reaching a terminal state.
    """

    id: str
    source: Source
    status: ItemStatus = ItemStatus.PENDING
    progress: int = 0
    original_size: int = 0
    processed_size: int | None = None
    dimensions: str | None = None
    remote_ref: str | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def is_live(self) -> bool:
        return isinstance(self.source, LiveSource)


# ---------------------------------------------------------------------------
# Transform output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransformResult:
    """Encoded output of the transform engine.

    Attributes
    ----------
    blob:
        Encoded image bytes.
    width / height:
        Realized pixel size of the output.
    """

    blob: bytes
    width: int
    height: int

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass
class SnapshotRecord:
    """Persistable view of a finished item.

    Only ``COMPLETED`` and ``ERROR`` records are ever written; anything else
    is rewritten as an interrupted error first.
    """

    id: str
    name: str
    size: int
    type: str
    status: ItemStatus
    remote_ref: str | None = None
    error_message: str | None = None
    processed_size: int | None = None
    dimensions: str | None = None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dict, omitting unset optionals."""
        data = asdict(self)
        data["status"] = self.status.value
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> SnapshotRecord:
        return cls(
            id=data["id"],
            name=data["name"],
            size=int(data.get("size", 0)),
            type=data.get("type") or "",
            status=ItemStatus(data["status"]),
            remote_ref=data.get("remote_ref"),
            error_message=data.get("error_message"),
            processed_size=data.get("processed_size"),
            dimensions=data.get("dimensions"),
        )
