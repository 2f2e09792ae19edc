"""Ingestion pipeline: submission filtering, item state machine, scheduler.

Exports
-------
IngestionScheduler
    Single-worker scheduler driving items through transform and transfer.
ItemStateMachine
    Enforces forward-only item status transitions.
source_from_bytes / source_from_path / sources_from_paths
    Turn raw files into live sources, rejecting non-images.
is_image_media_type
    Media-type check used by the submission helpers.
"""

from .scheduler import IngestionScheduler
from .state import ItemStateMachine
from .submission import (
    is_image_media_type,
    source_from_bytes,
    source_from_path,
    sources_from_paths,
)

__all__ = [
    "IngestionScheduler",
    "ItemStateMachine",
    "is_image_media_type",
    "source_from_bytes",
    "source_from_path",
    "sources_from_paths",
]
