"""imgrelay -- normalize images to WebP and relay them to a remote asset store.

Public re-exports
-----------------

* **Pipeline:** :class:`IngestionScheduler`, :class:`TransformEngine`,
  :class:`AsyncTransferClient`, :func:`resolve`
* **Configuration:** :class:`RelayConfig` and the fixed policy constants
* **Errors:** every :class:`ImgRelayError` subclass and :class:`ErrorCode`
* **Models:** :class:`Item`, :class:`ItemStatus`, source variants, snapshots

Usage::

    import asyncio
    from imgrelay import (
        AsyncTransferClient, IngestionScheduler, RelayConfig,
        TransformEngine, sources_from_paths,
    )

    async def main():
        config = RelayConfig(cloud_name="demo", upload_preset="unsigned", folder="products")
        sources, _ = sources_from_paths(["photo.png"])
        async with AsyncTransferClient(config) as transfer:
            async with IngestionScheduler(TransformEngine(), transfer) as scheduler:
                scheduler.submit(sources)
                await scheduler.join()
                print(scheduler.remote_refs())

    asyncio.run(main())
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from imgrelay.config import (
    MAX_SIZE,
    OUTPUT_FORMAT,
    OUTPUT_MEDIA_TYPE,
    SQUARE_SIZE,
    SQUARE_TOLERANCE,
    WEBP_QUALITY,
    RelayConfig,
    TransferDestination,
    describe_policy,
)

# ── Errors ──────────────────────────────────────────────────────────────
from imgrelay.errors import (
    DecodeError,
    EncodeError,
    ErrorCode,
    ImgRelayError,
    PersistenceError,
    StateError,
    SubmissionError,
    TransferError,
)

# ── Models ──────────────────────────────────────────────────────────────
from imgrelay.models import (
    Item,
    ItemStatus,
    LiveSource,
    PlaceholderSource,
    SnapshotRecord,
    TransformResult,
)

# ── Persistence ─────────────────────────────────────────────────────────
from imgrelay.persistence import (
    HistoryStore,
    JsonFileHistoryStore,
    MemoryHistoryStore,
    restore,
    snapshot,
)

# ── Pipeline ────────────────────────────────────────────────────────────
from imgrelay.pipeline import (
    IngestionScheduler,
    ItemStateMachine,
    source_from_bytes,
    source_from_path,
    sources_from_paths,
)
from imgrelay.transfer import AsyncTransferClient
from imgrelay.transform import TransformEngine, resolve

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "IngestionScheduler",
    "ItemStateMachine",
    "TransformEngine",
    "AsyncTransferClient",
    "resolve",
    "source_from_bytes",
    "source_from_path",
    "sources_from_paths",
    # Configuration
    "RelayConfig",
    "TransferDestination",
    "describe_policy",
    "MAX_SIZE",
    "SQUARE_SIZE",
    "SQUARE_TOLERANCE",
    "WEBP_QUALITY",
    "OUTPUT_FORMAT",
    "OUTPUT_MEDIA_TYPE",
    # Errors
    "ImgRelayError",
    "ErrorCode",
    "DecodeError",
    "EncodeError",
    "TransferError",
    "StateError",
    "SubmissionError",
    "PersistenceError",
    # Models
    "Item",
    "ItemStatus",
    "LiveSource",
    "PlaceholderSource",
    "SnapshotRecord",
    "TransformResult",
    # Persistence
    "HistoryStore",
    "JsonFileHistoryStore",
    "MemoryHistoryStore",
    "snapshot",
    "restore",
]
