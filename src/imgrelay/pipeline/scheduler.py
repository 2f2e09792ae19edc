"""Single-worker ingestion scheduler.

:class:`IngestionScheduler` owns the ordered item collection and is the
only writer of item state.  It drives one item at a time through::

    PENDING -> PROCESSING -> UPLOADING -> COMPLETED
                    \\             \\
                     -> ERROR        -> ERROR

Scheduling is an explicit worker task woken by an :class:`asyncio.Event`.
Submissions and finished passes set the event; any number of wake-ups
collapse into one re-evaluation, so nothing queues up behind the gate.

Usage::

    async with AsyncTransferClient(config) as transfer:
        async with IngestionScheduler(TransformEngine(), transfer) as scheduler:
            scheduler.submit(sources)
            await scheduler.join()
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from imgrelay import persistence
from imgrelay.errors import ImgRelayError, StateError, SubmissionError
from imgrelay.models import Item, ItemStatus, LiveSource, SnapshotRecord
from imgrelay.observability import NoopMetricsHook, get_logger
from imgrelay.persistence import HistoryStore
from imgrelay.transfer import AsyncTransferClient
from imgrelay.transform import TransformEngine

from .state import ItemStateMachine

log = get_logger("imgrelay.scheduler")

Listener = Callable[[Item, ItemStatus], None]

FALLBACK_ERROR_MESSAGE = "processing failed"

# Advisory progress values at each stage.
PROGRESS_PROCESSING = 10
PROGRESS_UPLOADING = 50
PROGRESS_COMPLETED = 100
PROGRESS_FAILED = 0


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, ImgRelayError):
        message = exc.message
    else:
        message = str(exc)
    return message or FALLBACK_ERROR_MESSAGE


class IngestionScheduler:
    """Drives submitted items through transform and transfer, one at a time.

    Parameters
    ----------
    engine:
        A :class:`TransformEngine` (or anything with an async
        ``transform(source)`` returning a ``TransformResult``).
    transfer:
        An :class:`AsyncTransferClient` (or anything with an async
        ``upload(blob, suggested_name)`` returning a URL).
    metrics:
        Optional :class:`~imgrelay.observability.MetricsHook`.
    history:
        Optional :class:`~imgrelay.persistence.HistoryStore`.  When set, the
        snapshot of finished items is saved after every terminal transition
        and after :meth:`clear_finished`.
    id_factory:
        Callable producing item ids.  Defaults to ``uuid4().hex``.
    """

    def __init__(
        self,
        engine: TransformEngine,
        transfer: AsyncTransferClient,
        *,
        metrics: Any | None = None,
        history: HistoryStore | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._engine = engine
        self._transfer = transfer
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._history = history
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

        self._items: list[Item] = []
        self._machines: dict[str, ItemStateMachine] = {}
        self._listeners: list[Listener] = []

        # Concurrency gate: True while a pass is in flight.
        self._busy = False
        self._wake = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task | None = None
        self._closing = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[Item, ...]:
        """All items in insertion order."""
        return tuple(self._items)

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def get(self, item_id: str) -> Item | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def counts(self) -> dict[ItemStatus, int]:
        result = {status: 0 for status in ItemStatus}
        for item in self._items:
            result[item.status] += 1
        return result

    def remote_refs(self, newest_first: bool = True) -> list[str]:
        """Remote references of completed items."""
        ordered = reversed(self._items) if newest_first else iter(self._items)
        return [
            item.remote_ref
            for item in ordered
            if item.status == ItemStatus.COMPLETED and item.remote_ref
        ]

    def snapshot(self, include_in_flight: bool = False) -> list[SnapshotRecord]:
        """Persistable records for the current collection.

        See :func:`imgrelay.persistence.snapshot`.
        """
        return persistence.snapshot(self._items, include_in_flight=include_in_flight)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener(item, previous_status)* on every state transition.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, item: Item, previous: ItemStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(item, previous)
            except Exception as exc:
                log.warning(
                    "State listener raised",
                    extra={
                        "extra_fields": {
                            "op": "publish",
                            "item_id": item.id,
                            "status": item.status.value,
                            "error": repr(exc),
                        }
                    },
                )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, sources: Iterable[LiveSource]) -> list[Item]:
        """Append a batch of sources as ``PENDING`` items and wake the worker.

        The batch is validated as a whole before any item is created.

        Raises
        ------
        SubmissionError
            If any entry is not a :class:`LiveSource`.
        """
        batch = list(sources)
        for source in batch:
            if not isinstance(source, LiveSource):
                raise SubmissionError(
                    message="Only live sources can be submitted",
                    context={
                        "name": getattr(source, "name", None),
                        "media_type": getattr(source, "media_type", None),
                    },
                )

        created: list[Item] = []
        for source in batch:
            item = Item(
                id=self._id_factory(),
                source=source,
                original_size=source.size,
            )
            self._items.append(item)
            self._machines[item.id] = ItemStateMachine(item.id)
            created.append(item)
            log.debug(
                "Item submitted",
                extra={
                    "extra_fields": {
                        "op": "submit",
                        "item_id": item.id,
                        "name": source.name,
                        "size": source.size,
                        "media_type": source.media_type,
                    }
                },
            )

        if created:
            self._metrics.increment("imgrelay.items_submitted_total", len(created))
            self._idle.clear()
            self._wake.set()
        return created

    def restore_history(self) -> list[Item]:
        """Load stored records as placeholder items ahead of current ones.

        Records whose id is already present are skipped.  Returns the items
        that were added.
        """
        if self._history is None:
            return []
        known = {item.id for item in self._items}
        restored = [
            item for item in persistence.restore(self._history.load())
            if item.id not in known
        ]
        for item in restored:
            self._machines[item.id] = ItemStateMachine(item.id, item.status)
        self._items[:0] = restored
        return restored

    def clear_finished(self) -> int:
        """Remove ``COMPLETED`` and ``ERROR`` items; returns how many."""
        kept = [item for item in self._items if not item.status.is_terminal]
        removed = len(self._items) - len(kept)
        for item in self._items:
            if item.status.is_terminal:
                self._machines.pop(item.id, None)
        self._items = kept
        if removed:
            self.save_history()
        return removed

    # ------------------------------------------------------------------
    # Driving loop
    # ------------------------------------------------------------------

    def _next_pending(self) -> Item | None:
        for item in self._items:
            if item.status == ItemStatus.PENDING:
                return item
        return None

    async def drive(self) -> Item | None:
        """Run at most one pass.

        Returns the item that was driven to a terminal state, or ``None``
        when the gate is held or nothing is pending.  Safe to call
        redundantly: a call made while a pass is in flight is a no-op.
        """
        if self._busy:
            return None
        item = self._next_pending()
        if item is None:
            self._idle.set()
            return None

        # No await between the check above and taking the gate.
        self._busy = True
        try:
            await self._run_pass(item)
        except Exception as exc:
            log.error(
                "Pass aborted",
                extra={
                    "extra_fields": {
                        "op": "pass",
                        "item_id": item.id,
                        "status": item.status.value,
                        "error": repr(exc),
                    }
                },
                exc_info=True,
            )
            if item.status.is_active:
                self._fail(item, exc, stage="pass")
        finally:
            self._busy = False
            self._wake.set()
        return item

    async def _run_pass(self, item: Item) -> None:
        self._transition(item, ItemStatus.PROCESSING, progress=PROGRESS_PROCESSING)

        t0 = time.monotonic()
        try:
            if not isinstance(item.source, LiveSource):
                raise StateError(
                    message="cannot process restored item",
                    context={"item_id": item.id, "current_state": item.status.value},
                )
            result = await self._engine.transform(item.source)
        except Exception as exc:
            self._fail(item, exc, stage="transform")
            return
        self._metrics.timing(
            "imgrelay.transform_duration_ms", (time.monotonic() - t0) * 1000
        )

        self._transition(
            item,
            ItemStatus.UPLOADING,
            progress=PROGRESS_UPLOADING,
            processed_size=len(result.blob),
            dimensions=result.dimensions,
        )

        try:
            remote_ref = await self._transfer.upload(result.blob, item.source.name)
            if not remote_ref:
                raise StateError(
                    message="upload returned no remote reference",
                    context={"item_id": item.id, "current_state": item.status.value},
                )
        except Exception as exc:
            self._fail(item, exc, stage="upload")
            return

        self._transition(
            item,
            ItemStatus.COMPLETED,
            progress=PROGRESS_COMPLETED,
            remote_ref=remote_ref,
        )
        self._metrics.increment("imgrelay.items_completed_total")
        self._metrics.gauge(
            "imgrelay.bytes_saved", item.original_size - (item.processed_size or 0)
        )
        log.info(
            "Item completed",
            extra={
                "extra_fields": {
                    "op": "pass",
                    "item_id": item.id,
                    "name": item.source.name,
                    "dimensions": item.dimensions,
                    "original_size": item.original_size,
                    "processed_size": item.processed_size,
                    "remote_ref": remote_ref,
                }
            },
        )

    def _fail(self, item: Item, exc: Exception, stage: str) -> None:
        message = _error_message(exc)
        self._metrics.increment("imgrelay.items_failed_total", tags={"stage": stage})
        log.warning(
            "Item failed",
            extra={
                "extra_fields": {
                    "op": "pass",
                    "item_id": item.id,
                    "name": item.source.name,
                    "stage": stage,
                    "error": message,
                    "error_type": type(exc).__name__,
                }
            },
        )
        self._transition(
            item,
            ItemStatus.ERROR,
            progress=PROGRESS_FAILED,
            error_message=message,
        )

    def _transition(self, item: Item, new_status: ItemStatus, **fields: Any) -> None:
        """Apply a state change and its field updates, then publish it."""
        previous = self._machines[item.id].transition(new_status)
        item.status = new_status
        for name, value in fields.items():
            setattr(item, name, value)
        if new_status.is_terminal:
            item.finished_at = datetime.now(timezone.utc)

        log.debug(
            "Item transition",
            extra={
                "extra_fields": {
                    "op": "transition",
                    "item_id": item.id,
                    "from": previous.value,
                    "to": new_status.value,
                    "progress": item.progress,
                }
            },
        )
        self._publish(item, previous)
        if new_status.is_terminal:
            self.save_history()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def save_history(self, include_in_flight: bool = False) -> None:
        """Write the snapshot to the history store, if one is configured.

        Any exception from the store is logged and swallowed; a broken store
        never fails an item or stops the worker.
        """
        if self._history is None:
            return
        try:
            self._history.save(self.snapshot(include_in_flight=include_in_flight))
        except Exception as exc:
            log.warning(
                "Failed to save history",
                extra={
                    "extra_fields": {
                        "op": "save_history",
                        "error": repr(exc),
                        "error_type": type(exc).__name__,
                    }
                },
            )

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background worker on the running event loop."""
        if self.running:
            return
        self._closing = False
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="imgrelay-scheduler"
        )
        self._wake.set()

    async def _run(self) -> None:
        try:
            while not self._closing:
                await self._wake.wait()
                self._wake.clear()
                while not self._closing and await self.drive() is not None:
                    pass
        finally:
            # Release joiners even when stopped with items still pending.
            self._idle.set()

    async def join(self) -> None:
        """Wait until no item is pending or in flight.

        Without a running worker, the passes are driven inline.  Returns
        early, with items possibly still pending, if the worker is stopped
        without draining.
        """
        if not self.running:
            while await self.drive() is not None:
                pass
            return
        await self._idle.wait()

    async def stop(self, drain: bool = False) -> None:
        """Stop the worker after the in-flight pass, if any, finishes.

        Parameters
        ----------
        drain:
            Process every pending item before stopping.
        """
        if drain:
            await self.join()
        self._closing = True
        self._wake.set()
        if self._worker is not None:
            await self._worker
            self._worker = None

    async def __aenter__(self) -> IngestionScheduler:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
