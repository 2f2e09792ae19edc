"""Snapshot and history persistence for finished items.

Binary content cannot survive a restart, so only the metadata of finished
items is stored.  In-flight items are either left out or, when asked for,
rewritten as interrupted errors.  Restored items carry a
:class:`~imgrelay.models.PlaceholderSource` and are never processed again.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from imgrelay.config import HISTORY_KEY
from imgrelay.errors import PersistenceError
from imgrelay.models import Item, ItemStatus, PlaceholderSource, SnapshotRecord

INTERRUPTED_MESSAGE = "interrupted"


# ---------------------------------------------------------------------------
# Snapshot / restore
# ---------------------------------------------------------------------------

def snapshot(items: Iterable[Item], include_in_flight: bool = False) -> list[SnapshotRecord]:
    """Build persistable records for *items*, in order.

    Parameters
    ----------
    items:
        Items in insertion order.
    include_in_flight:
        When ``True``, ``PENDING``/``PROCESSING``/``UPLOADING`` items are
        included as ``ERROR`` records with message ``"interrupted"``.
        Otherwise they are skipped.
    """
    records: list[SnapshotRecord] = []
    for item in items:
        terminal = item.status.is_terminal
        if not terminal and not include_in_flight:
            continue
        records.append(
            SnapshotRecord(
                id=item.id,
                name=item.source.name,
                size=item.original_size,
                type=item.source.media_type,
                status=item.status if terminal else ItemStatus.ERROR,
                remote_ref=item.remote_ref if item.status == ItemStatus.COMPLETED else None,
                error_message=item.error_message if terminal else INTERRUPTED_MESSAGE,
                processed_size=item.processed_size,
                dimensions=item.dimensions,
            )
        )
    return records


def restore(records: Iterable[SnapshotRecord]) -> list[Item]:
    """Rebuild placeholder items from stored records.

    A record with a non-terminal status, or a ``COMPLETED`` record without
    a remote reference, cannot be trusted and is forced to an interrupted
    ``ERROR``.
    """
    items: list[Item] = []
    for record in records:
        status = record.status
        error_message = record.error_message
        remote_ref = record.remote_ref
        if not status.is_terminal or (status == ItemStatus.COMPLETED and not remote_ref):
            status = ItemStatus.ERROR
            error_message = INTERRUPTED_MESSAGE
            remote_ref = None
        items.append(
            Item(
                id=record.id,
                source=PlaceholderSource(
                    name=record.name,
                    size=record.size,
                    media_type=record.type,
                ),
                status=status,
                progress=100 if status == ItemStatus.COMPLETED else 0,
                original_size=record.size,
                processed_size=record.processed_size,
                dimensions=record.dimensions,
                remote_ref=remote_ref,
                error_message=error_message if status == ItemStatus.ERROR else None,
            )
        )
    return items


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@runtime_checkable
class HistoryStore(Protocol):
    """Key-value blob store holding the snapshot list."""

    def load(self) -> list[SnapshotRecord]:
        ...

    def save(self, records: list[SnapshotRecord]) -> None:
        ...


class MemoryHistoryStore:
    """In-process store, mainly for tests and embedding."""

    def __init__(self, records: list[SnapshotRecord] | None = None) -> None:
        self._data: list[dict] = [r.to_dict() for r in records or []]

    def load(self) -> list[SnapshotRecord]:
        return [SnapshotRecord.from_dict(d) for d in self._data]

    def save(self, records: list[SnapshotRecord]) -> None:
        self._data = [r.to_dict() for r in records]


class JsonFileHistoryStore:
    """JSON file holding ``{key: [record, ...]}``.

    Other keys in the file are preserved on save.  Writes go through a
    temporary file and :func:`os.replace` so a crash never leaves a
    half-written history.

    Parameters
    ----------
    path:
        Location of the JSON file.  A missing file loads as empty history.
    key:
        Key under which the records are stored.
    """

    def __init__(self, path: str | Path, key: str = HISTORY_KEY) -> None:
        self.path = Path(path).expanduser()
        self.key = key

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise PersistenceError(
                message=f"Cannot read history file {self.path}",
                context={"path": str(self.path), "reason": str(exc)},
                cause=exc,
            ) from exc
        if not isinstance(data, dict):
            raise PersistenceError(
                message=f"History file {self.path} is not a JSON object",
                context={"path": str(self.path), "reason": "not_an_object"},
            )
        return data

    def load(self) -> list[SnapshotRecord]:
        raw = self._read_all().get(self.key, [])
        try:
            return [SnapshotRecord.from_dict(entry) for entry in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                message=f"History file {self.path} holds malformed records",
                context={"path": str(self.path), "reason": str(exc)},
                cause=exc,
            ) from exc

    def save(self, records: list[SnapshotRecord]) -> None:
        data = self._read_all()
        data[self.key] = [r.to_dict() for r in records]

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
