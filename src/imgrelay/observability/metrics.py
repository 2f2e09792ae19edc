"""Metrics hook protocol and the silent default.

The scheduler and the transfer client report through a single hook object.
Nothing is recorded unless ``RelayConfig(metrics=...)`` (or the scheduler's
``metrics=`` argument) supplies a backend; :class:`NoopMetricsHook` stands
in otherwise.

Metric names and tags:

==================================  =======  ==================================
name                                kind     tags
==================================  =======  ==================================
``imgrelay.items_submitted_total``  counter  (value is the batch size)
``imgrelay.items_completed_total``  counter
``imgrelay.items_failed_total``     counter  ``stage``: transform/upload/pass
``imgrelay.transform_duration_ms``  timing
``imgrelay.upload_duration_ms``     timing   ``status``: HTTP status code
``imgrelay.uploads_total``          counter  ``status``: HTTP code or "error"
``imgrelay.bytes_saved``            gauge    (original minus encoded size)
==================================  =======  ==================================
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """What a metrics backend must provide.

    *tags* is ``None`` or a flat ``str -> str`` mapping, e.g.
    ``{"stage": "upload"}`` or ``{"status": "400"}``.
    """

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        ...

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        ...

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        ...


class NoopMetricsHook:
    """Discards every data point."""

    __slots__ = ()

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        pass

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass
