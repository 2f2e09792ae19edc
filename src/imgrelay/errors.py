"""Error hierarchy for imgrelay.

Every error class inherits from :class:`ImgRelayError`.  Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Pipeline errors never escape the scheduler: they are caught at the pass
boundary and turned into an ``ERROR`` state on the item.  ``message`` is
what ends up in :attr:`Item.error_message`, so keep it short.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error imgrelay can raise."""

    DECODE_ERROR = "DECODE_ERROR"
    ENCODE_ERROR = "ENCODE_ERROR"
    TRANSFER_ERROR = "TRANSFER_ERROR"
    STATE_ERROR = "STATE_ERROR"
    SUBMISSION_ERROR = "SUBMISSION_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class ImgRelayError(Exception):
    """Base exception for all imgrelay errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` identifying the error category.
    message:
        A short description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Transform errors
# ---------------------------------------------------------------------------

class DecodeError(ImgRelayError):
    """The source bytes could not be decoded into a pixel surface.

    Context keys: ``name``, ``media_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.DECODE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class EncodeError(ImgRelayError):
    """The encoder produced no output for the resized canvas.

    Context keys: ``name``, ``dimensions``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.ENCODE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Transfer errors
# ---------------------------------------------------------------------------

class TransferError(ImgRelayError):
    """The remote store rejected the upload or could not be reached.

    ``status_code`` is ``None`` for network-level failures where no
    response was received.

    Context keys: ``status_code``, ``url``.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = {"status_code": status_code}
        ctx.update(context or {})
        super().__init__(
            code=ErrorCode.TRANSFER_ERROR,
            message=message,
            context=ctx,
            cause=cause,
        )
        self.status_code: int | None = status_code


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class StateError(ImgRelayError):
    """An operation was attempted against an item in an incompatible status.

    Context keys: ``item_id``, ``current_state``, ``requested_state``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.STATE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class SubmissionError(ImgRelayError):
    """A submitted entry cannot become a pending item.

    Raised for non-image media types and for metadata-only placeholders.

    Context keys: ``name``, ``media_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SUBMISSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class PersistenceError(ImgRelayError):
    """The history store holds data that cannot be read back.

    Context keys: ``path``, ``reason``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PERSISTENCE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
