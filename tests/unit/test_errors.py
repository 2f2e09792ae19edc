"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

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


class TestErrorHierarchy:
    @pytest.mark.parametrize("cls,code", [
        (DecodeError, ErrorCode.DECODE_ERROR),
        (EncodeError, ErrorCode.ENCODE_ERROR),
        (StateError, ErrorCode.STATE_ERROR),
        (SubmissionError, ErrorCode.SUBMISSION_ERROR),
        (PersistenceError, ErrorCode.PERSISTENCE_ERROR),
    ])
    def test_codes(self, cls, code):
        err = cls("went wrong", context={"name": "a.png"})
        assert isinstance(err, ImgRelayError)
        assert err.code == code
        assert err.message == "went wrong"
        assert str(err) == "went wrong"
        assert err.context == {"name": "a.png"}

    def test_context_defaults_to_empty(self):
        assert DecodeError("x").context == {}

    def test_cause_is_chained(self):
        root = OSError("disk")
        err = DecodeError("Failed to read a.png", cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_repr_includes_code_and_context(self):
        text = repr(EncodeError("no data", context={"dimensions": "1x1"}))
        assert "EncodeError" in text
        assert "ENCODE_ERROR" in text
        assert "1x1" in text


class TestTransferError:
    def test_status_code(self):
        err = TransferError("Invalid preset", status_code=400, context={"url": "u"})
        assert err.status_code == 400
        assert err.context == {"status_code": 400, "url": "u"}
        assert err.code == ErrorCode.TRANSFER_ERROR

    def test_network_failure_has_no_status(self):
        err = TransferError("connection refused")
        assert err.status_code is None
        assert err.context["status_code"] is None

    def test_catchable_as_base(self):
        with pytest.raises(ImgRelayError):
            raise TransferError("upload failed", status_code=500)
