"""Async HTTP client for the remote asset store's unsigned upload API.

One request per blob, no retries:

1. POST a multipart form to ``{base_url}/{cloud_name}/image/upload``.
2. On ``2xx`` -- return the ``secure_url`` from the JSON body.
3. On any other status -- raise :class:`TransferError` carrying the status
   code and the store's ``error.message`` (or ``"upload failed"``).
4. On a network failure -- raise :class:`TransferError` with no status code.
"""

from __future__ import annotations

import re
import time
from typing import Any

import httpx

from imgrelay.config import OUTPUT_EXTENSION, OUTPUT_MEDIA_TYPE, RelayConfig
from imgrelay.errors import TransferError
from imgrelay.observability import NoopMetricsHook, get_logger

log = get_logger("imgrelay.transfer")

_EXTENSION_RE = re.compile(r"\.[^/.]+$")

GENERIC_FAILURE_MESSAGE = "upload failed"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def public_id_for(name: str) -> str:
    """Strip the last extension from *name* to form the remote public id."""
    return _EXTENSION_RE.sub("", name)


def _error_message(response: httpx.Response) -> str:
    """Extract ``error.message`` from a structured error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return GENERIC_FAILURE_MESSAGE
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
    return GENERIC_FAILURE_MESSAGE


def _raise_for_status(response: httpx.Response, url: str) -> None:
    raise TransferError(
        message=_error_message(response),
        status_code=response.status_code,
        context={"url": url},
    )


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

class AsyncTransferClient:
    """Sends encoded blobs to the remote asset store.

    Parameters
    ----------
    config:
        A :class:`RelayConfig` supplying the destination and HTTP settings.
    http_client:
        Optional pre-built ``httpx.AsyncClient``; tests pass one wired to
        ``httpx.MockTransport``.  A client passed in is not closed by
        :meth:`close`.
    """

    def __init__(
        self,
        config: RelayConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._destination = config.destination
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._owns_client = http_client is None

        if http_client is None:
            proxy: httpx.URL | str | None = config.http_proxy
            http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(config.timeout_seconds),
                proxy=proxy,
            )
        self._client = http_client

    @property
    def upload_url(self) -> str:
        base = self._config.base_url.rstrip("/")
        return f"{base}/{self._destination.cloud_name}/image/upload"

    # -- public API --------------------------------------------------------

    async def upload(self, blob: bytes, suggested_name: str) -> str:
        """Upload *blob* and return its canonical remote URL.

        Parameters
        ----------
        blob:
            Encoded image bytes.
        suggested_name:
            Original display name; its extension is stripped to form the
            ``public_id``.  Collisions are the remote store's business.

        Raises
        ------
        TransferError
            On a non-success response, a response without ``secure_url``,
            or a network failure (``status_code`` is ``None``).
        """
        url = self.upload_url
        public_id = public_id_for(suggested_name)
        data: dict[str, Any] = {
            "upload_preset": self._destination.upload_preset,
            "folder": self._destination.folder,
            "public_id": public_id,
        }
        files = {"file": (f"{public_id}{OUTPUT_EXTENSION}", blob, OUTPUT_MEDIA_TYPE)}

        t0 = time.monotonic()
        try:
            response = await self._client.post(url, data=data, files=files)
        except httpx.HTTPError as exc:
            self._metrics.increment("imgrelay.uploads_total", tags={"status": "error"})
            log.warning(
                "Upload network error",
                extra={
                    "extra_fields": {
                        "op": "upload",
                        "url": url,
                        "public_id": public_id,
                        "error": str(exc),
                    }
                },
            )
            raise TransferError(
                message=str(exc) or type(exc).__name__,
                status_code=None,
                context={"url": url},
                cause=exc,
            ) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        status = str(response.status_code)
        self._metrics.increment("imgrelay.uploads_total", tags={"status": status})
        self._metrics.timing("imgrelay.upload_duration_ms", elapsed_ms, tags={"status": status})
        log.debug(
            "Upload response",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "url": url,
                    "public_id": public_id,
                    "status_code": response.status_code,
                    "bytes": len(blob),
                    "duration_ms": round(elapsed_ms, 1),
                }
            },
        )

        if not 200 <= response.status_code < 300:
            _raise_for_status(response, url)

        try:
            body = response.json()
        except ValueError:
            body = None
        secure_url = body.get("secure_url") if isinstance(body, dict) else None
        if not secure_url:
            raise TransferError(
                message="upload response missing secure_url",
                status_code=response.status_code,
                context={"url": url},
            )
        return str(secure_url)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncTransferClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
