"""Configuration and fixed policy constants for imgrelay.

:class:`RelayConfig` is a plain dataclass that captures every tuneable knob
of the pipeline.  The resize/encode policy itself is *not* tuneable: the
module-level constants below are fixed and exposed only so that callers can
display them.

* :data:`MAX_SIZE` -- longest side for non-square images.
* :data:`SQUARE_SIZE` -- edge length for oversized square-like images.
* :data:`SQUARE_TOLERANCE` -- width/height difference below which an image
  counts as square-like.
* :data:`WEBP_QUALITY` -- output quality on a 0-1 scale.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Fixed output policy
# ---------------------------------------------------------------------------

MAX_SIZE: int = 800

SQUARE_SIZE: int = 800

SQUARE_TOLERANCE: int = 10

WEBP_QUALITY: float = 0.8

OUTPUT_FORMAT: str = "WEBP"

OUTPUT_MEDIA_TYPE: str = "image/webp"

OUTPUT_EXTENSION: str = ".webp"

DEFAULT_BASE_URL: str = "https://api.cloudinary.com/v1_1"

HISTORY_KEY: str = "imgrelay_history_v1"


def describe_policy() -> dict[str, Any]:
    """Return the fixed output policy as a display-friendly dict."""
    return {
        "max_size": MAX_SIZE,
        "square_size": SQUARE_SIZE,
        "square_tolerance": SQUARE_TOLERANCE,
        "quality": WEBP_QUALITY,
        "format": OUTPUT_FORMAT,
        "media_type": OUTPUT_MEDIA_TYPE,
    }


# ---------------------------------------------------------------------------
# Destination
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransferDestination:
    """Where encoded blobs are relayed to.

    Static for the lifetime of a process; there is no per-item override.
    """

    cloud_name: str
    upload_preset: str
    folder: str


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

_ENV_FIELDS: dict[str, str] = {
    "cloud_name": "IMGRELAY_CLOUD_NAME",
    "upload_preset": "IMGRELAY_UPLOAD_PRESET",
    "folder": "IMGRELAY_FOLDER",
    "base_url": "IMGRELAY_BASE_URL",
    "history_path": "IMGRELAY_HISTORY",
}


@dataclass
class RelayConfig:
    """Complete configuration for an ingestion pipeline.

    Parameters
    ----------
    cloud_name:
        Account name of the remote asset store.  Becomes the first path
        segment of the upload endpoint.
    upload_preset:
        Unsigned upload preset.  Masked in ``repr``.
    folder:
        Target folder on the remote store.
    base_url:
        API root URL.  Override for proxy or testing environments.
    timeout_seconds:
        HTTP timeout for the upload request.  ``None`` disables it, in which
        case a hung endpoint stalls the scheduler.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    accepted_media_prefix:
        Media-type prefix a submitted file must carry to become an item.
    history_path:
        Optional JSON file used to persist finished items between runs.
    metrics:
        Optional :class:`~imgrelay.observability.MetricsHook`.
    """

    # ── Destination ─────────────────────────────────────────────────────
    cloud_name: str = ""

    upload_preset: str = ""

    folder: str = ""

    # ── HTTP ────────────────────────────────────────────────────────────
    base_url: str = DEFAULT_BASE_URL

    timeout_seconds: float | None = 60.0

    http_proxy: str | None = None

    # ── Submission ──────────────────────────────────────────────────────
    accepted_media_prefix: str = "image/"

    # ── Persistence ─────────────────────────────────────────────────────
    history_path: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS, or target localhost for testing."
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if "/" in self.cloud_name:
            raise ValueError(f"cloud_name must not contain '/', got {self.cloud_name!r}")

    @property
    def destination(self) -> TransferDestination:
        return TransferDestination(
            cloud_name=self.cloud_name,
            upload_preset=self.upload_preset,
            folder=self.folder,
        )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> RelayConfig:
        """Build a config from ``IMGRELAY_*`` environment variables.

        Explicit *overrides* win over the environment; ``None`` overrides are
        ignored so CLI flags that were not given fall through.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for field_name, var in _ENV_FIELDS.items():
            if env.get(var):
                values[field_name] = env[var]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def __repr__(self) -> str:
        """Mask the upload preset to keep it out of logs."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "upload_preset":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"upload_preset='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"RelayConfig({', '.join(parts)})"
