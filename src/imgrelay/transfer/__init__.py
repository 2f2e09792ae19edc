"""Transfer of encoded blobs to the remote asset store."""

from .client import AsyncTransferClient, public_id_for

__all__ = [
    "AsyncTransferClient",
    "public_id_for",
]
