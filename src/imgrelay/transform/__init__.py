"""Image normalization: target-size policy and the WebP transform engine.

Exports
-------
resolve
    Compute the target size for a source image.
is_square_like
    Square-like classification used by :func:`resolve`.
TransformEngine
    Decode, resize and encode a source with Pillow.
"""

from .engine import TransformEngine
from .geometry import is_square_like, resolve

__all__ = [
    "TransformEngine",
    "is_square_like",
    "resolve",
]
