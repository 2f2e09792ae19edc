"""TransformEngine - decode, resize and re-encode a source image.

Decoding and encoding are CPU-bound Pillow calls, so the engine runs them in
the default executor and only the coroutine wrapper touches the event loop.
"""

from __future__ import annotations

import asyncio
import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from imgrelay.config import OUTPUT_FORMAT, WEBP_QUALITY
from imgrelay.errors import DecodeError, EncodeError
from imgrelay.models import LiveSource, TransformResult
from imgrelay.observability import get_logger

from .geometry import resolve

log = get_logger("imgrelay.transform")


class TransformEngine:
    """Normalizes images to the fixed WebP output policy using Pillow.

    Parameters
    ----------
    quality:
        Output quality on a 0-1 scale.  Fixed by policy; the parameter exists
        so tests can observe what is passed to the encoder.
    logger:
        Optional logger instance.
    """

    def __init__(
        self,
        quality: float = WEBP_QUALITY,
        logger: logging.Logger | None = None,
    ) -> None:
        self.quality = quality
        self.logger = logger or log

    async def transform(self, source: LiveSource) -> TransformResult:
        """Decode *source*, resize it per policy and encode it as WebP.

        Raises
        ------
        DecodeError
            If the bytes cannot be read or decoded, or the image has no area.
        EncodeError
            If the encoder fails or produces no data.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.transform_sync, source)

    def transform_sync(self, source: LiveSource) -> TransformResult:
        """Blocking variant of :meth:`transform`."""
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise DecodeError(
                message=f"Failed to read {source.name}: {exc}",
                context={"name": source.name, "media_type": source.media_type},
                cause=exc,
            ) from exc

        img = self._decode(data, source)
        width, height = img.size
        if width <= 0 or height <= 0:
            raise DecodeError(
                message=f"Image {source.name} has no pixels",
                context={"name": source.name, "media_type": source.media_type},
            )

        target = resolve(width, height)
        if target != img.size:
            img = img.resize(target, Image.Resampling.LANCZOS)

        blob = self._encode(img, source.name)
        self.logger.debug(
            "Image transformed",
            extra={
                "extra_fields": {
                    "op": "transform",
                    "name": source.name,
                    "source_dimensions": f"{width}x{height}",
                    "dimensions": f"{target[0]}x{target[1]}",
                    "original_size": len(data),
                    "processed_size": len(blob),
                }
            },
        )
        return TransformResult(blob=blob, width=target[0], height=target[1])

    def _decode(self, data: bytes, source: LiveSource) -> Image.Image:
        """Open and fully load the image, honouring EXIF orientation."""
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            img = ImageOps.exif_transpose(img)
            return self._convert_color_mode(img)
        except (
            UnidentifiedImageError,
            OSError,
            SyntaxError,
            ValueError,
            Image.DecompressionBombError,
        ) as exc:
            raise DecodeError(
                message=f"Failed to decode image {source.name}",
                context={"name": source.name, "media_type": source.media_type},
                cause=exc,
            ) from exc

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Convert to a mode the WebP encoder accepts, keeping transparency.

        16-bit grayscale is scaled down to 8 bits first; a plain
        ``convert("RGB")`` would clamp it to white.
        """
        if img.mode in ("RGB", "RGBA"):
            return img
        if img.mode.startswith("I;16"):
            img = img.convert("I")
        if img.mode == "I":
            return img.point(lambda v: v * (1 / 256)).convert("L").convert("RGB")
        if img.mode == "P":
            has_alpha = "transparency" in img.info
            return img.convert("RGBA" if has_alpha else "RGB")
        if img.mode in ("LA", "PA"):
            return img.convert("RGBA")
        return img.convert("RGB")

    def _encode(self, img: Image.Image, name: str) -> bytes:
        output = io.BytesIO()
        try:
            img.save(output, format=OUTPUT_FORMAT, quality=round(self.quality * 100))
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(
                message=f"Failed to encode {name} as {OUTPUT_FORMAT}",
                context={"name": name, "dimensions": f"{img.width}x{img.height}"},
                cause=exc,
            ) from exc

        blob = output.getvalue()
        if not blob:
            raise EncodeError(
                message=f"Encoder produced no data for {name}",
                context={"name": name, "dimensions": f"{img.width}x{img.height}"},
            )
        return blob
