from __future__ import annotations

from io import BytesIO
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .config import WebPOptions
from .errors import TranscodeError


class Transcoder(Protocol):
    def convert(self, data: bytes, options: WebPOptions) -> bytes:  # pragma: no cover - interface
        ...


def _prepare_mode(image: Image.Image) -> Image.Image:
    if image.mode in {"RGB", "RGBA"}:
        return image
    if image.mode in {"P", "PA", "LA"} or "transparency" in image.info:
        return image.convert("RGBA")
    return image.convert("RGB")


class PillowWebPTranscoder:
    """Encode raster images to WebP in memory.

    ``effort`` maps to Pillow's ``method`` (0-6).
    """

    def convert(self, data: bytes, options: WebPOptions) -> bytes:
        try:
            with Image.open(BytesIO(data)) as source:
                source.load()
                image = _prepare_mode(source)
                buffer = BytesIO()
                image.save(
                    buffer,
                    format="WEBP",
                    quality=options.quality,
                    method=max(0, min(options.effort, 6)),
                    lossless=options.lossless,
                )
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise TranscodeError(f"Cannot encode image as WebP: {exc}") from exc
        return buffer.getvalue()


__all__ = ["PillowWebPTranscoder", "Transcoder"]
