from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from ocrd.pipeline.errors import ErrorReason, PipelineError


def decode_image(data: bytes) -> Image.Image:
    """Decode *data* into a fully loaded RGB bitmap or fail with ``Invalid Image``."""
    if not data:
        raise PipelineError(ErrorReason.INVALID_IMAGE, "empty buffer")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, EOFError, ValueError) as exc:
        raise PipelineError(ErrorReason.INVALID_IMAGE, str(exc)) from exc


def supported_image_types() -> list[str]:
    """MIME types of every raster format Pillow can open."""
    Image.init()
    return sorted({mime for fmt, mime in Image.MIME.items() if fmt in Image.OPEN})
