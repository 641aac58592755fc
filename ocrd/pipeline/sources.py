from __future__ import annotations

import base64
import binascii

from ocrd.pipeline.egress import ImageFetcher
from ocrd.pipeline.errors import ErrorReason, PipelineError
from ocrd.pipeline.models import Base64Source, BytesSource, ImageSource, UrlSource


class SourceResolver:
    """Turns an ``ImageSource`` into the raw bytes of an encoded image."""

    def __init__(self, fetcher: ImageFetcher) -> None:
        self._fetcher = fetcher

    async def resolve(self, source: ImageSource) -> bytes:
        if isinstance(source, BytesSource):
            # Empty bytes are left for the decoder to reject
            return source.data

        if isinstance(source, Base64Source):
            try:
                return base64.b64decode(source.data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise PipelineError(ErrorReason.INVALID_BASE64, str(exc)) from exc

        if isinstance(source, UrlSource):
            return await self._fetcher.fetch(source.url)

        raise TypeError(f"Unsupported image source {type(source).__name__}")
