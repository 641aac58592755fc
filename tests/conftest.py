"""Shared pytest configuration and fixtures for the ocrd tests."""
from __future__ import annotations

import asyncio
import io
import os

# Provide required env vars before any ocrd module is imported
os.environ.setdefault("OCR_PROVIDER", "mock")
os.environ.setdefault("PROXY_URL", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from PIL import Image

from ocrd.ocr.base_ocr import Candidate, Point, RawObservation, RecognitionConfig


def make_png(width: int = 40, height: int = 20, color: str = "white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png(40, 20)


class StubEngine:
    """Deterministic engine double; records every config it is called with.

    ``delays`` maps an image width to seconds to sleep before answering, so
    tests can force items to finish out of order.
    """

    reentrant = True

    def __init__(self, observations=None, *, delays=None, error: Exception | None = None) -> None:
        self.observations = observations if observations is not None else [
            RawObservation(
                top_left=Point(0.2, 0.8),
                bottom_right=Point(0.6, 0.3),
                confidence=0.5,
                candidates=[Candidate("hello", 0.9)],
            ),
            RawObservation(top_left=Point(0.0, 1.0), bottom_right=Point(1.0, 0.0), confidence=0.4),
        ]
        self.delays = delays or {}
        self.error = error
        self.configs: list[RecognitionConfig] = []
        self.active = 0
        self.peak = 0

    def supported_revisions(self) -> list[str]:
        return ["1", "2"]

    def default_config(self) -> RecognitionConfig:
        return RecognitionConfig(revision="2")

    def supported_languages(self, revision=None) -> list[str]:
        return ["en-US"] if revision == "1" else ["en-US", "fr-FR"]

    async def perform_recognition(self, image, config):
        self.configs.append(config)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delays.get(image.size[0], 0))
            if self.error is not None:
                raise self.error
            return list(self.observations)
        finally:
            self.active -= 1
