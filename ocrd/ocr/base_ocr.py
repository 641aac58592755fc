from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from PIL import Image


class RecognitionLevel(str, Enum):
    FAST = "fast"
    ACCURATE = "accurate"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Candidate:
    text: str
    confidence: float  # 0.0 to 1.0


@dataclass(frozen=True)
class RawObservation:
    """One text region in normalized geometry: unit square, origin bottom-left, y up."""

    top_left: Point
    bottom_right: Point
    confidence: float
    candidates: list[Candidate] = field(default_factory=list)  # best first


@dataclass(frozen=True)
class RecognitionConfig:
    revision: str
    recognition_level: RecognitionLevel = RecognitionLevel.ACCURATE
    custom_words: tuple[str, ...] = ()
    uses_language_correction: bool = True
    recognition_languages: tuple[str, ...] = ("en-US",)
    automatically_detects_language: bool = False


class OCREngine:
    # Engines that cannot run two recognitions at once set this to False.
    reentrant: bool = True

    def supported_revisions(self) -> list[str]:
        raise NotImplementedError

    def default_config(self) -> RecognitionConfig:
        raise NotImplementedError

    def supported_languages(self, revision: str | None = None) -> list[str]:
        raise NotImplementedError

    async def perform_recognition(self, image: Image.Image, config: RecognitionConfig) -> list[RawObservation]:
        raise NotImplementedError
