from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from PIL import Image

from ocrd.ocr.base_ocr import OCREngine, RawObservation, RecognitionConfig, RecognitionLevel
from ocrd.pipeline.errors import ErrorReason, PipelineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognitionOptions:
    """Per-request overrides; ``None`` keeps the engine default."""

    mode: RecognitionLevel | None = None
    words: tuple[str, ...] | None = None
    autocorrect: bool | None = None
    languages: tuple[str, ...] | None = None
    detect_language: bool | None = None
    revision: str | None = None


def build_config(options: RecognitionOptions, defaults: RecognitionConfig) -> RecognitionConfig:
    overrides: dict = {}
    if options.revision is not None:
        overrides["revision"] = options.revision
    if options.mode is not None:
        overrides["recognition_level"] = options.mode
    if options.words is not None:
        overrides["custom_words"] = tuple(options.words)
    if options.autocorrect is not None:
        overrides["uses_language_correction"] = options.autocorrect
    if options.languages is not None:
        overrides["recognition_languages"] = tuple(options.languages)
    if options.detect_language is not None:
        overrides["automatically_detects_language"] = options.detect_language
    return replace(defaults, **overrides)


class RecognitionInvoker:
    """Calls the OCR engine, serializing calls when it is not reentrant."""

    def __init__(self, engine: OCREngine) -> None:
        self._engine = engine
        self._lock = None if engine.reentrant else asyncio.Lock()

    async def recognize(self, image: Image.Image, config: RecognitionConfig) -> list[RawObservation]:
        try:
            if self._lock is None:
                return await self._engine.perform_recognition(image, config)
            async with self._lock:
                return await self._engine.perform_recognition(image, config)
        except PipelineError:
            raise
        except Exception as exc:
            logger.exception("recognition_failed", extra={"revision": config.revision})
            raise PipelineError(ErrorReason.RECOGNITION_FAILED, str(exc)) from exc
