"""LocalOCREngine using PaddleOCR."""
from __future__ import annotations

import asyncio
import logging

from PIL import Image

from ocrd.ocr.base_ocr import (
    Candidate,
    OCREngine,
    Point,
    RawObservation,
    RecognitionConfig,
    RecognitionLevel,
)

logger = logging.getLogger(__name__)

# Locale language subtag -> PaddleOCR language code
_PADDLE_LANGS: dict[str, str] = {
    "en": "en",
    "zh": "ch",
    "fr": "fr",
    "de": "german",
    "ja": "japan",
    "ko": "korean",
    "it": "it",
    "es": "es",
    "pt": "pt",
    "ru": "ru",
    "ar": "ar",
    "hi": "hi",
}
# PP-OCRv4 recognition models cover fewer languages than v3
_V4_LANGS = ("en", "zh")

_REVISIONS = ["PP-OCRv3", "PP-OCRv4"]


# ---------------------------------------------------------------------------
# LocalOCREngine (PaddleOCR)
# ---------------------------------------------------------------------------

class LocalOCREngine(OCREngine):
    """OCR engine backed by PaddleOCR (runs 100% locally, no cloud calls).

    Install dependency:
        pip install "ocrd[paddle]"

    Config (via .env):
        OCR_PROVIDER=paddleocr
        PADDLE_USE_GPU=false

    PaddleOCR has no notion of custom vocabularies or language correction, so
    ``custom_words`` and ``uses_language_correction`` are accepted and ignored.
    Only the first requested language is used.
    """

    # PaddleOCR predictors keep per-instance state between calls
    reentrant = False

    def __init__(self, use_gpu: bool = False) -> None:
        self._use_gpu = use_gpu
        self._clients: dict[tuple[str, str, bool], object] = {}

    def supported_revisions(self) -> list[str]:
        return list(_REVISIONS)

    def default_config(self) -> RecognitionConfig:
        return RecognitionConfig(revision=_REVISIONS[-1])

    def supported_languages(self, revision: str | None = None) -> list[str]:
        langs = _V4_LANGS if (revision or _REVISIONS[-1]) == "PP-OCRv4" else tuple(_PADDLE_LANGS)
        return list(langs)

    def _get_ocr(self, revision: str, lang: str, use_angle_cls: bool):
        key = (revision, lang, use_angle_cls)
        if key not in self._clients:
            try:
                from paddleocr import PaddleOCR  # type: ignore[import]
            except ModuleNotFoundError as exc:
                raise RuntimeError(
                    "PaddleOCR is not installed. Run: pip install paddlepaddle paddleocr"
                ) from exc
            self._clients[key] = PaddleOCR(
                use_angle_cls=use_angle_cls,
                lang=lang,
                ocr_version=revision,
                use_gpu=self._use_gpu,
                show_log=False,
            )
        return self._clients[key]

    async def perform_recognition(self, image: Image.Image, config: RecognitionConfig) -> list[RawObservation]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._recognize, image, config)

    def _recognize(self, image: Image.Image, config: RecognitionConfig) -> list[RawObservation]:
        import numpy as np  # type: ignore[import]

        if config.custom_words or not config.uses_language_correction:
            logger.debug("paddleocr_options_ignored", extra={"options": ["custom_words", "autocorrect"]})

        lang = _paddle_lang(config.recognition_languages)
        accurate = config.recognition_level is RecognitionLevel.ACCURATE
        ocr = self._get_ocr(config.revision, lang, accurate)
        result = ocr.ocr(np.array(image.convert("RGB")), cls=accurate)

        observations: list[RawObservation] = []
        width, height = image.size
        if result and result[0]:
            for line in result[0]:
                # Each line: [bounding_box, [text, confidence]]
                polygon, (text, conf) = line
                observations.append(_to_raw(polygon, text, float(conf), width, height))

        logger.info("paddleocr_complete", extra={"lines": len(observations), "revision": config.revision})
        return observations


def _paddle_lang(languages: tuple[str, ...]) -> str:
    if not languages:
        return "en"
    subtag = languages[0].replace("_", "-").split("-")[0].lower()
    return _PADDLE_LANGS.get(subtag, "en")


def _to_raw(polygon, text: str, confidence: float, width: int, height: int) -> RawObservation:
    """Convert a pixel-space polygon (origin top-left) to normalized corners."""
    xs = [float(p[0]) for p in polygon]
    ys = [float(p[1]) for p in polygon]
    sx = max(width - 1, 1)
    sy = max(height - 1, 1)
    return RawObservation(
        top_left=Point(min(xs) / sx, 1.0 - min(ys) / sy),
        bottom_right=Point(max(xs) / sx, 1.0 - max(ys) / sy),
        confidence=confidence,
        candidates=[Candidate(text=text, confidence=confidence)],
    )
