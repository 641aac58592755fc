from __future__ import annotations

from PIL import Image

from ocrd.ocr.base_ocr import Candidate, OCREngine, Point, RawObservation, RecognitionConfig

_REVISIONS = ["1", "2", "3"]
_LANGUAGES = ["en-US", "fr-FR", "it-IT", "de-DE", "es-ES", "pt-BR"]


class MockOCREngine(OCREngine):
    def supported_revisions(self) -> list[str]:
        return list(_REVISIONS)

    def default_config(self) -> RecognitionConfig:
        return RecognitionConfig(revision=_REVISIONS[-1])

    def supported_languages(self, revision: str | None = None) -> list[str]:
        # Revision 1 only ever shipped English
        if revision == "1":
            return ["en-US"]
        return list(_LANGUAGES)

    async def perform_recognition(self, image: Image.Image, config: RecognitionConfig) -> list[RawObservation]:
        # Mock OCR for development/testing: one line across the upper half
        return [
            RawObservation(
                top_left=Point(0.1, 0.9),
                bottom_right=Point(0.9, 0.6),
                confidence=0.85,
                candidates=[Candidate(text="MOCK OCR TEXT", confidence=0.85)],
            ),
        ]
