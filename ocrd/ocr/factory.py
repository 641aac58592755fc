from __future__ import annotations

from ocrd.core.config import settings
from ocrd.ocr.base_ocr import OCREngine
from ocrd.ocr.mock_ocr import MockOCREngine


def get_ocr_engine() -> OCREngine:
    """Return the configured OCR engine instance.

    OCR_PROVIDER options:
        mock       : synthetic observations (dev/test, no deps required)
        paddleocr  : LocalOCREngine (pip install paddlepaddle paddleocr)
    """
    provider = settings.ocr_provider.lower().strip()

    if provider == "mock":
        return MockOCREngine()

    if provider == "paddleocr":
        from ocrd.ocr.engines import LocalOCREngine
        return LocalOCREngine(use_gpu=settings.paddle_use_gpu)

    raise ValueError(f"Unknown OCR_PROVIDER={settings.ocr_provider!r}")
