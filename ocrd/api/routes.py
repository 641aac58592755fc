from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ocrd.ocr.base_ocr import OCREngine, RecognitionLevel
from ocrd.pipeline.decoder import supported_image_types
from ocrd.pipeline.errors import ErrorReason
from ocrd.pipeline.models import BytesSource, Error, ImageSource
from ocrd.pipeline.pipeline import ImagePipeline
from ocrd.pipeline.recognition import RecognitionOptions
from ocrd.schemas import outcome_to_json, parse_image_source, parse_image_sources

logger = logging.getLogger(__name__)
router = APIRouter()


def get_engine(request: Request) -> OCREngine:
    return request.app.state.engine


def get_pipeline(request: Request) -> ImagePipeline:
    return request.app.state.pipeline


def normalize_language(tag: str) -> str:
    """``en_us`` -> ``en-US``; script subtags keep title case (``zh-hans`` -> ``zh-Hans``)."""
    parts = [p for p in tag.strip().replace("_", "-").split("-") if p]
    if not parts:
        raise ValueError("empty language tag")
    out = [parts[0].lower()]
    for part in parts[1:]:
        if len(part) == 4 and part.isalpha():
            out.append(part.title())
        elif len(part) in (2, 3):
            out.append(part.upper())
        else:
            out.append(part.lower())
    return "-".join(out)


def _check_revision(engine: OCREngine, revision: str | None) -> str | None:
    if revision is not None and revision not in engine.supported_revisions():
        raise HTTPException(status_code=422, detail="Invalid Revision")
    return revision


def get_options(
    engine: OCREngine = Depends(get_engine),
    mode: RecognitionLevel | None = Query(None),
    words: list[str] | None = Query(None),
    autocorrect: bool | None = Query(None),
    languages: list[str] | None = Query(None),
    detect_language: bool | None = Query(None),
    detect_language_camel: bool | None = Query(None, alias="detectLanguage"),
    revision: str | None = Query(None),
) -> RecognitionOptions:
    try:
        normalized = tuple(normalize_language(lang) for lang in languages) if languages is not None else None
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid language: {exc}") from exc

    return RecognitionOptions(
        mode=mode,
        words=tuple(words) if words is not None else None,
        autocorrect=autocorrect,
        languages=normalized,
        detect_language=detect_language if detect_language is not None else detect_language_camel,
        revision=_check_revision(engine, revision),
    )


async def _read_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise HTTPException(status_code=413, detail=f"Body exceeds {limit} bytes")

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise HTTPException(status_code=413, detail=f"Body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/")
async def health() -> str:
    return "ok"


@router.get("/revisions")
async def revisions(engine: OCREngine = Depends(get_engine)) -> list[str]:
    return engine.supported_revisions()


@router.get("/image-types")
async def image_types() -> list[str]:
    return supported_image_types()


@router.get("/languages")
async def languages(
    engine: OCREngine = Depends(get_engine),
    revision: str | None = Query(None),
) -> list[str]:
    return engine.supported_languages(_check_revision(engine, revision))


@router.post("/")
async def recognize(
    request: Request,
    options: RecognitionOptions = Depends(get_options),
    pipeline: ImagePipeline = Depends(get_pipeline),
) -> JSONResponse:
    body = await _read_body(request, request.app.state.settings.max_body_bytes)

    source: ImageSource
    try:
        source = parse_image_source(body)
    except ValueError:
        # Not a JSON image source: treat the whole body as the encoded image
        if not body:
            return JSONResponse(outcome_to_json(Error(ErrorReason.PAYLOAD_EMPTY)))
        source = BytesSource(body)

    outcome = await pipeline.run(source, options)
    return JSONResponse(outcome_to_json(outcome))


@router.post("/batch")
async def recognize_batch(
    request: Request,
    options: RecognitionOptions = Depends(get_options),
    pipeline: ImagePipeline = Depends(get_pipeline),
) -> JSONResponse:
    body = await _read_body(request, request.app.state.settings.max_batch_body_bytes)
    try:
        sources = parse_image_sources(body)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="Invalid Image Source") from exc

    outcomes = await pipeline.run_batch(sources, options)
    return JSONResponse([outcome_to_json(o) for o in outcomes])
