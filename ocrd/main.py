from __future__ import annotations

import logging

from fastapi import FastAPI

from ocrd.api.routes import router
from ocrd.core.config import Settings, settings as default_settings
from ocrd.core.logging import configure_logging
from ocrd.ocr.base_ocr import OCREngine
from ocrd.ocr.factory import get_ocr_engine
from ocrd.pipeline.egress import EgressPolicy, ImageFetcher
from ocrd.pipeline.pipeline import ImagePipeline


def create_app(
    settings: Settings | None = None,
    *,
    engine: OCREngine | None = None,
    fetcher: ImageFetcher | None = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, json_output=settings.app_env != "dev")
    app = FastAPI(title="ocrd", version="0.1.0")
    app.include_router(router)

    engine = engine or get_ocr_engine()
    fetcher = fetcher or ImageFetcher(EgressPolicy.from_settings(settings))

    app.state.settings = settings
    app.state.engine = engine
    app.state.fetcher = fetcher
    app.state.pipeline = ImagePipeline(engine, fetcher, max_concurrency=settings.batch_max_concurrency)

    @app.on_event("startup")
    async def _startup() -> None:
        logging.getLogger(__name__).info(
            "startup",
            extra={"engine": type(engine).__name__, "revisions": engine.supported_revisions()},
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await fetcher.aclose()

    return app


def run() -> None:
    import uvicorn

    uvicorn.run("ocrd.main:app", host=default_settings.host, port=default_settings.port)


app = create_app()
