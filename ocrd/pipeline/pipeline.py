"""Recognition pipeline: resolve, decode, configure, recognize, map geometry.

``ImagePipeline.run`` handles exactly one image and always returns an
``Outcome``: every per-item failure is converted to ``Error(reason)`` at the
stage that hit it. ``ImagePipeline.run_batch`` fans the same work out over a
list of sources and returns the outcomes in input order.
"""
from __future__ import annotations

import asyncio
import logging
import time

from ocrd.ocr.base_ocr import OCREngine
from ocrd.pipeline.decoder import decode_image
from ocrd.pipeline.egress import ImageFetcher
from ocrd.pipeline.errors import PipelineError
from ocrd.pipeline.geometry import to_text_observation
from ocrd.pipeline.models import Error, ImageResult, ImageSource, Ok, Outcome
from ocrd.pipeline.recognition import RecognitionInvoker, RecognitionOptions, build_config
from ocrd.pipeline.sources import SourceResolver

logger = logging.getLogger(__name__)


class ImagePipeline:
    def __init__(self, engine: OCREngine, fetcher: ImageFetcher, *, max_concurrency: int = 0) -> None:
        self._engine = engine
        self._resolver = SourceResolver(fetcher)
        self._invoker = RecognitionInvoker(engine)
        self._max_concurrency = max_concurrency

    # ------------------------------------------------------------------ #
    #  Single item                                                         #
    # ------------------------------------------------------------------ #

    async def run(self, source: ImageSource, options: RecognitionOptions) -> Outcome:
        t0 = time.monotonic()
        try:
            result = await self._process(source, options)
        except PipelineError as exc:
            logger.warning(
                "image_failed",
                extra={"source": type(source).__name__, "reason": exc.reason.value, "detail": exc.detail},
            )
            return Error(exc.reason)

        logger.info(
            "image_complete",
            extra={
                "source": type(source).__name__,
                "observations": len(result.observations),
                "duration_ms": int((time.monotonic() - t0) * 1000),
            },
        )
        return Ok(result)

    async def _process(self, source: ImageSource, options: RecognitionOptions) -> ImageResult:
        data = await self._resolver.resolve(source)

        loop = asyncio.get_running_loop()
        image = await loop.run_in_executor(None, decode_image, data)
        width, height = image.size

        config = build_config(options, self._engine.default_config())
        raw = await self._invoker.recognize(image, config)

        observations = [to_text_observation(o, width, height) for o in raw]
        return ImageResult.from_observations(width, height, observations)

    # ------------------------------------------------------------------ #
    #  Batch                                                               #
    # ------------------------------------------------------------------ #

    async def run_batch(self, sources: list[ImageSource], options: RecognitionOptions) -> list[Outcome]:
        """Run every source concurrently; the Nth outcome belongs to the Nth source.

        At most ``max_concurrency`` pipelines are in flight at once (0 = no
        bound); the rest wait their turn. Cancelling the caller cancels every
        item still running.
        """
        gate = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency > 0 else None

        async def _one(index: int, source: ImageSource) -> tuple[int, Outcome]:
            if gate is None:
                return index, await self.run(source, options)
            async with gate:
                return index, await self.run(source, options)

        tasks = [asyncio.ensure_future(_one(i, s)) for i, s in enumerate(sources)]
        try:
            finished = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        outcomes: list[Outcome | None] = [None] * len(sources)
        for index, outcome in finished:
            outcomes[index] = outcome

        failed = sum(1 for o in outcomes if isinstance(o, Error))
        logger.info("batch_complete", extra={"items": len(sources), "failed": failed})
        return outcomes  # type: ignore[return-value]
