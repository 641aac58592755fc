"""Egress policy and the HTTP fetch path for remote image URLs.

Trusted image CDNs are fetched with a plain direct client. Every other host
goes through the proxied client.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ocrd.core.config import Settings
from ocrd.pipeline.errors import ErrorReason, PipelineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EgressPolicy:
    trusted_domains: frozenset[str]
    proxy_url: str | None = None
    connect_timeout: float = 2.0
    read_timeout: float = 60.0
    pool_idle_timeout: float = 60.0
    max_connections: int = 100
    max_redirects: int = 20
    max_decompression_ratio: int = 10
    fetch_attempts: int = 2
    max_body_bytes: int = 24 * 1024 * 1024

    @classmethod
    def from_settings(cls, settings: Settings) -> EgressPolicy:
        return cls(
            trusted_domains=frozenset(d.strip().lower() for d in settings.trusted_domains if d.strip()),
            proxy_url=settings.proxy_url or None,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            pool_idle_timeout=settings.pool_idle_timeout,
            max_connections=settings.max_connections,
            max_redirects=settings.max_redirects,
            max_decompression_ratio=settings.max_decompression_ratio,
            fetch_attempts=settings.fetch_attempts,
            max_body_bytes=settings.max_body_bytes,
        )

    def is_trusted(self, host: str | None) -> bool:
        return bool(host) and host.lower() in self.trusted_domains

    def client_kwargs(self, *, proxied: bool) -> dict:
        kwargs: dict = {
            "timeout": httpx.Timeout(self.read_timeout, connect=self.connect_timeout),
            "limits": httpx.Limits(
                max_connections=self.max_connections,
                keepalive_expiry=self.pool_idle_timeout,
            ),
            # Redirects are walked by ImageFetcher so cycles can be detected
            "follow_redirects": False,
        }
        if proxied and self.proxy_url:
            kwargs["proxy"] = self.proxy_url
        return kwargs


class ImageFetcher:
    """Downloads image bytes, choosing the direct or proxied client per host."""

    def __init__(
        self,
        policy: EgressPolicy,
        *,
        direct_client: httpx.AsyncClient | None = None,
        proxied_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.policy = policy
        self._direct = direct_client or httpx.AsyncClient(**policy.client_kwargs(proxied=False))
        self._proxied = proxied_client or httpx.AsyncClient(**policy.client_kwargs(proxied=True))

    async def aclose(self) -> None:
        await self._direct.aclose()
        await self._proxied.aclose()

    async def fetch(self, url: str) -> bytes:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise PipelineError(ErrorReason.HTTP_ERROR, f"invalid url: {exc}") from exc
        if parsed.scheme not in ("http", "https"):
            raise PipelineError(ErrorReason.HTTP_ERROR, f"unsupported scheme {parsed.scheme!r}")

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(self.policy.fetch_attempts, 1)),
                wait=wait_exponential(multiplier=0.2, max=2),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    body = await self._get(parsed)
        except httpx.HTTPError as exc:
            raise PipelineError(ErrorReason.HTTP_ERROR, str(exc)) from exc

        if not body:
            raise PipelineError(ErrorReason.PAYLOAD_EMPTY, "empty response body")
        return body

    def _client_for(self, url: httpx.URL) -> httpx.AsyncClient:
        return self._direct if self.policy.is_trusted(url.host) else self._proxied

    async def _get(self, url: httpx.URL) -> bytes:
        seen: set[str] = set()
        request = self._client_for(url).build_request("GET", url)
        for _ in range(self.policy.max_redirects + 1):
            seen.add(str(request.url))
            # Each hop is routed by its own host
            client = self._client_for(request.url)
            logger.debug("image_fetch", extra={"host": request.url.host, "proxied": client is self._proxied})
            response = await client.send(request, stream=True)
            try:
                if response.next_request is None:
                    if not response.is_success:
                        raise PipelineError(ErrorReason.HTTP_ERROR, f"status {response.status_code}")
                    return await self._read_body(response)
                request = response.next_request
            finally:
                await response.aclose()
            if request.url.scheme not in ("http", "https"):
                raise PipelineError(ErrorReason.HTTP_ERROR, f"redirect to unsupported scheme {request.url.scheme!r}")
            if str(request.url) in seen:
                raise PipelineError(ErrorReason.HTTP_ERROR, f"redirect cycle at {request.url}")
        raise PipelineError(ErrorReason.HTTP_ERROR, f"more than {self.policy.max_redirects} redirects")

    async def _read_body(self, response: httpx.Response) -> bytes:
        compressed = "content-encoding" in response.headers
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > self.policy.max_body_bytes:
                raise PipelineError(ErrorReason.HTTP_ERROR, f"body larger than {self.policy.max_body_bytes} bytes")
            if compressed and size > self.policy.max_decompression_ratio * max(response.num_bytes_downloaded, 1):
                raise PipelineError(ErrorReason.HTTP_ERROR, "decompression ratio exceeded")
            chunks.append(chunk)
        return b"".join(chunks)
