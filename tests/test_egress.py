"""Fetch path tests: httpx.MockTransport stands in for the network."""
from __future__ import annotations

import gzip
import os

import httpx
import pytest

from ocrd.core.config import Settings
from ocrd.pipeline.egress import EgressPolicy, ImageFetcher
from ocrd.pipeline.errors import ErrorReason, PipelineError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _policy(**kwargs) -> EgressPolicy:
    defaults = dict(trusted_domains=frozenset({"i.imgur.com", "cdn.discordapp.com"}), fetch_attempts=2)
    defaults.update(kwargs)
    return EgressPolicy(**defaults)


class _Recorder:
    def __init__(self, handler=None) -> None:
        self.urls: list[str] = []
        self._handler = handler or (lambda request: httpx.Response(200, content=b"IMAGE"))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class _Streamed(httpx.AsyncByteStream):
    """Body delivered in chunks, as from a socket."""

    def __init__(self, data: bytes, chunk_size: int = 1024) -> None:
        self._data = data
        self._chunk_size = chunk_size

    async def __aiter__(self):
        for start in range(0, len(self._data), self._chunk_size):
            yield self._data[start : start + self._chunk_size]


def _gzipped(data: bytes) -> httpx.Response:
    return httpx.Response(200, headers={"content-encoding": "gzip"}, stream=_Streamed(gzip.compress(data)))


def _fetcher(policy: EgressPolicy, direct: _Recorder, proxied: _Recorder) -> ImageFetcher:
    return ImageFetcher(policy, direct_client=direct.client(), proxied_client=proxied.client())


async def _reason(fetcher: ImageFetcher, url: str) -> ErrorReason:
    with pytest.raises(PipelineError) as excinfo:
        await fetcher.fetch(url)
    return excinfo.value.reason


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

def test_policy_from_settings_uses_defaults() -> None:
    policy = EgressPolicy.from_settings(Settings(proxy_url="socks5://127.1.1.1:9999"))
    assert "i.redd.it" in policy.trusted_domains
    assert policy.proxy_url == "socks5://127.1.1.1:9999"
    assert policy.connect_timeout == 2.0
    assert policy.read_timeout == 60.0
    assert policy.max_redirects == 20
    assert policy.max_decompression_ratio == 10


def test_empty_proxy_url_disables_proxy() -> None:
    policy = EgressPolicy.from_settings(Settings(proxy_url=""))
    assert policy.proxy_url is None
    assert "proxy" not in policy.client_kwargs(proxied=True)


def test_is_trusted_is_case_insensitive_and_exact() -> None:
    policy = _policy()
    assert policy.is_trusted("I.IMGUR.COM")
    assert not policy.is_trusted("evil.i.imgur.com.example")
    assert not policy.is_trusted(None)
    assert not policy.is_trusted("")


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_trusted_host_never_uses_proxied_client() -> None:
    direct, proxied = _Recorder(), _Recorder()
    fetcher = _fetcher(_policy(), direct, proxied)

    assert await fetcher.fetch("https://i.imgur.com/cat.png") == b"IMAGE"
    assert direct.urls == ["https://i.imgur.com/cat.png"]
    assert proxied.urls == []


@pytest.mark.asyncio
async def test_redirect_from_trusted_to_untrusted_host_switches_to_proxied_client() -> None:
    direct = _Recorder(lambda request: httpx.Response(302, headers={"location": "https://other.example/x.png"}))
    proxied = _Recorder()
    fetcher = _fetcher(_policy(), direct, proxied)

    assert await fetcher.fetch("https://i.imgur.com/a.png") == b"IMAGE"
    assert direct.urls == ["https://i.imgur.com/a.png"]
    assert proxied.urls == ["https://other.example/x.png"]


@pytest.mark.asyncio
async def test_redirect_from_untrusted_to_trusted_host_goes_direct() -> None:
    proxied = _Recorder(lambda request: httpx.Response(302, headers={"location": "https://cdn.discordapp.com/x.png"}))
    direct = _Recorder()
    fetcher = _fetcher(_policy(), direct, proxied)

    assert await fetcher.fetch("https://example.com/a.png") == b"IMAGE"
    assert proxied.urls == ["https://example.com/a.png"]
    assert direct.urls == ["https://cdn.discordapp.com/x.png"]


@pytest.mark.asyncio
async def test_untrusted_host_always_uses_proxied_client() -> None:
    direct, proxied = _Recorder(), _Recorder()
    fetcher = _fetcher(_policy(), direct, proxied)

    assert await fetcher.fetch("https://example.com/cat.png") == b"IMAGE"
    assert proxied.urls == ["https://example.com/cat.png"]
    assert direct.urls == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_non_success_status_is_http_error() -> None:
    proxied = _Recorder(lambda request: httpx.Response(404, content=b"missing"))
    fetcher = _fetcher(_policy(), _Recorder(), proxied)
    assert await _reason(fetcher, "https://example.com/x.png") is ErrorReason.HTTP_ERROR


@pytest.mark.asyncio
async def test_empty_body_is_payload_empty() -> None:
    proxied = _Recorder(lambda request: httpx.Response(200, content=b""))
    fetcher = _fetcher(_policy(), _Recorder(), proxied)
    assert await _reason(fetcher, "https://example.com/x.png") is ErrorReason.PAYLOAD_EMPTY


@pytest.mark.asyncio
async def test_transport_error_is_retried_then_http_error() -> None:
    def _fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    proxied = _Recorder(_fail)
    fetcher = _fetcher(_policy(fetch_attempts=2), _Recorder(), proxied)

    assert await _reason(fetcher, "https://example.com/x.png") is ErrorReason.HTTP_ERROR
    assert len(proxied.urls) == 2


@pytest.mark.asyncio
async def test_invalid_url_is_http_error() -> None:
    fetcher = _fetcher(_policy(), _Recorder(), _Recorder())
    assert await _reason(fetcher, "ftp://example.com/x.png") is ErrorReason.HTTP_ERROR
    assert await _reason(fetcher, "not a url") is ErrorReason.HTTP_ERROR


@pytest.mark.asyncio
async def test_redirects_are_followed() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start":
            return httpx.Response(302, headers={"location": "/final"})
        return httpx.Response(200, content=b"IMAGE")

    proxied = _Recorder(_handler)
    fetcher = _fetcher(_policy(), _Recorder(), proxied)

    assert await fetcher.fetch("https://example.com/start") == b"IMAGE"
    assert proxied.urls == ["https://example.com/start", "https://example.com/final"]


@pytest.mark.asyncio
async def test_redirect_cycle_is_http_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        target = "/b" if request.url.path == "/a" else "/a"
        return httpx.Response(302, headers={"location": target})

    proxied = _Recorder(_handler)
    fetcher = _fetcher(_policy(), _Recorder(), proxied)

    assert await _reason(fetcher, "https://example.com/a") is ErrorReason.HTTP_ERROR
    assert len(proxied.urls) == 2


@pytest.mark.asyncio
async def test_too_many_redirects_is_http_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        hop = int(request.url.params.get("hop", "0"))
        return httpx.Response(302, headers={"location": f"/r?hop={hop + 1}"})

    proxied = _Recorder(_handler)
    fetcher = _fetcher(_policy(max_redirects=3), _Recorder(), proxied)

    assert await _reason(fetcher, "https://example.com/r?hop=0") is ErrorReason.HTTP_ERROR
    assert len(proxied.urls) == 4


@pytest.mark.asyncio
async def test_decompression_bomb_is_http_error() -> None:
    proxied = _Recorder(lambda request: _gzipped(b"\x00" * 200_000))
    fetcher = _fetcher(_policy(), _Recorder(), proxied)

    with pytest.raises(PipelineError, match="decompression ratio") as excinfo:
        await fetcher.fetch("https://example.com/bomb.png")
    assert excinfo.value.reason is ErrorReason.HTTP_ERROR


@pytest.mark.asyncio
async def test_modest_compression_is_accepted() -> None:
    payload = os.urandom(4096)
    proxied = _Recorder(lambda request: _gzipped(payload))
    fetcher = _fetcher(_policy(), _Recorder(), proxied)

    assert await fetcher.fetch("https://example.com/ok.png") == payload


@pytest.mark.asyncio
async def test_oversized_plain_body_is_http_error() -> None:
    proxied = _Recorder(lambda request: httpx.Response(200, stream=_Streamed(b"x" * 5000)))
    fetcher = _fetcher(_policy(max_body_bytes=4096), _Recorder(), proxied)

    with pytest.raises(PipelineError, match="body larger than") as excinfo:
        await fetcher.fetch("https://example.com/huge.png")
    assert excinfo.value.reason is ErrorReason.HTTP_ERROR


@pytest.mark.asyncio
async def test_body_at_the_cap_is_accepted() -> None:
    proxied = _Recorder(lambda request: httpx.Response(200, stream=_Streamed(b"x" * 4096)))
    fetcher = _fetcher(_policy(max_body_bytes=4096), _Recorder(), proxied)

    assert len(await fetcher.fetch("https://example.com/fits.png")) == 4096
