"""Tests for the HTTP image fetcher against a local aiohttp server."""

import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from conftest import make_image_bytes
from image_enhancer.services.exceptions import EnhancementError, FetchError
from image_enhancer.services.image_fetcher import ImageFetcher

PNG = make_image_bytes(64, 48)


async def serve_png(request):
    return web.Response(body=PNG, content_type="image/png")


async def serve_user_agent(request):
    return web.Response(text=request.headers.get("User-Agent", ""))


async def serve_missing(request):
    raise web.HTTPNotFound()


async def serve_slowly(request):
    await asyncio.sleep(2)
    return web.Response(body=PNG, content_type="image/png")


async def serve_huge(request):
    return web.Response(body=b"\0" * (2 * 1024 * 1024), content_type="image/png")


async def serve_redirect(request):
    raise web.HTTPFound("/image.png")


@asynccontextmanager
async def image_server():
    app = web.Application()
    app.router.add_get("/image.png", serve_png)
    app.router.add_get("/ua", serve_user_agent)
    app.router.add_get("/missing.png", serve_missing)
    app.router.add_get("/slow.png", serve_slowly)
    app.router.add_get("/huge.png", serve_huge)
    app.router.add_get("/moved.png", serve_redirect)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_fetch_returns_body(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        data = await fetcher.fetch(str(server.make_url("/image.png")))

    assert data == PNG


@pytest.mark.asyncio
async def test_fetch_sends_configured_user_agent(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        data = await fetcher.fetch(str(server.make_url("/ua")))

    assert data.decode() == "Slide-Image-Enhancer/test"


@pytest.mark.asyncio
async def test_fetch_follows_redirects(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        data = await fetcher.fetch(str(server.make_url("/moved.png")))

    assert data == PNG


@pytest.mark.asyncio
async def test_non_2xx_raises_fetch_error(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(str(server.make_url("/missing.png")))

    assert exc_info.value.status == 404
    assert isinstance(exc_info.value, EnhancementError)


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(str(server.make_url("/slow.png")), timeout_ms=100)

    assert "Timeout" in exc_info.value.message


@pytest.mark.asyncio
async def test_oversized_body_raises_fetch_error(settings):
    async with image_server() as server, ImageFetcher(settings=settings) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(str(server.make_url("/huge.png")))

    assert "too large" in exc_info.value.message


@pytest.mark.asyncio
async def test_unreachable_host_raises_fetch_error(settings):
    async with ImageFetcher(settings=settings) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("http://127.0.0.1:1/image.png")

    assert exc_info.value.cause is not None


@pytest.mark.asyncio
async def test_injected_session_is_not_closed(settings):
    import aiohttp

    async with aiohttp.ClientSession() as session:
        fetcher = ImageFetcher(session=session, settings=settings)
        await fetcher.close()

        assert not session.closed
        assert fetcher.session is session
