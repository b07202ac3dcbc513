from __future__ import annotations

import asyncio
import logging

import aiohttp
import pytest
from aiohttp import test_utils, web

from pycotrip._transport import HttpTransport
from pycotrip.config import CotripConfig
from pycotrip.exceptions import CotripDecodeError, CotripTransportError


async def _features(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "features": [{"properties": {"id": "inc-1"}}],
            "apiKey": request.query.get("apiKey"),
            "userAgent": request.headers.get("User-Agent"),
        }
    )


async def _server_error(request: web.Request) -> web.Response:
    return web.json_response({"message": "boom"}, status=500)


async def _not_json(request: web.Request) -> web.Response:
    return web.Response(text="<html>maintenance</html>", content_type="text/html")


async def _long_garbage(request: web.Request) -> web.Response:
    return web.Response(text="x" * 500, content_type="text/plain")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.json_response({"features": []})


def _app() -> web.Application:
    app = web.Application()
    app.router.add_get("/api/v1/incidents", _features)
    app.router.add_get("/api/v1/broken", _server_error)
    app.router.add_get("/api/v1/html", _not_json)
    app.router.add_get("/api/v1/slow", _slow)
    app.router.add_get("/api/v1/garbage", _long_garbage)
    return app


def _config(server: test_utils.TestServer, **kwargs: float) -> CotripConfig:
    return CotripConfig(api_key="SECRET-KEY", base_url=str(server.make_url("/api/v1/")), **kwargs)


@pytest.mark.asyncio
async def test_get_json_signs_request_with_api_key(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="pycotrip._transport")

    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(_config(server), session)
        body = await transport.get_json("/incidents")

    assert body["features"] == [{"properties": {"id": "inc-1"}}]
    assert body["apiKey"] == "SECRET-KEY"
    assert body["userAgent"].startswith("pycotrip/")
    pycotrip_logs = [record.getMessage() for record in caplog.records if record.name.startswith("pycotrip")]
    assert pycotrip_logs
    assert all("SECRET-KEY" not in message for message in pycotrip_logs)
    decoded = [message for message in pycotrip_logs if "decoded=" in message]
    assert decoded
    assert "<redacted>" in decoded[0]


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(_config(server), session)
        with pytest.raises(CotripTransportError) as exc_info:
            await transport.get_json("/broken")

    assert exc_info.value.status_code == 500
    assert exc_info.value.endpoint == "/broken"


@pytest.mark.asyncio
async def test_invalid_json_raises_decode_error() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(_config(server), session)
        with pytest.raises(CotripDecodeError):
            await transport.get_json("/html")


@pytest.mark.asyncio
async def test_timeout_raises_transport_error() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(_config(server, request_timeout=0.05), session)
        with pytest.raises(CotripTransportError, match="timed out"):
            await transport.get_json("/slow")


@pytest.mark.asyncio
async def test_connection_error_raises_transport_error() -> None:
    config = CotripConfig(api_key="SECRET-KEY", base_url="http://127.0.0.1:9/api/v1", request_timeout=2)

    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(config, session)
        with pytest.raises(CotripTransportError) as exc_info:
            await transport.get_json("/incidents")

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_decode_error_message_truncates_body() -> None:
    async with test_utils.TestServer(_app()) as server, aiohttp.ClientSession() as session:
        transport = HttpTransport(_config(server), session)
        with pytest.raises(CotripDecodeError) as exc_info:
            await transport.get_json("/garbage")

    message = str(exc_info.value)
    assert "<truncated>" in message
    assert "x" * 201 not in message
    assert exc_info.value.endpoint == "/garbage"
