from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from pycotrip import controller as controller_module
from pycotrip.config import CotripConfig
from pycotrip.controller import LayerController
from pycotrip.exceptions import CotripError, CotripTransportError
from pycotrip.models import LayerKey
from pycotrip.state.lifecycle import AppLifecycle, AppState
from pycotrip.state.store import LayerView


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _feeds(suffix: str = "") -> dict[str, Any]:
    return {
        "/roadConditions": {
            "features": [
                {
                    "geometry": {"type": "LineString", "coordinates": [[-105.0, 39.7], [-105.1, 39.8]]},
                    "properties": {"id": f"rc{suffix}", "routeName": "I-70"},
                }
            ]
        },
        "/incidents": {
            "features": [
                {
                    "geometry": {"type": "MultiPoint", "coordinates": [[-105.0, 39.7]]},
                    "properties": {"id": f"inc{suffix}", "type": "Crash"},
                }
            ]
        },
        "/weatherStations": {
            "features": [
                {
                    "geometry": {"type": "Point", "coordinates": [-105.0, 39.7]},
                    "properties": {"id": f"ws{suffix}", "publicName": "Vail Pass"},
                }
            ]
        },
    }


class _FakeTransport:
    """Serves the current ``responses``; unknown endpoints return an empty feed.

    When ``gate`` is set, calls wait on it before returning the body that
    was current when the call started.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = responses if responses is not None else _feeds()
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def get_json(self, endpoint: str) -> Any:
        self.calls.append(endpoint)
        response = self.responses.get(endpoint, {"features": []})
        gate = self.gate
        if gate is not None:
            await gate.wait()
        if isinstance(response, Exception):
            raise response
        return response


def _config(**kwargs: Any) -> CotripConfig:
    return CotripConfig(api_key="TEST-KEY", **kwargs)


def _controller(transport: _FakeTransport, **kwargs: Any) -> LayerController:
    config = kwargs.pop("config", None) or _config()
    return LayerController(config, transport=transport, clock=_dt, **kwargs)


async def _wait_for(predicate: Any, timeout: float = 1.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.mark.asyncio
async def test_start_loads_default_layers() -> None:
    transport = _FakeTransport()
    controller = _controller(transport)

    await controller.start(auto_refresh=False)
    try:
        assert len(transport.calls) == 7
        assert [overlay.id for overlay in controller.overlays] == ["rc"]
        assert [marker.id for marker in controller.markers] == ["inc#0"]
        assert controller.last_updated == _dt()
        assert controller.error is None
        assert controller.is_loading is False
        assert controller.cache.counts()["weatherStations"] == 1
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_toggle_uses_cache_without_fetching() -> None:
    transport = _FakeTransport()
    controller = _controller(transport)
    await controller.start(auto_refresh=False)
    calls = len(transport.calls)

    try:
        assert controller.toggle_layer("weatherStations") is True
        assert [marker.id for marker in controller.markers] == ["inc#0", "ws"]
        assert controller.enabled_layers[LayerKey.INCIDENTS] is True

        assert controller.toggle_layer(LayerKey.INCIDENTS) is False
        assert [marker.id for marker in controller.markers] == ["ws"]

        controller.toggle_layer(LayerKey.INCIDENTS)
        controller.toggle_layer(LayerKey.WEATHER_STATIONS)
        assert [marker.id for marker in controller.markers] == ["inc#0"]
        assert len(transport.calls) == calls
    finally:
        await controller.stop()


def test_toggle_unknown_layer_rejected() -> None:
    controller = _controller(_FakeTransport())

    with pytest.raises(ValueError):
        controller.toggle_layer("trafficCameras")


@pytest.mark.asyncio
async def test_total_failure_keeps_stale_cache() -> None:
    transport = _FakeTransport()
    controller = _controller(transport)
    await controller.start(auto_refresh=False)

    try:
        error = CotripTransportError("HTTP 503 from feed", status_code=503)
        transport.responses = {endpoint: error for endpoint in _config().endpoints.values()}
        await controller.refresh()

        assert controller.error is not None
        assert "HTTP 503 from feed" in controller.error
        assert [marker.id for marker in controller.markers] == ["inc#0"]
        assert controller.last_updated == _dt()
        assert set(controller.feed_errors) == set(LayerKey)

        transport.responses = _feeds("-2")
        await controller.refresh()

        assert controller.error is None
        assert controller.feed_errors == {}
        assert [marker.id for marker in controller.markers] == ["inc-2#0"]
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_partial_failure_degrades_one_layer() -> None:
    responses = _feeds()
    responses["/incidents"] = CotripTransportError("timed out")
    transport = _FakeTransport(responses)
    controller = _controller(transport)

    await controller.start(auto_refresh=False)
    try:
        assert controller.error is None
        assert controller.feed_errors == {LayerKey.INCIDENTS: "timed out"}
        assert controller.markers == ()
        assert [overlay.id for overlay in controller.overlays] == ["rc"]
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_normalization_failure_recorded(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = _FakeTransport()
    controller = _controller(transport)
    await controller.start(auto_refresh=False)

    def _broken(raw: Any) -> Any:
        raise RuntimeError("parser bug")

    monkeypatch.setattr(controller_module, "normalize_layer_data", _broken)
    try:
        await controller.refresh()

        assert controller.error == "parser bug"
        assert controller.is_loading is False
        assert [marker.id for marker in controller.markers] == ["inc#0"]
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_refresh_suppressed_while_backgrounded() -> None:
    transport = _FakeTransport()
    lifecycle = AppLifecycle(AppState.BACKGROUND)
    controller = _controller(transport, lifecycle=lifecycle)

    await controller.start(auto_refresh=False)
    try:
        await controller.refresh()

        assert transport.calls == []
        assert controller.last_updated is None
        assert controller.markers == ()
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_return_to_foreground_triggers_refresh() -> None:
    transport = _FakeTransport()
    lifecycle = AppLifecycle()
    controller = _controller(transport, lifecycle=lifecycle)
    await controller.start(auto_refresh=False)

    try:
        lifecycle.set_state(AppState.BACKGROUND)
        await controller.refresh()
        assert len(transport.calls) == 7

        lifecycle.set_state(AppState.ACTIVE)
        await _wait_for(lambda: len(transport.calls) == 14 and not controller.is_loading)

        lifecycle.set_state(AppState.INACTIVE)
        lifecycle.set_state(AppState.BACKGROUND)
        await asyncio.sleep(0.02)
        assert len(transport.calls) == 14
    finally:
        await controller.stop()


@pytest.mark.asyncio
async def test_stop_removes_lifecycle_subscription() -> None:
    transport = _FakeTransport()
    lifecycle = AppLifecycle()
    controller = _controller(transport, lifecycle=lifecycle)
    await controller.start(auto_refresh=False)
    await controller.stop()

    lifecycle.set_state(AppState.BACKGROUND)
    lifecycle.set_state(AppState.ACTIVE)
    await asyncio.sleep(0.02)

    assert len(transport.calls) == 7
    assert controller.is_running is False


@pytest.mark.asyncio
async def test_superseded_refresh_does_not_overwrite_newer_result() -> None:
    transport = _FakeTransport(_feeds("-old"))
    controller = _controller(transport)

    gate = asyncio.Event()
    transport.gate = gate
    slow = asyncio.create_task(controller.refresh())
    await _wait_for(lambda: len(transport.calls) == 7)
    assert controller.is_loading is True

    transport.gate = None
    transport.responses = _feeds("-new")
    await controller.refresh()

    assert [marker.id for marker in controller.markers] == ["inc-new#0"]
    assert controller.is_loading is True

    gate.set()
    await slow

    assert [marker.id for marker in controller.markers] == ["inc-new#0"]
    assert controller.is_loading is False


@pytest.mark.asyncio
async def test_timer_refreshes_every_ttl() -> None:
    transport = _FakeTransport()
    controller = _controller(transport, config=_config(refresh_ttl=0.02))

    await controller.start()
    try:
        await _wait_for(lambda: len(transport.calls) >= 21)
    finally:
        await controller.stop()

    calls = len(transport.calls)
    await asyncio.sleep(0.06)
    assert len(transport.calls) == calls


@pytest.mark.asyncio
async def test_refresh_requires_started_controller() -> None:
    controller = LayerController(_config())

    with pytest.raises(CotripError):
        await controller.refresh()


@pytest.mark.asyncio
async def test_on_change_listener_receives_views() -> None:
    views: list[LayerView] = []
    controller = _controller(_FakeTransport(), on_change=views.append)

    async with controller:
        controller.toggle_layer(LayerKey.ROAD_CONDITIONS)

    assert views[0].is_loading is True
    assert views[-1].overlays == ()
    assert views[-1].enabled_layers[LayerKey.ROAD_CONDITIONS] is False
    assert controller.snapshot() == views[-1]


def _feed_app() -> web.Application:
    async def _handler(request: web.Request) -> web.Response:
        return web.json_response(_feeds().get(f"/{request.match_info['feed']}", {"features": []}))

    app = web.Application()
    app.router.add_get("/api/v1/{feed}", _handler)
    return app


@pytest.mark.asyncio
async def test_owned_session_closed_on_stop() -> None:
    async with test_utils.TestServer(_feed_app()) as server:
        config = _config(base_url=str(server.make_url("/api/v1")))
        controller = LayerController(config)

        await controller.start(auto_refresh=False)
        session = controller._http_session
        assert session is not None
        assert [marker.id for marker in controller.markers] == ["inc#0"]

        await controller.stop()

    assert session.closed is True
    assert controller._http_session is None


@pytest.mark.asyncio
async def test_external_session_left_open() -> None:
    async with test_utils.TestServer(_feed_app()) as server, aiohttp.ClientSession() as session:
        config = _config(base_url=str(server.make_url("/api/v1")))
        controller = LayerController(config, session=session)

        async with controller:
            assert [overlay.id for overlay in controller.overlays] == ["rc"]

        assert session.closed is False


class _SlowTransport(_FakeTransport):
    """Takes ``delay`` seconds per call and records when each refresh started."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.started_at: list[float] = []

    async def get_json(self, endpoint: str) -> Any:
        if endpoint == "/roadConditions":
            self.started_at.append(asyncio.get_running_loop().time())
        self.calls.append(endpoint)
        await asyncio.sleep(self.delay)
        return self.responses.get(endpoint, {"features": []})


@pytest.mark.asyncio
async def test_timer_keeps_fixed_rate_with_slow_fetches() -> None:
    transport = _SlowTransport(delay=0.08)
    controller = _controller(transport, config=_config(refresh_ttl=0.1))

    await controller.start()
    try:
        # Initial refresh plus four timer ticks.
        await _wait_for(lambda: len(transport.started_at) >= 5, timeout=2.0)
    finally:
        await controller.stop()

    ticks = transport.started_at[1:5]
    gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
    assert all(0.05 < gap < 0.15 for gap in gaps), gaps


@pytest.mark.asyncio
async def test_timer_ticks_suppressed_while_backgrounded() -> None:
    transport = _FakeTransport()
    lifecycle = AppLifecycle()
    controller = _controller(transport, lifecycle=lifecycle, config=_config(refresh_ttl=0.02))

    await controller.start()
    try:
        await _wait_for(lambda: len(transport.calls) >= 14)

        lifecycle.set_state(AppState.BACKGROUND)
        await _wait_for(lambda: not controller.is_loading)
        calls = len(transport.calls)

        await asyncio.sleep(0.1)
        assert len(transport.calls) == calls
        assert controller.is_running is True
    finally:
        await controller.stop()
