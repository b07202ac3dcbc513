"""Layer cache and refresh controller."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import aiohttp

from pycotrip._api.feeds import fetch_all_layer_data
from pycotrip._transport import HttpTransport, Transport
from pycotrip.config import CotripConfig
from pycotrip.exceptions import CotripError
from pycotrip.ingestion.parsers import normalize_layer_data
from pycotrip.models._base import LayerKey
from pycotrip.models.layers import LayerCache
from pycotrip.models.map_data import MapMarkerData, MapOverlayData
from pycotrip.state.lifecycle import AppLifecycle, AppState
from pycotrip.state.store import LayerListener, LayerStore, LayerView

_logger = logging.getLogger(__name__)


class LayerController:
    """Owns the layer cache and keeps it fresh.

    Lifecycle is explicit: construct, :meth:`start`, :meth:`stop`. Refreshes
    happen on start, every ``config.refresh_ttl`` seconds, whenever the host
    returns to the foreground, and on :meth:`refresh`. All of them are
    skipped while the host is backgrounded.

    Usage::

        async with LayerController(config) as controller:
            markers = controller.markers
            controller.toggle_layer("weatherStations")
    """

    def __init__(
        self,
        config: CotripConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        lifecycle: AppLifecycle | None = None,
        clock: Callable[[], datetime] | None = None,
        on_change: LayerListener | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._external_transport = transport is not None
        self._store = LayerStore(config.default_layers, clock=clock)
        self._lifecycle = lifecycle or AppLifecycle()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._started = False
        self._unsubscribe_lifecycle: Callable[[], None] | None = self._lifecycle.add_listener(
            self._on_app_state_change
        )
        if on_change is not None:
            self._store.add_listener(on_change)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LayerController:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self, auto_refresh: bool = True) -> None:
        """Refresh once, then (optionally) keep refreshing every TTL."""
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        if self._unsubscribe_lifecycle is None:
            self._unsubscribe_lifecycle = self._lifecycle.add_listener(self._on_app_state_change)
        self._started = True

        await self.refresh()

        if auto_refresh:
            self._timer_task = self._loop.create_task(self._run_timer())

    async def stop(self) -> None:
        """Stop the timer, drop the lifecycle subscription and close owned resources."""
        if self._unsubscribe_lifecycle is not None:
            self._unsubscribe_lifecycle()
            self._unsubscribe_lifecycle = None

        tasks = list(self._pending)
        if self._timer_task is not None:
            tasks.append(self._timer_task)
            self._timer_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None
        self._started = False
        self._loop = None

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def lifecycle(self) -> AppLifecycle:
        return self._lifecycle

    @property
    def overlays(self) -> tuple[MapOverlayData, ...]:
        """Overlays of every enabled layer, in layer order."""
        return self._store.view().overlays

    @property
    def markers(self) -> tuple[MapMarkerData, ...]:
        """Markers of every enabled layer, in layer order."""
        return self._store.view().markers

    @property
    def enabled_layers(self) -> dict[LayerKey, bool]:
        return self._store.enabled_layers

    @property
    def is_loading(self) -> bool:
        return self._store.is_loading

    @property
    def last_updated(self) -> datetime | None:
        return self._store.last_updated

    @property
    def error(self) -> str | None:
        return self._store.error

    @property
    def feed_errors(self) -> dict[LayerKey, str]:
        """Feeds that degraded to empty during the last successful refresh."""
        return self._store.feed_errors

    @property
    def cache(self) -> LayerCache:
        return self._store.cache

    @property
    def is_running(self) -> bool:
        return self._started

    def snapshot(self) -> LayerView:
        return self._store.view()

    def add_listener(self, listener: LayerListener) -> Callable[[], None]:
        """Subscribe to view changes; returns an unsubscribe callable."""
        return self._store.add_listener(listener)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def toggle_layer(self, key: LayerKey | str) -> bool:
        """Flip one layer on or off. Uses cached data only; never fetches.

        Raises
        ------
        ValueError
            If *key* is not a layer key.
        """
        return self._store.toggle(key)

    async def refresh(self) -> None:
        """Fetch every feed and replace the cache.

        No-op while the host is backgrounded. Fetch and normalization
        failures never raise; they land in :attr:`error` and the previous
        cache stays in place.

        Raises
        ------
        CotripError
            If called before :meth:`start` on a controller built without an
            injected transport. This is a usage error, not a data failure.
        """
        if not self._lifecycle.is_active:
            _logger.debug("Skipping refresh while app is %s", self._lifecycle.state)
            return
        transport = self._require_transport()

        generation = self._store.begin_refresh()
        _logger.debug("Refresh %d started", generation)
        try:
            raw = await fetch_all_layer_data(self._config, transport)
            if raw.all_failed:
                reasons = sorted(set(raw.failures.values()))
                message = f"All {len(raw.failures)} feeds failed: {reasons[0]}"
                if self._store.fail(generation, message, feed_errors=raw.failures):
                    _logger.warning("Refresh %d failed: %s", generation, message)
                return
            cache = normalize_layer_data(raw)
            if self._store.commit(generation, cache, feed_errors=raw.failures):
                _logger.info(
                    "Refresh %d complete: %s%s",
                    generation,
                    cache.counts(),
                    f" (degraded feeds: {sorted(raw.failures)})" if raw.failures else "",
                )
        except Exception as exc:
            message = str(exc) or "Failed to fetch layer data"
            if self._store.fail(generation, message):
                _logger.error("Refresh %d failed", generation, exc_info=True)
        finally:
            self._store.finish_refresh()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise CotripError("Controller not started. Use 'async with LayerController(...) as controller:'")
        return self._transport

    async def _run_timer(self) -> None:
        # Fixed rate: ticks follow a deadline and each refresh runs as its own task.
        loop = asyncio.get_running_loop()
        interval = self._config.refresh_ttl
        deadline = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            self._spawn_refresh()
            deadline += interval
            if deadline <= loop.time():
                # Loop fell behind; missed ticks are skipped.
                deadline = loop.time() + interval

    def _on_app_state_change(self, previous: AppState, current: AppState) -> None:
        if current != AppState.ACTIVE or previous == AppState.ACTIVE:
            return
        loop = self._loop
        if not self._started or loop is None:
            return
        _logger.debug("App returned to foreground; refreshing")
        # May be called from a host thread; hop onto the controller's loop.
        loop.call_soon_threadsafe(self._spawn_refresh)

    def _spawn_refresh(self) -> None:
        if not self._started or self._loop is None:
            return
        task = self._loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
