"""In-memory layer store.

This is the only component allowed to replace the layer cache or flip
enabled-layer flags. Everything it hands out is read-only: tuples of frozen
entities and copied dicts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from pycotrip.models._base import MARKER_LAYERS, OVERLAY_LAYERS, LayerKey
from pycotrip.models.layers import LayerCache
from pycotrip.models.map_data import MapMarkerData, MapOverlayData

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LayerView(BaseModel):
    """Read-only view handed to the rendering layer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    overlays: tuple[MapOverlayData, ...] = ()
    markers: tuple[MapMarkerData, ...] = ()
    enabled_layers: dict[LayerKey, bool] = Field(default_factory=dict)
    is_loading: bool = False
    last_updated: datetime | None = None
    error: str | None = None
    feed_errors: dict[LayerKey, str] = Field(default_factory=dict)


LayerListener = Callable[[LayerView], None]


class LayerStore:
    """Cache, enabled flags and refresh bookkeeping for every layer.

    Refreshes are numbered. :meth:`begin_refresh` hands out a generation and
    only the most recently started generation may write a result; a slower,
    superseded refresh that settles later is dropped.
    """

    def __init__(
        self,
        default_layers: Iterable[LayerKey | str] = (),
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        enabled = {LayerKey(key) for key in default_layers}
        self._clock = clock or _utcnow
        self._enabled: dict[LayerKey, bool] = {key: key in enabled for key in LayerKey}
        self._cache = LayerCache()
        self._generation = 0
        self._in_flight = 0
        self._last_updated: datetime | None = None
        self._error: str | None = None
        self._feed_errors: dict[LayerKey, str] = {}
        self._view: LayerView | None = None
        self._listeners: list[LayerListener] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def cache(self) -> LayerCache:
        return self._cache

    @property
    def enabled_layers(self) -> dict[LayerKey, bool]:
        return dict(self._enabled)

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def feed_errors(self) -> dict[LayerKey, str]:
        return dict(self._feed_errors)

    @property
    def generation(self) -> int:
        return self._generation

    def view(self) -> LayerView:
        """Current derived view; rebuilt only after a change."""
        if self._view is None:
            overlays: list[MapOverlayData] = []
            markers: list[MapMarkerData] = []
            for key in LayerKey:
                if not self._enabled[key]:
                    continue
                if key in OVERLAY_LAYERS:
                    overlays.extend(self._cache.entities(key))  # type: ignore[arg-type]
                elif key in MARKER_LAYERS:
                    markers.extend(self._cache.entities(key))  # type: ignore[arg-type]
            self._view = LayerView(
                overlays=tuple(overlays),
                markers=tuple(markers),
                enabled_layers=dict(self._enabled),
                is_loading=self.is_loading,
                last_updated=self._last_updated,
                error=self._error,
                feed_errors=dict(self._feed_errors),
            )
        return self._view

    def add_listener(self, listener: LayerListener) -> Callable[[], None]:
        """Register *listener* for change notifications; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def toggle(self, key: LayerKey | str) -> bool:
        """Flip one layer's flag and return the new value. Never touches the cache."""
        layer = LayerKey(key)
        self._enabled[layer] = not self._enabled[layer]
        _logger.debug("Toggled layer %s enabled=%s", layer, self._enabled[layer])
        self._changed()
        return self._enabled[layer]

    def begin_refresh(self) -> int:
        self._generation += 1
        self._in_flight += 1
        self._changed()
        return self._generation

    def finish_refresh(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        self._changed()

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def commit(
        self,
        generation: int,
        cache: LayerCache,
        *,
        feed_errors: dict[LayerKey, str] | None = None,
    ) -> bool:
        """Replace the whole cache with *cache*; clears ``error``.

        Returns ``False`` (and changes nothing) when *generation* was
        superseded by a newer refresh.
        """
        if not self.is_current(generation):
            _logger.debug("Dropping result of superseded refresh %d (current %d)", generation, self._generation)
            return False
        self._cache = cache
        self._last_updated = self._clock()
        self._error = None
        self._feed_errors = dict(feed_errors or {})
        self._changed()
        return True

    def fail(self, generation: int, message: str, *, feed_errors: dict[LayerKey, str] | None = None) -> bool:
        """Record a failed refresh. The cached layers are left as they were."""
        if not self.is_current(generation):
            _logger.debug("Dropping failure of superseded refresh %d (current %d)", generation, self._generation)
            return False
        self._error = message
        if feed_errors is not None:
            self._feed_errors = dict(feed_errors)
        self._changed()
        return True

    def _changed(self) -> None:
        self._view = None
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                _logger.exception("Layer listener failed")
