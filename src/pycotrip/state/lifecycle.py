"""Host application lifecycle (foreground/background) events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

_logger = logging.getLogger(__name__)


class AppState(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


AppStateListener = Callable[[AppState, AppState], None]
"""Called as ``listener(previous, current)`` after every state change."""


class AppLifecycle:
    """Explicit foreground/background event source.

    The host (UI shell, service wrapper, test) calls :meth:`set_state`;
    subscribers registered with :meth:`add_listener` are told about every
    transition. Only :attr:`AppState.ACTIVE` counts as foregrounded.
    """

    def __init__(self, initial: AppState = AppState.ACTIVE) -> None:
        self._state = AppState(initial)
        self._listeners: list[AppStateListener] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == AppState.ACTIVE

    def set_state(self, state: AppState | str) -> None:
        current = AppState(state)
        previous = self._state
        if current == previous:
            return
        self._state = current
        _logger.debug("App state %s -> %s", previous, current)
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                _logger.exception("App state listener failed")

    def add_listener(self, listener: AppStateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove
