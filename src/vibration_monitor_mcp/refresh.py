"""
Refresh callbacks.

Components that hold derived data (caches, dashboards, pollers) register a
named callback here; ``trigger()`` asks all of them to refresh. A failing
callback is logged and reported, and does not stop the others.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Any]


class RefreshHooks:
    """Named set of refresh callbacks."""

    def __init__(self) -> None:
        self._callbacks: dict[str, RefreshCallback] = {}

    def register(self, name: str, callback: RefreshCallback) -> Callable[[], None]:
        """
        Register ``callback`` under ``name`` (replacing any previous one).

        Returns:
            A function that unregisters this exact callback.
        """
        if not callable(callback):
            raise ValueError(f"Refresh callback '{name}' is not callable")
        self._callbacks[name] = callback

        def unregister() -> None:
            if self._callbacks.get(name) is callback:
                del self._callbacks[name]

        return unregister

    def unregister(self, name: str) -> bool:
        return self._callbacks.pop(name, None) is not None

    def names(self) -> list[str]:
        return list(self._callbacks)

    def trigger(self) -> dict[str, dict]:
        """
        Run every registered callback.

        Returns:
            {name: {"ok": True} | {"ok": False, "error": "..."}}
        """
        results: dict[str, dict] = {}
        for name, callback in list(self._callbacks.items()):
            try:
                callback()
                results[name] = {"ok": True}
            except Exception as e:
                logger.warning(f"Refresh callback '{name}' failed: {e}")
                results[name] = {"ok": False, "error": str(e)}
        logger.info(f"Refresh triggered for {len(results)} callback(s)")
        return results


hooks = RefreshHooks()
