from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 500


class LoadingIndicator:
    """
    Delayed loading overlay.

    start() arms a timer on the running loop; only if the work is still in
    progress when it fires does `visible` become True (and `on_change` get
    called). stop() cancels the timer and hides the overlay, so fast
    updates never flash it.
    """

    def __init__(
            self,
            delay_ms: int = DEFAULT_DELAY_MS,
            on_change: Optional[Callable[[bool], Any]] = None,
    ):
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self._delay_s = delay_ms / 1000.0
        self._on_change = on_change
        self._timer: Optional[asyncio.TimerHandle] = None
        self.visible = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay_s, self._show)

    def stop(self) -> None:
        self._cancel_timer()
        self._set_visible(False)

    def _show(self) -> None:
        self._timer = None
        self._set_visible(True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_visible(self, visible: bool) -> None:
        if self.visible == visible:
            return
        self.visible = visible
        logger.debug("Loading overlay toggled", extra={"visible": visible})
        if self._on_change is not None:
            self._on_change(visible)
