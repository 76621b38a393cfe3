"""Run-scoped cancellation token and operator interrupt handling."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class CancellationToken:
    """Single-fire cancellation shared by every job of a run.

    Callbacks registered with :meth:`on_cancel` run once, on the thread that
    calls :meth:`cancel`; they must not block.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Fire the token. Returns False if it had already fired."""

        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it.

        If the token already fired, the callback runs immediately.
        """

        with self._lock:
            if not self._event.is_set():
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback

                def _unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(handle, None)

                return _unregister
        callback()
        return lambda: None

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class CancellationController:
    """Turns SIGINT/SIGTERM into a cancellation of the run token."""

    def __init__(self, token: CancellationToken) -> None:
        self.token = token
        self.signal_name: str | None = None

    @property
    def interrupted(self) -> bool:
        return self.signal_name is not None

    def request_stop(self, *, signal_name: str) -> None:
        if self.signal_name is not None:
            logger.warning("Received %s again; shutdown already in progress.", signal_name)
            return
        self.signal_name = signal_name
        logger.warning(
            "Received %s. Cancelling outstanding jobs and shutting down gracefully...",
            signal_name,
        )
        self.token.cancel()

    @contextmanager
    def signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            installed = True
        except ValueError:
            # Signal handlers can only be installed in main thread.
            installed = False
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)
