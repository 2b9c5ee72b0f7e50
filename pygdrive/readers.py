"""Composable readers used to stream file content during transfers.

``ProgressReader`` reports bytes read to a callback. ``IdleTimeoutReader``
runs a watchdog timer next to the read loop and cancels a ``CancelToken``
when no read has completed for the configured idle timeout. The token's
callbacks close the in-flight HTTP request so the blocked call returns.
"""

import logging
import threading
import time
from collections.abc import Iterator
from typing import Callable, Optional, Protocol

from .exceptions import DriveCancelledError

logger = logging.getLogger(__name__)

# How often the watchdog checks for inactivity (seconds)
TIMEOUT_TIMER_INTERVAL: float = 10.0


class Reader(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class CancelToken:
    """Shared cancellation signal observed by an in-flight transfer."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback run on cancel, immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def cancel(self) -> None:
        """Cancel the token and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.debug(f"Cancel callback failed: {e}")

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise DriveCancelledError("Transfer was cancelled")


class ProgressReader:
    """Reader wrapper reporting (bytes_read, total) after every read."""

    def __init__(
        self,
        reader: Reader,
        callback: Callable[[int, int], None],
        total: int,
    ):
        self._reader = reader
        self._callback = callback
        self._total = total
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        if data:
            self.bytes_read += len(data)
            self._callback(self.bytes_read, self._total)
        return data

    def close(self) -> None:
        close_reader(self._reader)


class IdleTimeoutReader:
    """Reader wrapper cancelling a token when reads stall.

    The watchdog is a ``threading.Timer`` re-armed every ``check_interval``
    seconds. Last activity and the done flag are only touched under a lock.
    The timeout is measured from the last completed read, never from the
    start of the transfer.
    """

    def __init__(
        self,
        reader: Reader,
        token: CancelToken,
        timeout: float,
        check_interval: float = TIMEOUT_TIMER_INTERVAL,
    ):
        self._reader = reader
        self._token = token
        self._timeout = timeout
        self._check_interval = check_interval
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._last_activity = time.monotonic()
        self._done = False

    def read(self, size: int = -1) -> bytes:
        if self._timer is None:
            self._start_timer()

        self._token.raise_if_cancelled()

        try:
            data = self._reader.read(size)
        except BaseException:
            self.close()
            raise

        with self._lock:
            self._last_activity = time.monotonic()
            if not data:
                self._done = True

        if not data:
            self._stop_timer()
        return data

    def close(self) -> None:
        """Stop the watchdog without cancelling the token."""
        with self._lock:
            self._done = True
        self._stop_timer()

    def _start_timer(self) -> None:
        with self._lock:
            if self._done:
                return
            if self._timer is None:
                self._last_activity = time.monotonic()
            self._timer = threading.Timer(self._check_interval, self._check_idle)
            self._timer.daemon = True
            self._timer.start()

    def _stop_timer(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()

    def _check_idle(self) -> None:
        with self._lock:
            if self._done:
                return
            idle = time.monotonic() - self._last_activity
            expired = idle > self._timeout
            if expired:
                self._done = True

        if expired:
            logger.debug(f"No data transferred for {idle:.1f}s, cancelling")
            self._token.cancel()
            return

        self._start_timer()


ReaderWrapper = Callable[[Reader], Reader]


def close_reader(reader: Reader) -> None:
    """Close a reader chain if it supports closing (stops watchdogs)."""
    close = getattr(reader, "close", None)
    if close is not None:
        close()


def get_timeout_reader_context(
    reader: Reader,
    timeout: float,
    check_interval: float = TIMEOUT_TIMER_INTERVAL,
) -> tuple[Reader, CancelToken]:
    """Wrap a reader with an idle timeout.

    Args:
        reader: Reader to wrap
        timeout: Idle timeout in seconds, 0 returns the reader untouched
        check_interval: Watchdog interval in seconds

    Returns:
        Tuple of (reader, token); the token is cancelled on idle timeout
    """
    token = CancelToken()
    if not timeout:
        return reader, token
    return IdleTimeoutReader(reader, token, timeout, check_interval), token


def get_timeout_reader_wrapper(
    timeout: float,
    check_interval: float = TIMEOUT_TIMER_INTERVAL,
) -> tuple[ReaderWrapper, CancelToken]:
    """Like get_timeout_reader_context, for readers created later."""
    token = CancelToken()
    if not timeout:
        return (lambda r: r), token

    def wrapper(reader: Reader) -> Reader:
        return IdleTimeoutReader(reader, token, timeout, check_interval)

    return wrapper, token


class IteratorReader:
    """Adapts an iterator of byte chunks to the read() protocol."""

    def __init__(self, chunks: Iterator[bytes]):
        self._chunks = chunks
        self._buffer = b""

    def read(self, size: int = -1) -> bytes:
        while size < 0 or len(self._buffer) < size:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                break
            self._buffer += chunk
            if size < 0:
                continue
            if chunk:
                break

        if size < 0:
            data, self._buffer = self._buffer, b""
        else:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data
