"""Broadcast of a process log to independent marker waiters."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)
serve_log = logging.getLogger("device_suite_runner.serve")


class MarkerTimeoutError(TimeoutError):
    """Raised when a marker is not observed within the allowed time."""


class LogStreamClosedError(RuntimeError):
    """Raised when the log stream ends before a waiter was resolved."""


@dataclass(frozen=True, kw_only=True)
class Subscription[T]:
    """A pending wait for the first chunk matching a predicate."""

    predicate: Callable[[str], bool]
    extract: Callable[[str], T]
    future: asyncio.Future[T]


def _identity(chunk: str) -> Any:
    return chunk


async def read_line(reader: asyncio.StreamReader) -> bytes:
    """Read one line of any length, the last line may lack its newline.

    Lines longer than the reader limit are read in pieces instead of failing.
    """
    parts: list[bytes] = []
    while True:
        try:
            parts.append(await reader.readuntil(b"\n"))
        except asyncio.LimitOverrunError as e:
            parts.append(await reader.readexactly(e.consumed))
            continue
        except asyncio.IncompleteReadError as e:
            parts.append(e.partial)
        return b"".join(parts)


class StreamWatcher:
    """Broadcasts log chunks to any number of predicate based waiters.

    Every subscription observes all chunks fed after it was created, one
    subscription resolving never hides a chunk from another. Matching is done
    per chunk, there is no buffering across chunk boundaries.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription[Any]] = []
        self._closed_reason: str | None = None

    @property
    def closed(self) -> bool:
        """Whether the stream feeding this watcher has ended."""
        return self._closed_reason is not None

    @property
    def subscriber_count(self) -> int:
        """Number of subscriptions still waiting for a match."""
        return sum(1 for sub in self._subscriptions if not sub.future.done())

    def subscribe[T](
        self,
        predicate: Callable[[str], bool],
        extract: Callable[[str], T] = _identity,
    ) -> asyncio.Future[T]:
        """Register a waiter and return the future it resolves.

        Registration is immediate, so chunks fed between this call and the
        moment the future is awaited are not missed. Subscribing once the
        stream has ended fails the future right away.
        """
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        if self._closed_reason is not None:
            future.set_exception(LogStreamClosedError(self._closed_reason))
            return future
        self._subscriptions.append(
            Subscription(predicate=predicate, extract=extract, future=future)
        )
        return future

    async def wait[T](
        self,
        future: asyncio.Future[T],
        timeout: float | None = None,
        description: str = "marker",
    ) -> T:
        """Wait for a subscription to resolve.

        Args:
            future: Future returned by subscribe
            timeout: Maximum wait in seconds, None waits forever
            description: Marker name used in the timeout message

        Raises:
            MarkerTimeoutError: If the marker is not seen within timeout

        """
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError as e:
            raise MarkerTimeoutError(
                f"{description} not observed within {timeout} seconds"
            ) from e

    async def wait_for[T](
        self,
        predicate: Callable[[str], bool],
        extract: Callable[[str], T] = _identity,
        timeout: float | None = None,
        description: str = "marker",
    ) -> T:
        """Subscribe and wait for the first matching chunk."""
        return await self.wait(self.subscribe(predicate, extract), timeout, description)

    def feed(self, chunk: str) -> None:
        """Deliver a chunk to every pending subscription."""
        remaining: list[Subscription[Any]] = []
        for sub in self._subscriptions:
            if sub.future.done():
                continue
            try:
                if not sub.predicate(chunk):
                    remaining.append(sub)
                    continue
                sub.future.set_result(sub.extract(chunk))
            except Exception as e:
                log.debug("Subscription failed on chunk: %s", e)
                sub.future.set_exception(e)
        self._subscriptions = remaining

    def close(self, reason: str) -> None:
        """Fail every pending subscription, and any later one, with reason."""
        self._closed_reason = reason
        for sub in self._subscriptions:
            if not sub.future.done():
                sub.future.set_exception(LogStreamClosedError(reason))
        self._subscriptions = []

    async def pump(self, reader: asyncio.StreamReader) -> None:
        """Feed every line of a stream until EOF, echoing it to the log.

        Once the stream ends or cannot be read, waiters still pending are
        failed with LogStreamClosedError.
        """
        try:
            while line := await read_line(reader):
                chunk = line.decode(errors="replace").removesuffix("\n")
                serve_log.info("%s", chunk)
                self.feed(chunk)
        except Exception as e:
            log.error("Reading log stream failed: %s", e)
            self.close(f"Log stream failed: {e}")
            return
        log.debug("Log stream reached EOF")
        self.close("Log stream ended before the marker was observed")
