from __future__ import annotations

import asyncio
import logging
import threading
from typing import Protocol

from nats.aio.client import Client as NATS
from nats.errors import TimeoutError as NatsTimeoutError

logger = logging.getLogger(__name__)


class WorkNotifier(Protocol):
    def work_token(self) -> int: ...
    def wait_for_work(self, token: int | None = None) -> None: ...
    def notify_work(self) -> None: ...
    def wake_all(self) -> None: ...


class PollerNotifier:
    """
    In-process idle wait. Workers block in `wait_for_work` until a poller
    reports new work, shutdown wakes them, or the optional timeout expires.

    A worker takes `work_token()` before it looks at the queue and passes it
    to `wait_for_work`; work reported in between ends the wait at once.
    After `wake_all` no wait blocks again.
    """

    def __init__(self, *, timeout_s: float | None = None):
        self._cond = threading.Condition()
        self._generation = 0
        self._closed = False
        self._timeout_s = timeout_s

    def work_token(self) -> int:
        with self._cond:
            return self._generation

    def wait_for_work(self, token: int | None = None) -> None:
        with self._cond:
            seen = self._generation if token is None else token
            self._cond.wait_for(lambda: self._closed or self._generation != seen, timeout=self._timeout_s)

    def notify_work(self) -> None:
        with self._cond:
            self._generation += 1
            self._cond.notify_all()

    def wake_all(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


async def _publish(nats_url: str, subject: str, payload: bytes) -> None:
    nc = NATS()
    await nc.connect(servers=[nats_url])
    await nc.publish(subject, payload)
    await nc.flush(timeout=2)
    await nc.close()


async def _wait_for_message(nats_url: str, subject: str, timeout_s: float) -> bool:
    nc = NATS()
    await nc.connect(servers=[nats_url])
    try:
        sub = await nc.subscribe(subject)
        try:
            await sub.next_msg(timeout=timeout_s)
        except NatsTimeoutError:
            return False
        return True
    finally:
        await nc.close()


class NatsWorkNotifier:
    """
    Idle wait across processes: the poller publishes on `subject`, idle
    crawler workers each wait for one message or the timeout. Shutdown of
    the local process is signalled with a local event.
    """

    def __init__(self, *, nats_url: str, subject: str = "crawl.work_available", timeout_s: float = 300.0):
        self._nats_url = nats_url
        self._subject = subject
        self._timeout_s = timeout_s
        self._woken = threading.Event()

    def work_token(self) -> int:
        # Messages published before the subscription are not replayed.
        return 0

    def wait_for_work(self, token: int | None = None) -> None:
        if self._woken.is_set():
            return
        got = asyncio.run(_wait_for_message(self._nats_url, self._subject, self._timeout_s))
        logger.debug("Idle wait on %s ended (message=%s)", self._subject, got)

    def notify_work(self) -> None:
        asyncio.run(_publish(self._nats_url, self._subject, b"{}"))

    def wake_all(self) -> None:
        self._woken.set()
        self.notify_work()
