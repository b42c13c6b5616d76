from __future__ import annotations

import logging
import threading

from notes_crawl_core.config import Settings
from notes_crawl_core.db import PostgresConfig
from notes_crawl_core.logging_setup import configure_logging
from notes_crawl_core.notifier import NatsWorkNotifier, PollerNotifier, WorkNotifier
from notes_crawl_core.policy import SettingsPolicy
from notes_crawl_core.repository import SessionFactory
from notes_crawl_core.store import PostgresCrawlStore, StoreFactory
from notes_crawl_core.worker import CrawlWorker

logger = logging.getLogger(__name__)


def build_notifier(settings: Settings) -> WorkNotifier:
    if settings.nats_url:
        return NatsWorkNotifier(
            nats_url=settings.nats_url,
            subject=settings.nats_work_subject,
            timeout_s=settings.idle_wait_timeout_s,
        )
    return PollerNotifier(timeout_s=settings.idle_wait_timeout_s)


def postgres_store_factory(settings: Settings) -> StoreFactory:
    config = PostgresConfig.from_settings(settings)
    dsn = config.build_dsn()

    def _open() -> PostgresCrawlStore:
        return PostgresCrawlStore.open(dsn, schema=config.schema, store_id=settings.queue_store_id)

    return _open


class CrawlerPool:
    """
    Runs `threads` crawl workers, each in its own thread with its own
    handles. `shutdown` stops them after their current document.
    """

    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        store_factory: StoreFactory,
        settings: Settings,
        notifier: WorkNotifier | None = None,
        threads: int | None = None,
    ):
        self.notifier = notifier or build_notifier(settings)
        self._shutdown = threading.Event()
        policy = SettingsPolicy.from_settings(settings)
        count = threads if threads is not None else settings.crawler_threads
        self.workers = [
            CrawlWorker(
                name=f"crawler-{i}",
                session_factory=session_factory,
                store_factory=store_factory,
                policy=policy,
                notifier=self.notifier,
                shutdown=self._shutdown,
                min_spool_free_mb=settings.min_spool_free_mb,
                max_consecutive_exceptions=settings.max_consecutive_exceptions,
            )
            for i in range(count)
        ]
        self._log_level = settings.log_level
        self._log_json = settings.log_json
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        configure_logging(self._log_level, json_output=self._log_json)
        for worker in self.workers:
            t = threading.Thread(target=worker.run, name=worker.name, daemon=True)
            t.start()
            self._threads.append(t)
        logger.info("Started %d crawler thread(s)", len(self._threads))

    def shutdown(self, *, timeout_s: float | None = None) -> None:
        self._shutdown.set()
        self.notifier.wake_all()
        for t in self._threads:
            t.join(timeout=timeout_s)
        self._threads.clear()
