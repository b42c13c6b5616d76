from __future__ import annotations

import logging
import time
from pathlib import Path

import pytest
from fakes import FakeDocument, FakeItem, FakeSession, InMemoryQueue, InMemoryStore, InMemoryTemplates

from notes_crawl_core.config import Settings
from notes_crawl_core.logging_setup import PACKAGE_LOGGER, JsonFormatter
from notes_crawl_core.models import CrawlRecord, CrawlState
from notes_crawl_core.notifier import NatsWorkNotifier, PollerNotifier
from notes_crawl_core.repository import ItemKind
from notes_crawl_core.service import CrawlerPool, build_notifier, postgres_store_factory
from notes_crawl_core.templates import TemplateConfig


def _settings(tmp_path: Path, **overrides) -> Settings:  # noqa: ANN003
    values = {"SPOOL_DIR": str(tmp_path), "MIN_SPOOL_FREE_MB": 0, "IDLE_WAIT_TIMEOUT_S": 0.05}
    values.update(overrides)
    return Settings.model_validate(values)


def test_build_notifier_defaults_to_in_process(tmp_path: Path) -> None:
    assert isinstance(build_notifier(_settings(tmp_path)), PollerNotifier)


def test_build_notifier_uses_nats_when_configured(tmp_path: Path) -> None:
    notifier = build_notifier(_settings(tmp_path, NATS_URL="nats://localhost:4222"))
    assert isinstance(notifier, NatsWorkNotifier)


def test_postgres_store_factory_requires_dsn(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="PG_DSN"):
        postgres_store_factory(_settings(tmp_path))


def test_pool_crawls_queue_and_shuts_down(tmp_path: Path) -> None:
    queue = InMemoryQueue()
    templates = InMemoryTemplates([TemplateConfig(name="T1")])
    session = FakeSession(
        {"UNID1": FakeDocument(universal_id="UNID1", item_list=[FakeItem("Body", ItemKind.TEXT, ["hello"])])}
    )
    record = queue.enqueue(CrawlRecord(server="mail01", replica_id="REP1", unid="UNID1", template="T1"))

    pool = CrawlerPool(
        session_factory=lambda: session,
        store_factory=lambda: InMemoryStore(queue=queue, templates=templates),
        settings=_settings(tmp_path),
        notifier=PollerNotifier(timeout_s=0.05),
        threads=1,
    )
    pool.start()
    deadline = time.monotonic() + 5
    pending = (CrawlState.QUEUED, CrawlState.IN_CRAWL)
    while queue.records[record.record_id].state in pending and time.monotonic() < deadline:
        time.sleep(0.01)
    pool.shutdown(timeout_s=5)

    assert queue.records[record.record_id].state == CrawlState.FETCHED
    assert queue.records[record.record_id].content == "\nhello"
    assert [w.name for w in pool.workers] == ["crawler-0"]
    assert not pool.workers[0].connected


def test_shutdown_returns_with_untimed_notifier(tmp_path: Path) -> None:
    queue = InMemoryQueue()
    pool = CrawlerPool(
        session_factory=FakeSession,
        store_factory=lambda: InMemoryStore(queue=queue),
        settings=_settings(tmp_path),
        notifier=PollerNotifier(),
        threads=2,
    )
    pool.start()
    threads = list(pool._threads)
    time.sleep(0.05)

    pool.shutdown(timeout_s=5)

    assert not any(t.is_alive() for t in threads)


def test_start_applies_log_settings(tmp_path: Path) -> None:
    pool = CrawlerPool(
        session_factory=FakeSession,
        store_factory=InMemoryStore,
        settings=_settings(tmp_path, LOG_LEVEL="DEBUG", LOG_JSON=True),
        notifier=PollerNotifier(timeout_s=0.05),
        threads=0,
    )
    pool.start()

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    handlers = [h for h in package_logger.handlers if getattr(h, "_notes_crawl_core", False)]
    try:
        assert package_logger.level == logging.DEBUG
        assert [type(h.formatter) for h in handlers] == [JsonFormatter]
    finally:
        for h in handlers:
            package_logger.removeHandler(h)
        pool.shutdown(timeout_s=1)
