from __future__ import annotations

from collections.abc import Callable
from typing import Protocol
from uuid import UUID

import psycopg

from notes_crawl_core.db import open_connection
from notes_crawl_core.models import CrawlRecord
from notes_crawl_core.repositories import (
    AttachmentLedgerRepository,
    CrawlQueueRepository,
    TemplateRepository,
)
from notes_crawl_core.templates import TemplateSource


class CrawlQueue(Protocol):
    store_id: str

    def claim_next(self) -> CrawlRecord | None: ...
    def create(self, record: CrawlRecord) -> CrawlRecord: ...
    def save(self, record: CrawlRecord) -> None: ...
    def mark_error(self, record_id: UUID) -> None: ...


class AttachmentLedger(Protocol):
    def get_attachment_ids(self, doc_key: str, replica_id: str) -> set[str]: ...


class CrawlStore(Protocol):
    queue: CrawlQueue
    templates: TemplateSource
    ledger: AttachmentLedger

    def close(self) -> None: ...


StoreFactory = Callable[[], CrawlStore]


class PostgresCrawlStore:
    """
    One worker's private connection to the crawl queue, template and
    attachment ledger tables.
    """

    def __init__(self, conn: psycopg.Connection, *, store_id: str = "crawlq"):
        self._conn = conn
        self.queue = CrawlQueueRepository(conn, store_id=store_id)
        self.templates = TemplateRepository(conn)
        self.ledger = AttachmentLedgerRepository(conn)

    @classmethod
    def open(cls, dsn: str, *, schema: str = "public", store_id: str = "crawlq") -> PostgresCrawlStore:
        return cls(open_connection(dsn, schema=schema), store_id=store_id)

    def close(self) -> None:
        self._conn.close()
