from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Callable
from pathlib import Path

from notes_crawl_core.attachments import AttachmentProcessor
from notes_crawl_core.content import extract_content
from notes_crawl_core.errors import CONNECTIVITY_ERRORS
from notes_crawl_core.mapping import FORM_ITEM, FieldMapper
from notes_crawl_core.models import CrawlAction, CrawlIssue, CrawlRecord, CrawlState
from notes_crawl_core.notifier import WorkNotifier
from notes_crawl_core.policy import CrawlPolicy
from notes_crawl_core.reconcile import AttachmentReconciler
from notes_crawl_core.repository import RepositorySession, SessionFactory, SourceDatabase
from notes_crawl_core.security import compute_readers
from notes_crawl_core.store import CrawlStore, StoreFactory
from notes_crawl_core.templates import ConfigResolver
from notes_crawl_core.util import build_http_url

logger = logging.getLogger(__name__)

MIN_SPOOL_FREE_MB = 300
MAX_CONSECUTIVE_EXCEPTIONS = 5


def spool_free_bytes(spool_dir: str) -> int:
    path = Path(spool_dir)
    path.mkdir(parents=True, exist_ok=True)
    return shutil.disk_usage(path).free


class CrawlWorker:
    """
    One crawler thread. Owns its repository session, store connection and
    configuration cache; none of them is shared with other workers.
    """

    def __init__(
        self,
        *,
        name: str,
        session_factory: SessionFactory,
        store_factory: StoreFactory,
        policy: CrawlPolicy,
        notifier: WorkNotifier,
        shutdown: threading.Event | None = None,
        min_spool_free_mb: int = MIN_SPOOL_FREE_MB,
        max_consecutive_exceptions: int = MAX_CONSECUTIVE_EXCEPTIONS,
        free_space: Callable[[str], int] = spool_free_bytes,
    ):
        self.name = name
        self._session_factory = session_factory
        self._store_factory = store_factory
        self._policy = policy
        self._notifier = notifier
        self._shutdown = shutdown or threading.Event()
        self._min_spool_free_mb = min_spool_free_mb
        self._max_consecutive_exceptions = max_consecutive_exceptions
        self._free_space = free_space

        self._session: RepositorySession | None = None
        self._store: CrawlStore | None = None
        self._config: ConfigResolver | None = None
        self._mapper: FieldMapper | None = None
        self._attachments: AttachmentProcessor | None = None
        self._reconciler: AttachmentReconciler | None = None
        self._source_db: SourceDatabase | None = None
        self._open_replica_id = ""

        self.exception_count = 0

    @property
    def connected(self) -> bool:
        return self._session is not None and self._store is not None

    def connect(self) -> None:
        if self._session is None:
            self._session = self._session_factory()
        if self._store is None:
            self._store = self._store_factory()
            self._config = ConfigResolver(self._store.templates)
        if self._mapper is None:
            self._mapper = FieldMapper(self._session)
            self._attachments = AttachmentProcessor(
                session=self._session,
                queue=self._store.queue,
                policy=self._policy,
            )
            self._reconciler = AttachmentReconciler(ledger=self._store.ledger, queue=self._store.queue)

    def _release(self, what: str, close: Callable[[], None]) -> None:
        try:
            close()
        except Exception:  # noqa: BLE001
            logger.warning("%s: error releasing %s", self.name, what, exc_info=True)

    def disconnect(self) -> None:
        if self._config is not None:
            self._config.invalidate()
        if self._source_db is not None:
            self._release("source database", self._source_db.close)
        if self._store is not None:
            self._release("crawl store", self._store.close)
        if self._session is not None:
            self._release("repository session", self._session.close)

        self._config = None
        self._mapper = None
        self._attachments = None
        self._reconciler = None
        self._source_db = None
        self._open_replica_id = ""
        self._store = None
        self._session = None

    def spool_free_mb(self) -> int:
        return self._free_space(self._policy.spool_dir) // 1_000_000

    def _source_database(self, server: str, replica_id: str) -> SourceDatabase:
        assert self._session is not None
        if self._source_db is None or replica_id != self._open_replica_id:
            if self._source_db is not None:
                self._release("source database", self._source_db.close)
                self._source_db = None
            self._source_db = self._session.open_database(server, replica_id)
            self._open_replica_id = replica_id
        return self._source_db

    def prefetch(self, record: CrawlRecord) -> bool:
        """
        Fill the record from its source document. Returns False when the
        document cannot be processed in this pass.
        """
        assert self._config is not None and self._mapper is not None
        assert self._attachments is not None and self._reconciler is not None

        template = self._config.resolve(record.template)
        if template is None:
            logger.warning("%s: no template %r for %s; skipping", self.name, record.template, record.notes_link)
            return False

        source = self._source_database(record.server, record.replica_id).document_by_unid(record.unid)
        if source is None:
            logger.warning("%s: source document %s not found", self.name, record.unid)
            return False

        form = self._config.resolve_form(source.get_string(FORM_ITEM))
        if form is None:
            logger.debug("%s: no form configuration, using template %r for %s", self.name, template.name, record.notes_link)

        security = compute_readers(source.items(), auth_type=record.auth_type)
        if security.readers:
            record.readers = security.readers
        record.is_public = security.is_public

        http_url = build_http_url(
            server=record.server,
            domain=self._policy.domain(record.server),
            replica_id=record.replica_id,
            unid=record.unid,
        )
        issues: list[CrawlIssue] = []
        self._mapper.map_standard_fields(record, source, http_url=http_url)
        issues += self._mapper.map_title_and_description(record, source, template, form)
        issues += self._mapper.map_meta_fields(record, source, self._config.rules)

        attachments = self._attachments.process(record, source, http_url=http_url)
        record.attachment_names = attachments.retained_names
        record.all_attachment_names = attachments.all_names
        record.attachment_ids = attachments.retained_ids
        issues += attachments.issues

        # After attachments, so attachment records never carry the parent body.
        record.content = extract_content(source, form)
        record.action = CrawlAction.ADD

        reconciled = self._reconciler.reconcile(http_url, attachments.retained_ids)
        issues += reconciled.issues

        if issues:
            logger.info("%s: %d issue(s) while crawling %s", self.name, len(issues), record.notes_link)
        return True

    def _idle(self, token: int | None = None) -> None:
        if self._shutdown.is_set():
            return
        self._notifier.wait_for_work(token)

    def _commit(self, record: CrawlRecord) -> None:
        assert self._store is not None
        try:
            self._store.queue.save(record)
        except CONNECTIVITY_ERRORS:
            raise
        except Exception:
            # The full record was rejected; still take it out of incrawl.
            logger.exception("%s: unable to commit %s, marking it error", self.name, record.notes_link)
            record.state = CrawlState.ERROR
            self._store.queue.mark_error(record.record_id)
            raise

    def process(self, record: CrawlRecord) -> None:
        assert self._store is not None
        try:
            ok = self.prefetch(record)
        except CONNECTIVITY_ERRORS:
            record.state = CrawlState.ERROR
            self._commit(record)
            raise
        except Exception:
            logger.exception("%s: error prefetching document %s", self.name, record.notes_link)
            ok = False

        record.state = CrawlState.FETCHED if ok else CrawlState.ERROR
        self._commit(record)

    def run_once(self) -> bool:
        """
        One loop iteration. Returns True when a record was claimed and
        committed.
        """
        free_mb = self.spool_free_mb()
        if free_mb < self._min_spool_free_mb:
            logger.warning(
                "%s: insufficient space in spool directory (%d MB free, need %d MB)",
                self.name,
                free_mb,
                self._min_spool_free_mb,
            )
            self._idle()
            return False

        self.connect()
        assert self._store is not None
        token = self._notifier.work_token()
        record = self._store.queue.claim_next()
        if record is None:
            logger.debug("%s: crawl queue is empty, sleeping", self.name)
            self.disconnect()
            self._idle(token)
            return False

        self.process(record)
        return True

    def run(self) -> None:
        logger.info("%s: crawler starting", self.name)
        while not self._shutdown.is_set():
            try:
                self.run_once()
                self.exception_count = 0
            except Exception:
                logger.exception("%s: crawl loop failure", self.name)
                self.exception_count += 1
                self.disconnect()
                if self.exception_count > self._max_consecutive_exceptions:
                    logger.warning("%s: too many exceptions, sleeping", self.name)
                    self._idle()
                    self.exception_count = 0
        self.disconnect()
        logger.info("%s: crawler exiting", self.name)

    def stop(self) -> None:
        self._shutdown.set()
