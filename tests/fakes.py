from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from notes_crawl_core.models import CrawlRecord, CrawlState
from notes_crawl_core.repository import EmbeddedObjectKind, ItemKind
from notes_crawl_core.templates import TemplateConfig


@dataclass
class FakeItem:
    name: str
    kind: ItemKind = ItemKind.TEXT
    values: list[Any] | None = None

    def text(self, max_chars: int) -> str:
        return "; ".join(str(v) for v in (self.values or []))[:max_chars]


@dataclass
class FakeEmbeddedObject:
    name: str
    file_size: int = 100
    kind: EmbeddedObjectKind = EmbeddedObjectKind.ATTACHMENT
    payload: bytes = b"data"
    fail_extract: bool = False
    extract_error: Exception | None = None

    def extract_file(self, path: str) -> None:
        if self.extract_error is not None:
            raise self.extract_error
        if self.fail_extract:
            raise OSError("disk full")
        Path(path).write_bytes(self.payload)


@dataclass
class FakeDocument:
    universal_id: str = "UNID1"
    notes_url: str = "notes://server/db/UNID1"
    item_list: list[FakeItem] = field(default_factory=list)
    attachments: dict[str, FakeEmbeddedObject] = field(default_factory=dict)
    author_names: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    modified_at: datetime | None = None

    def items(self) -> list[FakeItem]:
        return list(self.item_list)

    def first_item(self, name: str) -> FakeItem | None:
        for item in self.item_list:
            if item.name.lower() == name.lower():
                return item
        return None

    def get_string(self, name: str) -> str:
        item = self.first_item(name)
        if item is None or not item.values:
            return ""
        return str(item.values[0])

    def authors(self) -> list[str]:
        return list(self.author_names)

    def created(self) -> datetime | None:
        return self.created_at

    def last_modified(self) -> datetime | None:
        return self.modified_at

    def get_attachment(self, name: str) -> FakeEmbeddedObject | None:
        return self.attachments.get(name)


class FakeDatabase:
    def __init__(self, documents: dict[str, FakeDocument]):
        self.documents = documents
        self.closed = False

    def document_by_unid(self, unid: str) -> FakeDocument | None:
        return self.documents.get(unid)

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """
    Formulas are looked up in `formulas`; "@AttachmentNames" returns the
    document's attachment names unless overridden.
    """

    def __init__(
        self,
        documents: dict[str, FakeDocument] | None = None,
        *,
        formulas: dict[str, Callable[[FakeDocument], list[Any]]] | None = None,
    ):
        self.documents = documents or {}
        self.formulas = formulas or {}
        self.opened: list[tuple[str, str]] = []
        self.closed = False

    def open_database(self, server: str, replica_id: str) -> FakeDatabase:
        self.opened.append((server, replica_id))
        return FakeDatabase(self.documents)

    def evaluate(self, formula: str, document: FakeDocument) -> list[Any]:
        if formula in self.formulas:
            return self.formulas[formula](document)
        if formula == "@AttachmentNames":
            return list(document.attachments)
        raise RuntimeError(f"cannot evaluate {formula}")

    def close(self) -> None:
        self.closed = True


class InMemoryQueue:
    def __init__(self, store_id: str = "crawlq"):
        self.store_id = store_id
        self.records: dict[Any, CrawlRecord] = {}
        self.order: list[Any] = []
        self.fail_create_for: set[str] = set()
        self.save_errors: list[Exception] = []
        self.marked_error: list[Any] = []

    def enqueue(self, record: CrawlRecord) -> CrawlRecord:
        record.state = CrawlState.QUEUED
        return self.create(record)

    def claim_next(self) -> CrawlRecord | None:
        for record_id in self.order:
            stored = self.records[record_id]
            if stored.state == CrawlState.QUEUED:
                stored.state = CrawlState.IN_CRAWL
                return replace(stored, fields=dict(stored.fields))
        return None

    def create(self, record: CrawlRecord) -> CrawlRecord:
        if record.doc_id in self.fail_create_for:
            raise RuntimeError("queue unavailable")
        self.records[record.record_id] = replace(record, fields=dict(record.fields))
        self.order.append(record.record_id)
        return record

    def save(self, record: CrawlRecord) -> None:
        if self.save_errors:
            raise self.save_errors.pop(0)
        self.records[record.record_id] = replace(record, fields=dict(record.fields))

    def mark_error(self, record_id: Any) -> None:
        self.marked_error.append(record_id)
        self.records[record_id].state = CrawlState.ERROR

    def children(self, parent: CrawlRecord) -> list[CrawlRecord]:
        return [r for r in self.records.values() if r.parent_record_id == parent.record_id]

    def deletes(self) -> list[CrawlRecord]:
        return [r for r in self.records.values() if r.action is not None and r.action.value == "delete"]


class InMemoryTemplates:
    def __init__(self, templates: list[TemplateConfig] | None = None):
        self.templates = {t.name: t for t in templates or []}
        self.loads: list[str] = []

    def get_template(self, name: str) -> TemplateConfig | None:
        self.loads.append(name)
        return self.templates.get(name)


class InMemoryLedger:
    def __init__(self, ids: dict[tuple[str, str], set[str]] | None = None, *, fail: bool = False):
        self.ids = ids or {}
        self.fail = fail

    def get_attachment_ids(self, doc_key: str, replica_id: str) -> set[str]:
        if self.fail:
            raise RuntimeError("ledger unavailable")
        return set(self.ids.get((doc_key, replica_id), set()))


class InMemoryStore:
    def __init__(self, *, queue=None, templates=None, ledger=None):  # noqa: ANN001
        self.queue = queue or InMemoryQueue()
        self.templates = templates or InMemoryTemplates()
        self.ledger = ledger or InMemoryLedger()
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


@dataclass
class FakePolicy:
    spool_dir: str
    max_file_size: int = 1000
    excluded: frozenset[str] = frozenset({"exe"})
    mime_types: dict[str, str] = field(default_factory=lambda: {"pdf": "application/pdf", "txt": "text/plain"})
    domains: dict[str, str] = field(default_factory=dict)

    def is_excluded_extension(self, extension: str) -> bool:
        return extension.lower() in self.excluded

    def mime_type(self, extension: str) -> str:
        return self.mime_types.get(extension.lower(), "")

    def domain(self, server: str) -> str:
        return self.domains.get(server, "")


class RecordingNotifier:
    def __init__(self, on_wait: Callable[[], None] | None = None):
        self.waits = 0
        self.on_wait = on_wait

    def work_token(self) -> int:
        return 0

    def wait_for_work(self, token: int | None = None) -> None:
        self.waits += 1
        if self.on_wait is not None:
            self.on_wait()

    def notify_work(self) -> None:
        pass

    def wake_all(self) -> None:
        pass
