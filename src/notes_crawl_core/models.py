from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

META_FIELDS_PREFIX = "x."

FIELD_TITLE = "title"
FIELD_DESCRIPTION = "description"
FIELD_FORM = "form"
FIELD_WRITER_NAME = "writer_name"
FIELD_LAST_MODIFIED = "last_modified"
FIELD_LAST_UPDATE = "last_update"
FIELD_CREATE_DATE = "create_date"


class CrawlState(str, Enum):
    QUEUED = "queued"
    IN_CRAWL = "incrawl"
    FETCHED = "fetched"
    ERROR = "error"


class CrawlAction(str, Enum):
    ADD = "add"
    DELETE = "delete"


@dataclass
class CrawlRecord:
    """
    Working copy of one crawl queue entry.

    The queue store is the system of record; a worker holds the only copy in
    `incrawl` state between claim and commit.
    """

    record_id: UUID = field(default_factory=uuid4)
    state: CrawlState = CrawlState.QUEUED
    action: CrawlAction | None = None

    server: str = ""
    replica_id: str = ""
    unid: str = ""
    template: str = ""
    auth_type: str = ""
    notes_link: str | None = None

    doc_id: str | None = None
    display_url: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    readers: list[str] = field(default_factory=list)
    is_public: bool | None = None

    content: str | None = None
    content_path: str | None = None
    mime_type: str | None = None

    attachment_filename: str | None = None
    attachment_ids: list[str] = field(default_factory=list)
    attachment_names: list[str] = field(default_factory=list)
    all_attachment_names: list[str] = field(default_factory=list)
    parent_record_id: UUID | None = None

    def derive_attachment(self, attachment_filename: str) -> CrawlRecord:
        return replace(
            self,
            record_id=uuid4(),
            fields=dict(self.fields),
            readers=list(self.readers),
            content=None,
            content_path=None,
            mime_type=None,
            attachment_filename=attachment_filename,
            attachment_ids=[],
            attachment_names=[],
            all_attachment_names=[],
            parent_record_id=self.record_id,
        )

    @classmethod
    def delete_request(cls, doc_id: str) -> CrawlRecord:
        return cls(doc_id=doc_id, action=CrawlAction.DELETE, state=CrawlState.FETCHED)


@dataclass(frozen=True)
class CrawlIssue:
    step: str
    message: str
    subject: str | None = None
