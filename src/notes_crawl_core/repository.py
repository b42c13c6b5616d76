from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

# Upper bound for rendering a field into the indexable body.
CONTENT_TEXT_LIMIT = 2 * 1024 * 1024


class ItemKind(str, Enum):
    TEXT = "text"
    NUMBERS = "numbers"
    DATETIMES = "datetimes"
    RICHTEXT = "richtext"
    NAMES = "names"
    AUTHORS = "authors"
    READERS = "readers"
    ATTACHMENT = "attachment"
    OTHER = "other"


class EmbeddedObjectKind(str, Enum):
    ATTACHMENT = "attachment"
    OBJECT = "object"
    OBJECT_LINK = "object_link"


class SourceItem(Protocol):
    name: str
    kind: ItemKind
    values: list[Any] | None

    def text(self, max_chars: int) -> str: ...


class EmbeddedObject(Protocol):
    name: str
    kind: EmbeddedObjectKind
    file_size: int

    def extract_file(self, path: str) -> None: ...


class SourceDocument(Protocol):
    universal_id: str
    notes_url: str

    def items(self) -> list[SourceItem]: ...
    def first_item(self, name: str) -> SourceItem | None: ...
    def get_string(self, name: str) -> str: ...
    def authors(self) -> list[str]: ...
    def created(self) -> datetime | None: ...
    def last_modified(self) -> datetime | None: ...
    def get_attachment(self, name: str) -> EmbeddedObject | None: ...


class SourceDatabase(Protocol):
    def document_by_unid(self, unid: str) -> SourceDocument | None: ...
    def close(self) -> None: ...


class RepositorySession(Protocol):
    def open_database(self, server: str, replica_id: str) -> SourceDatabase: ...
    def evaluate(self, formula: str, document: SourceDocument) -> list[Any]: ...
    def close(self) -> None: ...


SessionFactory = Callable[[], RepositorySession]
