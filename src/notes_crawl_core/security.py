from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from notes_crawl_core.repository import ItemKind, SourceItem

logger = logging.getLogger(__name__)

AUTH_NONE = "none"


@dataclass(frozen=True)
class ReaderSecurity:
    readers: list[str]
    is_public: bool


def _lowered_values(item: SourceItem) -> list[str]:
    return [str(v).lower() for v in (item.values or [])]


def compute_readers(items: Iterable[SourceItem], *, auth_type: str) -> ReaderSecurity:
    """
    Document-level read access from readers/authors fields.

    Reader security only applies when at least one readers field is
    non-empty. In that case authors also grant read access. Otherwise the
    reader list stays empty and database-level security applies.
    """
    readers: list[str] = []
    authors: list[str] = []
    has_readers = False

    for item in items:
        if item.kind == ItemKind.READERS:
            values = _lowered_values(item)
            has_readers = has_readers or bool(values)
            readers.extend(values)
        elif item.kind == ItemKind.AUTHORS:
            authors.extend(_lowered_values(item))

    if has_readers:
        readers.extend(authors)

    unique = list(dict.fromkeys(readers))
    logger.debug("Document readers: %s", unique)
    return ReaderSecurity(readers=unique, is_public=auth_type == AUTH_NONE)
