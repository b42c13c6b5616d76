from __future__ import annotations

from notes_crawl_core.repository import CONTENT_TEXT_LIMIT, ItemKind, SourceDocument
from notes_crawl_core.templates import FormConfig

INDEXABLE_KINDS = frozenset(
    {
        ItemKind.TEXT,
        ItemKind.NUMBERS,
        ItemKind.DATETIMES,
        ItemKind.RICHTEXT,
        ItemKind.NAMES,
        ItemKind.AUTHORS,
        ItemKind.READERS,
    }
)


def _is_reserved(field_name: str) -> bool:
    # "$" fields are system fields; the form name is never indexed.
    return not field_name or field_name.startswith("$") or field_name.lower() == "form"


def _render(source: SourceDocument, field_names: list[str]) -> str:
    parts: list[str] = []
    for name in field_names:
        parts.append("\n")
        item = source.first_item(name)
        if item is not None:
            parts.append(item.text(CONTENT_TEXT_LIMIT))
    return "".join(parts)


def extract_content(source: SourceDocument, form: FormConfig | None) -> str:
    """
    Build the indexable body. A form configuration names the fields to index;
    without one every text-like field of the document is indexed once.
    """
    if form is not None:
        return _render(source, [str(f) for f in form.fields_to_index if not _is_reserved(str(f))])

    names: dict[str, None] = {}
    for item in source.items():
        if _is_reserved(item.name) or item.name in names:
            continue
        if item.kind in INDEXABLE_KINDS:
            names[item.name] = None
    return _render(source, list(names))
