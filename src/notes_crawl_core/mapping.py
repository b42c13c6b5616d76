from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from notes_crawl_core.errors import CONNECTIVITY_ERRORS
from notes_crawl_core.metafields import MetaFieldRule
from notes_crawl_core.models import (
    FIELD_CREATE_DATE,
    FIELD_DESCRIPTION,
    FIELD_FORM,
    FIELD_LAST_MODIFIED,
    FIELD_LAST_UPDATE,
    FIELD_TITLE,
    FIELD_WRITER_NAME,
    META_FIELDS_PREFIX,
    CrawlIssue,
    CrawlRecord,
)
from notes_crawl_core.repository import ItemKind, RepositorySession, SourceDocument
from notes_crawl_core.templates import FormConfig, TemplateConfig

logger = logging.getLogger(__name__)

FORM_ITEM = "Form"
RICHTEXT_META_LIMIT = 2 * 1024


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class FieldMapper:
    def __init__(self, session: RepositorySession):
        self._session = session

    def map_standard_fields(self, record: CrawlRecord, source: SourceDocument, *, http_url: str) -> None:
        last_modified = _iso(source.last_modified())
        record.doc_id = http_url
        record.display_url = http_url
        record.fields[FIELD_FORM] = source.get_string(FORM_ITEM)
        record.fields[FIELD_LAST_MODIFIED] = last_modified
        record.fields[FIELD_WRITER_NAME] = list(source.authors())
        record.fields[FIELD_LAST_UPDATE] = last_modified
        record.fields[FIELD_CREATE_DATE] = _iso(source.created())

    def evaluate_field(self, source: SourceDocument, formula: str, default: str = "") -> tuple[str, CrawlIssue | None]:
        if not formula.strip():
            return default, None
        try:
            results = self._session.evaluate(formula, source)
        except CONNECTIVITY_ERRORS:
            raise
        except Exception as e:  # noqa: BLE001
            logger.warning("Unable to evaluate formula %r: %s", formula, e)
            return default, CrawlIssue(step="evaluate_formula", message=str(e), subject=formula)
        value = str(results[0]) if results else ""
        if not value.strip():
            return default, None
        return value, None

    def map_title_and_description(
        self,
        record: CrawlRecord,
        source: SourceDocument,
        template: TemplateConfig,
        form: FormConfig | None,
    ) -> list[CrawlIssue]:
        # Form configuration wins; without one the template defaults apply.
        config = form if form is not None else template
        issues: list[CrawlIssue] = []
        for name, formula in (
            (FIELD_TITLE, config.search_results_formula),
            (FIELD_DESCRIPTION, config.description_formula),
        ):
            value, issue = self.evaluate_field(source, formula)
            record.fields[name] = value
            if issue is not None:
                issues.append(issue)
        return issues

    def map_meta_fields(
        self,
        record: CrawlRecord,
        source: SourceDocument,
        rules: list[MetaFieldRule],
    ) -> list[CrawlIssue]:
        issues: list[CrawlIssue] = []
        for rule in rules:
            try:
                if rule.field_name is None or rule.meta_name is None:
                    continue
                if rule.form_name is not None:
                    doc_form = source.get_string(FORM_ITEM)
                    if rule.form_name.lower() != doc_form.lower():
                        logger.debug("Skipping %s: document form is %r", rule, doc_form)
                        continue

                item = source.first_item(rule.field_name)
                if item is None or not item.values:
                    continue

                content: Any
                if item.kind == ItemKind.RICHTEXT:
                    content = item.text(RICHTEXT_META_LIMIT)
                elif len(item.values) == 1:
                    content = item.values[0]
                else:
                    content = list(item.values)

                key = META_FIELDS_PREFIX + rule.meta_name
                if key in record.fields:
                    # First mapping to a meta name wins.
                    logger.warning("Meta field %s already exists in crawl record", rule.meta_name)
                    issues.append(
                        CrawlIssue(step="map_meta_fields", message="duplicate meta name", subject=rule.meta_name)
                    )
                    continue
                record.fields[key] = content
            except CONNECTIVITY_ERRORS:
                raise
            except Exception as e:  # noqa: BLE001
                logger.warning("Error mapping meta field %s", rule, exc_info=True)
                issues.append(CrawlIssue(step="map_meta_fields", message=str(e), subject=str(rule)))
        return issues
