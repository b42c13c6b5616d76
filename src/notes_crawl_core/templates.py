from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from notes_crawl_core.metafields import MetaFieldRule, parse_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormConfig:
    alias: str
    fields_to_index: tuple[str, ...] = ()
    search_results_formula: str = ""
    description_formula: str = ""


@dataclass(frozen=True)
class TemplateConfig:
    name: str
    meta_fields: tuple[str, ...] = ()
    search_results_formula: str = ""
    description_formula: str = ""
    forms: tuple[FormConfig, ...] = ()


class TemplateSource(Protocol):
    def get_template(self, name: str) -> TemplateConfig | None: ...


class ConfigResolver:
    """
    Per-worker cache of the current template, its selected form and the
    template's parsed meta field rules. A name mismatch drops all three and
    reloads from the source.
    """

    def __init__(self, source: TemplateSource):
        self._source = source
        self._template: TemplateConfig | None = None
        self._form: FormConfig | None = None
        self._rules: list[MetaFieldRule] = []

    @property
    def template(self) -> TemplateConfig | None:
        return self._template

    @property
    def form(self) -> FormConfig | None:
        return self._form

    @property
    def rules(self) -> list[MetaFieldRule]:
        return self._rules

    def invalidate(self) -> None:
        self._template = None
        self._form = None
        self._rules = []

    def resolve(self, template_name: str) -> TemplateConfig | None:
        if self._template is not None and self._template.name == template_name:
            return self._template

        self.invalidate()
        template = self._source.get_template(template_name)
        if template is None:
            logger.warning("No template named %r", template_name)
            return None

        self._template = template
        self._rules = parse_rules(template.meta_fields)
        logger.debug("Loaded template %r with meta fields %s", template_name, [str(r) for r in self._rules])
        return template

    def resolve_form(self, form_name: str) -> FormConfig | None:
        if self._form is not None and self._form.alias == form_name:
            return self._form

        self._form = None
        if self._template is None:
            return None
        for form in self._template.forms:
            if form.alias == form_name:
                self._form = form
                break
        return self._form
