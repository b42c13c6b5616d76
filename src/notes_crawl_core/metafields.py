from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_FORM_FIELD_META_RE = re.compile(r"(.+)===([^=]+)=([^=]+)")
_FIELD_META_RE = re.compile(r"([^=]+)=([^=]+)")
_FIELD_RE = re.compile(r"([^=]+)")


@dataclass(frozen=True)
class MetaFieldRule:
    """
    Maps a source field onto an extended metadata name, optionally only for
    documents of one form.

    Accepted forms: "form===field=meta", "field=meta" and "field" (meta name
    defaults to the field name). Anything else yields a rule with no field name.
    """

    form_name: str | None = None
    field_name: str | None = None
    meta_name: str | None = None

    @classmethod
    def parse(cls, config: str | None) -> MetaFieldRule:
        if config is None:
            return cls()
        text = config.strip()
        if not text:
            return cls()

        m = _FORM_FIELD_META_RE.fullmatch(text)
        if m:
            return cls(form_name=m.group(1), field_name=m.group(2), meta_name=m.group(3))
        m = _FIELD_META_RE.fullmatch(text)
        if m:
            return cls(field_name=m.group(1), meta_name=m.group(2))
        m = _FIELD_RE.fullmatch(text)
        if m:
            return cls(field_name=m.group(1), meta_name=m.group(1))

        logger.warning("Unable to parse custom meta field definition; skipping: %s", text)
        return cls()

    def __str__(self) -> str:
        return f"[form: {self.form_name}; field: {self.field_name}; meta: {self.meta_name}]"


def parse_rules(configs: Iterable[str | None]) -> list[MetaFieldRule]:
    return [MetaFieldRule.parse(c) for c in configs]
