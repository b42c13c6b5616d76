from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from notes_crawl_core.config import Settings


class CrawlPolicy(Protocol):
    spool_dir: str
    max_file_size: int

    def is_excluded_extension(self, extension: str) -> bool: ...
    def mime_type(self, extension: str) -> str: ...
    def domain(self, server: str) -> str: ...


@dataclass(frozen=True)
class SettingsPolicy:
    spool_dir: str
    max_file_size: int
    excluded_extensions: frozenset[str] = frozenset()
    mime_types: dict[str, str] = field(default_factory=dict)
    server_domains: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> SettingsPolicy:
        return cls(
            spool_dir=settings.spool_dir,
            max_file_size=settings.max_attachment_size,
            excluded_extensions=frozenset(e.lower().lstrip(".") for e in settings.excluded_extensions),
            mime_types={k.lower().lstrip("."): v for k, v in settings.mime_types.items()},
            server_domains=dict(settings.server_domains),
        )

    def is_excluded_extension(self, extension: str) -> bool:
        return extension.lower() in self.excluded_extensions

    def mime_type(self, extension: str) -> str:
        return self.mime_types.get(extension.lower(), "")

    def domain(self, server: str) -> str:
        return self.server_domains.get(server, "")
