from notes_crawl_core.repositories.ledger import AttachmentLedgerRepository
from notes_crawl_core.repositories.queue import CrawlQueueRepository
from notes_crawl_core.repositories.templates import TemplateRepository

__all__ = [
    "AttachmentLedgerRepository",
    "CrawlQueueRepository",
    "TemplateRepository",
]
