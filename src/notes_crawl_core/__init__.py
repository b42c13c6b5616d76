from notes_crawl_core.config import Settings, load_settings
from notes_crawl_core.content import extract_content
from notes_crawl_core.logging_setup import configure_logging
from notes_crawl_core.metafields import MetaFieldRule, parse_rules
from notes_crawl_core.models import CrawlAction, CrawlIssue, CrawlRecord, CrawlState
from notes_crawl_core.security import ReaderSecurity, compute_readers
from notes_crawl_core.service import CrawlerPool
from notes_crawl_core.templates import ConfigResolver, FormConfig, TemplateConfig
from notes_crawl_core.worker import CrawlWorker

__all__ = [
    "__version__",
    "ConfigResolver",
    "CrawlAction",
    "CrawlIssue",
    "CrawlRecord",
    "CrawlState",
    "CrawlWorker",
    "CrawlerPool",
    "FormConfig",
    "MetaFieldRule",
    "ReaderSecurity",
    "Settings",
    "TemplateConfig",
    "compute_readers",
    "configure_logging",
    "extract_content",
    "load_settings",
    "parse_rules",
]

__version__ = "0.1.0"
