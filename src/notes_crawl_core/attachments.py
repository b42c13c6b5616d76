from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from notes_crawl_core.errors import CONNECTIVITY_ERRORS
from notes_crawl_core.models import CrawlAction, CrawlIssue, CrawlRecord, CrawlState
from notes_crawl_core.policy import CrawlPolicy
from notes_crawl_core.repository import (
    EmbeddedObjectKind,
    RepositorySession,
    SourceDocument,
)
from notes_crawl_core.store import CrawlQueue
from notes_crawl_core.util import (
    attachment_content_id,
    attachment_display_url,
    attachment_doc_id,
)

logger = logging.getLogger(__name__)

ATTACHMENT_NAMES_FORMULA = "@AttachmentNames"
DEFAULT_MIME_TYPE = "text/plain"


def attachment_extension(attachment_name: str) -> str:
    _, period, extension = attachment_name.rpartition(".")
    return extension if period else ""


@dataclass
class AttachmentOutcome:
    retained_ids: list[str] = field(default_factory=list)
    retained_names: list[str] = field(default_factory=list)
    all_names: list[str] = field(default_factory=list)
    issues: list[CrawlIssue] = field(default_factory=list)


class AttachmentProcessor:
    """
    Turns each retained attachment of a source document into its own crawl
    record, inheriting the parent's metadata.
    """

    def __init__(self, *, session: RepositorySession, queue: CrawlQueue, policy: CrawlPolicy):
        self._session = session
        self._queue = queue
        self._policy = policy

    def spool_path(self, record: CrawlRecord, content_id: str) -> str:
        # Keyed by the crawl request id: the same source document can be
        # queued twice and each request needs its own file.
        directory = Path(self._policy.spool_dir) / "attachments" / self._queue.store_id / str(record.record_id)
        directory.mkdir(parents=True, exist_ok=True)
        return str(directory / content_id)

    def process(self, record: CrawlRecord, source: SourceDocument, *, http_url: str) -> AttachmentOutcome:
        outcome = AttachmentOutcome()
        # Duplicate names are made unique by the repository itself.
        names = [str(n) for n in self._session.evaluate(ATTACHMENT_NAMES_FORMULA, source)]
        outcome.all_names = names

        for name in names:
            if not name:
                continue
            extension = attachment_extension(name)
            if self._policy.is_excluded_extension(extension.lower()):
                logger.debug("Excluding attachment in %s: %s", record.notes_link, name)
                continue

            content_id = self.create_attachment_record(
                record,
                source,
                name,
                self._policy.mime_type(extension),
                http_url=http_url,
                issues=outcome.issues,
            )
            if content_id is None:
                logger.debug("Attachment record was not created for %s", name)
                continue
            outcome.retained_ids.append(content_id)
            outcome.retained_names.append(name)

        return outcome

    def create_attachment_record(
        self,
        record: CrawlRecord,
        source: SourceDocument,
        attachment_name: str,
        mime_type: str,
        *,
        http_url: str,
        issues: list[CrawlIssue],
    ) -> str | None:
        """
        Returns the attachment's content id, or None when no record was sent
        for it (not accessible, not a file, or failed).
        """
        attachment: CrawlRecord | None = None
        try:
            embedded = source.get_attachment(attachment_name)
            if embedded is None:
                logger.debug("Attachment could not be accessed: %s", attachment_name)
                issues.append(CrawlIssue(step="attachments", message="not accessible", subject=attachment_name))
                return None
            if embedded.kind != EmbeddedObjectKind.ATTACHMENT:
                logger.debug("Ignoring embedded object %s", attachment_name)
                return None

            over_limit = embedded.file_size > self._policy.max_file_size
            if over_limit:
                logger.info(
                    "Attachment larger than the configured limit, content will not be sent: %s",
                    attachment_name,
                )

            content_id = attachment_content_id(attachment_name)
            derived = record.derive_attachment(attachment_name)
            derived.display_url = attachment_display_url(http_url, attachment_name)
            derived.doc_id = attachment_doc_id(http_url, content_id)
            attachment = self._queue.create(derived)

            if mime_type and not over_limit:
                path = self.spool_path(record, content_id)
                embedded.extract_file(path)
                attachment.content_path = path
                attachment.mime_type = mime_type
            else:
                # Metadata only, with the file name as the indexed content.
                attachment.content = attachment_name
                attachment.mime_type = DEFAULT_MIME_TYPE

            attachment.action = CrawlAction.ADD
            attachment.state = CrawlState.FETCHED
            self._queue.save(attachment)
            return content_id
        except CONNECTIVITY_ERRORS:
            if attachment is not None:
                self._mark_failed(attachment)
            raise
        except Exception as e:
            logger.error(
                "Error fetching attachment %s in document %s",
                attachment_name,
                source.notes_url,
                exc_info=True,
            )
            issues.append(CrawlIssue(step="attachments", message=str(e), subject=attachment_name))
            if attachment is not None:
                attachment.state = CrawlState.ERROR
                self._queue.save(attachment)
            return None

    def _mark_failed(self, attachment: CrawlRecord) -> None:
        # Best effort: the session is already going away.
        attachment.state = CrawlState.ERROR
        try:
            self._queue.save(attachment)
        except Exception:  # noqa: BLE001
            logger.warning("Unable to mark attachment record %s as error", attachment.record_id, exc_info=True)
