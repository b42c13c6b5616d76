from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from notes_crawl_core.errors import CONNECTIVITY_ERRORS
from notes_crawl_core.models import CrawlIssue, CrawlRecord
from notes_crawl_core.store import AttachmentLedger, CrawlQueue
from notes_crawl_core.util import attachment_doc_id, parse_doc_id

logger = logging.getLogger(__name__)


@dataclass
class ReconcileOutcome:
    deleted_ids: list[str] = field(default_factory=list)
    issues: list[CrawlIssue] = field(default_factory=list)


class AttachmentReconciler:
    def __init__(self, *, ledger: AttachmentLedger, queue: CrawlQueue):
        self._ledger = ledger
        self._queue = queue

    def reconcile(self, parent_doc_id: str, retained_ids: Iterable[str]) -> ReconcileOutcome:
        """
        Queue a delete request for every attachment recorded in the ledger
        for this document that is no longer among `retained_ids`.
        """
        outcome = ReconcileOutcome()
        current = set(retained_ids)
        try:
            doc_key, replica_id = parse_doc_id(parent_doc_id)
            known = self._ledger.get_attachment_ids(doc_key, replica_id)
        except CONNECTIVITY_ERRORS:
            raise
        except Exception as e:  # noqa: BLE001
            logger.error("Unable to read attachment ledger for %s", parent_doc_id, exc_info=True)
            outcome.issues.append(CrawlIssue(step="reconcile", message=str(e), subject=parent_doc_id))
            return outcome

        for attachment_id in sorted(known - current):
            target = attachment_doc_id(parent_doc_id, attachment_id)
            try:
                self._queue.create(CrawlRecord.delete_request(target))
            except CONNECTIVITY_ERRORS:
                raise
            except Exception as e:  # noqa: BLE001
                logger.warning("Failed to create delete request for attachment %s", attachment_id, exc_info=True)
                outcome.issues.append(CrawlIssue(step="reconcile", message=str(e), subject=attachment_id))
                continue
            logger.debug("Queued delete request for removed attachment %s", target)
            outcome.deleted_ids.append(attachment_id)
        return outcome
