from __future__ import annotations

import json
from typing import Any
from uuid import UUID

import psycopg

from notes_crawl_core.models import CrawlAction, CrawlRecord, CrawlState

_COLUMNS = """
  record_id, state, action,
  server, replica_id, unid, template, auth_type, notes_link,
  doc_id, display_url, fields, readers, is_public,
  content, content_path, mime_type,
  attachment_filename, attachment_ids, attachment_names, all_attachment_names,
  parent_record_id
"""


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


def _params(record: CrawlRecord) -> dict[str, Any]:
    return {
        "record_id": str(record.record_id),
        "state": record.state.value,
        "action": record.action.value if record.action is not None else None,
        "server": record.server,
        "replica_id": record.replica_id,
        "unid": record.unid,
        "template": record.template,
        "auth_type": record.auth_type,
        "notes_link": record.notes_link,
        "doc_id": record.doc_id,
        "display_url": record.display_url,
        "fields": _json(record.fields),
        "readers": _json(record.readers),
        "is_public": record.is_public,
        "content": record.content,
        "content_path": record.content_path,
        "mime_type": record.mime_type,
        "attachment_filename": record.attachment_filename,
        "attachment_ids": _json(record.attachment_ids),
        "attachment_names": _json(record.attachment_names),
        "all_attachment_names": _json(record.all_attachment_names),
        "parent_record_id": str(record.parent_record_id) if record.parent_record_id else None,
    }


def _as_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def _row_to_record(row: tuple[Any, ...]) -> CrawlRecord:
    return CrawlRecord(
        record_id=_as_uuid(row[0]),
        state=CrawlState(row[1]),
        action=CrawlAction(row[2]) if row[2] else None,
        server=row[3],
        replica_id=row[4],
        unid=row[5],
        template=row[6],
        auth_type=row[7],
        notes_link=row[8],
        doc_id=row[9],
        display_url=row[10],
        fields=dict(row[11] or {}),
        readers=list(row[12] or []),
        is_public=row[13],
        content=row[14],
        content_path=row[15],
        mime_type=row[16],
        attachment_filename=row[17],
        attachment_ids=list(row[18] or []),
        attachment_names=list(row[19] or []),
        all_attachment_names=list(row[20] or []),
        parent_record_id=_as_uuid(row[21]),
    )


class CrawlQueueRepository:
    """
    Writes run in their own transaction; a rejected statement is rolled back
    so the connection stays usable for the next call.
    """

    def __init__(self, conn: psycopg.Connection, *, store_id: str = "crawlq"):
        self._conn = conn
        self.store_id = store_id

    def claim_next(self) -> CrawlRecord | None:
        """
        Atomically take the oldest queued record and mark it in-crawl.
        Rows locked by a concurrent claim are skipped, so at most one worker
        holds a record.
        """
        with self._conn.transaction():
            row = self._conn.execute(
                f"""
                update crawl_queue
                set state=%s, updated_at=now()
                where record_id = (
                  select record_id
                  from crawl_queue
                  where state=%s
                  order by created_at, record_id
                  for update skip locked
                  limit 1
                )
                returning {_COLUMNS}
                """,
                (CrawlState.IN_CRAWL.value, CrawlState.QUEUED.value),
            ).fetchone()
        self._conn.commit()
        if not row:
            return None
        return _row_to_record(row)

    def create(self, record: CrawlRecord) -> CrawlRecord:
        with self._conn.transaction():
            self._conn.execute(
                """
                insert into crawl_queue (
                  record_id, state, action,
                  server, replica_id, unid, template, auth_type, notes_link,
                  doc_id, display_url, fields, readers, is_public,
                  content, content_path, mime_type,
                  attachment_filename, attachment_ids, attachment_names, all_attachment_names,
                  parent_record_id
                ) values (
                  %(record_id)s::uuid, %(state)s, %(action)s,
                  %(server)s, %(replica_id)s, %(unid)s, %(template)s, %(auth_type)s, %(notes_link)s,
                  %(doc_id)s, %(display_url)s, %(fields)s::jsonb, %(readers)s::jsonb, %(is_public)s,
                  %(content)s, %(content_path)s, %(mime_type)s,
                  %(attachment_filename)s, %(attachment_ids)s::jsonb, %(attachment_names)s::jsonb,
                  %(all_attachment_names)s::jsonb,
                  %(parent_record_id)s::uuid
                )
                """,
                _params(record),
            )
        self._conn.commit()
        return record

    def enqueue(self, record: CrawlRecord) -> CrawlRecord:
        record.state = CrawlState.QUEUED
        return self.create(record)

    def save(self, record: CrawlRecord) -> None:
        with self._conn.transaction():
            self._conn.execute(
                """
                update crawl_queue set
                  state=%(state)s,
                  action=%(action)s,
                  doc_id=%(doc_id)s,
                  display_url=%(display_url)s,
                  fields=%(fields)s::jsonb,
                  readers=%(readers)s::jsonb,
                  is_public=%(is_public)s,
                  content=%(content)s,
                  content_path=%(content_path)s,
                  mime_type=%(mime_type)s,
                  attachment_filename=%(attachment_filename)s,
                  attachment_ids=%(attachment_ids)s::jsonb,
                  attachment_names=%(attachment_names)s::jsonb,
                  all_attachment_names=%(all_attachment_names)s::jsonb,
                  updated_at=now()
                where record_id=%(record_id)s::uuid
                """,
                _params(record),
            )
        self._conn.commit()

    def mark_error(self, record_id: UUID) -> None:
        """State-only update for a record whose full save was rejected."""
        with self._conn.transaction():
            self._conn.execute(
                "update crawl_queue set state=%s, updated_at=now() where record_id=%s::uuid",
                (CrawlState.ERROR.value, str(record_id)),
            )
        self._conn.commit()

    def get_record(self, record_id: UUID) -> CrawlRecord | None:
        row = self._conn.execute(
            f"select {_COLUMNS} from crawl_queue where record_id=%s::uuid",
            (str(record_id),),
        ).fetchone()
        if not row:
            return None
        return _row_to_record(row)

    def list_children(self, parent_record_id: UUID) -> list[CrawlRecord]:
        rows = self._conn.execute(
            f"""
            select {_COLUMNS}
            from crawl_queue
            where parent_record_id=%s::uuid
            order by created_at, record_id
            """,
            (str(parent_record_id),),
        ).fetchall()
        return [_row_to_record(r) for r in rows]
