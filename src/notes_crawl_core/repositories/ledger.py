from __future__ import annotations

import psycopg


class AttachmentLedgerRepository:
    """
    Attachment ids already sent for a parent document. Written by the submit
    stage; the crawler only reads it to find attachments that disappeared.
    """

    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def get_attachment_ids(self, doc_key: str, replica_id: str) -> set[str]:
        rows = self._conn.execute(
            """
            select attachment_id
            from attachment_ledger
            where doc_key=%s and replica_id=%s
            """,
            (doc_key, replica_id),
        ).fetchall()
        return {r[0] for r in rows}

    def record_attachment_id(self, doc_key: str, replica_id: str, attachment_id: str) -> None:
        self._conn.execute(
            """
            insert into attachment_ledger(doc_key, replica_id, attachment_id)
            values (%s, %s, %s)
            on conflict do nothing
            """,
            (doc_key, replica_id, attachment_id),
        )
        self._conn.commit()
