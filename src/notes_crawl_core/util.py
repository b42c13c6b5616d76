from __future__ import annotations

import hashlib
from urllib.parse import quote_plus, urlparse


def attachment_content_id(attachment_name: str) -> str:
    """
    Deterministic attachment identity derived from the attachment name.
    """
    return hashlib.sha1(attachment_name.encode("utf-8")).hexdigest()  # noqa: S324


def build_http_url(*, server: str, domain: str, replica_id: str, unid: str) -> str:
    return f"http://{server}{domain}/{replica_id}/0/{unid}"


def attachment_display_url(http_url: str, attachment_name: str) -> str:
    return f"{http_url}/$File/{quote_plus(attachment_name)}?OpenElement"


def attachment_doc_id(http_url: str, content_id: str) -> str:
    return f"{http_url}/$File/{content_id}"


def parse_doc_id(doc_id: str) -> tuple[str, str]:
    """
    Split a document id of the form http://host/<replica>/0/<unid> into
    (unid, replica_id).
    """
    parsed = urlparse(doc_id)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ValueError(f"Not a document URL: {doc_id}")
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 3 or parts[1] != "0":
        raise ValueError(f"Invalid document URL: {doc_id}")
    replica_id, unid = parts[0], parts[2]
    return unid, replica_id
