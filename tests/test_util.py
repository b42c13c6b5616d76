import pytest

from notes_crawl_core.util import (
    attachment_content_id,
    attachment_display_url,
    attachment_doc_id,
    build_http_url,
    parse_doc_id,
)


def test_attachment_content_id_is_sha1_hex() -> None:
    assert attachment_content_id("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"


def test_build_http_url_and_parse_round_trip() -> None:
    url = build_http_url(server="mail01", domain=".acme.com", replica_id="REP1", unid="UNID1")
    assert url == "http://mail01.acme.com/REP1/0/UNID1"
    assert parse_doc_id(url) == ("UNID1", "REP1")


def test_attachment_urls() -> None:
    base = "http://mail01/REP1/0/UNID1"
    assert attachment_display_url(base, "my report.pdf") == f"{base}/$File/my+report.pdf?OpenElement"
    assert attachment_doc_id(base, "abc") == f"{base}/$File/abc"


@pytest.mark.parametrize("doc_id", ["", "notes://x/REP/0/UNID", "http://host/REP1", "http://host/REP1/1/UNID"])
def test_parse_doc_id_rejects_malformed(doc_id: str) -> None:
    with pytest.raises(ValueError):
        parse_doc_id(doc_id)
