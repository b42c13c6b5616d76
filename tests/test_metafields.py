from __future__ import annotations

import pytest

from notes_crawl_core.metafields import MetaFieldRule, parse_rules


@pytest.mark.parametrize(
    ("config", "expected"),
    [
        ("Memo===Subject=subj", ("Memo", "Subject", "subj")),
        ("Subject=subj", (None, "Subject", "subj")),
        ("Subject", (None, "Subject", "Subject")),
        ("  Subject = subj  ", (None, "Subject ", " subj")),
        ("Main Topic===Body Field=body", ("Main Topic", "Body Field", "body")),
    ],
)
def test_parse_valid_grammars(config: str, expected: tuple) -> None:
    rule = MetaFieldRule.parse(config)
    assert (rule.form_name, rule.field_name, rule.meta_name) == expected


@pytest.mark.parametrize(
    "config",
    [None, "", "   ", "=", "a=b=c", "a==b", "===b=c", "a===b", "a===b=", "=meta", "field="],
)
def test_parse_malformed_yields_empty_rule(config: str | None) -> None:
    rule = MetaFieldRule.parse(config)
    assert rule.field_name is None
    assert rule.meta_name is None
    assert rule.form_name is None


def test_parse_rules_keeps_order_and_malformed_entries() -> None:
    rules = parse_rules(["A=a", "bad==", "B"])
    assert [r.field_name for r in rules] == ["A", None, "B"]


def test_rule_str() -> None:
    assert str(MetaFieldRule.parse("F===x=y")) == "[form: F; field: x; meta: y]"
