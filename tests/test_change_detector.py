import pytest

from core.status.detector import MISSING, Change, detect_changes, format_changes
from core.status.document import InvalidDocument, StatusDocument


def test_same_document_has_no_changes():
    doc = {"status": "Received", "events": [{"code": "IAF"}], "meta": {"a": 1}}
    assert detect_changes(doc, doc) == []
    assert detect_changes(StatusDocument(doc), StatusDocument(doc)) == []


@pytest.mark.parametrize("doc", [{}, {"status": "Received"}, {"a": None, "b": [1, {"c": 2}]}])
def test_first_observation_never_diffs(doc):
    assert detect_changes(None, doc) == []


def test_added_field():
    changes = detect_changes({"status": "Received"}, {"status": "Received", "notice": "sent"})
    assert changes == [Change(field="notice", new_value="sent")]
    assert changes[0].old_value is MISSING
    assert changes[0].is_addition


def test_removed_field():
    changes = detect_changes({"status": "Received", "note": "x"}, {"status": "Received"})
    assert len(changes) == 1
    assert changes[0].field == "note"
    assert changes[0].old_value == "x"
    assert changes[0].new_value is MISSING
    assert changes[0].is_removal


def test_modified_field():
    changes = detect_changes({"status": "Received"}, {"status": "Approved"})
    assert changes == [Change(field="status", old_value="Received", new_value="Approved")]


def test_nested_key_reordering_is_not_a_change():
    prev = {"data": {"form": "I-485", "status": "Received"}}
    curr = {"data": {"status": "Received", "form": "I-485"}}
    assert detect_changes(prev, curr) == []


def test_null_value_is_distinct_from_missing():
    changes = detect_changes({"data": {"x": 1}}, {"data": None})
    assert changes == [Change(field="data", old_value={"x": 1}, new_value=None)]
    assert not changes[0].is_removal


def test_order_is_current_keys_then_removals():
    prev = {"a": 1, "gone": True, "b": 2}
    curr = {"b": 3, "new": "x", "a": 1}
    fields = [c.field for c in detect_changes(prev, curr)]
    assert fields == ["b", "new", "gone"]


def test_change_requires_at_least_one_side():
    with pytest.raises(ValueError):
        Change(field="nothing")


def test_format_changes():
    changes = [
        Change(field="status", old_value="Received", new_value="Approved"),
        Change(field="notice", new_value="sent"),
        Change(field="note", old_value="x"),
    ]
    text = format_changes(changes)
    assert text.splitlines() == [
        "~ status: Received → Approved",
        "+ notice: sent (new)",
        "- note: x (removed)",
    ]
    assert format_changes([]) == "No changes detected"


def test_non_finite_numbers_are_rejected_at_parse_time():
    with pytest.raises(InvalidDocument):
        StatusDocument.from_json('{"status": "Received", "score": NaN}')
    with pytest.raises(InvalidDocument):
        StatusDocument.from_json('{"score": -Infinity}')
    with pytest.raises(InvalidDocument):
        StatusDocument({"score": float("nan")})


def test_change_with_equal_sides_is_rejected():
    with pytest.raises(ValueError):
        Change(field="data", old_value={"a": 1, "b": 2}, new_value={"b": 2, "a": 1})
