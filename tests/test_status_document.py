import pytest

from core.status.document import InvalidDocument, StatusDocument, deep_equal


def test_deep_equal_scalars():
    assert deep_equal("Received", "Received")
    assert deep_equal(None, None)
    assert deep_equal(3, 3.0)
    assert not deep_equal("3", 3)
    assert not deep_equal(None, "")


def test_deep_equal_bool_is_not_a_number():
    assert deep_equal(True, True)
    assert not deep_equal(True, 1)
    assert not deep_equal(0, False)


def test_deep_equal_ignores_mapping_key_order():
    a = {"status": "Received", "meta": {"x": 1, "y": [1, 2]}}
    b = {"meta": {"y": [1, 2], "x": 1}, "status": "Received"}
    assert deep_equal(a, b)


def test_deep_equal_sequences_are_ordered():
    assert not deep_equal([1, 2], [2, 1])
    assert not deep_equal([1, 2], [1, 2, 3])
    assert deep_equal([{"a": 1}], [{"a": 1}])


def test_deep_equal_mapping_key_sets_must_match():
    assert not deep_equal({"a": 1}, {"a": 1, "b": None})


def test_document_is_a_read_only_copy():
    raw = {"status": "Received", "history": [{"date": "2024-01-01"}]}
    doc = StatusDocument(raw)
    raw["status"] = "Approved"
    assert doc["status"] == "Received"

    history = doc["history"]
    history.append({"date": "later"})
    assert len(doc["history"]) == 1

    with pytest.raises(TypeError):
        doc["status"] = "x"


def test_document_equality_is_structural():
    assert StatusDocument({"a": {"b": 1, "c": 2}}) == StatusDocument({"a": {"c": 2, "b": 1}})
    assert StatusDocument({"a": 1}) == {"a": 1}
    assert StatusDocument({"a": True}) != StatusDocument({"a": 1})


def test_from_json_rejects_non_objects():
    with pytest.raises(InvalidDocument):
        StatusDocument.from_json("[1, 2, 3]")
    with pytest.raises(InvalidDocument):
        StatusDocument.from_json("<html>Access denied</html>")


def test_rejects_non_json_values():
    with pytest.raises(InvalidDocument):
        StatusDocument({"when": object()})
    with pytest.raises(InvalidDocument):
        StatusDocument({"nested": {1: "int key"}})


def test_to_json_is_sorted_and_indented():
    doc = StatusDocument({"b": 1, "a": "x"})
    assert doc.to_json() == '{\n  "a": "x",\n  "b": 1\n}'
