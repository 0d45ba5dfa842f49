from __future__ import annotations

import pytest

from rpcd_lite.exceptions import ErrorCode, InvalidArgumentError
from rpcd_lite.response import Response, ResponseError
from rpcd_lite.schema import Field, FieldType, require, required_names, signature, validate

SIGNAL_SCHEMA = (
    Field("pid", FieldType.INT, required=True),
    Field("signal", FieldType.INT, required=True),
)


def test_validate_keeps_typed_fields_and_ignores_unknown() -> None:
    args = validate({"pid": 12, "signal": 15, "extra": "x"}, SIGNAL_SCHEMA)

    assert args == {"pid": 12, "signal": 15}


def test_validate_treats_wrong_type_as_absent() -> None:
    assert validate({"pid": "12", "signal": True}, SIGNAL_SCHEMA) == {}
    assert validate(["pid", 12], SIGNAL_SCHEMA) == {}


def test_array_and_string_types() -> None:
    schema = (Field("keys", FieldType.ARRAY), Field("name", FieldType.STRING))

    assert validate({"keys": ["a", 1], "name": "dropbear"}, schema) == {
        "keys": ["a", 1],
        "name": "dropbear",
    }
    assert validate({"keys": "a", "name": 3}, schema) == {}


def test_require_reports_missing_fields() -> None:
    with pytest.raises(InvalidArgumentError) as exc:
        require({"pid": 1}, required_names(SIGNAL_SCHEMA))

    assert exc.value.code is ErrorCode.INVALID_ARGUMENT
    assert exc.value.details["missing"] == ["signal"]


def test_signature_lists_field_types() -> None:
    assert signature(SIGNAL_SCHEMA) == {"pid": "int", "signal": "int"}


def test_response_builds_nested_records() -> None:
    resp = Response()
    with resp.array("processes"):
        with resp.table():
            resp.add("pid", 1)
            resp.add("command", "/sbin/procd")
        resp.add(None, {"pid": 2})
    resp.add("count", 2)

    assert resp.result() == {
        "processes": [{"pid": 1, "command": "/sbin/procd"}, {"pid": 2}],
        "count": 2,
    }


def test_response_rejects_unbalanced_nesting() -> None:
    resp = Response()
    outer = resp.open_array("entries")
    resp.open_table()

    with pytest.raises(ResponseError):
        resp.close(outer)
    with pytest.raises(ResponseError):
        resp.result()


def test_response_close_without_open_container() -> None:
    resp = Response()
    with pytest.raises(ResponseError):
        resp.close({})


def test_response_table_fields_need_names() -> None:
    resp = Response()
    resp.open_table("t")
    with pytest.raises(ResponseError):
        resp.add(None, 1)


def test_fresh_response_is_empty() -> None:
    assert Response().result() == {}


def test_container_closed_when_body_raises() -> None:
    resp = Response()
    with pytest.raises(KeyError):
        with resp.array("entries"):
            with resp.table():
                raise KeyError("source vanished")

    assert resp.depth == 0
    assert resp.result() == {"entries": [{}]}
