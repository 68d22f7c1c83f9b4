import base64
import json

import pytest

from astload.envelope import (
    FrameStatus,
    build_request,
    extract_text,
    is_terminal,
    parse_response,
)


def test_build_request_wire_layout():
    envelope = build_request("trace-1", FrameStatus.START, b"\x00\x01\x02")
    msg = json.loads(envelope.to_json())

    assert msg["header"] == {
        "traceId": "trace-1",
        "appId": "123456",
        "bizId": "test_bizid_001",
        "status": 0,
        "resIdList": [],
    }
    assert msg["parameter"] == {"engine": {"wdec_param_LanguageTypeChoice": "1"}}
    assert base64.b64decode(msg["payload"]["audio"]["audio"]) == b"\x00\x01\x02"


def test_build_request_custom_ids_and_engine():
    envelope = build_request("t", FrameStatus.END, b"x", app_id="a", biz_id="b", engine_params={"k": "v"})
    header = envelope.to_dict()["header"]

    assert (header["appId"], header["bizId"], header["status"]) == ("a", "b", 2)
    assert envelope.to_dict()["parameter"]["engine"] == {"k": "v"}


@pytest.mark.parametrize("raw", ["{bad", "[1, 2]", "42", b"\xff\xfe"])
def test_parse_response_rejects_non_objects(raw):
    with pytest.raises(ValueError):
        parse_response(raw)


def test_parse_response_accepts_bytes():
    assert parse_response(b'{"header": {"status": 1}}') == {"header": {"status": 1}}


@pytest.mark.parametrize("response, expected", [
    ({"header": {"status": 2}}, True),
    ({"header": {"status": 2.0}}, True),
    ({"header": {"status": 2.5}}, False),
    ({"header": {"status": 1}}, False),
    ({"header": {"status": "2"}}, False),
    ({"header": {"status": True}}, False),
    ({"header": None}, False),
    ({}, False),
])
def test_is_terminal(response, expected):
    assert is_terminal(response) is expected


def test_extract_text_concatenates_fragments_in_order():
    response = {"payload": {"result": {"ws": [
        {"cw": [{"w": "张"}, {"w": "三"}]},
        {"cw": [{"w": ""}, {"other": 1}]},
        {"cw": [{"w": "丰"}]},
        {"bg": 0},
    ]}}}

    assert extract_text(response) == "张三丰"


def test_extract_text_without_result():
    assert extract_text({"header": {"status": 2}}) is None
    assert extract_text({"payload": {"result": {}}}) == ""
    assert extract_text({"payload": {"result": {"ws": []}}}) == ""
    assert extract_text({"payload": {"result": {"sn": 1}}}) == ""
