"""
Wire Envelopes for the Streaming ASR Endpoint

Builds outbound request envelopes and interprets inbound responses.

Outbound:
    {"header": {"traceId", "appId", "bizId", "status", "resIdList": []},
     "parameter": {"engine": {...}},
     "payload": {"audio": {"audio": <base64>}}}

Inbound:
    {"header": {"status"}, "payload": {"result": {"ws": [{"cw": [{"w"}]}]}}}
"""

import base64
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional, Union


class FrameStatus(IntEnum):
    """Sequence marker carried in every envelope header."""
    START = 0
    CONTINUE = 1
    END = 2


DEFAULT_APP_ID = "123456"
DEFAULT_BIZ_ID = "test_bizid_001"
DEFAULT_ENGINE_PARAMS: Dict[str, Any] = {"wdec_param_LanguageTypeChoice": "1"}


@dataclass
class RequestEnvelope:
    """One outbound audio frame."""
    trace_id: str
    status: FrameStatus
    audio_chunk: str
    app_id: str = DEFAULT_APP_ID
    biz_id: str = DEFAULT_BIZ_ID
    engine_params: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_ENGINE_PARAMS))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {
                "traceId": self.trace_id,
                "appId": self.app_id,
                "bizId": self.biz_id,
                "status": int(self.status),
                "resIdList": [],
            },
            "parameter": {
                "engine": dict(self.engine_params),
            },
            "payload": {
                "audio": {
                    "audio": self.audio_chunk,
                },
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def build_request(trace_id: str,
                  status: FrameStatus,
                  chunk: bytes,
                  app_id: str = DEFAULT_APP_ID,
                  biz_id: str = DEFAULT_BIZ_ID,
                  engine_params: Optional[Dict[str, Any]] = None) -> RequestEnvelope:
    """Wrap a raw audio slice into a request envelope."""
    return RequestEnvelope(
        trace_id=trace_id,
        status=status,
        audio_chunk=base64.b64encode(chunk).decode("ascii"),
        app_id=app_id,
        biz_id=biz_id,
        engine_params=dict(DEFAULT_ENGINE_PARAMS if engine_params is None else engine_params),
    )


def parse_response(raw: Union[str, bytes, bytearray]) -> Dict[str, Any]:
    """
    Decode an inbound message.

    Raises ValueError (json.JSONDecodeError is a subclass) when the message
    is not a JSON object.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def is_terminal(response: Dict[str, Any]) -> bool:
    """A response ends the session when header.status is END."""
    header = response.get("header")
    if not isinstance(header, dict):
        return False
    status = header.get("status")
    return isinstance(status, (int, float)) and not isinstance(status, bool) and status == FrameStatus.END


def extract_text(response: Dict[str, Any]) -> Optional[str]:
    """
    Concatenate every word fragment in payload.result.ws[].cw[].w, in order.

    Returns None when the response carries no result at all, and "" when a
    result is present but holds no words.
    """
    payload = response.get("payload")
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if result is None:
        return None

    parts = []
    words = result.get("ws") if isinstance(result, dict) else None
    for ws_item in words or []:
        if not isinstance(ws_item, dict):
            continue
        for cw_item in ws_item.get("cw") or []:
            if isinstance(cw_item, dict) and cw_item.get("w"):
                parts.append(str(cw_item["w"]))
    return "".join(parts)
