"""Wire codec for requests and for JSON / event-stream responses."""

from __future__ import annotations

import base64
import json
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import EVENT_STREAM_MEDIA_TYPE, JSON_MEDIA_TYPE
from .errors import FormatError

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_DECIMAL_RE = re.compile(r"[0-9]+")

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"

RawBody = Union[str, bytes, bytearray, Dict[str, Any], list]


class ErrorResponse(BaseModel):
    """``{"error": "..."}`` body used by every rejection path."""

    model_config = ConfigDict(extra="allow")

    error: str

    @field_validator("error")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("error message must not be empty")
        return value


class RandomWordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network: str
    contract_address: str = Field(alias="contractAddress")
    rpc_url: str = Field(alias="rpcUrl")
    word_length: str = Field(alias="wordLength")
    random_value: str = Field(alias="randomValue")

    @field_validator("word_length", "random_value", mode="before")
    @classmethod
    def _decimal_string(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
            raise ValueError("must be a non-negative decimal string")
        return value

    def to_payload(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


def encode_request_body(fields: Mapping[str, Any]) -> bytes:
    payload = {k: v for k, v in fields.items() if v is not None and v != ""}
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode_request_json(raw: Union[str, bytes, bytearray]) -> Any:
    """Parse a request body, keeping integer literals as their decimal text.

    Raises ``ValueError`` when ``raw`` is not JSON.
    """
    # int literals of any length reach the numeric validator intact
    return json.loads(raw, parse_int=str)


def _text(raw: Union[str, bytes, bytearray]) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return raw.decode("utf-8", errors="replace")
    return raw


def _is_event_stream(content_type: Optional[str]) -> bool:
    return EVENT_STREAM_MEDIA_TYPE in (content_type or "").lower()


def decode_event_stream(raw: Union[str, bytes, bytearray]) -> Any:
    """Return the last ``data:`` payload in ``raw`` that parses as JSON."""
    lines = _LINE_SPLIT_RE.split(_text(raw))
    for line in reversed(lines):
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):].strip()
        if not payload or payload == DONE_MARKER:
            continue
        try:
            return json.loads(payload)
        except ValueError:
            continue
    raise FormatError("unexpected response format")


def decode_body(raw: RawBody, content_type: Optional[str] = None) -> Any:
    if isinstance(raw, (dict, list)):
        return raw
    if _is_event_stream(content_type):
        return decode_event_stream(raw)
    text = _text(raw)
    try:
        return json.loads(text)
    except ValueError:
        return text


def encode_event_stream(payloads: Iterable[Any]) -> str:
    frames = [f"{DATA_PREFIX} {json.dumps(p, separators=(',', ':'))}\n\n" for p in payloads]
    frames.append(f"{DATA_PREFIX} {DONE_MARKER}\n\n")
    return "".join(frames)


def wants_event_stream(accept: Optional[str]) -> bool:
    media_types = [part.split(";", 1)[0].strip().lower() for part in (accept or "").split(",")]
    if EVENT_STREAM_MEDIA_TYPE not in media_types:
        return False
    if JSON_MEDIA_TYPE not in media_types:
        return True
    return media_types.index(EVENT_STREAM_MEDIA_TYPE) < media_types.index(JSON_MEDIA_TYPE)


def parse_error_response(raw: Union[str, bytes, bytearray]) -> Optional[ErrorResponse]:
    try:
        return ErrorResponse.model_validate_json(raw)
    except pydantic.ValidationError:
        return None


def read_error_message(status: int, raw: Union[str, bytes, bytearray]) -> str:
    parsed = parse_error_response(raw) if raw else None
    if parsed is not None:
        return parsed.error
    text = _text(raw).strip() if raw else ""
    if text:
        return text
    return f"request failed with status {status}"


def decode_random_word(raw: RawBody, content_type: Optional[str] = None) -> RandomWordResponse:
    payload = decode_body(raw, content_type)
    try:
        return RandomWordResponse.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise FormatError("unexpected response format") from exc


def encode_payment_header(envelope: Mapping[str, Any]) -> str:
    encoded = json.dumps(envelope, separators=(",", ":"))
    return base64.b64encode(encoded.encode("utf-8")).decode("utf-8")


def decode_payment_header(header: str) -> Dict[str, Any]:
    """Decode a base64 JSON ``X-PAYMENT`` value; raises ``ValueError`` when malformed."""
    try:
        decoded = base64.b64decode(header.strip(), validate=True)
        envelope = json.loads(decoded)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError("payment header is not base64 encoded JSON") from exc
    if not isinstance(envelope, dict) or not isinstance(envelope.get("payload"), dict):
        raise ValueError("payment header is missing its payload")
    return envelope
