"""
Inbound message model for the streaming STT protocol.

The service sends JSON text frames. The current schema is a tagged union keyed
on "type":

    {"type": "Connected", "request_id": "...", "sequence_id": 0}
    {"type": "TurnInfo", "event": "Update", "turn_index": 0,
     "audio_window_start": 0.0, "audio_window_end": 1.2,
     "transcript": "hello", "words": [{"word": "hello", "confidence": 0.98}],
     "end_of_turn_confidence": 0.12, ...}
    {"type": "Error", "code": "...", "description": "..."}
    {"type": "Configuration", "thresholds": {...}}

Earlier protocol versions sent the turn payload itself as the top-level object,
without "type" and with "start"/"timestamp" instead of the window fields. That
flat schema is accepted when the caller asks for it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from voice_keyboard.errors import ParseError


class EventKind(str, Enum):
    """Turn events reported by the service."""

    UPDATE = "Update"
    START_OF_TURN = "StartOfTurn"
    EAGER_END_OF_TURN = "EagerEndOfTurn"
    TURN_RESUMED = "TurnResumed"
    END_OF_TURN = "EndOfTurn"

    @property
    def is_final(self) -> bool:
        return self is EventKind.END_OF_TURN


@dataclass(frozen=True)
class WordInfo:
    """A recognised word and the service's confidence in it."""

    word: str
    confidence: float


@dataclass(frozen=True)
class TranscriptionResult:
    """One transcript snapshot for the current turn."""

    event: EventKind
    turn_index: int
    window_start: float  # seconds since stream start
    window_end: float
    transcript: str
    words: tuple[WordInfo, ...] = ()
    end_of_turn_confidence: float = 0.0


@dataclass(frozen=True)
class Connected:
    request_id: str
    sequence_id: int = 0


@dataclass(frozen=True)
class TurnInfo:
    result: TranscriptionResult
    request_id: str = ""
    sequence_id: int = 0


@dataclass(frozen=True)
class ServerError:
    code: str
    description: str
    sequence_id: int = 0


@dataclass(frozen=True)
class Configuration:
    eot_threshold: float | None = None
    eager_eot_threshold: float | None = None
    eot_timeout_ms: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


ServerMessage = Connected | TurnInfo | ServerError | Configuration


def _require(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise ParseError(f"missing field {key!r}")
    value = data[key]
    # bool is an int subclass; JSON true/false is never a valid number here
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ParseError(f"field {key!r} has unexpected type {type(value).__name__}")
    return value


def _optional(data: dict, key: str, kind: type | tuple[type, ...], default: Any) -> Any:
    if data.get(key) is None:
        return default
    return _require(data, key, kind)


def _parse_event(value: str) -> EventKind:
    try:
        return EventKind(value)
    except ValueError:
        raise ParseError(f"unknown turn event {value!r}") from None


def _parse_words(data: dict) -> tuple[WordInfo, ...]:
    words = _optional(data, "words", list, [])
    parsed = []
    for item in words:
        if not isinstance(item, dict):
            raise ParseError("word entry is not an object")
        parsed.append(
            WordInfo(
                word=_require(item, "word", str),
                confidence=float(_require(item, "confidence", (int, float))),
            )
        )
    return tuple(parsed)


def _parse_turn(data: dict, start_key: str, end_key: str) -> TranscriptionResult:
    return TranscriptionResult(
        event=_parse_event(_require(data, "event", str)),
        turn_index=_require(data, "turn_index", int),
        window_start=float(_require(data, start_key, (int, float))),
        window_end=float(_require(data, end_key, (int, float))),
        transcript=_require(data, "transcript", str),
        words=_parse_words(data),
        end_of_turn_confidence=float(
            _optional(data, "end_of_turn_confidence", (int, float), 0.0)
        ),
    )


def _parse_configuration(data: dict) -> Configuration:
    thresholds = data.get("thresholds") or {}
    if not isinstance(thresholds, dict):
        raise ParseError("field 'thresholds' is not an object")
    return Configuration(
        eot_threshold=_optional(thresholds, "eot_threshold", (int, float), None),
        eager_eot_threshold=_optional(thresholds, "eager_eot_threshold", (int, float), None),
        eot_timeout_ms=_optional(thresholds, "eot_timeout_ms", int, None),
        raw=data,
    )


def parse_server_message(text: str | bytes, *, allow_flat_schema: bool = False) -> ServerMessage:
    """Decode one inbound text frame.

    Raises:
        ParseError: invalid JSON, unknown "type", or missing/mistyped fields.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"expected a JSON object, got {type(data).__name__}")

    msg_type = data.get("type")
    if msg_type is None:
        if allow_flat_schema:
            return TurnInfo(result=_parse_turn(data, "start", "timestamp"))
        raise ParseError("message has no 'type' discriminator")

    if msg_type == "TurnInfo":
        return TurnInfo(
            result=_parse_turn(data, "audio_window_start", "audio_window_end"),
            request_id=_optional(data, "request_id", str, ""),
            sequence_id=_optional(data, "sequence_id", int, 0),
        )
    if msg_type == "Connected":
        return Connected(
            request_id=_optional(data, "request_id", str, ""),
            sequence_id=_optional(data, "sequence_id", int, 0),
        )
    if msg_type == "Error":
        return ServerError(
            code=str(_optional(data, "code", (str, int), "UNKNOWN")),
            description=_optional(data, "description", str, ""),
            sequence_id=_optional(data, "sequence_id", int, 0),
        )
    if msg_type == "Configuration":
        return _parse_configuration(data)
    raise ParseError(f"unknown message type {msg_type!r}")
