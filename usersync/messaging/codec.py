"""
Кодек сообщений: payload -> bytes.

Публикация не должна падать из-за кодирования, поэтому encode() никогда не
бросает исключений. Поддерживаемые виды payload:

- STRUCTURED: dict / list / tuple / pydantic-модель / None -> канонический JSON
- TEXT: str / bytes -> UTF-8
- UNSUPPORTED: всё остальное (числа, bool, функции, ...) -> b""

Декодирования здесь нет: каждый consumer сам знает, что ожидает.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel


class PayloadKind(str, Enum):
    STRUCTURED = "structured"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


CONTENT_TYPES = {
    PayloadKind.STRUCTURED: "application/json",
    PayloadKind.TEXT: "text/plain",
    PayloadKind.UNSUPPORTED: "application/octet-stream",
}


def classify(payload: Any) -> PayloadKind:
    # bool is an int subclass, both are unsupported
    if isinstance(payload, (str, bytes, bytearray)):
        return PayloadKind.TEXT
    if payload is None or isinstance(payload, (dict, list, tuple, BaseModel)):
        return PayloadKind.STRUCTURED
    return PayloadKind.UNSUPPORTED


def _to_json(payload: Any) -> bytes:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    text = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return text.encode("utf-8")


def encode(payload: Any) -> bytes:
    """Закодировать payload в байты. Никогда не бросает исключений."""
    kind = classify(payload)

    if kind is PayloadKind.TEXT:
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        return payload.encode("utf-8", errors="replace")

    if kind is PayloadKind.STRUCTURED:
        try:
            return _to_json(payload)
        except (TypeError, ValueError, RecursionError):
            # circular references, non-str keys that json can't coerce, ...
            return _stringify(payload)

    return b""


def _stringify(payload: Any) -> bytes:
    try:
        return str(payload).encode("utf-8", errors="replace")
    except Exception:
        return b""


def content_type(payload: Any) -> str:
    return CONTENT_TYPES[classify(payload)]


__all__ = ["PayloadKind", "classify", "encode", "content_type", "CONTENT_TYPES"]
