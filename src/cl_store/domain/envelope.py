"""Versioned envelope for every stored value.

    {"schema_version": 1, "kind": "account", "data": {...}}

Reads validate the envelope and the payload with pydantic. Unknown versions,
kind mismatches and invalid payloads raise StoreFailureError; legacy or
corrupt records are never coerced into shape.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.cl_common.errors import StoreFailureError

SCHEMA_VERSION = 1

T = TypeVar("T")


class Envelope(BaseModel):
    schema_version: int
    kind: str
    data: Any


def wrap(kind: str, payload: T, adapter: TypeAdapter[T]) -> dict[str, Any]:
    """Build the JSON-ready envelope for a payload."""
    data = adapter.dump_python(payload, mode="json")
    return {"schema_version": SCHEMA_VERSION, "kind": kind, "data": data}


def unwrap(key: str, kind: str, raw: Any, adapter: TypeAdapter[T]) -> T:
    try:
        envelope = Envelope.model_validate(raw)
    except ValidationError as exc:
        raise StoreFailureError(f"{key} is not a versioned record") from exc
    if envelope.schema_version != SCHEMA_VERSION:
        raise StoreFailureError(
            f"{key} has unsupported schema_version {envelope.schema_version}"
        )
    if envelope.kind != kind:
        raise StoreFailureError(f"{key} holds {envelope.kind!r}, expected {kind!r}")
    try:
        return adapter.validate_python(envelope.data)
    except ValidationError as exc:
        raise StoreFailureError(f"{key} failed validation: {exc.error_count()} error(s)") from exc
