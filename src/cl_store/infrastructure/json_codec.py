"""JSON text encoding shared by the store backends."""

import json
from typing import Any

from src.cl_common.errors import StoreFailureError


def encode_json(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise StoreFailureError(f"value for {key} is not JSON-serializable: {exc}") from exc


def decode_json(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise StoreFailureError(f"value for {key} is not valid JSON: {exc}") from exc
