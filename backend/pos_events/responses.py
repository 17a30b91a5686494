# Overview: Uniform JSON envelope for every POS API response.

from __future__ import annotations

from typing import Any

from flask import jsonify

from .exceptions import PosError
from .time_utils import to_utc_z, utcnow


def api_response(ok: bool, code: int, message: str, result: Any = None, meta: dict | None = None):
    """
    Build `{ok, code, message, result?, meta?}` with HTTP status `code`.

    result and meta are omitted when None.
    """
    body: dict[str, Any] = {"ok": ok, "code": code, "message": message}
    if result is not None:
        body["result"] = result
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), code


def timestamp_meta() -> dict:
    return {"timestamp": to_utc_z(utcnow())}


def error_response(exc: PosError):
    return api_response(False, exc.code, exc.message, exc.details or None)
