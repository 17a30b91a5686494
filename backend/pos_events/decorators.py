# Overview: Request decorators for POS terminal routes.

import hashlib
import hmac
from functools import wraps

from flask import current_app, request

from .responses import api_response

SIGNATURE_HEADER = "X-Signature"


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def require_signature(f):
    """
    Reject requests that are not signed by a known POS terminal.

    The X-Signature header must hold compute_signature(POS_SIGNATURE_SECRET, body).
    Returns 400 when the header is missing and 403 when it does not match.
    SIGNATURE_VERIFICATION_ENABLED=False skips the check (local development only).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("SIGNATURE_VERIFICATION_ENABLED", True):
            return f(*args, **kwargs)

        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            return api_response(False, 400, "X-Signature header is required")

        secret = current_app.config.get("POS_SIGNATURE_SECRET")
        if not secret:
            current_app.logger.error("POS_SIGNATURE_SECRET is not configured; rejecting %s", request.path)
            return api_response(False, 403, "Invalid signature")

        expected = compute_signature(secret, request.get_data(cache=True))
        if not hmac.compare_digest(expected, signature.strip().lower()):
            current_app.logger.warning("Invalid signature on %s from %s", request.path, request.remote_addr)
            return api_response(False, 403, "Invalid signature")

        return f(*args, **kwargs)

    return decorated_function
