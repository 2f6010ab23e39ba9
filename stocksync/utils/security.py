import base64, hashlib, hmac
from flask import request, abort

from .logger import warn


def hmac_matches(secret: str, raw: bytes, their_hmac: str) -> bool:
    if not secret:
        return False
    digest = hmac.new(secret.encode(), raw, hashlib.sha256).digest()
    return hmac.compare_digest(base64.b64encode(digest).decode(), their_hmac or "")


def verify_webhook_hmac(secret: str, reject_mode: str = "unauthorized"):
    """
    Return the raw body if the Shopify signature checks out.

    On mismatch: abort(401) in "unauthorized" mode, return None in "silent"
    mode so the caller can answer 200 and Shopify stops redelivering.
    """
    raw = request.get_data()
    their_hmac = request.headers.get("X-Shopify-Hmac-Sha256", "")
    if hmac_matches(secret, raw, their_hmac):
        return raw
    warn(f"[webhook] HMAC mismatch on {request.path}")
    if reject_mode == "silent":
        return None
    abort(401)
