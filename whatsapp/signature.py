from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def verify_meta_signature(app_secret: str, body: bytes, signature: str | None) -> bool:
    secret = (app_secret or "").strip()
    received = (signature or "").strip()
    if not secret or not received.startswith(SIGNATURE_PREFIX):
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received[len(SIGNATURE_PREFIX):].lower())
