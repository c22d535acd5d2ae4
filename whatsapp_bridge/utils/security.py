import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    """Return the `sha256=<hex>` header value WhatsApp sends for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: bytes, signature_header: Optional[str], secret: str) -> bool:
    """
    Check an X-Hub-Signature-256 header against the raw request body.

    The HMAC is computed over the bytes exactly as received; re-serializing
    parsed JSON would change the digest.

    Args:
        body: Raw request body
        signature_header: Header value in the form `sha256=<hex>`
        secret: Shared webhook secret (the Meta app secret)

    Returns:
        True if the signature matches, False otherwise
    """
    if not signature_header or not secret:
        return False
    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode(), signature_header.strip().lower().encode())


def is_request_authentic(body: bytes,
                         signature_header: Optional[str],
                         secret: str,
                         require_signature: bool = False) -> bool:
    """
    Decide whether a webhook delivery may be processed.

    Unsigned deliveries pass unless `require_signature` is set; signed
    deliveries must verify.
    """
    if signature_header is None:
        return not require_signature
    return verify_signature(body, signature_header, secret)
