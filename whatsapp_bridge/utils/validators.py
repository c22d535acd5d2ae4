import re
from urllib.parse import urlparse

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")
_PHONE_DIGITS = re.compile(r"^\d{10,15}$")


def normalize_phone_number(value: str) -> str:
    """
    Validate a mobile number and return it as plain digits.

    Accepts an optional leading '+' and ignores spaces, dashes, dots and
    parentheses. The result is the international number without '+',
    which is the format WhatsApp uses for `from`/`to` fields.

    Raises:
        ValueError: If the number is not 10-15 digits.
    """
    if not isinstance(value, str):
        raise ValueError("Invalid phone number")

    cleaned = _PHONE_SEPARATORS.sub("", value.strip())
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]

    if not _PHONE_DIGITS.match(cleaned):
        raise ValueError("Invalid phone number")
    return cleaned


def validate_http_url(value: str) -> str:
    """Ensure the value is an absolute http(s) URL."""
    parsed = urlparse(value or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL")
    return value
