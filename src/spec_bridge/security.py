"""Input validation and redaction helpers."""

import re
from urllib.parse import urlparse

from spec_bridge.errors import SpecValidationError

MAX_MESSAGE_LENGTH = 500
MAX_CONNECTION_NAME_LENGTH = 100
MAX_HEADER_VALUE_LENGTH = 8192

_SECRET_PATTERNS = [
    (re.compile(r"password[=:]\s*\S+", re.IGNORECASE), "password=***"),
    (re.compile(r"token[=:]\s*\S+", re.IGNORECASE), "token=***"),
    (re.compile(r"key[=:]\s*\S+", re.IGNORECASE), "key=***"),
    (re.compile(r"secret[=:]\s*\S+", re.IGNORECASE), "secret=***"),
    (re.compile(r"Bearer\s+\S+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"Basic\s+\S+", re.IGNORECASE), "Basic ***"),
]
_HEADER_NAME = re.compile(r"^[A-Za-z0-9\-_]+$")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def redact_secrets(message: object) -> str:
    """Mask credentials in an error message before it is shown or logged."""
    text = str(message) if message is not None else ""
    if not text:
        return "An unknown error occurred"
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    if len(text) > MAX_MESSAGE_LENGTH:
        text = text[:MAX_MESSAGE_LENGTH] + "..."
    return text


def sanitize_connection_name(name: str) -> str:
    """Keep letters, digits, spaces, hyphens and underscores."""
    if not name or not isinstance(name, str):
        raise SpecValidationError("Connection name is required")
    sanitized = re.sub(r"[^A-Za-z0-9\s\-_]", "", name).strip()[:MAX_CONNECTION_NAME_LENGTH]
    if not sanitized:
        raise SpecValidationError("Invalid connection name")
    return sanitized


def sanitize_header_name(header: str) -> str:
    if not header or not isinstance(header, str):
        raise SpecValidationError("Header name is required")
    sanitized = header.strip()
    if not _HEADER_NAME.match(sanitized):
        raise SpecValidationError(f"Invalid header name: {header!r}")
    return sanitized


def sanitize_header_value(value: object) -> str:
    return _CONTROL_CHARS.sub("", str(value))[:MAX_HEADER_VALUE_LENGTH]
