"""Secret redaction for log output.

Second line of defense only: audit events cannot carry credentials by
construction, and nothing in the broker passes secrets to a logger. Pattern
matching cannot be complete, so it is never relied on as the guarantee.
"""

import re
from typing import Any

REDACTED = "[REDACTED]"

AUDIT_EVENT = "audit_event"

# Keys whose values are always redacted, matched as substrings of the lowercased key
SENSITIVE_KEYS = {
    "secret",
    "password",
    "service_key",
    "service_role",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "authorization",
    "private_key",
}

SENSITIVE_PATTERNS = [
    re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*"),  # JWT
    re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+"),  # Bearer token
    re.compile(r"sk-[A-Za-z0-9_-]{20,}"),  # OpenAI/Anthropic-style API key
    re.compile(r"\b[sp]k_(?:live|test)_[A-Za-z0-9]{16,}"),  # Stripe key
    re.compile(r"\b[sp]k_[A-Za-z0-9]{24,}"),
    re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),  # Email
]


def redact_string(value: str) -> str:
    """Replace secret-shaped substrings with a placeholder."""
    for pattern in SENSITIVE_PATTERNS:
        value = pattern.sub(REDACTED, value)
    return value


def is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def redact_value(value: Any, key: str | None = None) -> Any:
    """
    Recursively redact a value for logging.

    Args:
        value: Value to redact (str, dict, list, tuple or scalar)
        key: Key the value is stored under, if any

    Returns:
        Redacted copy of the value
    """
    if key is not None and is_sensitive_key(key) and value not in (None, ""):
        return REDACTED
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return {k: redact_value(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact_value(v) for v in value)
    return value


def mask_secret(value: str | None) -> str:
    """Mask a secret for display, keeping the first and last two characters."""
    if not value:
        return "***"
    if len(value) <= 4:
        return "*" * len(value)
    return f"{value[:2]}***{value[-2:]}"


def redact_processor(logger, method_name, event_dict):
    """structlog processor applying redact_value to every field except on audit lines."""
    if event_dict.get("event") == AUDIT_EVENT:
        return event_dict
    return {key: redact_value(value, key) for key, value in event_dict.items()}
