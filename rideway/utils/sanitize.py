"""Masking of sensitive values before request data is persisted."""

from typing import Any

MASK = "********"

SENSITIVE_KEY_FRAGMENTS = (
    "password",
    "token",
    "secret",
    "apikey",
    "apisecret",
    "key",
    "authorization",
    "auth",
    "credential",
)


def is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def sanitize_data(data: Any) -> Any:
    """
    Deep copy of data with sensitive values masked.

    Any dict key whose name contains one of SENSITIVE_KEY_FRAGMENTS
    (case-insensitive) has its value replaced by MASK, at any depth and
    inside lists. The input is never modified.
    """
    if isinstance(data, dict):
        return {
            key: MASK if is_sensitive_key(key) else sanitize_data(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [sanitize_data(item) for item in data]
    return data
