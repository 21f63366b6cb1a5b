"""
Redaction helpers for log output.

Upstream error messages can echo request URLs and headers back to us, so
anything logged from a provider failure passes through here first.
"""

from typing import Dict, Any
import re


SENSITIVE_KEYS = {'password', 'token', 'secret', 'api_key', 'authorization'}


def redact_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Redact sensitive fields from dictionaries.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        New dictionary with sensitive values replaced by '[REDACTED]'
    """

    def _redact(obj):
        if isinstance(obj, dict):
            return {
                k: '[REDACTED]' if k.lower() in SENSITIVE_KEYS else _redact(v)
                for k, v in obj.items()
            }
        if isinstance(obj, list):
            return [_redact(item) for item in obj]
        return obj

    return _redact(data)


def redact_secrets_from_text(text: str) -> str:
    """
    Redact secrets from plain text using regex patterns.

    Args:
        text: String potentially containing secrets in URLs or headers

    Returns:
        String with secrets replaced with '[REDACTED]'
    """
    if not text:
        return text

    redactions = [
        (r"(api_key=)[^&\s]+", r"\1[REDACTED]"),
        (r"(key=)[^&\s]+", r"\1[REDACTED]"),
        (r"(token=)[^&\s]+", r"\1[REDACTED]"),
        (r"(Bearer)\s+[^\s'\"]+", r"\1 [REDACTED]"),
    ]

    out = text
    for pattern, repl in redactions:
        out = re.sub(pattern, repl, out, flags=re.IGNORECASE)
    return out
