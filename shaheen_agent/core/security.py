from __future__ import annotations
import re


_SCRIPT_PROTOCOL = re.compile(r"javascript:", flags=re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", flags=re.IGNORECASE)
_API_KEY = re.compile(r"^[A-Za-z0-9_-]{20,}$")


def sanitize_input(text: str) -> str:
    """Strip script protocols, inline event handlers and angle brackets from chat input."""
    if not isinstance(text, str):
        return ""
    # repeat until stable so nested patterns like "jajavascript:vascript:" collapse
    previous = None
    while previous != text:
        previous = text
        text = _EVENT_HANDLER.sub("", _SCRIPT_PROTOCOL.sub("", text))
    return text.replace("<", "").replace(">", "").strip()


def validate_api_key(api_key: str | None) -> bool:
    return isinstance(api_key, str) and bool(_API_KEY.match(api_key))
