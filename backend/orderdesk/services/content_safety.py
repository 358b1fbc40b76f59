"""Minimal clean-up of user-supplied thread bodies."""
import re

_SCRIPT_BLOCK_RE = re.compile(r"<\s*script[^>]*>[\s\S]*?<\s*/\s*script\s*>", re.IGNORECASE)


def sanitize_body(value: str) -> str:
    return _SCRIPT_BLOCK_RE.sub("", value).strip()
