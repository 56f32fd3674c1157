# core/validation.py
from __future__ import annotations

import os
import re

from lrcget.core.errors import ValidationError

THEME_MODES = ("auto", "light", "dark")

MAX_URL_LENGTH = 2048
MAX_QUERY_LENGTH = 1000

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_directory(path: str) -> str:
    """Return the absolute, user-expanded directory path or raise ValidationError."""
    if not path or not path.strip():
        raise ValidationError("path cannot be empty")
    parts = path.replace("\\", "/").split("/")
    if ".." in parts:
        raise ValidationError(f"path traversal not allowed: {path}")
    return os.path.abspath(os.path.expanduser(path.strip()))


def validate_url(url: str) -> str:
    if not url:
        raise ValidationError("URL cannot be empty")
    if not url.startswith(("http://", "https://")):
        raise ValidationError("URL must start with http:// or https://")
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError("URL too long")
    return url.rstrip("/")


def validate_theme_mode(mode: str) -> str:
    if mode not in THEME_MODES:
        raise ValidationError(f"theme_mode must be one of: {', '.join(THEME_MODES)}")
    return mode


def sanitize_input(value: str | None) -> str:
    """Trim and drop NUL/control characters (newlines and tabs are kept)."""
    if not value:
        return ""
    return _CONTROL_CHARS_RE.sub("", value).strip()


def validate_search_query(query: str) -> str:
    query = sanitize_input(query)
    if not query:
        raise ValidationError("search query cannot be empty")
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError("search query too long")
    return query
