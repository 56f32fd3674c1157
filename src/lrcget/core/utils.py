import re
import unicodedata
from typing import Optional

INSTRUMENTAL_LRC = "[au: instrumental]"

_SPECIAL_CHARS_RE = re.compile(r"[`~!@#$%^&*()_|+\-=?;:\",.<>{}\[\]\\\/]")
_APOSTROPHES_RE = re.compile(r"[’']")
_INSTRUMENTAL_RE = re.compile(r"\[au:\s*instrumental\]", re.IGNORECASE)


def lower_lay_string(s: str) -> str:
    """Decompose the string and drop combining marks (accents)."""
    normalized = unicodedata.normalize("NFKD", s)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def collapse(s: str) -> str:
    """Collapse whitespace runs into single spaces and trim both ends."""
    return re.sub(r"\s+", " ", s).strip()


def prepare_input(input_str: str) -> str:
    """
    Normalized key used for dedup and search (`*_lower` columns).

    "Beyoncé" and "  beyonce " produce the same key.
    """
    prepared = lower_lay_string(input_str or "")
    prepared = _SPECIAL_CHARS_RE.sub(" ", prepared)
    prepared = _APOSTROPHES_RE.sub("", prepared)
    prepared = prepared.lower()
    return collapse(prepared)


def strip_timestamps(synced_lyrics: str) -> str:
    """Remove leading [mm:ss.xx] / [tag: value] blocks from every LRC line."""
    out_lines: list[str] = []
    for line in synced_lyrics.splitlines():
        line = line.strip()
        while line.startswith("[") and "]" in line:
            line = line.split("]", 1)[1].lstrip()
        out_lines.append(line)
    return "\n".join(out_lines).strip()


def norm_text(s: Optional[str]) -> Optional[str]:
    """Strip and convert empty strings to None."""
    if s is None:
        return None
    s = str(s).strip()
    return s or None


def is_instrumental_lrc(lrc: Optional[str]) -> bool:
    return bool(lrc and _INSTRUMENTAL_RE.search(lrc))
