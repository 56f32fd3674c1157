from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Tuple

from lrcget.core.lrclib_client import SearchResult
from lrcget.core.utils import is_instrumental_lrc

DURATION_TOLERANCE_S = 2.0


class LyricsKind(str, Enum):
    SYNCED = "synced"
    PLAIN = "plain"
    INSTRUMENTAL = "instrumental"


# Lower rank wins.
_RANK = {LyricsKind.SYNCED: 0, LyricsKind.PLAIN: 1, LyricsKind.INSTRUMENTAL: 2}


def lyrics_kind(candidate: SearchResult) -> Optional[LyricsKind]:
    """What a candidate would give us, or None if it carries nothing usable."""
    if candidate.instrumental or is_instrumental_lrc(candidate.synced_lyrics):
        return LyricsKind.INSTRUMENTAL
    if candidate.synced_lyrics:
        return LyricsKind.SYNCED
    if candidate.plain_lyrics:
        return LyricsKind.PLAIN
    return None


def select_candidate(
    candidates: Iterable[SearchResult],
    duration: float,
    tolerance: float = DURATION_TOLERANCE_S,
) -> Optional[Tuple[SearchResult, LyricsKind]]:
    """
    Pick the best search result for a track of `duration` seconds.

    Candidates further than `tolerance` from the duration are dropped. Synced
    beats plain beats instrumental; inside a group the closest duration wins
    and a tie goes to the longer candidate.
    """
    best: Optional[Tuple[Tuple[int, float, float], SearchResult, LyricsKind]] = None
    for candidate in candidates:
        kind = lyrics_kind(candidate)
        if kind is None:
            continue
        diff = abs(candidate.duration - duration)
        if diff > tolerance:
            continue
        key = (_RANK[kind], diff, -candidate.duration)
        if best is None or key < best[0]:
            best = (key, candidate, kind)

    if best is None:
        return None
    return best[1], best[2]
