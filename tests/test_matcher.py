from lrcget.core.utils import INSTRUMENTAL_LRC
from lrcget.lyrics.matcher import LyricsKind, lyrics_kind, select_candidate


def test_tie_goes_to_longer_candidate(make_candidate):
    candidates = [
        make_candidate(id=1, duration=180, synced="[00:01.00]a"),
        make_candidate(id=2, duration=182, synced="[00:01.00]b"),
        make_candidate(id=3, duration=200, synced="[00:01.00]c"),
    ]

    chosen, kind = select_candidate(candidates, 181)

    assert chosen.id == 2
    assert kind is LyricsKind.SYNCED


def test_candidates_outside_tolerance_are_ignored(make_candidate):
    assert select_candidate([make_candidate(duration=200, synced="[00:01.00]x")], 181) is None


def test_synced_beats_closer_plain(make_candidate):
    candidates = [
        make_candidate(id=1, duration=181, plain="words"),
        make_candidate(id=2, duration=182.5, synced="[00:01.00]words"),
    ]

    chosen, kind = select_candidate(candidates, 181)

    assert (chosen.id, kind) == (2, LyricsKind.SYNCED)


def test_plain_beats_instrumental(make_candidate):
    candidates = [
        make_candidate(id=1, duration=181, instrumental=True),
        make_candidate(id=2, duration=182, plain="words"),
    ]

    chosen, kind = select_candidate(candidates, 181)

    assert (chosen.id, kind) == (2, LyricsKind.PLAIN)


def test_instrumental_is_used_when_nothing_else_matches(make_candidate):
    chosen, kind = select_candidate([make_candidate(id=7, duration=180, instrumental=True)], 181)

    assert (chosen.id, kind) == (7, LyricsKind.INSTRUMENTAL)


def test_empty_candidates_are_skipped(make_candidate):
    assert select_candidate([make_candidate(duration=181)], 181) is None
    assert select_candidate([], 181) is None


def test_lyrics_kind_detects_instrumental_marker(make_candidate):
    assert lyrics_kind(make_candidate(synced=INSTRUMENTAL_LRC)) is LyricsKind.INSTRUMENTAL
    assert lyrics_kind(make_candidate(plain="x")) is LyricsKind.PLAIN
    assert lyrics_kind(make_candidate()) is None
