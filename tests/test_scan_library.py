import os
import shutil

from lrcget.db import queries
from lrcget.db.database import transaction
from lrcget.library.scan_library import ScanProgress, collect_audio_paths, iter_audio_paths, scan


def _snapshot(db):
    tracks = [
        (t.id, t.file_path, t.title, t.artist_id, t.album_id, t.duration, t.txt_lyrics, t.lrc_lyrics)
        for t in queries.get_tracks(db)
    ]
    artists = [(a.id, a.name, a.tracks_count) for a in queries.get_artists(db)]
    albums = [(a.id, a.name, a.tracks_count) for a in queries.get_albums(db)]
    return tracks, artists, albums


class TestScan:
    def test_indexes_tracks_and_counts(self, db, library):
        library.add("a/one.mp3", title="One", artist="Alpha", album="First")
        library.add("a/two.mp3", title="Two", artist="Alpha", album="First")
        library.add("b/three.flac", title="Three", artist="Beta", album="Second")
        library.add("notes.txt")

        result = scan(db, [str(library.root)])

        assert result.ok
        assert result.tracks_added == 3
        assert {t.title for t in queries.get_tracks(db)} == {"One", "Two", "Three"}
        assert {a.name: a.tracks_count for a in queries.get_artists(db)} == {"Alpha": 2, "Beta": 1}
        assert {a.name: a.tracks_count for a in queries.get_albums(db)} == {"First": 2, "Second": 1}

    def test_rescan_is_idempotent(self, db, library):
        library.add("one.mp3", title="One", artist="Alpha", album="First", lrc="[00:01.00]la")
        library.add("two.mp3", title="Two", artist="Beta", album="Second", txt="la la")

        scan(db, [str(library.root)])
        before = _snapshot(db)
        result = scan(db, [str(library.root)])

        assert (result.tracks_added, result.tracks_updated, result.tracks_removed) == (0, 0, 0)
        assert _snapshot(db) == before

    def test_artist_names_are_deduplicated(self, db, library):
        library.add("a.mp3", title="A", artist="Beyoncé")
        library.add("b.mp3", title="B", artist="  beyonce ")

        scan(db, [str(library.root)])

        artists = queries.get_artists(db)
        assert len(artists) == 1
        assert artists[0].tracks_count == 2

    def test_same_album_name_for_different_artists(self, db, library):
        library.add("a.mp3", artist="Alpha", album="Greatest Hits")
        library.add("b.mp3", artist="Beta", album="Greatest Hits")
        library.add("c.mp3", artist="Gamma", album="Greatest Hits", album_artist="Alpha")

        scan(db, [str(library.root)])

        counts = sorted(a.tracks_count for a in queries.get_albums(db))
        assert counts == [1, 2]

    def test_removed_file_is_dropped_with_empty_artist(self, db, library):
        library.add("one.mp3", title="One", artist="Alpha", album="First")
        library.add("two.mp3", title="Two", artist="Beta", album="Second")
        scan(db, [str(library.root)])

        library.remove("two.mp3")
        result = scan(db, [str(library.root)])

        assert result.tracks_removed == 1
        assert [t.title for t in queries.get_tracks(db)] == ["One"]
        assert [a.name for a in queries.get_artists(db)] == ["Alpha"]
        assert [a.name for a in queries.get_albums(db)] == ["First"]

    def test_retag_moves_track_between_artists(self, db, library):
        library.add("one.mp3", title="One", artist="Alpha", album="First")
        library.add("two.mp3", title="Two", artist="Alpha", album="First")
        scan(db, [str(library.root)])

        library.retag("two.mp3", artist="Beta")
        result = scan(db, [str(library.root)])

        assert result.tracks_updated == 1
        assert {a.name: a.tracks_count for a in queries.get_artists(db)} == {"Alpha": 1, "Beta": 1}

    def test_unreadable_file_is_skipped(self, db, library):
        library.add("good.mp3", title="Good")
        library.add("bad.mp3", unreadable=True)

        result = scan(db, [str(library.root)])

        assert result.files_skipped == 1
        assert [t.title for t in queries.get_tracks(db)] == ["Good"]

    def test_unreadable_root_keeps_its_tracks(self, db, library, tmp_path):
        library.add("one.mp3", title="One")
        other = tmp_path / "other"
        other.mkdir()
        (other / "two.mp3").write_bytes(b"")
        library.tags[str(other / "two.mp3")] = {"title": "Two"}
        scan(db, [str(library.root), str(other)])

        shutil.rmtree(other)
        result = scan(db, [str(library.root), str(other)])

        assert not result.ok
        assert result.errors[0].path == str(other)
        assert result.tracks_removed == 0
        assert {t.title for t in queries.get_tracks(db)} == {"One", "Two"}

    def test_existing_lyrics_are_not_overwritten(self, db, library):
        library.add("one.mp3", title="One")
        scan(db, [str(library.root)])
        track = queries.get_tracks(db)[0]
        with transaction(db):
            queries.update_track_plain_lyrics(db, track.id, "from the service")

        library.retag("one.mp3", txt="from the file")
        scan(db, [str(library.root)])

        assert queries.get_track_by_id(db, track.id).txt_lyrics == "from the service"

    def test_file_lyrics_fill_empty_track(self, db, library):
        library.add("one.mp3", title="One")
        scan(db, [str(library.root)])

        library.retag("one.mp3", lrc="[00:01.00]hello")
        result = scan(db, [str(library.root)])

        assert result.tracks_updated == 1
        assert queries.get_tracks(db)[0].lrc_lyrics == "[00:01.00]hello"

    def test_overlapping_roots_index_each_file_once(self, db, library):
        library.add("rock/one.mp3", title="One", artist="Alpha")
        library.add("two.mp3", title="Two", artist="Alpha")
        root = str(library.root)
        nested = os.path.join(root, "rock")

        result = scan(db, [root, nested])

        assert result.ok
        assert (result.tracks_added, result.files_skipped) == (2, 0)
        assert sorted(t.title for t in queries.get_tracks(db)) == ["One", "Two"]
        assert queries.get_artists(db)[0].tracks_count == 2

        again = scan(db, [nested, root])
        assert (again.tracks_added, again.tracks_updated, again.tracks_removed) == (0, 0, 0)

    def test_progress_is_reported(self, db, library):
        for i in range(3):
            library.add(f"{i}.mp3")
        seen = []

        scan(db, [str(library.root)], progress=seen.append)

        assert seen[-1] == ScanProgress(files_scanned=3, files_count=3)
        assert seen[-1].progress == 1.0


def test_iter_audio_paths_filters_and_sorts(tmp_path):
    for name in ("b.MP3", "a.flac", "cover.jpg", "sub/c.m4a"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")

    names = [os.path.relpath(p, str(tmp_path)) for p in iter_audio_paths(str(tmp_path))]

    assert names == ["a.flac", "b.MP3", os.path.join("sub", "c.m4a")]


def test_collect_audio_paths_lists_each_file_once(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "a.mp3").write_bytes(b"")
    (tmp_path / "b.mp3").write_bytes(b"")

    paths, readable, errors = collect_audio_paths([str(tmp_path), str(tmp_path / "sub"), str(tmp_path)])

    assert sorted(os.path.relpath(p, str(tmp_path)) for p in paths) == ["b.mp3", os.path.join("sub", "a.mp3")]
    assert len(readable) == 3
    assert errors == []
