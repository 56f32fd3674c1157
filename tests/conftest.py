"""Test configuration and fixtures"""

import os
import threading
from pathlib import Path

import pytest

from lrcget.core.errors import UnreadableMediaError
from lrcget.core.lrclib_client import SearchResponse, SearchResult
from lrcget.core.settings import Settings
from lrcget.db import queries
from lrcget.db.database import connect, transaction
from lrcget.db.migrations import upgrade_database_if_needed
from lrcget.library import scan_library
from lrcget.library.fs_track import FsTrack


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=str(tmp_path / "data"), rate_limit=0.0, max_workers=4)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "db.sqlite3")


@pytest.fixture
def db(db_path):
    """Migrated database on disk (workers open their own connections to it)."""
    conn = connect(db_path)
    upgrade_database_if_needed(conn)
    yield conn
    conn.close()


@pytest.fixture
def add_track(db, tmp_path):
    """Insert a track directly, bypassing the scanner."""
    counter = {"n": 0}

    def _add(title="Song", artist="Artist", album="Album", duration=180.0, txt=None, lrc=None, instrumental=False):
        counter["n"] += 1
        path = tmp_path / "files" / f"{counter['n']:03d}-{title}.mp3"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        with transaction(db):
            artist_id = queries.upsert_artist(db, artist)
            album_id = queries.upsert_album(db, album, artist, None)
            track_id = queries.insert_track(
                db,
                file_path=str(path),
                file_name=path.name,
                title=title,
                album_id=album_id,
                artist_id=artist_id,
                duration=duration,
                track_number=None,
                txt_lyrics=txt,
                lrc_lyrics=lrc,
                instrumental=instrumental,
            )
            queries.refresh_counts(db, [artist_id], [album_id])
        return track_id

    return _add


class FakeLibrary:
    """Empty files on disk plus the tags the scanner should "read" from them."""

    def __init__(self, root: Path):
        self.root = root
        self.tags = {}

    def add(self, rel, **tags):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        self.tags[str(path)] = tags
        return str(path)

    def retag(self, rel, **tags):
        self.tags[str(self.root / rel)].update(tags)

    def remove(self, rel):
        path = self.root / rel
        os.remove(path)
        self.tags.pop(str(path), None)

    def read(self, path, covers_dir=None):
        tags = self.tags.get(path)
        if tags is None or tags.get("unreadable"):
            raise UnreadableMediaError(path, "corrupt")
        return FsTrack(
            file_path=path,
            file_name=os.path.basename(path),
            title=tags.get("title", Path(path).stem),
            album=tags.get("album", "Unknown Album"),
            artist=tags.get("artist", "Unknown Artist"),
            album_artist=tags.get("album_artist"),
            duration=tags.get("duration", 180.0),
            txt_lyrics=tags.get("txt"),
            lrc_lyrics=tags.get("lrc"),
            track_number=tags.get("track_number"),
        )


@pytest.fixture
def library(tmp_path, monkeypatch):
    root = tmp_path / "music"
    root.mkdir()
    lib = FakeLibrary(root)
    monkeypatch.setattr(scan_library, "new_fs_track_from_path", lib.read)
    return lib


def candidate(id=1, duration=180.0, synced=None, plain=None, instrumental=False, name="Song", artist="Artist"):
    return SearchResult(
        id=id,
        track_name=name,
        artist_name=artist,
        album_name="Album",
        duration=duration,
        synced_lyrics=synced,
        plain_lyrics=plain,
        instrumental=instrumental,
    )


class FakeLrcLib:
    """Stands in for LrcLibClient; answers per track title."""

    def __init__(self):
        self.search_results = {}
        self.get_results = {}
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, call):
        with self._lock:
            self.calls.append(call)

    def search(self, *, track_name="", artist_name="", album_name="", query="", cancel=None):
        self._record(("search", track_name))
        result = self.search_results.get(track_name, [])
        if isinstance(result, Exception):
            raise result
        return SearchResponse(data=list(result))

    def get_lyrics(self, track_name, artist_name, album_name=None, duration=None, *, cancel=None):
        self._record(("get", track_name))
        result = self.get_results.get(track_name)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_lrclib():
    return FakeLrcLib()


class FakeAudioBackend:
    name = "fake"

    def __init__(self):
        self.loaded = []
        self.stopped = 0
        self.paused = False
        self.volume = None
        self.pos = 0.0
        self.finished = False
        self.closed = False

    def load(self, path):
        self.loaded.append(path)
        self.pos = 0.0
        self.paused = False
        self.finished = False

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def stop(self):
        self.stopped += 1
        self.pos = 0.0

    def seek(self, seconds):
        self.pos = seconds

    def set_volume(self, volume):
        self.volume = volume

    def position(self):
        return self.pos

    def duration(self):
        return 0.0

    def ended(self):
        return self.finished

    def close(self):
        self.closed = True


@pytest.fixture
def audio_backend():
    return FakeAudioBackend()


@pytest.fixture
def make_candidate():
    return candidate
