from __future__ import annotations

import sqlite3
from typing import Iterable, List, Optional

from lrcget.core.errors import NotFoundError
from lrcget.core.utils import INSTRUMENTAL_LRC, norm_text, prepare_input
from lrcget.db.database import transaction
from lrcget.db.models import Album, Artist, Config, Track

# Read helpers run in autocommit mode. Write helpers do NOT open their own
# transaction unless noted; callers wrap them in db.database.transaction().

TRACK_SELECT = """
    SELECT
        tracks.id, tracks.file_path, tracks.file_name, tracks.title, tracks.title_lower,
        artists.name AS artist_name, tracks.artist_id,
        albums.name AS album_name, albums.album_artist_name,
        tracks.album_id, tracks.duration, tracks.track_number,
        albums.image_path, tracks.txt_lyrics, tracks.lrc_lyrics, tracks.instrumental,
        tracks.created_at, tracks.updated_at
    FROM tracks
    JOIN albums ON tracks.album_id = albums.id
    JOIN artists ON tracks.artist_id = artists.id
"""


# -------------------------------
# DIRECTORIES
# -------------------------------
def get_directories(db: sqlite3.Connection) -> List[str]:
    cursor = db.execute("SELECT path FROM directories ORDER BY id ASC")
    return [row["path"] for row in cursor.fetchall()]


def set_directories(db: sqlite3.Connection, directories: List[str]) -> None:
    with transaction(db):
        db.execute("DELETE FROM directories")
        db.executemany(
            "INSERT OR IGNORE INTO directories (path) VALUES (?)",
            [(path,) for path in directories],
        )


# -------------------------------
# LIBRARY INIT
# -------------------------------
def get_init(db: sqlite3.Connection) -> bool:
    row = db.execute("SELECT init FROM library_data LIMIT 1").fetchone()
    return bool(row["init"]) if row else False


def set_init(db: sqlite3.Connection, init: bool) -> None:
    db.execute("UPDATE library_data SET init = ?", (bool(init),))


# -------------------------------
# CONFIG
# -------------------------------
def get_config(db: sqlite3.Connection) -> Config:
    row = db.execute("""
        SELECT skip_tracks_with_synced_lyrics,
               skip_tracks_with_plain_lyrics,
               show_line_count,
               try_embed_lyrics,
               theme_mode,
               lrclib_instance
        FROM config_data
        LIMIT 1
    """).fetchone()
    return Config.from_row(row)


def set_config(db: sqlite3.Connection, config: Config) -> None:
    db.execute("""
        UPDATE config_data
        SET skip_tracks_with_synced_lyrics = ?,
            skip_tracks_with_plain_lyrics = ?,
            show_line_count = ?,
            try_embed_lyrics = ?,
            theme_mode = ?,
            lrclib_instance = ?
    """, (
        config.skip_tracks_with_synced_lyrics,
        config.skip_tracks_with_plain_lyrics,
        config.show_line_count,
        config.try_embed_lyrics,
        config.theme_mode,
        config.lrclib_instance,
    ))


# -------------------------------
# ARTISTS
# -------------------------------
def find_artist(db: sqlite3.Connection, name: str) -> Optional[int]:
    row = db.execute(
        "SELECT id FROM artists WHERE name_lower = ?", (prepare_input(name),)
    ).fetchone()
    return int(row["id"]) if row else None


def upsert_artist(db: sqlite3.Connection, name: str) -> int:
    """Resolve-or-create by normalized name; the first spelling seen is kept."""
    db.execute(
        "INSERT OR IGNORE INTO artists (name, name_lower) VALUES (?, ?)",
        (name, prepare_input(name)),
    )
    artist_id = find_artist(db, name)
    if artist_id is None:
        raise sqlite3.IntegrityError(f"artist row missing after insert: {name!r}")
    return artist_id


def get_artists(db: sqlite3.Connection) -> List[Artist]:
    rows = db.execute("SELECT * FROM artists ORDER BY name_lower ASC").fetchall()
    return [Artist.from_row(row) for row in rows]


def get_artist_by_id(db: sqlite3.Connection, artist_id: int) -> Artist:
    row = db.execute("SELECT * FROM artists WHERE id = ?", (int(artist_id),)).fetchone()
    if not row:
        raise NotFoundError(f"Artist not found: {artist_id}")
    return Artist.from_row(row)


# -------------------------------
# ALBUMS
# -------------------------------
def album_owner_key(artist_name: str, album_artist_name: Optional[str]) -> str:
    """Normalized identity of the artist an album is grouped under."""
    return prepare_input(album_artist_name or artist_name)


def find_album(db: sqlite3.Connection, name: str, owner_key: str) -> Optional[int]:
    row = db.execute(
        "SELECT id FROM albums WHERE name_lower = ? AND album_artist_name_lower = ?",
        (prepare_input(name), owner_key),
    ).fetchone()
    return int(row["id"]) if row else None


def upsert_album(
    db: sqlite3.Connection,
    name: str,
    artist_name: str,
    album_artist_name: Optional[str],
    image_path: Optional[str] = None,
) -> int:
    owner_key = album_owner_key(artist_name, album_artist_name)
    db.execute(
        """
        INSERT OR IGNORE INTO albums
            (name, name_lower, artist_name, album_artist_name, album_artist_name_lower, image_path)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (name, prepare_input(name), album_artist_name or artist_name, album_artist_name, owner_key, image_path),
    )
    album_id = find_album(db, name, owner_key)
    if album_id is None:
        raise sqlite3.IntegrityError(f"album row missing after insert: {name!r}")

    if image_path:
        db.execute(
            "UPDATE albums SET image_path = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND image_path IS NULL",
            (image_path, album_id),
        )
    return album_id


def get_albums(db: sqlite3.Connection) -> List[Album]:
    rows = db.execute("SELECT * FROM albums ORDER BY name_lower ASC").fetchall()
    return [Album.from_row(row) for row in rows]


def get_album_by_id(db: sqlite3.Connection, album_id: int) -> Album:
    row = db.execute("SELECT * FROM albums WHERE id = ?", (int(album_id),)).fetchone()
    if not row:
        raise NotFoundError(f"Album not found: {album_id}")
    return Album.from_row(row)


# -------------------------------
# TRACKS
# -------------------------------
def get_track_by_id(db: sqlite3.Connection, track_id: int) -> Track:
    row = db.execute(f"{TRACK_SELECT} WHERE tracks.id = ? LIMIT 1", (int(track_id),)).fetchone()
    if not row:
        raise NotFoundError(f"Track not found: {track_id}")
    return Track.from_row(row)


def get_track_by_path(db: sqlite3.Connection, file_path: str) -> Optional[Track]:
    row = db.execute(f"{TRACK_SELECT} WHERE tracks.file_path = ? LIMIT 1", (file_path,)).fetchone()
    return Track.from_row(row) if row else None


def get_tracks(db: sqlite3.Connection) -> List[Track]:
    rows = db.execute(f"{TRACK_SELECT} ORDER BY tracks.title_lower ASC").fetchall()
    return [Track.from_row(row) for row in rows]


def get_album_tracks(db: sqlite3.Connection, album_id: int) -> List[Track]:
    rows = db.execute(
        f"{TRACK_SELECT} WHERE tracks.album_id = ? ORDER BY tracks.track_number ASC, tracks.title_lower ASC",
        (int(album_id),),
    ).fetchall()
    return [Track.from_row(row) for row in rows]


def get_artist_tracks(db: sqlite3.Connection, artist_id: int) -> List[Track]:
    rows = db.execute(
        f"{TRACK_SELECT} WHERE tracks.artist_id = ? ORDER BY albums.name_lower ASC, tracks.track_number ASC",
        (int(artist_id),),
    ).fetchall()
    return [Track.from_row(row) for row in rows]


def get_track_index(db: sqlite3.Connection) -> dict[str, sqlite3.Row]:
    """file_path -> raw row with the columns a re-scan compares."""
    rows = db.execute("""
        SELECT id, file_path, file_name, title, artist_id, album_id, duration,
               track_number, txt_lyrics, lrc_lyrics
        FROM tracks
    """).fetchall()
    return {row["file_path"]: row for row in rows}


def insert_track(
    db: sqlite3.Connection,
    *,
    file_path: str,
    file_name: str,
    title: str,
    album_id: int,
    artist_id: int,
    duration: float,
    track_number: Optional[int],
    txt_lyrics: Optional[str],
    lrc_lyrics: Optional[str],
    instrumental: bool,
) -> int:
    cursor = db.execute("""
        INSERT INTO tracks (
            file_path, file_name, title, title_lower,
            album_id, artist_id, duration, track_number,
            txt_lyrics, lrc_lyrics, instrumental
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        file_path,
        file_name,
        title,
        prepare_input(title),
        album_id,
        artist_id,
        duration,
        track_number,
        txt_lyrics,
        lrc_lyrics,
        instrumental,
    ))
    return int(cursor.lastrowid)


def update_track_metadata(
    db: sqlite3.Connection,
    track_id: int,
    *,
    file_name: str,
    title: str,
    album_id: int,
    artist_id: int,
    duration: float,
    track_number: Optional[int],
) -> None:
    db.execute("""
        UPDATE tracks
        SET file_name = ?, title = ?, title_lower = ?, album_id = ?, artist_id = ?,
            duration = ?, track_number = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (file_name, title, prepare_input(title), album_id, artist_id, duration, track_number, int(track_id)))


def fill_missing_lyrics(
    db: sqlite3.Connection,
    track_id: int,
    txt_lyrics: Optional[str],
    lrc_lyrics: Optional[str],
    instrumental: bool,
) -> bool:
    """Store file lyrics only on a track that has none. Returns True if a row changed."""
    cursor = db.execute("""
        UPDATE tracks
        SET txt_lyrics = ?, lrc_lyrics = ?, instrumental = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ? AND txt_lyrics IS NULL AND lrc_lyrics IS NULL
    """, (txt_lyrics, lrc_lyrics, instrumental, int(track_id)))
    return cursor.rowcount > 0


def delete_tracks(db: sqlite3.Connection, track_ids: Iterable[int]) -> int:
    ids = [(int(i),) for i in track_ids]
    if not ids:
        return 0
    db.executemany("DELETE FROM tracks WHERE id = ?", ids)
    return len(ids)


def refresh_counts(db: sqlite3.Connection, artist_ids: Iterable[int], album_ids: Iterable[int]) -> None:
    """
    Recompute tracks_count for the given artists/albums and delete the ones
    left without tracks.
    """
    album_params = [(int(i),) for i in set(album_ids)]
    artist_params = [(int(i),) for i in set(artist_ids)]

    db.executemany("""
        UPDATE albums
        SET tracks_count = (SELECT COUNT(*) FROM tracks WHERE tracks.album_id = albums.id),
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, album_params)
    db.executemany("DELETE FROM albums WHERE id = ? AND tracks_count = 0", album_params)

    db.executemany("""
        UPDATE artists
        SET tracks_count = (SELECT COUNT(*) FROM tracks WHERE tracks.artist_id = artists.id),
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, artist_params)
    db.executemany("DELETE FROM artists WHERE id = ? AND tracks_count = 0", artist_params)


def clean_library(db: sqlite3.Connection) -> None:
    with transaction(db):
        db.execute("DELETE FROM tracks")
        db.execute("DELETE FROM albums")
        db.execute("DELETE FROM artists")
        set_init(db, False)


# -------------------------------
# LYRICS UPDATES (one statement each)
# -------------------------------
def update_track_synced_lyrics(db: sqlite3.Connection, track_id: int, synced_lyrics: str, plain_lyrics: Optional[str]) -> None:
    db.execute("""
        UPDATE tracks
        SET lrc_lyrics = ?, txt_lyrics = ?, instrumental = 0, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (norm_text(synced_lyrics), norm_text(plain_lyrics), int(track_id)))


def update_track_plain_lyrics(db: sqlite3.Connection, track_id: int, plain_lyrics: str) -> None:
    db.execute("""
        UPDATE tracks
        SET txt_lyrics = ?, lrc_lyrics = NULL, instrumental = 0, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (norm_text(plain_lyrics), int(track_id)))


def update_track_null_lyrics(db: sqlite3.Connection, track_id: int) -> None:
    db.execute("""
        UPDATE tracks
        SET txt_lyrics = NULL, lrc_lyrics = NULL, instrumental = 0, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (int(track_id),))


def update_track_instrumental(db: sqlite3.Connection, track_id: int) -> None:
    db.execute("""
        UPDATE tracks
        SET txt_lyrics = NULL, lrc_lyrics = ?, instrumental = 1, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (INSTRUMENTAL_LRC, int(track_id)))


def mark_tracks_instrumental(db: sqlite3.Connection, track_ids: list[int]) -> None:
    ids = [int(x) for x in track_ids if x is not None]
    if not ids:
        return
    with transaction(db):
        for track_id in ids:
            update_track_instrumental(db, track_id)


# -------------------------------
# FILTER TRACK IDS
# -------------------------------
def get_track_ids(
    db: sqlite3.Connection,
    synced_lyrics: bool = True,
    plain_lyrics: bool = True,
    instrumental: bool = True,
    no_lyrics: bool = True,
) -> List[int]:
    conditions: list[str] = []

    if not synced_lyrics:
        conditions.append("(lrc_lyrics IS NULL OR instrumental = 1)")
    if not plain_lyrics:
        conditions.append("(txt_lyrics IS NULL OR lrc_lyrics IS NOT NULL)")
    if not instrumental:
        conditions.append("instrumental = 0")
    if not no_lyrics:
        conditions.append("(txt_lyrics IS NOT NULL OR lrc_lyrics IS NOT NULL OR instrumental = 1)")

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    rows = db.execute(f"SELECT id FROM tracks {where_clause} ORDER BY title_lower ASC").fetchall()
    return [int(r["id"]) for r in rows]


def search_track_ids(db: sqlite3.Connection, search_query: str) -> List[int]:
    q = prepare_input(search_query or "")
    if not q:
        return get_track_ids(db)
    like = f"%{q}%"
    rows = db.execute("""
        SELECT tracks.id
        FROM tracks
        JOIN artists ON tracks.artist_id = artists.id
        JOIN albums ON tracks.album_id = albums.id
        WHERE tracks.title_lower LIKE ? OR artists.name_lower LIKE ?
           OR albums.name_lower LIKE ? OR albums.album_artist_name_lower LIKE ?
        ORDER BY tracks.title_lower ASC
    """, (like, like, like, like)).fetchall()
    return [int(r["id"]) for r in rows]
