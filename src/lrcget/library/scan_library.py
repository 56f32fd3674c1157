# library/scan_library.py
from __future__ import annotations

import logging
import os
import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from lrcget.core.errors import LibraryIOError, UnreadableMediaError
from lrcget.db import queries
from lrcget.db.database import transaction
from lrcget.library.fs_track import FsTrack, new_fs_track_from_path

logger = logging.getLogger(__name__)

AUDIO_EXTS = {".mp3", ".m4a", ".flac", ".ogg", ".oga", ".opus", ".wav", ".aac", ".wma"}

DEFAULT_SCAN_WORKERS = 8

# Metadata is extracted in chunks so progress is reported while the pool works.
BATCH_SIZE = 100


@dataclass
class ScanProgress:
    files_scanned: int
    files_count: int

    @property
    def progress(self) -> float:
        return self.files_scanned / self.files_count if self.files_count else 1.0


@dataclass
class ScanResult:
    tracks_added: int = 0
    tracks_updated: int = 0
    tracks_removed: int = 0
    files_skipped: int = 0
    errors: List[LibraryIOError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


ProgressCallback = Callable[[ScanProgress], None]


def iter_audio_paths(root: str) -> Iterator[str]:
    """
    Audio files below `root`, sorted per directory. Raises LibraryIOError if
    the root itself cannot be listed; unreadable sub-directories are logged
    and skipped.
    """
    if not os.path.isdir(root):
        raise LibraryIOError(root, FileNotFoundError("not a directory"))
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise LibraryIOError(root, e) from e

    def _on_error(err: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames.sort()
        for fn in sorted(filenames):
            if os.path.splitext(fn)[1].lower() in AUDIO_EXTS:
                yield os.path.join(dirpath, fn)


def collect_audio_paths(roots: Iterable[str]) -> Tuple[List[str], List[str], List[LibraryIOError]]:
    """
    (paths, readable_roots, per-root errors)

    Every file is listed once, even when roots overlap or symlinks lead to
    the same file twice.
    """
    paths: list[str] = []
    readable: list[str] = []
    errors: list[LibraryIOError] = []
    seen: set[str] = set()
    for root in roots:
        try:
            found = list(iter_audio_paths(root))
        except LibraryIOError as e:
            logger.error("%s", e)
            errors.append(e)
            continue
        readable.append(root)
        for path in found:
            real = os.path.realpath(path)
            if real in seen:
                logger.debug("Already listed: %s", path)
                continue
            seen.add(real)
            paths.append(path)
    return paths, readable, errors


def _load_fs_track(path: str, covers_dir: Optional[str]) -> Optional[FsTrack]:
    try:
        return new_fs_track_from_path(path, covers_dir)
    except UnreadableMediaError as e:
        logger.warning("%s", e)
        return None


def _is_under(path: str, root: str) -> bool:
    root = os.path.join(os.path.abspath(root), "")
    return os.path.abspath(path).startswith(root)


def scan(
    db: sqlite3.Connection,
    roots: List[str],
    *,
    max_workers: int = DEFAULT_SCAN_WORKERS,
    covers_dir: Optional[str] = None,
    progress: Optional[ProgressCallback] = None,
) -> ScanResult:
    """
    Synchronize the store with the audio files below `roots`.

    Tags are read in a thread pool; every track is reconciled on this thread
    in its own transaction. Tracks whose files are gone are removed, except
    under roots that could not be read in this run.
    """
    start_time = time.time()
    result = ScanResult()

    paths, readable_roots, result.errors = collect_audio_paths(roots)
    failed_roots = [e.path for e in result.errors]
    files_count = len(paths)
    logger.info("Files count: %s", files_count)

    existing = queries.get_track_index(db)
    seen: set[str] = set()
    touched_artists: set[int] = set()
    touched_albums: set[int] = set()

    files_scanned = 0
    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="scan") as executor:
        for start in range(0, files_count, BATCH_SIZE):
            batch = paths[start:start + BATCH_SIZE]
            # map() keeps file order, so reconciliation is deterministic.
            for path, fs_track in zip(batch, executor.map(lambda p: _load_fs_track(p, covers_dir), batch)):
                seen.add(path)
                if fs_track is None:
                    result.files_skipped += 1
                    continue
                try:
                    _reconcile(db, fs_track, existing.get(path), result, touched_artists, touched_albums)
                except sqlite3.Error as e:
                    logger.error("Failed to index %s: %s", path, e)
                    result.files_skipped += 1

            files_scanned += len(batch)
            if progress:
                progress(ScanProgress(files_scanned, files_count))

    removed = [
        row for path, row in existing.items()
        if path not in seen and not any(_is_under(path, root) for root in failed_roots)
    ]
    with transaction(db):
        result.tracks_removed = queries.delete_tracks(db, [row["id"] for row in removed])
        touched_artists.update(int(row["artist_id"]) for row in removed)
        touched_albums.update(int(row["album_id"]) for row in removed)
        queries.refresh_counts(db, touched_artists, touched_albums)

    logger.info(
        "==> Scanning took %dms: %d added, %d updated, %d removed, %d skipped, %d root errors",
        int((time.time() - start_time) * 1000),
        result.tracks_added, result.tracks_updated, result.tracks_removed,
        result.files_skipped, len(result.errors),
    )
    return result


def _reconcile(
    db: sqlite3.Connection,
    fs_track: FsTrack,
    existing: Optional[sqlite3.Row],
    result: ScanResult,
    touched_artists: set[int],
    touched_albums: set[int],
) -> None:
    with transaction(db):
        artist_id = queries.upsert_artist(db, fs_track.artist)
        album_id = queries.upsert_album(
            db, fs_track.album, fs_track.artist, fs_track.album_artist, fs_track.image_path
        )

        if existing is None:
            queries.insert_track(
                db,
                file_path=fs_track.file_path,
                file_name=fs_track.file_name,
                title=fs_track.title,
                album_id=album_id,
                artist_id=artist_id,
                duration=fs_track.duration,
                track_number=fs_track.track_number,
                txt_lyrics=fs_track.txt_lyrics,
                lrc_lyrics=fs_track.lrc_lyrics,
                instrumental=fs_track.instrumental,
            )
            result.tracks_added += 1
            touched_artists.add(artist_id)
            touched_albums.add(album_id)
            return

        changed = (
            existing["file_name"] != fs_track.file_name
            or existing["title"] != fs_track.title
            or existing["artist_id"] != artist_id
            or existing["album_id"] != album_id
            or existing["duration"] != fs_track.duration
            or existing["track_number"] != fs_track.track_number
        )
        if changed:
            queries.update_track_metadata(
                db,
                existing["id"],
                file_name=fs_track.file_name,
                title=fs_track.title,
                album_id=album_id,
                artist_id=artist_id,
                duration=fs_track.duration,
                track_number=fs_track.track_number,
            )
            touched_artists.update((artist_id, int(existing["artist_id"])))
            touched_albums.update((album_id, int(existing["album_id"])))

        # File lyrics never overwrite lyrics already in the database.
        filled = False
        if fs_track.txt_lyrics or fs_track.lrc_lyrics:
            filled = queries.fill_missing_lyrics(
                db, existing["id"], fs_track.txt_lyrics, fs_track.lrc_lyrics, fs_track.instrumental
            )

        if changed or filled:
            result.tracks_updated += 1
