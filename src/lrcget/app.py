from __future__ import annotations

import dataclasses
import logging
import sqlite3
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from lrcget.core.embed_lyrics import embed_lyrics_for_track
from lrcget.core.errors import EmbedError, ValidationError
from lrcget.core.lrclib_client import LrcLibClient, PublishResponse, RateLimiter, SearchResponse
from lrcget.core.settings import Settings
from lrcget.core.utils import is_instrumental_lrc, norm_text, strip_timestamps
from lrcget.core.validation import (
    sanitize_input,
    validate_directory,
    validate_search_query,
    validate_theme_mode,
    validate_url,
)
from lrcget.db import queries
from lrcget.db.database import transaction
from lrcget.db.migrations import debug_print_schema, initialize_database
from lrcget.db.models import Album, Artist, Config, Track
from lrcget.library.scan_library import ProgressCallback, ScanResult, scan
from lrcget.lyrics.acquisition import CancellationToken, ClientFactory, LyricsAcquirer, Outcome
from lrcget.player.backend import AudioBackend, create_audio_backend
from lrcget.player.player import Player, PlayerState

logger = logging.getLogger(__name__)


class App:
    """
    Backend entry point: every operation a front end (CLI or GUI) calls.

    The App owns the main-thread database connection. Background work
    (scan metadata readers, lyrics workers) never touches it; lyrics
    workers open their own connections on `settings.db_path`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        backend_factory: Optional[Callable[[], AudioBackend]] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.settings = (settings or Settings.from_env()).validate()
        self.db: sqlite3.Connection = initialize_database(str(self.settings.data_path))
        if self.settings.debug_schema:
            debug_print_schema(self.db)

        self.rate_limiter = RateLimiter(self.settings.rate_limit)
        self._client_factory = client_factory
        self.acquirer = LyricsAcquirer(
            self.settings.db_path,
            max_workers=self.settings.max_workers,
            rate_limiter=self.rate_limiter,
            timeout_s=self.settings.timeout,
            client_factory=client_factory,
        )
        self.player = Player(self.get_track, backend_factory or create_audio_backend)

    def close(self) -> None:
        self.player.close()
        self.db.close()

    def __enter__(self) -> "App":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _client(self) -> LrcLibClient:
        config = self.get_config()
        if self._client_factory is not None:
            return self._client_factory(config)
        return LrcLibClient(config.lrclib_instance, timeout_s=self.settings.timeout, rate_limiter=self.rate_limiter)

    # ---- library ----

    def get_init(self) -> bool:
        return queries.get_init(self.db)

    def get_directories(self) -> List[str]:
        return queries.get_directories(self.db)

    def set_directories(self, directories: Iterable[str]) -> List[str]:
        paths: list[str] = []
        for directory in directories:
            path = validate_directory(directory)
            if path not in paths:
                paths.append(path)
        queries.set_directories(self.db, paths)
        return paths

    def initialize_library(self, progress: Optional[ProgressCallback] = None) -> ScanResult:
        directories = self.get_directories()
        if not directories:
            raise ValidationError("no library directories configured")

        result = scan(
            self.db,
            directories,
            max_workers=self.settings.max_workers,
            covers_dir=self.settings.covers_dir,
            progress=progress,
        )
        with transaction(self.db):
            queries.set_init(self.db, True)
        return result

    refresh_library = initialize_library

    def uninitialize_library(self) -> None:
        self.player.stop()
        queries.clean_library(self.db)

    def get_tracks(self) -> List[Track]:
        return queries.get_tracks(self.db)

    def get_track(self, track_id: int) -> Track:
        return queries.get_track_by_id(self.db, track_id)

    def get_track_ids(
        self,
        *,
        synced: bool = True,
        plain: bool = True,
        instrumental: bool = True,
        no_lyrics: bool = True,
        query: Optional[str] = None,
    ) -> List[int]:
        if query:
            wanted = set(self.get_track_ids(synced=synced, plain=plain, instrumental=instrumental, no_lyrics=no_lyrics))
            return [i for i in queries.search_track_ids(self.db, sanitize_input(query)) if i in wanted]
        return queries.get_track_ids(self.db, synced, plain, instrumental, no_lyrics)

    def get_albums(self) -> List[Album]:
        return queries.get_albums(self.db)

    def get_album(self, album_id: int) -> Album:
        return queries.get_album_by_id(self.db, album_id)

    def get_album_tracks(self, album_id: int) -> List[Track]:
        self.get_album(album_id)
        return queries.get_album_tracks(self.db, album_id)

    def get_artists(self) -> List[Artist]:
        return queries.get_artists(self.db)

    def get_artist(self, artist_id: int) -> Artist:
        return queries.get_artist_by_id(self.db, artist_id)

    def get_artist_tracks(self, artist_id: int) -> List[Track]:
        self.get_artist(artist_id)
        return queries.get_artist_tracks(self.db, artist_id)

    # ---- lyrics ----

    def download_lyrics(self, track_id: int) -> str:
        """Acquire lyrics for one track and describe what happened."""
        self.get_track(track_id)
        return self.acquirer.acquire(track_id).message

    def download_lyrics_batch(
        self,
        track_ids: Iterable[int],
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[Tuple[int, Outcome]]:
        return self.acquirer.acquire_batch(track_ids, cancel)

    def search_lyrics(
        self,
        title: str = "",
        artist: str = "",
        album: str = "",
        query: str = "",
    ) -> SearchResponse:
        title, artist, album = sanitize_input(title), sanitize_input(artist), sanitize_input(album)
        if query:
            query = validate_search_query(query)
        elif not title:
            raise ValidationError("a title or a search query is required")
        return self._client().search(track_name=title, artist_name=artist, album_name=album, query=query)

    def publish_lyrics(
        self,
        track_id: int,
        plain_lyrics: Optional[str] = None,
        synced_lyrics: Optional[str] = None,
    ) -> PublishResponse:
        """Publish lyrics for a library track; defaults to what is stored for it."""
        track = self.get_track(track_id)
        synced = norm_text(synced_lyrics) if synced_lyrics is not None else norm_text(track.lrc_lyrics)
        plain = norm_text(plain_lyrics) if plain_lyrics is not None else norm_text(track.txt_lyrics)
        if is_instrumental_lrc(synced):
            synced, plain = None, None
        elif synced and not plain:
            plain = norm_text(strip_timestamps(synced))

        logger.info("Publishing lyrics for %s - %s", track.artist_name, track.title)
        return self._client().publish(
            track_name=track.title,
            artist_name=track.artist_name,
            album_name=track.album_name,
            duration=track.duration,
            plain_lyrics=plain,
            synced_lyrics=synced,
        )

    def flag_lyrics(self, lyrics_id: int, reason: str) -> None:
        reason = sanitize_input(reason)
        if not reason:
            raise ValidationError("a reason is required to flag lyrics")
        self._client().flag(lyrics_id, reason)

    def save_lyrics(self, track_id: int, plain_lyrics: Optional[str], synced_lyrics: Optional[str]) -> str:
        """Store hand-edited lyrics; empty values clear the field."""
        self.get_track(track_id)
        plain, synced = norm_text(plain_lyrics), norm_text(synced_lyrics)

        with transaction(self.db):
            if is_instrumental_lrc(synced):
                queries.update_track_instrumental(self.db, track_id)
            elif synced:
                queries.update_track_synced_lyrics(
                    self.db, track_id, synced, plain or norm_text(strip_timestamps(synced))
                )
            elif plain:
                queries.update_track_plain_lyrics(self.db, track_id, plain)
            else:
                queries.update_track_null_lyrics(self.db, track_id)

        if not self.get_config().try_embed_lyrics or is_instrumental_lrc(synced):
            return "Lyrics saved"
        try:
            embed_lyrics_for_track(self.get_track(track_id))
        except EmbedError as e:
            logger.warning("Lyrics saved but not embedded: %s", e)
            return f"Lyrics saved (not embedded: {e})"
        return "Lyrics saved and embedded"

    def mark_instrumental(self, track_ids: Iterable[int]) -> None:
        ids = [int(i) for i in track_ids]
        for track_id in ids:
            self.get_track(track_id)
        queries.mark_tracks_instrumental(self.db, ids)

    # ---- playback ----

    def play_track(self, track_id: int) -> None:
        self.player.load(track_id)

    def pause_track(self) -> None:
        self.player.pause()

    def resume_track(self) -> None:
        self.player.resume()

    def stop_track(self) -> None:
        self.player.stop()

    def seek_track(self, seconds: float) -> None:
        self.player.seek(seconds)

    def set_volume(self, volume: float) -> None:
        self.player.set_volume(volume)

    def get_player_state(self) -> PlayerState:
        return self.player.get_state()

    # ---- config ----

    def get_config(self) -> Config:
        return queries.get_config(self.db)

    def update_config(self, config: Config) -> Config:
        config = dataclasses.replace(
            config,
            theme_mode=validate_theme_mode(config.theme_mode),
            lrclib_instance=validate_url(config.lrclib_instance),
        )
        with transaction(self.db):
            queries.set_config(self.db, config)
        return config
