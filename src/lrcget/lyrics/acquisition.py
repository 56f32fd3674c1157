from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from lrcget.core.embed_lyrics import embed_lyrics_for_track
from lrcget.core.errors import EmbedError, EmbedWarning, LrcgetError, user_message
from lrcget.core.lrclib_client import DEFAULT_TIMEOUT_S, LrcLibClient, RateLimiter, SearchResult
from lrcget.core.utils import norm_text, strip_timestamps
from lrcget.db import queries
from lrcget.db.database import connect, transaction
from lrcget.db.models import Config, Track
from lrcget.lyrics.matcher import LyricsKind, lyrics_kind, select_candidate

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_MIN_INTERVAL_S = 0.2

# Set to stop a batch: unstarted tracks are never started, waits in
# backoff/throttling end early.
CancellationToken = threading.Event

ClientFactory = Callable[[Config], LrcLibClient]


class OutcomeKind(str, Enum):
    MATCHED = "matched"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class SkipReason(str, Enum):
    HAS_SYNCED = "has_synced"
    HAS_PLAIN = "has_plain"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    lyrics: Optional[LyricsKind] = None
    reason: Optional[SkipReason] = None
    error: Optional[BaseException] = None
    warning: Optional[EmbedWarning] = None

    @classmethod
    def matched(cls, lyrics: LyricsKind, warning: Optional[EmbedWarning] = None) -> "Outcome":
        return cls(OutcomeKind.MATCHED, lyrics=lyrics, warning=warning)

    @classmethod
    def skipped(cls, reason: SkipReason) -> "Outcome":
        return cls(OutcomeKind.SKIPPED, reason=reason)

    @classmethod
    def not_found(cls) -> "Outcome":
        return cls(OutcomeKind.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException) -> "Outcome":
        return cls(OutcomeKind.FAILED, error=error)

    @property
    def message(self) -> str:
        if self.kind is OutcomeKind.MATCHED:
            text = {
                LyricsKind.SYNCED: "Synced lyrics downloaded",
                LyricsKind.PLAIN: "Plain lyrics downloaded",
                LyricsKind.INSTRUMENTAL: "Marked track as instrumental",
            }[self.lyrics]
            if self.warning is not None:
                text += f" (not embedded: {self.warning})"
            return text
        if self.kind is OutcomeKind.SKIPPED:
            if self.reason is SkipReason.HAS_SYNCED:
                return "Skipped: track already has synced lyrics"
            return "Skipped: track already has plain lyrics"
        if self.kind is OutcomeKind.NOT_FOUND:
            return "Lyrics not found"
        return user_message(self.error) if self.error is not None else "Download failed"


def skip_reason(track: Track, config: Config) -> Optional[SkipReason]:
    # An instrumental marker lives in lrc_lyrics, so it counts as synced.
    if config.skip_tracks_with_synced_lyrics and track.lrc_lyrics:
        return SkipReason.HAS_SYNCED
    if config.skip_tracks_with_plain_lyrics and track.txt_lyrics and not track.lrc_lyrics:
        return SkipReason.HAS_PLAIN
    return None


def write_lyrics(db: sqlite3.Connection, track_id: int, candidate: SearchResult, kind: LyricsKind) -> None:
    """Persist the chosen lyrics in one UPDATE."""
    with transaction(db):
        if kind is LyricsKind.INSTRUMENTAL:
            queries.update_track_instrumental(db, track_id)
        elif kind is LyricsKind.SYNCED:
            plain = candidate.plain_lyrics or norm_text(strip_timestamps(candidate.synced_lyrics or ""))
            queries.update_track_synced_lyrics(db, track_id, candidate.synced_lyrics or "", plain)
        else:
            queries.update_track_plain_lyrics(db, track_id, candidate.plain_lyrics or "")


class LyricsAcquirer:
    """
    Downloads lyrics from LRCLIB for tracks already in the library.

    All clients share one RateLimiter, so the request rate holds across
    workers and across consecutive batches.
    """

    def __init__(
        self,
        db_path: str,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        rate_limiter: Optional[RateLimiter] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.db_path = db_path
        self.max_workers = max(1, int(max_workers))
        self.rate_limiter = rate_limiter or RateLimiter(DEFAULT_MIN_INTERVAL_S)
        self.timeout_s = timeout_s
        self.client_factory = client_factory or self._default_client

    def _default_client(self, config: Config) -> LrcLibClient:
        return LrcLibClient(config.lrclib_instance, timeout_s=self.timeout_s, rate_limiter=self.rate_limiter)

    def _load_config(self) -> Config:
        with closing(connect(self.db_path)) as db:
            return queries.get_config(db)

    def acquire(self, track_id: int, cancel: Optional[CancellationToken] = None) -> Outcome:
        config = self._load_config()
        return self._acquire_one(track_id, config, self.client_factory(config), cancel)

    def acquire_batch(
        self,
        track_ids: Iterable[int],
        cancel: Optional[CancellationToken] = None,
    ) -> Iterator[Tuple[int, Outcome]]:
        """
        Yield (track_id, Outcome) in completion order.

        At most `max_workers` tracks are in flight. Once `cancel` is set no
        new track is started; tracks already running finish and are still
        yielded.
        """
        cancel = cancel if cancel is not None else CancellationToken()
        config = self._load_config()
        client = self.client_factory(config)
        pending_ids = iter(list(track_ids))
        in_flight: Dict[Future, int] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="lyrics") as executor:

            def submit_next() -> None:
                if cancel.is_set():
                    return
                track_id = next(pending_ids, None)
                if track_id is not None:
                    in_flight[executor.submit(self._run, track_id, config, client, cancel)] = track_id

            for _ in range(self.max_workers):
                submit_next()

            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    track_id = in_flight.pop(future)
                    outcome = future.result()
                    if outcome is not None:
                        yield track_id, outcome
                    submit_next()

        if cancel.is_set():
            logger.info("Lyrics batch cancelled")

    def _run(
        self, track_id: int, config: Config, client: LrcLibClient, cancel: CancellationToken
    ) -> Optional[Outcome]:
        if cancel.is_set():
            return None
        return self._acquire_one(track_id, config, client, cancel)

    def _acquire_one(
        self,
        track_id: int,
        config: Config,
        client: LrcLibClient,
        cancel: Optional[CancellationToken],
    ) -> Outcome:
        try:
            with closing(connect(self.db_path)) as db:
                track = queries.get_track_by_id(db, track_id)

                reason = skip_reason(track, config)
                if reason is not None:
                    logger.debug("Track %s skipped (%s)", track_id, reason.value)
                    return Outcome.skipped(reason)

                match = find_lyrics(client, track, cancel)
                if match is None:
                    logger.info("No lyrics found for %s - %s", track.artist_name, track.title)
                    return Outcome.not_found()

                candidate, kind = match
                write_lyrics(db, track_id, candidate, kind)
                track = queries.get_track_by_id(db, track_id)
        except (LrcgetError, sqlite3.Error) as e:
            logger.warning("Lyrics download failed for track %s: %s", track_id, e)
            return Outcome.failed(e)

        logger.info("Downloaded %s lyrics for %s - %s", kind.value, track.artist_name, track.title)

        warning: Optional[EmbedWarning] = None
        if config.try_embed_lyrics and kind is not LyricsKind.INSTRUMENTAL:
            try:
                embed_lyrics_for_track(track)
            except EmbedError as e:
                logger.warning("Lyrics saved but not embedded for %s: %s", track.file_path, e)
                warning = EmbedWarning(str(e))
        return Outcome.matched(kind, warning)


def find_lyrics(
    client: LrcLibClient,
    track: Track,
    cancel: Optional[CancellationToken] = None,
) -> Optional[Tuple[SearchResult, LyricsKind]]:
    """Search first; fall back to the service's exact lookup."""
    response = client.search(
        track_name=track.title,
        artist_name=track.artist_name,
        album_name=track.album_name,
        cancel=cancel,
    )
    match = select_candidate(response.data, track.duration)
    if match is not None:
        return match

    record = client.get_lyrics(
        track.title,
        track.artist_name,
        track.album_name,
        track.duration,
        cancel=cancel,
    )
    if record is None:
        return None
    kind = lyrics_kind(record)
    return (record, kind) if kind is not None else None
