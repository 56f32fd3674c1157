from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from lrcget.core.errors import NotFoundError, PlaybackError
from lrcget.db.models import Track
from lrcget.player.backend import AudioBackend

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 70.0


class PlayerStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class NowPlaying:
    track_id: int
    title: str
    artist: str
    album: str
    path: str
    duration: float


@dataclass(frozen=True)
class PlayerState:
    status: PlayerStatus
    track: Optional[NowPlaying]
    progress: float
    duration: float
    volume: float

    @property
    def track_id(self) -> Optional[int]:
        return self.track.track_id if self.track else None


class Player:
    """
    Playback state machine on top of an AudioBackend.

    Transport commands run under one lock, so at most one track is loaded
    at any time. Progress is read from the backend; the machine returns to
    STOPPED by itself once the track has played to its end (see tick()).
    """

    def __init__(
        self,
        track_lookup: Callable[[int], Track],
        backend_factory: Callable[[], AudioBackend],
    ):
        self._track_lookup = track_lookup
        self._backend_factory = backend_factory
        self._backend: Optional[AudioBackend] = None
        self._lock = threading.RLock()

        self.status = PlayerStatus.STOPPED
        self.track: Optional[NowPlaying] = None
        self.volume = DEFAULT_VOLUME

    def _get_backend(self) -> AudioBackend:
        # Started on first use so listing the library never spawns an audio process.
        if self._backend is None:
            self._backend = self._backend_factory()
            self._backend.set_volume(self.volume)
            logger.info("Audio backend: %s", self._backend.name)
        return self._backend

    # ---- transport ----

    def load(self, track_id: int) -> None:
        with self._lock:
            track = self._track_lookup(track_id)
            if not os.path.isfile(track.file_path):
                raise NotFoundError(f"Audio file not found: {track.file_path}")

            backend = self._get_backend()
            if self.track is not None:
                backend.stop()
                self._clear()

            try:
                backend.load(track.file_path)
            except OSError as e:
                raise PlaybackError(f"cannot play {track.file_name}: {e}") from e

            self.track = NowPlaying(
                track_id=track.id,
                title=track.title,
                artist=track.artist_name,
                album=track.album_name,
                path=track.file_path,
                duration=track.duration,
            )
            self.status = PlayerStatus.PLAYING
            logger.debug("Playing %s", track.file_path)

    def pause(self) -> None:
        with self._lock:
            if self.status is not PlayerStatus.PLAYING:
                return
            self._get_backend().pause()
            self.status = PlayerStatus.PAUSED

    def resume(self) -> None:
        with self._lock:
            if self.status is not PlayerStatus.PAUSED:
                return
            self._get_backend().resume()
            self.status = PlayerStatus.PLAYING

    play = resume

    def stop(self) -> None:
        with self._lock:
            if self._backend is not None and self.track is not None:
                self._backend.stop()
            self._clear()

    def seek(self, seconds: float) -> None:
        with self._lock:
            if self.track is None:
                return
            target = min(max(0.0, float(seconds)), self._duration())
            self._get_backend().seek(target)

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self.volume = min(100.0, max(0.0, float(volume)))
            if self._backend is not None:
                self._backend.set_volume(self.volume)

    # ---- state ----

    def tick(self) -> None:
        """Move to STOPPED when the playing track has reached its end."""
        with self._lock:
            if self.status is not PlayerStatus.PLAYING or self._backend is None:
                return
            duration = self._duration()
            if self._backend.ended() or (duration > 0 and self._backend.position() >= duration):
                logger.debug("Track finished: %s", self.track.path if self.track else None)
                self._backend.stop()
                self._clear()

    def get_state(self) -> PlayerState:
        with self._lock:
            self.tick()
            progress = 0.0
            if self.track is not None and self._backend is not None:
                progress = min(max(0.0, self._backend.position()), self._duration() or float("inf"))
            return PlayerState(
                status=self.status,
                track=self.track,
                progress=progress,
                duration=self._duration(),
                volume=self.volume,
            )

    def close(self) -> None:
        with self._lock:
            self._clear()
            if self._backend is not None:
                self._backend.close()
                self._backend = None

    # ---- helpers ----

    def _duration(self) -> float:
        if self.track is None:
            return 0.0
        if self.track.duration > 0:
            return self.track.duration
        return self._backend.duration() if self._backend is not None else 0.0

    def _clear(self) -> None:
        self.status = PlayerStatus.STOPPED
        self.track = None
