from __future__ import annotations

import logging
from typing import Protocol

from lrcget.core.errors import PlaybackError

logger = logging.getLogger(__name__)


class AudioBackend(Protocol):
    """What the Player needs from an audio engine. Times are in seconds, volume 0..100."""

    name: str

    def load(self, path: str) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def position(self) -> float: ...

    def duration(self) -> float: ...

    def ended(self) -> bool: ...

    def close(self) -> None: ...


def create_audio_backend() -> AudioBackend:
    """mpv over JSON IPC when the binary is available, else Qt Multimedia."""
    from lrcget.player.mpv_ipc import MpvIpcBackend

    try:
        backend = MpvIpcBackend()
        backend.start()
        return backend
    except (OSError, TimeoutError) as e:
        logger.info("mpv backend unavailable (%s), trying Qt Multimedia", e)

    try:
        from lrcget.player.qt_backend import QtBackend
    except ImportError as e:
        raise PlaybackError("no audio backend: install mpv or the 'qt' extra (PySide6)") from e
    return QtBackend()
