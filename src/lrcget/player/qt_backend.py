from __future__ import annotations

import logging

from PySide6.QtCore import QCoreApplication, QUrl
from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer

logger = logging.getLogger(__name__)


class QtBackend:
    """QMediaPlayer fallback for machines without mpv (needs the 'qt' extra)."""

    name = "qt-multimedia"

    def __init__(self):
        # QMediaPlayer needs an application object; reuse the host's if there is one.
        self._app = QCoreApplication.instance() or QCoreApplication([])
        self.audio = QAudioOutput()
        self.media = QMediaPlayer()
        self.media.setAudioOutput(self.audio)

    def _pump(self) -> None:
        QCoreApplication.processEvents()

    def load(self, path: str) -> None:
        self.media.setSource(QUrl.fromLocalFile(path))
        self.media.play()
        self._pump()

    def pause(self) -> None:
        self.media.pause()
        self._pump()

    def resume(self) -> None:
        self.media.play()
        self._pump()

    def stop(self) -> None:
        self.media.stop()
        self._pump()

    def seek(self, seconds: float) -> None:
        self.media.setPosition(int(seconds * 1000))
        self._pump()

    def set_volume(self, volume: float) -> None:
        self.audio.setVolume(min(100.0, max(0.0, float(volume))) / 100.0)

    def position(self) -> float:
        self._pump()
        return self.media.position() / 1000.0

    def duration(self) -> float:
        return self.media.duration() / 1000.0

    def ended(self) -> bool:
        return self.media.mediaStatus() == QMediaPlayer.MediaStatus.EndOfMedia

    def close(self) -> None:
        self.media.stop()
        self.media.setSource(QUrl())
        logger.debug("Qt audio backend closed")
