# core/errors.py
from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class LrcgetError(Exception):
    """Base class for every error raised by the backend."""


class LibraryIOError(LrcgetError, OSError):
    """A library root (or other directory) could not be read."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        msg = f"Cannot read directory: {path}"
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)


class UnreadableMediaError(LrcgetError):
    """One audio file is corrupt or not supported by the tag reader."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        super().__init__(f"Unreadable media file {path}: {reason}" if reason else f"Unreadable media file {path}")


class NotFoundError(LrcgetError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Not found"


class ValidationError(LrcgetError, ValueError):
    pass


class ServiceError(LrcgetError):
    """
    Lyrics service failure.

    `transient` is True for failures worth retrying (timeouts, connection
    errors, 5xx, 429). Everything else is permanent.
    """

    def __init__(self, message: str, *, transient: bool, status_code: Optional[int] = None):
        self.transient = transient
        self.status_code = status_code
        super().__init__(message)


class OperationCancelled(LrcgetError):
    """The batch was cancelled while this item was waiting to retry."""


class EmbedError(LrcgetError):
    """Writing lyrics into the media file failed."""


class PlaybackError(LrcgetError):
    """No audio backend could be started, or the backend failed a command."""


class EmbedWarning(UserWarning):
    """Lyrics were saved to the database but could not be embedded into the file."""


def user_message(exc: BaseException) -> str:
    """Short human-readable text for an error. Never a traceback."""
    if isinstance(exc, ServiceError):
        if exc.status_code == 429:
            return "The lyrics service is rate limiting requests. Please try again later."
        if exc.status_code is not None and exc.status_code >= 500:
            return f"The lyrics service is unavailable (HTTP {exc.status_code})."
        if exc.status_code is not None:
            return f"The lyrics service rejected the request (HTTP {exc.status_code})."
        cause = exc.__cause__
        if isinstance(cause, requests.exceptions.Timeout):
            return "Request timed out. Please check your internet connection and try again."
        if isinstance(cause, requests.exceptions.ConnectionError):
            return "Unable to connect to the lyrics service. Please check your internet connection."
        return "Network error occurred. Please check your internet connection and try again."
    if isinstance(exc, NotFoundError):
        return str(exc)
    if isinstance(exc, ValidationError):
        return f"Invalid input: {exc}"
    if isinstance(exc, LibraryIOError):
        return str(exc)
    if isinstance(exc, UnreadableMediaError):
        return f"Cannot read audio file: {exc.path}"
    if isinstance(exc, EmbedError):
        return f"Failed to embed lyrics: {exc}"
    if isinstance(exc, PlaybackError):
        return f"Playback error: {exc}"
    if isinstance(exc, OperationCancelled):
        return "Cancelled."
    if isinstance(exc, PermissionError):
        return "Permission denied. Please check file permissions and try again."
    if isinstance(exc, OSError):
        return "File operation failed. Please check the file and try again."
    logger.debug("No specific message for %r", exc)
    return "An error occurred. Please try again."
