# core/embed_lyrics.py
from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3, ID3NoHeaderError, TXXX, USLT
from mutagen.mp4 import MP4
from mutagen.oggopus import OggOpus
from mutagen.oggvorbis import OggVorbis

from lrcget.core.errors import EmbedError
from lrcget.core.utils import is_instrumental_lrc, norm_text, strip_timestamps

logger = logging.getLogger(__name__)

# Tag keys, shared with library.fs_track which reads them back:
#   - synced LRC goes into LYRICS
#   - plain lyrics go into UNSYNCEDLYRICS (and USLT / ©lyr where the format has one)
VORBIS_SYNCED_KEY = "LYRICS"
VORBIS_PLAIN_KEY = "UNSYNCEDLYRICS"

ID3_SYNCED_DESC = "LYRICS"
ID3_PLAIN_DESC = "UNSYNCEDLYRICS"

MP4_PLAIN_KEY = "\xa9lyr"
MP4_SYNCED_KEY = "----:com.lrclib:LYRICS"


def embed_lyrics_for_track(track) -> None:
    """
    Write the lyrics stored on a db.models.Track into its audio file.

    Plain lyrics are derived from the synced ones when only LRC is known.
    Instrumental markers are not embedded. Raises EmbedError.
    """
    synced = norm_text(track.lrc_lyrics)
    plain = norm_text(track.txt_lyrics)

    if is_instrumental_lrc(synced):
        synced = None
    if synced and not plain:
        plain = norm_text(strip_timestamps(synced))

    embed_lyrics_in_file(track.file_path, plain, synced)


def embed_lyrics_in_file(path: str, plain: Optional[str], synced: Optional[str]) -> None:
    if not os.path.isfile(path):
        raise EmbedError(f"file does not exist: {path}")

    ext = os.path.splitext(path)[1].lower()
    embedder = EMBEDDER_MAP.get(ext, _embed_generic)

    try:
        embedder(path, plain, synced)
    except (MutagenError, OSError, ValueError, KeyError) as e:
        raise EmbedError(f"{os.path.basename(path)}: {e}") from e

    logger.debug("Embedded lyrics into %s (synced=%s, plain=%s)", path, bool(synced), bool(plain))


def _set_or_delete(tags, key: str, value: Optional[str]) -> None:
    if value:
        tags[key] = [value]
    elif key in tags:
        del tags[key]


def _embed_vorbis_comment(audio_cls, path: str, plain: Optional[str], synced: Optional[str]) -> None:
    """FLAC / Ogg Vorbis / Ogg Opus share Vorbis comments."""
    audio = audio_cls(path)
    if audio.tags is None:
        audio.add_tags()
    _set_or_delete(audio.tags, VORBIS_PLAIN_KEY, plain)
    _set_or_delete(audio.tags, VORBIS_SYNCED_KEY, synced)
    audio.save()


def _embed_mp3(path: str, plain: Optional[str], synced: Optional[str]) -> None:
    try:
        tags = ID3(path)
    except ID3NoHeaderError:
        tags = ID3()

    tags.delall("USLT")
    tags.delall(f"TXXX:{ID3_SYNCED_DESC}")
    tags.delall(f"TXXX:{ID3_PLAIN_DESC}")

    if plain:
        # "und": language undefined
        tags.add(USLT(encoding=3, lang="und", desc="", text=plain))
        tags.add(TXXX(encoding=3, desc=ID3_PLAIN_DESC, text=plain))
    if synced:
        tags.add(TXXX(encoding=3, desc=ID3_SYNCED_DESC, text=synced))

    tags.save(path)


def _embed_mp4(path: str, plain: Optional[str], synced: Optional[str]) -> None:
    audio = MP4(path)
    if audio.tags is None:
        audio.add_tags()

    _set_or_delete(audio.tags, MP4_PLAIN_KEY, plain)
    if synced:
        audio.tags[MP4_SYNCED_KEY] = [synced.encode("utf-8")]
    elif MP4_SYNCED_KEY in audio.tags:
        del audio.tags[MP4_SYNCED_KEY]

    audio.save()


def _embed_generic(path: str, plain: Optional[str], synced: Optional[str]) -> None:
    # Formats without a dedicated writer only get plain lyrics, through the easy interface.
    audio = MutagenFile(path, easy=True)
    if audio is None:
        raise EmbedError(f"unsupported file format: {path}")
    if audio.tags is None:
        audio.add_tags()
    _set_or_delete(audio.tags, "lyrics", plain)
    audio.save()


EMBEDDER_MAP: dict[str, Callable[[str, Optional[str], Optional[str]], None]] = {
    ".mp3": _embed_mp3,
    ".flac": lambda p, pl, sy: _embed_vorbis_comment(FLAC, p, pl, sy),
    ".ogg": lambda p, pl, sy: _embed_vorbis_comment(OggVorbis, p, pl, sy),
    ".oga": lambda p, pl, sy: _embed_vorbis_comment(OggVorbis, p, pl, sy),
    ".opus": lambda p, pl, sy: _embed_vorbis_comment(OggOpus, p, pl, sy),
    ".m4a": _embed_mp4,
    ".mp4": _embed_mp4,
}
