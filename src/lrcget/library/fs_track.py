from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3, ID3NoHeaderError
from mutagen.mp4 import MP4, MP4Cover

from lrcget.core.embed_lyrics import (
    ID3_PLAIN_DESC,
    ID3_SYNCED_DESC,
    MP4_PLAIN_KEY,
    MP4_SYNCED_KEY,
    VORBIS_PLAIN_KEY,
    VORBIS_SYNCED_KEY,
)
from lrcget.core.errors import UnreadableMediaError
from lrcget.core.utils import is_instrumental_lrc, norm_text

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

FOLDER_IMAGE_NAMES = ("cover", "folder", "front", "album")
FOLDER_IMAGE_EXTS = (".jpg", ".jpeg", ".png", ".webp")


@dataclass(frozen=True)
class FsTrack:
    """Metadata of one audio file as found on disk, before reconciliation."""
    file_path: str
    file_name: str
    title: str
    album: str
    artist: str
    album_artist: Optional[str]
    duration: float
    txt_lyrics: Optional[str] = None
    lrc_lyrics: Optional[str] = None
    track_number: Optional[int] = None
    image_path: Optional[str] = None

    @property
    def instrumental(self) -> bool:
        return is_instrumental_lrc(self.lrc_lyrics)


def new_fs_track_from_path(path: str, covers_dir: Optional[str] = None) -> FsTrack:
    """Read tags, duration, lyrics and cover for one file. Raises UnreadableMediaError."""
    try:
        audio = MutagenFile(path, easy=True)
    except (MutagenError, OSError) as e:
        raise UnreadableMediaError(path, str(e)) from e
    if audio is None:
        raise UnreadableMediaError(path, "unsupported format")

    title = _first(audio, "title") or os.path.splitext(os.path.basename(path))[0]
    artist = _first(audio, "artist") or UNKNOWN_ARTIST
    album = _first(audio, "album") or UNKNOWN_ALBUM
    album_artist = _first(audio, "albumartist") or _first(audio, "album artist")

    duration = 0.0
    info = getattr(audio, "info", None)
    if info is not None and getattr(info, "length", None):
        duration = float(info.length)

    # Sidecar files win over embedded tags.
    txt_sidecar, lrc_sidecar = read_sidecar_lyrics(path)
    txt_embedded, lrc_embedded = read_embedded_lyrics(path)

    return FsTrack(
        file_path=path,
        file_name=os.path.basename(path),
        title=title,
        album=album,
        artist=artist,
        album_artist=album_artist,
        duration=duration,
        txt_lyrics=txt_sidecar or txt_embedded,
        lrc_lyrics=lrc_sidecar or lrc_embedded,
        track_number=_parse_track_number(_first(audio, "tracknumber")),
        image_path=find_cover_image(path, covers_dir),
    )


def _first(easy, key: str) -> Optional[str]:
    try:
        v = easy.get(key)
    except (KeyError, ValueError):
        return None
    if not v:
        return None
    if isinstance(v, list):
        return norm_text(str(v[0])) if v else None
    return norm_text(str(v))


def _parse_track_number(raw: Optional[str]) -> Optional[int]:
    # "3/12" -> 3
    if not raw:
        return None
    try:
        return int(str(raw).split("/")[0].strip())
    except ValueError:
        return None


def _read_text(path: str) -> Optional[str]:
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return norm_text(f.read())
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None


def read_sidecar_lyrics(path: str) -> Tuple[Optional[str], Optional[str]]:
    """(plain, synced) from <name>.txt / <name>.lrc next to the audio file."""
    base, _ = os.path.splitext(path)
    return _read_text(base + ".txt"), _read_text(base + ".lrc")


def _text_of(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    return norm_text(value) if value is not None else None


def read_embedded_lyrics(path: str) -> Tuple[Optional[str], Optional[str]]:
    """
    (plain, synced) embedded in the file, using the same keys the embedder writes:
      - MP3: USLT for plain, TXXX:LYRICS for synced
      - FLAC/Ogg/Opus: UNSYNCEDLYRICS / LYRICS vorbis comments
      - MP4/M4A: ©lyr / ----:com.lrclib:LYRICS
    """
    ext = os.path.splitext(path)[1].lower()
    plain: Optional[str] = None
    synced: Optional[str] = None

    try:
        if ext == ".mp3":
            try:
                tags = ID3(path)
            except ID3NoHeaderError:
                return None, None
            uslt = tags.getall("USLT")
            if uslt:
                plain = _text_of(uslt[0].text)
            if not plain:
                frames = tags.getall(f"TXXX:{ID3_PLAIN_DESC}")
                plain = _text_of(frames[0].text) if frames else None
            frames = tags.getall(f"TXXX:{ID3_SYNCED_DESC}")
            synced = _text_of(frames[0].text) if frames else None

        elif ext in (".m4a", ".mp4"):
            tags = MP4(path).tags or {}
            plain = _text_of(tags.get(MP4_PLAIN_KEY))
            synced = _text_of(tags.get(MP4_SYNCED_KEY))

        else:
            audio = MutagenFile(path)
            tags = getattr(audio, "tags", None) if audio is not None else None
            if tags is not None and hasattr(tags, "get"):
                plain = _text_of(tags.get(VORBIS_PLAIN_KEY))
                synced = _text_of(tags.get(VORBIS_SYNCED_KEY))
    except (MutagenError, OSError, ValueError) as e:
        logger.warning("Failed to read embedded lyrics from %s: %s", path, e)
        return None, None

    # Some taggers put LRC into the plain field.
    if plain and not synced and plain.lstrip().startswith("[") and "]" in plain:
        synced, plain = plain, None

    return plain, synced


def _embedded_picture(path: str) -> Optional[Tuple[bytes, str]]:
    """(data, extension) of the first embedded picture, if any."""
    ext = os.path.splitext(path)[1].lower()
    try:
        if ext == ".mp3":
            try:
                frames = ID3(path).getall("APIC")
            except ID3NoHeaderError:
                return None
            if frames:
                return frames[0].data, ".png" if "png" in (frames[0].mime or "") else ".jpg"
        elif ext in (".m4a", ".mp4"):
            covers = (MP4(path).tags or {}).get("covr")
            if covers:
                cover = covers[0]
                return bytes(cover), ".png" if cover.imageformat == MP4Cover.FORMAT_PNG else ".jpg"
        elif ext == ".flac":
            pictures = FLAC(path).pictures
            if pictures:
                return pictures[0].data, ".png" if "png" in (pictures[0].mime or "") else ".jpg"
    except (MutagenError, OSError, ValueError) as e:
        logger.debug("No readable picture in %s: %s", path, e)
    return None


def find_cover_image(path: str, covers_dir: Optional[str] = None) -> Optional[str]:
    """
    Cover art path for a track: the embedded picture (cached once per content
    hash under covers_dir) or a cover/folder image in the track's directory.
    """
    if covers_dir:
        picture = _embedded_picture(path)
        if picture is not None:
            data, ext = picture
            target = os.path.join(covers_dir, hashlib.sha1(data).hexdigest() + ext)
            if not os.path.exists(target):
                try:
                    os.makedirs(covers_dir, exist_ok=True)
                    with open(target, "wb") as f:
                        f.write(data)
                except OSError as e:
                    logger.warning("Cannot write cover %s: %s", target, e)
                    return None
            return target

    directory = os.path.dirname(path)
    for name in FOLDER_IMAGE_NAMES:
        for ext in FOLDER_IMAGE_EXTS:
            candidate = os.path.join(directory, name + ext)
            if os.path.isfile(candidate):
                return candidate
    return None
