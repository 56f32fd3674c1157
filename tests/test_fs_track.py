from types import SimpleNamespace

import pytest

from lrcget.core.embed_lyrics import embed_lyrics_for_track, embed_lyrics_in_file
from lrcget.core.errors import EmbedError, UnreadableMediaError
from lrcget.core.utils import INSTRUMENTAL_LRC
from lrcget.library.fs_track import find_cover_image, new_fs_track_from_path, read_embedded_lyrics, read_sidecar_lyrics


def test_sidecar_lyrics(tmp_path):
    audio = tmp_path / "song.mp3"
    audio.write_bytes(b"\x00" * 128)
    (tmp_path / "song.lrc").write_text("[00:01.00]Hello\n", encoding="utf-8")
    (tmp_path / "song.txt").write_text("  Hello  \n", encoding="utf-8")

    assert read_sidecar_lyrics(str(audio)) == ("Hello", "[00:01.00]Hello")


def test_no_sidecar(tmp_path):
    assert read_sidecar_lyrics(str(tmp_path / "song.mp3")) == (None, None)


def test_folder_cover_is_found(tmp_path):
    audio = tmp_path / "song.flac"
    audio.write_bytes(b"")
    (tmp_path / "folder.png").write_bytes(b"png")

    assert find_cover_image(str(audio)) == str(tmp_path / "folder.png")


def test_garbage_file_is_unreadable(tmp_path):
    audio = tmp_path / "broken.mp3"
    audio.write_bytes(b"\x00" * 128)

    with pytest.raises(UnreadableMediaError):
        new_fs_track_from_path(str(audio))


def test_mp3_embed_round_trip(tmp_path):
    audio = tmp_path / "song.mp3"
    audio.write_bytes(b"\x00" * 128)

    embed_lyrics_in_file(str(audio), "First line", "[00:01.00]First line")

    assert read_embedded_lyrics(str(audio)) == ("First line", "[00:01.00]First line")


def test_embed_for_track_derives_plain(tmp_path):
    audio = tmp_path / "song.mp3"
    audio.write_bytes(b"\x00" * 128)
    track = SimpleNamespace(file_path=str(audio), txt_lyrics=None, lrc_lyrics="[00:01.00]Only synced")

    embed_lyrics_for_track(track)

    assert read_embedded_lyrics(str(audio)) == ("Only synced", "[00:01.00]Only synced")


def test_instrumental_marker_is_not_embedded(tmp_path):
    audio = tmp_path / "song.mp3"
    audio.write_bytes(b"\x00" * 128)
    track = SimpleNamespace(file_path=str(audio), txt_lyrics=None, lrc_lyrics=INSTRUMENTAL_LRC)

    embed_lyrics_for_track(track)

    assert read_embedded_lyrics(str(audio)) == (None, None)


def test_embed_into_missing_file_fails(tmp_path):
    with pytest.raises(EmbedError):
        embed_lyrics_in_file(str(tmp_path / "gone.mp3"), "x", None)
