from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import sqlite3


def _opt(row: sqlite3.Row, key: str):
    # sqlite3.Row has no .get()
    return row[key] if key in row.keys() else None


@dataclass
class Track:
    id: int
    file_path: str
    file_name: str
    title: str
    album_name: str
    album_artist_name: Optional[str]
    album_id: int
    artist_name: str
    artist_id: int
    image_path: Optional[str]
    track_number: Optional[int]
    txt_lyrics: Optional[str]
    lrc_lyrics: Optional[str]
    duration: float
    instrumental: bool
    title_lower: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def has_synced_lyrics(self) -> bool:
        return bool(self.lrc_lyrics)

    @property
    def has_plain_lyrics(self) -> bool:
        return bool(self.txt_lyrics)

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Track":
        return Track(
            id=row["id"],
            file_path=row["file_path"],
            file_name=row["file_name"],
            title=row["title"],
            title_lower=_opt(row, "title_lower") or "",
            artist_name=row["artist_name"],
            artist_id=row["artist_id"],
            album_name=row["album_name"],
            album_artist_name=_opt(row, "album_artist_name"),
            album_id=row["album_id"],
            duration=float(row["duration"] or 0.0),
            track_number=_opt(row, "track_number"),
            txt_lyrics=_opt(row, "txt_lyrics"),
            lrc_lyrics=_opt(row, "lrc_lyrics"),
            image_path=_opt(row, "image_path"),
            instrumental=bool(row["instrumental"]),
            created_at=_opt(row, "created_at"),
            updated_at=_opt(row, "updated_at"),
        )


@dataclass
class Album:
    id: int
    name: str
    image_path: Optional[str]
    artist_name: str
    album_artist_name: Optional[str]
    tracks_count: int
    name_lower: str = ""
    album_artist_name_lower: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Album":
        return Album(
            id=row["id"],
            name=row["name"],
            name_lower=_opt(row, "name_lower") or "",
            image_path=_opt(row, "image_path"),
            artist_name=_opt(row, "artist_name") or "",
            album_artist_name=_opt(row, "album_artist_name"),
            album_artist_name_lower=_opt(row, "album_artist_name_lower") or "",
            tracks_count=int(_opt(row, "tracks_count") or 0),
            created_at=_opt(row, "created_at"),
            updated_at=_opt(row, "updated_at"),
        )


@dataclass
class Artist:
    id: int
    name: str
    tracks_count: int
    name_lower: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Artist":
        return Artist(
            id=row["id"],
            name=row["name"],
            name_lower=_opt(row, "name_lower") or "",
            tracks_count=int(_opt(row, "tracks_count") or 0),
            created_at=_opt(row, "created_at"),
            updated_at=_opt(row, "updated_at"),
        )


@dataclass
class Config:
    skip_tracks_with_synced_lyrics: bool = True
    skip_tracks_with_plain_lyrics: bool = False
    show_line_count: bool = True
    try_embed_lyrics: bool = False
    theme_mode: str = "auto"
    lrclib_instance: str = "https://lrclib.net"

    @staticmethod
    def from_row(row: sqlite3.Row) -> "Config":
        return Config(
            skip_tracks_with_synced_lyrics=bool(row["skip_tracks_with_synced_lyrics"]),
            skip_tracks_with_plain_lyrics=bool(row["skip_tracks_with_plain_lyrics"]),
            show_line_count=bool(row["show_line_count"]),
            try_embed_lyrics=bool(row["try_embed_lyrics"]),
            theme_mode=row["theme_mode"],
            lrclib_instance=row["lrclib_instance"],
        )
