from __future__ import annotations

# Schema v1. Later versions are applied as ALTERs in db/migrations.py.
SCHEMA_V1_SQL = """
CREATE TABLE directories (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL UNIQUE
);

CREATE TABLE library_data (
    id INTEGER PRIMARY KEY,
    init BOOLEAN NOT NULL DEFAULT 0
);

CREATE TABLE config_data (
    id INTEGER PRIMARY KEY,
    skip_tracks_with_synced_lyrics BOOLEAN NOT NULL DEFAULT 1,
    skip_tracks_with_plain_lyrics BOOLEAN NOT NULL DEFAULT 0,
    show_line_count BOOLEAN NOT NULL DEFAULT 1,
    try_embed_lyrics BOOLEAN NOT NULL DEFAULT 0,
    theme_mode TEXT NOT NULL DEFAULT 'auto',
    lrclib_instance TEXT NOT NULL DEFAULT 'https://lrclib.net'
);

CREATE TABLE artists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    name_lower TEXT NOT NULL,
    tracks_count INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE albums (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    name_lower TEXT NOT NULL,
    artist_name TEXT NOT NULL,
    album_artist_name TEXT,
    album_artist_name_lower TEXT NOT NULL,
    image_path TEXT,
    tracks_count INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE tracks (
    id INTEGER PRIMARY KEY,
    file_path TEXT NOT NULL,
    file_name TEXT NOT NULL,
    title TEXT NOT NULL,
    title_lower TEXT NOT NULL,
    album_id INTEGER NOT NULL,
    artist_id INTEGER NOT NULL,
    track_number INTEGER,
    duration FLOAT NOT NULL DEFAULT 0,
    txt_lyrics TEXT,
    lrc_lyrics TEXT,
    instrumental BOOLEAN NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY(artist_id) REFERENCES artists(id),
    FOREIGN KEY(album_id) REFERENCES albums(id)
);

CREATE UNIQUE INDEX idx_tracks_file_path ON tracks(file_path);
CREATE UNIQUE INDEX idx_artists_name_lower ON artists(name_lower);
CREATE UNIQUE INDEX idx_albums_identity ON albums(name_lower, album_artist_name_lower);

CREATE INDEX idx_tracks_title_lower ON tracks(title_lower);
CREATE INDEX idx_tracks_album_id ON tracks(album_id);
CREATE INDEX idx_tracks_artist_id ON tracks(artist_id);
CREATE INDEX idx_tracks_track_number ON tracks(track_number);
CREATE INDEX idx_albums_name_lower ON albums(name_lower);
CREATE INDEX idx_albums_album_artist_name_lower ON albums(album_artist_name_lower);

INSERT INTO library_data (id, init) VALUES (1, 0);
INSERT INTO config_data (id) VALUES (1);
"""
