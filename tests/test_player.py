import os
from unittest.mock import Mock

import pytest

from lrcget.core.errors import NotFoundError
from lrcget.db import queries
from lrcget.player.player import Player, PlayerStatus


@pytest.fixture
def player(db, audio_backend):
    p = Player(lambda track_id: queries.get_track_by_id(db, track_id), lambda: audio_backend)
    yield p
    p.close()


def test_initial_state(player):
    state = player.get_state()

    assert state.status is PlayerStatus.STOPPED
    assert state.track is None
    assert state.progress == 0.0


def test_loading_a_second_track_replaces_the_first(player, audio_backend, add_track):
    a = add_track(title="A")
    b = add_track(title="B")

    player.load(a)
    player.load(b)

    state = player.get_state()
    assert state.status is PlayerStatus.PLAYING
    assert state.track_id == b
    assert len(audio_backend.loaded) == 2
    assert audio_backend.stopped == 1


def test_pause_and_resume(player, audio_backend, add_track):
    player.load(add_track())
    audio_backend.pos = 42.0

    player.pause()
    assert player.get_state().status is PlayerStatus.PAUSED
    assert audio_backend.paused

    player.resume()
    state = player.get_state()
    assert state.status is PlayerStatus.PLAYING
    assert state.progress == 42.0


def test_commands_without_a_track_are_no_ops(player, audio_backend):
    player.pause()
    player.resume()
    player.seek(10)
    player.stop()

    assert player.get_state().status is PlayerStatus.STOPPED
    assert audio_backend.loaded == []


def test_stop_clears_track(player, add_track):
    player.load(add_track())

    player.stop()

    state = player.get_state()
    assert (state.status, state.track, state.progress) == (PlayerStatus.STOPPED, None, 0.0)


def test_volume_is_clamped(player, audio_backend, add_track):
    player.load(add_track())

    player.set_volume(150)
    assert audio_backend.volume == 100.0
    player.set_volume(-5)
    assert player.get_state().volume == 0.0
    assert player.get_state().status is PlayerStatus.PLAYING


def test_reaching_the_end_stops(player, audio_backend, add_track):
    player.load(add_track(duration=180))

    audio_backend.pos = 180.0

    state = player.get_state()
    assert state.status is PlayerStatus.STOPPED
    assert state.track is None


def test_backend_end_of_media_stops(player, audio_backend, add_track):
    player.load(add_track(duration=180))
    audio_backend.pos = 12.0
    audio_backend.finished = True

    assert player.get_state().status is PlayerStatus.STOPPED


def test_paused_track_does_not_auto_stop(player, audio_backend, add_track):
    player.load(add_track(duration=180))
    player.pause()
    audio_backend.pos = 180.0

    assert player.get_state().status is PlayerStatus.PAUSED


def test_seek_is_clamped_to_duration(player, audio_backend, add_track):
    player.load(add_track(duration=180))

    player.seek(500)
    assert audio_backend.pos == 180.0
    player.seek(-3)
    assert audio_backend.pos == 0.0


def test_missing_track_or_file_raises(player, db, add_track):
    with pytest.raises(NotFoundError):
        player.load(999)

    track_id = add_track()
    os.remove(queries.get_track_by_id(db, track_id).file_path)
    with pytest.raises(NotFoundError):
        player.load(track_id)


def test_backend_is_started_lazily_and_closed(db, audio_backend, add_track):
    factory = Mock(return_value=audio_backend)
    p = Player(lambda track_id: queries.get_track_by_id(db, track_id), factory)

    p.get_state()
    factory.assert_not_called()

    p.load(add_track())
    p.close()

    factory.assert_called_once()
    assert audio_backend.volume == 70.0
    assert audio_backend.closed
