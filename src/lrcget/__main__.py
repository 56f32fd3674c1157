"""
Command-line front end.

    lrcget dirs ~/Music            set the library directories
    lrcget scan                    index the library
    lrcget tracks --missing        list tracks without lyrics
    lrcget download --missing      download lyrics for them
    lrcget search "Yesterday" -a "The Beatles"
    lrcget play 42                 play a track until it ends (Ctrl-C stops)
    lrcget config set theme_mode dark
"""
from __future__ import annotations

import dataclasses
import logging
import signal
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import click

from lrcget import __version__
from lrcget.app import App
from lrcget.core.errors import LrcgetError, user_message
from lrcget.core.logger import setup_logging
from lrcget.core.settings import Settings
from lrcget.library.scan_library import ScanProgress
from lrcget.lyrics.acquisition import CancellationToken, OutcomeKind
from lrcget.player.player import PlayerStatus

logger = logging.getLogger(__name__)

BOOL_CONFIG_KEYS = (
    "skip_tracks_with_synced_lyrics",
    "skip_tracks_with_plain_lyrics",
    "show_line_count",
    "try_embed_lyrics",
)


@contextmanager
def _cancel_on_interrupt(cancel: CancellationToken) -> Iterator[None]:
    """The first Ctrl-C sets `cancel`; a second one interrupts as usual."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.getsignal(signal.SIGINT) or signal.default_int_handler

    def _handler(signum, frame):
        signal.signal(signal.SIGINT, previous)
        if not cancel.is_set():
            cancel.set()
            click.echo("Cancelling, waiting for running downloads...", err=True)

    signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise click.BadParameter(f"expected a boolean, got {value!r}")


def _format_duration(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class _Context:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._app: Optional[App] = None

    @property
    def app(self) -> App:
        if self._app is None:
            self._app = App(self.settings)
        return self._app

    def close(self) -> None:
        if self._app is not None:
            self._app.close()


@click.group()
@click.version_option(__version__, prog_name="lrcget")
@click.option("--data-dir", default=None, help="Where the database and covers live (default ~/.lrcget).")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on the console.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Optional[str], verbose: bool) -> None:
    """Download synced lyrics for your local music library from LRCLIB."""
    try:
        settings = Settings.from_env()
        if data_dir:
            settings = dataclasses.replace(settings, data_dir=data_dir).validate()
    except LrcgetError as e:
        raise click.ClickException(user_message(e))

    setup_logging("debug" if verbose else settings.log_level, log_dir=str(settings.data_path))
    state = _Context(settings)
    ctx.obj = state
    ctx.call_on_close(state.close)


def _run(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except LrcgetError as e:
        logger.debug("Command failed", exc_info=True)
        raise click.ClickException(user_message(e))


@cli.command()
@click.argument("paths", nargs=-1)
@click.pass_obj
def dirs(state: _Context, paths: Tuple[str, ...]) -> None:
    """Show the library directories, or replace them with PATHS."""
    if paths:
        _run(state.app.set_directories, paths)
    for path in state.app.get_directories():
        click.echo(path)


@cli.command()
@click.pass_obj
def scan(state: _Context) -> None:
    """Index (or re-index) the library directories."""
    def on_progress(p: ScanProgress) -> None:
        click.echo(f"\rScanning... {p.files_scanned}/{p.files_count}", nl=False, err=True)

    result = _run(state.app.initialize_library, progress=on_progress)
    click.echo("", err=True)
    click.echo(
        f"{result.tracks_added} added, {result.tracks_updated} updated, "
        f"{result.tracks_removed} removed, {result.files_skipped} unreadable"
    )
    for error in result.errors:
        click.secho(user_message(error), fg="red", err=True)


@cli.command()
@click.option("--missing", is_flag=True, help="Only tracks without any lyrics.")
@click.option("--no-synced", is_flag=True, help="Hide tracks that have synced lyrics.")
@click.option("-q", "--query", default=None, help="Filter by title, artist or album.")
@click.pass_obj
def tracks(state: _Context, missing: bool, no_synced: bool, query: Optional[str]) -> None:
    """List tracks in the library."""
    app = state.app
    if missing:
        ids = app.get_track_ids(synced=False, plain=False, instrumental=False, query=query)
    else:
        ids = app.get_track_ids(synced=not no_synced, query=query)
    for track_id in ids:
        track = app.get_track(track_id)
        if track.instrumental:
            mark = "I"
        elif track.has_synced_lyrics:
            mark = "S"
        elif track.has_plain_lyrics:
            mark = "P"
        else:
            mark = "-"
        click.echo(
            f"{track.id:>6} [{mark}] {track.artist_name} - {track.title} "
            f"({track.album_name}, {_format_duration(track.duration)})"
        )


@cli.command()
@click.argument("track_ids", nargs=-1, type=int)
@click.option("--missing", is_flag=True, help="Every track without lyrics.")
@click.pass_obj
def download(state: _Context, track_ids: Tuple[int, ...], missing: bool) -> None:
    """Download lyrics for TRACK_IDS (Ctrl-C stops after the running ones)."""
    app = state.app
    ids = list(track_ids)
    if missing:
        ids += app.get_track_ids(synced=False, plain=False, instrumental=False)
    if not ids:
        raise click.UsageError("give track ids or --missing")

    if len(ids) == 1:
        click.echo(_run(app.download_lyrics, ids[0]))
        return

    cancel = CancellationToken()
    counts = {kind: 0 for kind in OutcomeKind}
    with _cancel_on_interrupt(cancel):
        for track_id, outcome in app.download_lyrics_batch(ids, cancel):
            counts[outcome.kind] += 1
            color = {OutcomeKind.MATCHED: "green", OutcomeKind.FAILED: "red"}.get(outcome.kind)
            click.secho(f"{track_id:>6} {outcome.message}", fg=color)

    click.echo(
        f"{counts[OutcomeKind.MATCHED]} downloaded, {counts[OutcomeKind.SKIPPED]} skipped, "
        f"{counts[OutcomeKind.NOT_FOUND]} not found, {counts[OutcomeKind.FAILED]} failed"
    )


@cli.command()
@click.argument("title", required=False, default="")
@click.option("-a", "--artist", default="")
@click.option("-b", "--album", default="")
@click.option("-q", "--query", default="", help="Free-text search instead of a title.")
@click.pass_obj
def search(state: _Context, title: str, artist: str, album: str, query: str) -> None:
    """Search LRCLIB."""
    response = _run(state.app.search_lyrics, title, artist, album, query)
    for item in response.data:
        kind = "instrumental" if item.instrumental else "synced" if item.synced_lyrics else "plain"
        click.echo(
            f"{item.id:>8} {item.artist_name} - {item.track_name} "
            f"({item.album_name}, {_format_duration(item.duration)}) [{kind}]"
        )


@cli.group(invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show or change preferences."""
    if ctx.invoked_subcommand is None:
        for key, value in dataclasses.asdict(ctx.obj.app.get_config()).items():
            click.echo(f"{key} = {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(state: _Context, key: str, value: str) -> None:
    current = state.app.get_config()
    if key in BOOL_CONFIG_KEYS:
        updated = dataclasses.replace(current, **{key: _parse_bool(value)})
    elif key in ("theme_mode", "lrclib_instance"):
        updated = dataclasses.replace(current, **{key: value})
    else:
        raise click.BadParameter(f"unknown config key {key!r}", param_hint="KEY")
    _run(state.app.update_config, updated)
    click.echo(f"{key} = {getattr(state.app.get_config(), key)}")


@cli.command()
@click.argument("track_id", type=int)
@click.option("--volume", type=float, default=None)
@click.pass_obj
def play(state: _Context, track_id: int, volume: Optional[float]) -> None:
    """Play a track until it ends."""
    app = state.app
    if volume is not None:
        app.set_volume(volume)
    _run(app.play_track, track_id)
    try:
        while True:
            player_state = app.get_player_state()
            if player_state.status is PlayerStatus.STOPPED:
                break
            click.echo(
                f"\r{_format_duration(player_state.progress)} / {_format_duration(player_state.duration)}",
                nl=False,
                err=True,
            )
            time.sleep(0.5)
    except KeyboardInterrupt:
        app.stop_track()
    click.echo("", err=True)


def main() -> None:
    cli(prog_name="lrcget")


if __name__ == "__main__":
    main()
