import logging
import signal
import threading

import pytest
from click.testing import CliRunner

from lrcget.__main__ import _cancel_on_interrupt, cli


@pytest.fixture
def run(tmp_path):
    runner = CliRunner(env={"LRCGET_LOG_LEVEL": "warning"})
    data_dir = str(tmp_path / "data")

    def _run(*args):
        return runner.invoke(cli, ["--data-dir", data_dir, *args], catch_exceptions=False)

    yield _run

    root = logging.getLogger("lrcget")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def test_scan_and_list(run, library):
    library.add("one.mp3", title="One", artist="Alpha", album="First", duration=61)
    library.add("two.mp3", title="Two", artist="Beta", album="Second", lrc="[00:01.00]x")

    assert str(library.root) in run("dirs", str(library.root)).output

    result = run("scan")
    assert result.exit_code == 0
    assert "2 added" in result.output

    listing = run("tracks").output
    assert "Alpha - One (First, 1:01)" in listing
    assert "[S] Beta - Two" in listing

    missing = run("tracks", "--missing").output
    assert "One" in missing and "Two" not in missing


def test_config_set_and_show(run):
    assert "theme_mode = dark" in run("config", "set", "theme_mode", "dark").output
    assert "try_embed_lyrics = True" in run("config", "set", "try_embed_lyrics", "yes").output

    shown = run("config").output
    assert "theme_mode = dark" in shown
    assert "lrclib_instance = https://lrclib.net" in shown


def test_invalid_input_is_reported_without_traceback(run):
    result = run("config", "set", "theme_mode", "neon")

    assert result.exit_code != 0
    assert "Invalid input" in result.output
    assert "Traceback" not in result.output


def test_scan_without_directories_fails_cleanly(run):
    result = run("scan")

    assert result.exit_code == 1
    assert "no library directories configured" in result.output


def test_interrupt_cancels_batch_then_restores_handler():
    cancel = threading.Event()
    before = signal.getsignal(signal.SIGINT)

    with _cancel_on_interrupt(cancel):
        handler = signal.getsignal(signal.SIGINT)
        handler(signal.SIGINT, None)
        assert cancel.is_set()
        # a second Ctrl-C goes to the previous handler
        assert signal.getsignal(signal.SIGINT) is before

    assert signal.getsignal(signal.SIGINT) is before
