import logging
import os

import pytest

from lrcget.core.errors import LibraryIOError, NotFoundError, ValidationError, user_message
from lrcget.core.logger import LOG_FILENAME, setup_logging
from lrcget.core.settings import Settings
from lrcget.core.utils import is_instrumental_lrc, prepare_input, strip_timestamps
from lrcget.core.validation import (
    sanitize_input,
    validate_directory,
    validate_search_query,
    validate_theme_mode,
    validate_url,
)


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.max_workers == 4
        assert settings.timeout == 10.0
        assert settings.rate_limit == 0.2
        assert settings.db_path.endswith("db.sqlite3")

    def test_reads_environment(self, tmp_path):
        settings = Settings.from_env({
            "LRCGET_DATA_DIR": str(tmp_path),
            "LRCGET_MAX_WORKERS": "8",
            "LRCGET_TIMEOUT": "2.5",
            "LRCGET_RATE_LIMIT": "0",
            "LRCGET_LOG_LEVEL": "DEBUG",
            "LRCGET_DEBUG_SCHEMA": "1",
        })

        assert settings.db_path == os.path.join(str(tmp_path), "db.sqlite3")
        assert (settings.max_workers, settings.timeout, settings.rate_limit) == (8, 2.5, 0.0)
        assert settings.log_level == "debug"
        assert settings.debug_schema is True

    @pytest.mark.parametrize("env", [
        {"LRCGET_MAX_WORKERS": "0"},
        {"LRCGET_MAX_WORKERS": "many"},
        {"LRCGET_TIMEOUT": "-1"},
        {"LRCGET_LOG_LEVEL": "loud"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ValidationError):
            Settings.from_env(env)


class TestValidation:
    def test_directory(self, tmp_path):
        assert validate_directory(str(tmp_path)) == str(tmp_path)
        assert validate_directory("~/Music") == os.path.expanduser("~/Music")
        with pytest.raises(ValidationError):
            validate_directory("  ")
        with pytest.raises(ValidationError):
            validate_directory("/music/../etc")

    def test_url(self):
        assert validate_url("https://lrclib.net/") == "https://lrclib.net"
        with pytest.raises(ValidationError):
            validate_url("ftp://lrclib.net")
        with pytest.raises(ValidationError):
            validate_url("")

    def test_theme_mode(self):
        assert validate_theme_mode("dark") == "dark"
        with pytest.raises(ValidationError):
            validate_theme_mode("neon")

    def test_search_query(self):
        assert validate_search_query("  hello\x00 ") == "hello"
        assert sanitize_input(None) == ""
        with pytest.raises(ValidationError):
            validate_search_query("   ")


class TestUtils:
    def test_prepare_input(self):
        assert prepare_input("  Beyoncé ") == "beyonce"
        assert prepare_input("AC/DC") == prepare_input("ac dc")
        assert prepare_input("Don't Stop") == "dont stop"

    def test_strip_timestamps(self):
        lrc = "[ar: Someone]\n[00:01.00]First line\n[00:02.50][00:10.00] Repeated"
        assert strip_timestamps(lrc) == "First line\nRepeated"

    def test_instrumental_marker(self):
        assert is_instrumental_lrc("[au: instrumental]")
        assert is_instrumental_lrc("[AU:Instrumental]")
        assert not is_instrumental_lrc("[00:01.00]words")


def test_user_message_never_leaks_tracebacks():
    assert user_message(NotFoundError("Track not found: 3")) == "Track not found: 3"
    assert user_message(ValidationError("bad")) == "Invalid input: bad"
    assert "/music" in user_message(LibraryIOError("/music"))
    assert user_message(RuntimeError("x")) == "An error occurred. Please try again."


def test_setup_logging_writes_file(tmp_path):
    logger = setup_logging("warning", log_dir=str(tmp_path))
    try:
        logging.getLogger("lrcget.test").info("hello file")

        for handler in logger.handlers:
            handler.flush()
        assert "hello file" in (tmp_path / LOG_FILENAME).read_text(encoding="utf-8")
        assert len(logger.handlers) == 2

        setup_logging("info")
        assert len(logger.handlers) == 1
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
