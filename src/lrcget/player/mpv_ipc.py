from __future__ import annotations

import itertools
import json
import logging
import os
import queue
import shutil
import socket
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_S = 3.0
COMMAND_TIMEOUT_S = 1.0


def _is_windows() -> bool:
    return os.name == "nt"


def default_ipc_endpoint(name: str = "lrcget-mpv") -> str:
    # Windows: named pipe. Elsewhere: unix socket, unique per process.
    if _is_windows():
        return rf"\\.\pipe\{name}-{os.getpid()}"
    return os.path.join(tempfile.gettempdir(), f"{name}-{os.getpid()}.sock")


def find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    """`preferred_path`, then $LRCGET_MPV_PATH, then mpv on PATH."""
    for candidate in (preferred_path, os.environ.get("LRCGET_MPV_PATH")):
        if candidate and os.path.isfile(candidate):
            return candidate
    return shutil.which("mpv")


class _JsonIpcConnection:
    """
    Line-delimited JSON over the mpv IPC endpoint.

    A reader thread decodes every incoming line and hands it to `on_message`.
    """

    def __init__(self, endpoint: str, on_message: Callable[[Dict[str, Any]], None]):
        self.endpoint = endpoint
        self._on_message = on_message
        self._closed = threading.Event()
        self._send_lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._pipe = None
        self._reader: Optional[threading.Thread] = None

    def connect(self, timeout_s: float = CONNECT_TIMEOUT_S) -> None:
        # mpv creates the endpoint shortly after start; poll until it shows up.
        deadline = time.monotonic() + timeout_s
        last_error: Optional[OSError] = None
        while time.monotonic() < deadline:
            try:
                if _is_windows():
                    self._pipe = open(self.endpoint, "r+b", buffering=0)
                else:
                    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                    try:
                        sock.connect(self.endpoint)
                    except OSError:
                        sock.close()
                        raise
                    self._sock = sock
                break
            except OSError as e:
                last_error = e
                time.sleep(0.05)
        else:
            raise OSError(f"cannot connect to mpv IPC {self.endpoint}: {last_error}")

        self._reader = threading.Thread(target=self._read_loop, name="mpv-ipc", daemon=True)
        self._reader.start()

    def send(self, payload: Dict[str, Any]) -> None:
        data = (json.dumps(payload) + "\n").encode("utf-8")
        with self._send_lock:
            if self._sock is not None:
                self._sock.sendall(data)
            elif self._pipe is not None:
                self._pipe.write(data)
                self._pipe.flush()
            else:
                raise OSError("mpv IPC is not connected")

    def _read_chunk(self) -> bytes:
        if self._sock is not None:
            return self._sock.recv(4096)
        if self._pipe is not None:
            return self._pipe.read(4096)
        return b""

    def _read_loop(self) -> None:
        buf = b""
        while not self._closed.is_set():
            try:
                chunk = self._read_chunk()
            except OSError:
                break
            if not chunk:
                break
            buf += chunk
            while b"\n" in buf:
                line, buf = buf.split(b"\n", 1)
                if not line.strip():
                    continue
                try:
                    message = json.loads(line.decode("utf-8", errors="replace"))
                except ValueError:
                    logger.debug("Ignoring malformed mpv line: %r", line[:200])
                    continue
                if isinstance(message, dict):
                    self._on_message(message)
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
            self._sock = None
        if self._pipe is not None:
            self._pipe.close()
            self._pipe = None


@dataclass
class MpvBackendConfig:
    mpv_path: Optional[str] = None
    ipc_endpoint: Optional[str] = None
    extra_args: Optional[List[str]] = None


class MpvIpcBackend:
    """
    Audio playback through an mpv child process driven over JSON IPC.

    Playback position, duration, pause and idle state are observed
    properties, cached as mpv reports them.
    """

    name = "mpv-ipc"

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self.config = config or MpvBackendConfig()
        binary = find_mpv_binary(self.config.mpv_path)
        if binary is None:
            raise FileNotFoundError("mpv binary not found")
        self._binary = binary
        self.endpoint = self.config.ipc_endpoint or default_ipc_endpoint()

        self._proc: Optional[subprocess.Popen] = None
        self._conn = _JsonIpcConnection(self.endpoint, self._dispatch)
        self._ids = itertools.count(1)
        self._replies: Dict[int, "queue.Queue[Dict[str, Any]]"] = {}
        self._state_lock = threading.Lock()

        self._time_pos = 0.0
        self._duration = 0.0
        self._paused = True
        self._idle = True
        self._eof = False
        self._file_loaded = False

    # ---- lifecycle ----

    def start(self) -> None:
        if self._proc is not None:
            return
        if not _is_windows() and os.path.exists(self.endpoint):
            os.remove(self.endpoint)

        args = [
            self._binary,
            "--idle=yes",
            "--no-video",
            "--audio-display=no",
            "--keep-open=no",
            "--terminal=no",
            "--msg-level=all=warn",
            f"--input-ipc-server={self.endpoint}",
        ]
        args += self.config.extra_args or []

        self._proc = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0) if _is_windows() else 0,
        )
        try:
            self._conn.connect()
        except OSError:
            self.close()
            raise

        for prop in ("time-pos", "duration", "pause", "idle-active", "eof-reached"):
            self._command("observe_property", next(self._ids), prop)
        logger.debug("mpv started (pid %s, ipc %s)", self._proc.pid, self.endpoint)

    def close(self) -> None:
        if self._proc is None:
            return
        try:
            if not self._conn.closed:
                self._command("quit")
        except OSError:
            pass
        self._conn.close()
        try:
            self._proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            self._proc.kill()
        self._proc = None
        if not _is_windows() and os.path.exists(self.endpoint):
            os.remove(self.endpoint)

    # ---- protocol ----

    def _command(self, *args: Any) -> None:
        self._conn.send({"command": list(args)})

    def command_wait(self, *args: Any, timeout_s: float = COMMAND_TIMEOUT_S) -> Dict[str, Any]:
        request_id = next(self._ids)
        replies: "queue.Queue[Dict[str, Any]]" = queue.Queue(maxsize=1)
        self._replies[request_id] = replies
        try:
            self._conn.send({"command": list(args), "request_id": request_id})
            return replies.get(timeout=timeout_s)
        except queue.Empty:
            raise TimeoutError(f"mpv command timed out: {args!r}") from None
        finally:
            self._replies.pop(request_id, None)

    def get_property(self, name: str) -> Any:
        reply = self.command_wait("get_property", name)
        return reply.get("data") if reply.get("error") == "success" else None

    def _dispatch(self, message: Dict[str, Any]) -> None:
        # Runs on the reader thread.
        request_id = message.get("request_id")
        if isinstance(request_id, int) and request_id in self._replies:
            self._replies[request_id].put_nowait(message)
            return
        event = message.get("event")
        if event == "property-change":
            self._on_property(message.get("name"), message.get("data"))
        elif event == "file-loaded":
            with self._state_lock:
                self._file_loaded = True
        elif event == "end-file" and message.get("reason") == "eof":
            with self._state_lock:
                self._eof = True

    def _on_property(self, name: Any, value: Any) -> None:
        with self._state_lock:
            if name == "time-pos":
                self._time_pos = float(value) if isinstance(value, (int, float)) else 0.0
            elif name == "duration":
                self._duration = float(value) if isinstance(value, (int, float)) else 0.0
            elif name == "pause":
                self._paused = bool(value)
            elif name == "idle-active":
                self._idle = bool(value)
            elif name == "eof-reached":
                self._eof = self._eof or bool(value)

    # ---- AudioBackend ----

    def load(self, path: str) -> None:
        with self._state_lock:
            self._time_pos = 0.0
            self._eof = False
            self._file_loaded = False
        self._command("loadfile", path, "replace")
        self._command("set_property", "pause", False)

    def pause(self) -> None:
        self._command("set_property", "pause", True)

    def resume(self) -> None:
        self._command("set_property", "pause", False)

    def stop(self) -> None:
        self._command("stop")
        with self._state_lock:
            self._time_pos = 0.0
            self._eof = False

    def seek(self, seconds: float) -> None:
        self._command("seek", float(seconds), "absolute+exact")

    def set_volume(self, volume: float) -> None:
        self._command("set_property", "volume", min(100.0, max(0.0, float(volume))))

    def position(self) -> float:
        with self._state_lock:
            return self._time_pos

    def duration(self) -> float:
        with self._state_lock:
            return self._duration

    def ended(self) -> bool:
        with self._state_lock:
            # idle-active is stale until mpv confirms the new file is loaded.
            return self._eof or (self._file_loaded and self._idle)
