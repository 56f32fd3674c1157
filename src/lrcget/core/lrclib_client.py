from __future__ import annotations

import hashlib
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

import requests

from lrcget import __version__
from lrcget.core.errors import OperationCancelled, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE = "https://lrclib.net"
USER_AGENT = f"LRCGET v{__version__} (https://github.com/tranxuanthang/lrcget)"

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_S = 1.0
MAX_BACKOFF_S = 30.0

TRANSIENT_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class SearchResult:
    id: int
    track_name: str
    artist_name: str
    album_name: str
    duration: float
    synced_lyrics: Optional[str]
    plain_lyrics: Optional[str]
    instrumental: bool

    @staticmethod
    def from_json(data: Any) -> "SearchResult":
        """Parse one lyrics record. Malformed records raise a permanent ServiceError."""
        if not isinstance(data, dict):
            raise ServiceError(f"malformed lyrics record: expected an object, got {type(data).__name__}", transient=False)
        try:
            return SearchResult(
                id=int(data.get("id") or 0),
                track_name=_text(data.get("trackName") or data.get("name")) or "",
                artist_name=_text(data.get("artistName")) or "",
                album_name=_text(data.get("albumName")) or "",
                duration=float(data.get("duration") or 0.0),
                synced_lyrics=_text(data.get("syncedLyrics")),
                plain_lyrics=_text(data.get("plainLyrics")),
                instrumental=bool(data.get("instrumental", False)),
            )
        except (TypeError, ValueError) as e:
            raise ServiceError(f"malformed lyrics record {data.get('id')!r}: {e}", transient=False) from e


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value.strip() or None


@dataclass(frozen=True)
class SearchResponse:
    data: List[SearchResult] = field(default_factory=list)


@dataclass(frozen=True)
class PublishResponse:
    id: Optional[int]
    token: str


@dataclass(frozen=True)
class Challenge:
    prefix: str
    target: str


class RateLimiter:
    """
    Minimum interval between requests, shared by every thread that holds it.

    Each caller reserves the next free slot under the lock, then sleeps
    outside of it.
    """

    def __init__(self, min_interval_s: float):
        self.min_interval_s = max(0.0, float(min_interval_s))
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def acquire(self, cancel: Optional[threading.Event] = None) -> None:
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval_s
        delay = slot - now
        if delay > 0:
            _wait(delay, cancel)


def _wait(seconds: float, cancel: Optional[threading.Event]) -> None:
    if cancel is None:
        time.sleep(seconds)
    elif cancel.wait(seconds):
        raise OperationCancelled("cancelled")


def normalize_instance(base_url: str) -> str:
    base = (base_url or DEFAULT_INSTANCE).strip().rstrip("/")
    if base.endswith("/api"):
        base = base[: -len("/api")]
    return base


def solve_challenge(prefix: str, target_hex: str) -> str:
    """Proof of work: smallest nonce with sha256(prefix + nonce) <= target."""
    target = bytes.fromhex(target_hex)
    nonce = 0
    while True:
        digest = hashlib.sha256(f"{prefix}{nonce}".encode("utf-8")).digest()
        if digest <= target:
            return str(nonce)
        nonce += 1


class LrcLibClient:
    def __init__(
        self,
        base_url: str = DEFAULT_INSTANCE,
        *,
        user_agent: str = USER_AGENT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_s: float = DEFAULT_BACKOFF_S,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = normalize_instance(base_url)
        self.timeout_s = timeout_s
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_s = backoff_s
        self.rate_limiter = rate_limiter
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    # ---- transport ----

    def _backoff_delay(self, attempt: int, response: Optional[requests.Response]) -> float:
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(MAX_BACKOFF_S, float(retry_after))
                except ValueError:
                    pass
        if self.backoff_s <= 0:
            return 0.0
        return min(MAX_BACKOFF_S, self.backoff_s * (2 ** attempt)) + random.uniform(0.0, self.backoff_s / 2)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        headers: Optional[dict] = None,
        allow_404: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[requests.Response]:
        """
        Send one API request, retrying transient failures.

        Returns None for 404 when allow_404 is set. Raises ServiceError with
        the class of the last failure, or OperationCancelled when `cancel`
        is set at a retry boundary.
        """
        url = f"{self.base_url}{path}"
        last_error: Optional[ServiceError] = None

        for attempt in range(self.max_attempts):
            if cancel is not None and cancel.is_set():
                raise OperationCancelled("cancelled")
            if self.rate_limiter is not None:
                self.rate_limiter.acquire(cancel)

            response: Optional[requests.Response] = None
            try:
                response = self.session.request(
                    method, url, params=params, json=json_body, headers=headers, timeout=self.timeout_s
                )
            except (
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                requests.exceptions.ChunkedEncodingError,
            ) as e:
                last_error = ServiceError(f"{method} {path}: {e.__class__.__name__}", transient=True)
                last_error.__cause__ = e
            except requests.exceptions.RequestException as e:
                raise ServiceError(f"{method} {path}: {e}", transient=False) from e
            else:
                status = response.status_code
                if status == 404 and allow_404:
                    return None
                if 200 <= status < 300:
                    return response
                transient = status in TRANSIENT_STATUS or status >= 500
                last_error = ServiceError(
                    f"{method} {path}: API returned status {status}", transient=transient, status_code=status
                )
                if not transient:
                    raise last_error

            if attempt + 1 >= self.max_attempts:
                raise last_error
            delay = self._backoff_delay(attempt, response)
            logger.info(
                "LRCLIB retry %d/%d (%s); sleeping %.1fs",
                attempt + 1, self.max_attempts - 1, last_error, delay,
            )
            _wait(delay, cancel)
        raise ServiceError(f"{method} {path}: no attempts made", transient=False)

    @staticmethod
    def _json(response: requests.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(f"{path}: malformed JSON response", transient=False) from e

    # ---- lyrics ----

    def get_lyrics(
        self,
        track_name: str,
        artist_name: str,
        album_name: Optional[str] = None,
        duration: Optional[float] = None,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[SearchResult]:
        """GET /api/get: the service's own best match for the metadata, or None."""
        params: dict[str, Any] = {"track_name": track_name, "artist_name": artist_name}
        if album_name:
            params["album_name"] = album_name
        if duration and duration > 0:
            params["duration"] = int(round(duration))

        response = self._request("GET", "/api/get", params=params, allow_404=True, cancel=cancel)
        if response is None:
            return None
        return SearchResult.from_json(self._json(response, "/api/get"))

    def get_lyrics_by_id(self, lyrics_id: int, *, cancel: Optional[threading.Event] = None) -> Optional[SearchResult]:
        path = f"/api/get/{int(lyrics_id)}"
        response = self._request("GET", path, allow_404=True, cancel=cancel)
        if response is None:
            return None
        return SearchResult.from_json(self._json(response, path))

    def search(
        self,
        *,
        track_name: str = "",
        artist_name: str = "",
        album_name: str = "",
        query: str = "",
        cancel: Optional[threading.Event] = None,
    ) -> SearchResponse:
        params = {
            k: v for k, v in (
                ("q", query),
                ("track_name", track_name),
                ("artist_name", artist_name),
                ("album_name", album_name),
            ) if v
        }
        response = self._request("GET", "/api/search", params=params, cancel=cancel)
        payload = self._json(response, "/api/search")

        # The live service answers with a bare list; some mirrors wrap it in {"data": [...]}.
        items = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise ServiceError("/api/search: unexpected response shape", transient=False)
        results = []
        for item in items:
            try:
                results.append(SearchResult.from_json(item))
            except ServiceError as e:
                logger.warning("/api/search: skipping %s", e)
        return SearchResponse(data=results)

    # ---- contributions ----

    def request_challenge(self) -> Challenge:
        response = self._request("POST", "/api/request-challenge")
        data = self._json(response, "/api/request-challenge")
        if not isinstance(data, dict) or not isinstance(data.get("prefix"), str) or not isinstance(data.get("target"), str):
            raise ServiceError("/api/request-challenge: unexpected response shape", transient=False)
        return Challenge(prefix=data["prefix"], target=data["target"])

    def publish(
        self,
        *,
        track_name: str,
        artist_name: str,
        album_name: str,
        duration: float,
        plain_lyrics: Optional[str],
        synced_lyrics: Optional[str],
    ) -> PublishResponse:
        challenge = self.request_challenge()
        nonce = solve_challenge(challenge.prefix, challenge.target)
        token = f"{challenge.prefix}:{nonce}"

        body = {
            "trackName": track_name,
            "artistName": artist_name,
            "albumName": album_name,
            "duration": int(round(duration)),
            "plainLyrics": plain_lyrics or "",
            "syncedLyrics": synced_lyrics or "",
        }
        response = self._request("POST", "/api/publish", json_body=body, headers={"X-Publish-Token": token})

        published_id: Optional[int] = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("id"), int):
                published_id = data["id"]
        return PublishResponse(id=published_id, token=token)

    def flag(self, lyrics_id: int, reason: str) -> None:
        self._request("POST", "/api/flag", json_body={"trackId": int(lyrics_id), "reason": reason})
