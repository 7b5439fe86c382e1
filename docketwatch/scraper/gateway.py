"""Rate-limited, cached HTTP access to the court website."""
from __future__ import annotations

import threading
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Tuple

import requests

from . import config
from .error_codes import ErrorCode, TransportError
from .logging_utils import _scraper_event
from .response_cache import ResponseCache, cache_key
from .retry_policy import compute_backoff_seconds, decide_retry


@dataclass(frozen=True)
class RequestSpec:
    url: str
    method: str = "POST"
    form_fields: Mapping[str, str] = field(default_factory=dict)
    auth: Optional[Tuple[str, str]] = None
    cache_ttl: int = 0
    timeout: int = 600


@dataclass(frozen=True)
class GatewayResponse:
    status_code: int
    body: bytes
    from_cache: bool = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class RequestThrottle:
    """Serialise outbound requests so two never start closer than ``min_interval``."""

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request_at: Optional[float] = None

    def wait(self) -> float:
        """Block until the next request may start; return the time slept."""

        with self._lock:
            waited = 0.0
            if self._last_request_at is not None:
                remaining = self._last_request_at + self.min_interval - self._clock()
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
            self._last_request_at = self._clock()
            return waited


_SHARED_THROTTLE: Optional[RequestThrottle] = None
_SHARED_THROTTLE_LOCK = threading.Lock()


def shared_throttle() -> RequestThrottle:
    """Return the process-wide throttle every gateway uses by default."""

    global _SHARED_THROTTLE
    with _SHARED_THROTTLE_LOCK:
        if _SHARED_THROTTLE is None:
            _SHARED_THROTTLE = RequestThrottle(config.REQUEST_DELAY_SECONDS)
        return _SHARED_THROTTLE


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


def build_http_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(config.COMMON_HEADERS)
    return session


class RequestGateway:
    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        cache: Optional[ResponseCache] = None,
        throttle: Optional[RequestThrottle] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or build_http_session()
        self.cache = cache if cache is not None else ResponseCache(config.CACHE_DIR / "responses")
        self.throttle = throttle or shared_throttle()
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.REQUEST_MAX_ATTEMPTS)
        self._sleep = sleep

    def fetch(self, spec: RequestSpec) -> GatewayResponse:
        """Return the response for ``spec``, from cache when fresh enough.

        Network failures raise ``TransportError``; HTTP error statuses are
        returned for the caller to judge.
        """

        key = cache_key(spec.method, spec.url, spec.form_fields)
        safe_url = _redact_url(spec.url)

        cached = self.cache.get(key, spec.cache_ttl)
        if cached is not None:
            _scraper_event("cache", status="hit", url=safe_url, ttl=spec.cache_ttl, key=key[:12])
            return GatewayResponse(cached.status_code, cached.body, from_cache=True)

        for attempt in range(1, self.max_attempts + 1):
            self.throttle.wait()
            try:
                response = self.session.request(
                    spec.method,
                    spec.url,
                    data=dict(spec.form_fields) or None,
                    auth=spec.auth,
                    timeout=spec.timeout,
                )
            except requests.Timeout as exc:
                error_code = ErrorCode.TIMEOUT
                error: Exception = exc
            except requests.RequestException as exc:
                error_code = ErrorCode.NETWORK
                error = exc
            else:
                body = response.content or b""
                _scraper_event(
                    "fetch",
                    url=safe_url,
                    method=spec.method,
                    http_status=response.status_code,
                    bytes=len(body),
                    attempt=attempt,
                    ttl=spec.cache_ttl,
                )
                if response.status_code < 300:
                    self.cache.put(key, response.status_code, body)
                return GatewayResponse(response.status_code, body)

            should_retry = decide_retry(
                attempt_index=attempt,
                max_attempts=self.max_attempts,
                error=error,
                error_code=error_code,
            )
            _scraper_event(
                "error",
                phase="fetch",
                url=safe_url,
                attempt=attempt,
                error_code=error_code,
                error_message=str(error),
                will_retry=should_retry,
            )
            if not should_retry:
                raise TransportError(
                    f"Request to {safe_url} failed: {error}", error_code=error_code
                ) from error
            self._sleep(compute_backoff_seconds(attempt))

        raise TransportError(f"Request to {safe_url} failed")


__all__ = [
    "RequestSpec",
    "GatewayResponse",
    "RequestThrottle",
    "RequestGateway",
    "shared_throttle",
    "build_http_session",
]
