from __future__ import annotations

import http.client
import logging
import ssl
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib import error as urllib_error
from urllib import request as urllib_request
from urllib.parse import urlencode

from hys_backend.errors import (
    EnibraConfigurationError,
    EnibraHtmlResponseError,
    EnibraTimeoutError,
    EnibraTransportError,
    EnibraUpstreamStatusError,
)
from hys_backend.services.response_cache import ResponseCache
from hys_backend.settings import Settings

logger = logging.getLogger("hys_backend.enibra")

PERSONEL_LISTESI_PATH = "PersonelListesi.doms"
CREDENTIAL_PARAMS = frozenset({"MUSTERI_KODU", "PAROLA"})
DEFAULT_CONTENT_TYPE = "application/json; charset=utf-8"
USER_AGENT = "HYS-Backend/1.0"
READ_CHUNK_SIZE = 64 * 1024

QueryParams = Mapping[str, str | Sequence[str]]


@dataclass(frozen=True, slots=True)
class EnibraConfig:
    base_url: str
    customer_code: str
    secret: str
    host_header: str | None = None
    insecure_tls: bool = False
    timeout_seconds: float = 10.0
    cache_ttl_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> EnibraConfig:
        return cls(
            base_url=(settings.enibra_base_url or "").strip().rstrip("/"),
            customer_code=(settings.enibra_musteri_kodu or "").strip(),
            secret=settings.enibra_parola or "",
            host_header=(settings.enibra_host_header or "").strip() or None,
            insecure_tls=bool(settings.enibra_insecure_tls),
            timeout_seconds=settings.enibra_timeout_ms / 1000,
            cache_ttl_seconds=float(settings.enibra_cache_sec),
        )

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.base_url.strip():
            missing.append("ENIBRA_BASE_URL")
        if not self.customer_code.strip():
            missing.append("ENIBRA_MUSTERI_KODU")
        if not self.secret.strip():
            missing.append("ENIBRA_PAROLA")
        return missing

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields()

    def require_configured(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise EnibraConfigurationError(missing)


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    status_code: int
    body: bytes
    content_type: str
    from_cache: bool = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return is_html_content_type(self.content_type)


def is_html_content_type(content_type: str | None) -> bool:
    return "text/html" in (content_type or "").lower()


def normalize_query_params(params: QueryParams | None) -> list[tuple[str, str]]:
    """Flatten caller params into sorted (key, value) pairs without credentials.

    Keys are sorted; values keep their original order within a key.
    """
    source = params or {}
    pairs: list[tuple[str, str]] = []
    for key in sorted(source.keys()):
        if key.strip().upper() in CREDENTIAL_PARAMS:
            continue
        raw_value = source[key]
        values = [raw_value] if isinstance(raw_value, str) else list(raw_value)
        for value in values:
            pairs.append((key, str(value)))
    return pairs


def build_cache_key(pairs: Sequence[tuple[str, str]]) -> str:
    return f"{PERSONEL_LISTESI_PATH}?{urlencode(list(pairs))}"


def require_json_payload(response: UpstreamResponse) -> UpstreamResponse:
    # HTML is a proxy-level failure whatever the status says.
    if response.is_html:
        raise EnibraHtmlResponseError(response.status_code)
    if not response.is_success:
        raise EnibraUpstreamStatusError(response.status_code)
    return response


class EnibraClient:
    def __init__(self, config: EnibraConfig, cache: ResponseCache):
        self.config = config
        self.cache = cache

    def fetch_personnel(
        self,
        params: QueryParams | None = None,
        *,
        deadline: float | None = None,
    ) -> UpstreamResponse:
        """Return the PersonelListesi response, from cache when still fresh.

        ``deadline`` is a ``time.monotonic()`` instant bounding the upstream
        call. Transport failures raise and are never cached; any HTTP answer,
        successful or not, is cached before it is returned.
        """
        self.config.require_configured()
        pairs = normalize_query_params(params)
        cache_key = build_cache_key(pairs)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("enibra_cache_hit", extra={"cache_key": cache_key})
            return UpstreamResponse(
                status_code=cached.status_code,
                body=cached.body,
                content_type=cached.content_type,
                from_cache=True,
            )

        timeout_seconds = self._effective_timeout(deadline)
        # The whole exchange, body read included, must end by this instant.
        read_deadline = time.monotonic() + timeout_seconds
        request = self._build_request(pairs)
        log_url = f"{self.config.base_url}/{cache_key}"
        started = time.perf_counter()

        try:
            status_code, body, content_type = self._exchange(request, timeout_seconds, read_deadline)
        except urllib_error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise self._failure(EnibraTimeoutError(str(exc.reason)), log_url, started) from exc
            raise self._failure(EnibraTransportError(str(exc.reason)), log_url, started) from exc
        except TimeoutError as exc:
            raise self._failure(EnibraTimeoutError(str(exc) or "timed out"), log_url, started) from exc
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise self._failure(EnibraTransportError(str(exc)), log_url, started) from exc

        self.cache.store(
            cache_key,
            body=body,
            content_type=content_type,
            status_code=status_code,
            ttl_seconds=self.config.cache_ttl_seconds,
        )
        logger.info(
            "enibra_upstream_fetch",
            extra={
                "url": log_url,
                "upstream_status": status_code,
                "content_type": content_type,
                "body_bytes": len(body),
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return UpstreamResponse(status_code=status_code, body=body, content_type=content_type)

    def _effective_timeout(self, deadline: float | None) -> float:
        timeout_seconds = self.config.timeout_seconds
        if deadline is None:
            return timeout_seconds
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise EnibraTimeoutError("deadline exceeded before the upstream call")
        return min(timeout_seconds, remaining)

    def _exchange(
        self,
        request: urllib_request.Request,
        timeout_seconds: float,
        read_deadline: float,
    ) -> tuple[int, bytes, str]:
        try:
            response = urllib_request.urlopen(
                request,
                timeout=timeout_seconds,
                context=self._ssl_context(),
            )
        except urllib_error.HTTPError as exc:
            content_type = (exc.headers.get("Content-Type") if exc.headers else None) or DEFAULT_CONTENT_TYPE
            return int(exc.code), _read_error_body(exc, read_deadline), content_type

        with response:
            status_code = int(getattr(response, "status", 200) or 200)
            content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
            body = _read_body(response, read_deadline)
        return status_code, body, content_type

    def _build_request(self, pairs: Sequence[tuple[str, str]]) -> urllib_request.Request:
        query = [
            ("MUSTERI_KODU", self.config.customer_code),
            ("PAROLA", self.config.secret),
            *pairs,
        ]
        request = urllib_request.Request(
            url=f"{self.config.base_url}/{PERSONEL_LISTESI_PATH}?{urlencode(query)}",
            method="GET",
            headers={
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
        )
        if self.config.host_header:
            # urllib only sets Host itself when the request does not carry one.
            request.add_header("Host", self.config.host_header)
        return request

    def _ssl_context(self) -> ssl.SSLContext | None:
        if not self.config.base_url.lower().startswith("https://"):
            return None
        context = ssl.create_default_context()
        if self.config.insecure_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _failure(
        self,
        error: EnibraTransportError,
        log_url: str,
        started: float,
    ) -> EnibraTransportError:
        logger.warning(
            "enibra_upstream_failed",
            extra={
                "url": log_url,
                "error_code": error.code,
                "reason": error.reason,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return error


def _read_body(response: Any, read_deadline: float) -> bytes:
    """Read the body in chunks, giving up once ``read_deadline`` has passed.

    A socket timeout only bounds a single read, so an upstream that drips
    bytes could otherwise hold the call open indefinitely.
    """
    read_chunk = getattr(response, "read1", None) or response.read
    chunks: list[bytes] = []
    while True:
        remaining = read_deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("deadline exceeded while reading the response body")
        _shrink_socket_timeout(response, remaining)
        chunk = read_chunk(READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _shrink_socket_timeout(response: Any, remaining: float) -> None:
    # http.client keeps the socket at response.fp.raw._sock.
    sock = getattr(getattr(getattr(response, "fp", None), "raw", None), "_sock", None)
    if sock is not None:
        sock.settimeout(remaining)


def _read_error_body(exc: urllib_error.HTTPError, read_deadline: float) -> bytes:
    if exc.fp is None:
        return b""
    try:
        return _read_body(exc, read_deadline)
    except TimeoutError:
        raise
    except (OSError, http.client.HTTPException):
        return b""
