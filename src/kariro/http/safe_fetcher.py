"""Hardened HTTP fetcher for user-supplied job posting URLs."""

from __future__ import annotations

import ipaddress
import logging
import threading
import time
from collections.abc import Callable
from concurrent import futures
from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

import httpx

from kariro.http.address_policy import (
    Resolver,
    is_blocked_address,
    is_blocked_hostname,
    resolve_host,
)
from kariro.http.html_extractor import extract_text

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RESPONSE_BYTES = 1_000_000
DEFAULT_MAX_TEXT_CHARS = 50_000
DEFAULT_USER_AGENT = "Kariro/1.0 Job Analyzer"
DEFAULT_MAX_WORKERS = 4
ALLOWED_CONTENT_TYPES: tuple[str, ...] = ("text/html", "text/plain")
TIMEOUT_MESSAGE = "Request timeout while fetching job posting"


class FetchError(Exception):
    """Base class for outbound fetch failures."""


class InvalidUrlError(FetchError):
    """URL cannot be parsed or uses a scheme other than http(s)."""


class BlockedUrlError(FetchError):
    """URL targets an internal address or tries to redirect."""


class UpstreamError(FetchError):
    """Remote host failed, timed out, or returned unusable content."""


class ResponseTooLargeError(FetchError):
    """Remote host declared a body larger than the configured cap."""


@dataclass(slots=True, frozen=True)
class ValidatedTarget:
    """URL that passed policy checks, pinned to one resolved address."""

    parts: SplitResult
    hostname: str
    port: int
    resolved_ip: str

    @property
    def host_header(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        default_port = 443 if self.parts.scheme == "https" else 80
        if self.port == default_port:
            return host
        return f"{host}:{self.port}"

    @property
    def pinned_url(self) -> str:
        host = f"[{self.resolved_ip}]" if ":" in self.resolved_ip else self.resolved_ip
        path = self.parts.path or "/"
        query = f"?{self.parts.query}" if self.parts.query else ""
        return f"{self.parts.scheme}://{host}:{self.port}{path}{query}"


@dataclass(slots=True)
class _Download:
    hostname: str
    status_code: int
    content_type: str
    body: bytes
    truncated: bool
    encoding: str


@dataclass(slots=True)
class FetchedPage:
    """Text extracted from one fetched page."""

    url: str
    status_code: int
    content_type: str
    text: str
    body_truncated: bool


class SafeFetcher:
    """HTTP client that only talks to public addresses it resolved itself.

    The hostname is resolved exactly once; the request then connects to that
    address while sending the original hostname as ``Host`` and TLS SNI, so a
    second DNS answer can never redirect the connection to an internal host.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        max_text_chars: int = DEFAULT_MAX_TEXT_CHARS,
        user_agent: str = DEFAULT_USER_AGENT,
        resolver: Resolver = resolve_host,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._max_response_bytes = max_response_bytes
        self._max_text_chars = max_text_chars
        self._user_agent = user_agent
        self._resolver = resolver
        self._clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=False,
            trust_env=False,
            transport=transport,
        )
        self._executor = futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="kariro-fetch",
        )

    def fetch_text(self, url: str) -> str:
        """Fetch URL and return markup-free text, truncated to the text cap."""

        return self.fetch(url).text

    def fetch(self, url: str) -> FetchedPage:
        """Validate, fetch and strip one page.

        Resolution, connect, headers and body all share one deadline of
        ``timeout_seconds``; the caller gets :class:`UpstreamError` once it
        passes, even when a resolver or socket read is still blocked.
        """

        deadline = self._clock() + self._timeout_seconds
        cancelled = threading.Event()
        future = self._executor.submit(self._download, url, deadline, cancelled)
        try:
            download = future.result(timeout=self._timeout_seconds)
        except futures.TimeoutError as error:
            cancelled.set()
            logger.warning("Fetch exceeded the %.1fs deadline", self._timeout_seconds)
            raise UpstreamError(TIMEOUT_MESSAGE) from error

        if download.truncated:
            logger.info(
                "Response from %s exceeded %d bytes; using buffered prefix",
                download.hostname,
                self._max_response_bytes,
            )

        extraction = extract_text(
            _decode(download.body, download.encoding),
            content_type=download.content_type,
            url=url,
            max_chars=self._max_text_chars,
        )
        return FetchedPage(
            url=url,
            status_code=download.status_code,
            content_type=download.content_type,
            text=extraction.text,
            body_truncated=download.truncated,
        )

    def _download(self, url: str, deadline: float, cancelled: threading.Event) -> _Download:
        target = self.validate_url(url)
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise UpstreamError(TIMEOUT_MESSAGE)
        logger.debug("Fetching %s via pinned address %s", target.hostname, target.resolved_ip)

        try:
            with self._client.stream(
                "GET",
                target.pinned_url,
                headers={
                    "Host": target.host_header,
                    "User-Agent": self._user_agent,
                    "Accept": "text/html, text/plain;q=0.9",
                },
                extensions={"sni_hostname": target.hostname},
                timeout=httpx.Timeout(remaining),
            ) as response:
                content_type = self._check_response(response)
                body, truncated = self._read_capped(
                    response,
                    deadline=deadline,
                    cancelled=cancelled,
                )
                return _Download(
                    hostname=target.hostname,
                    status_code=response.status_code,
                    content_type=content_type,
                    body=body,
                    truncated=truncated,
                    encoding=response.charset_encoding or "utf-8",
                )
        except httpx.TimeoutException as error:
            logger.warning("Timeout fetching %s", target.hostname)
            raise UpstreamError(TIMEOUT_MESSAGE) from error
        except httpx.HTTPError as error:
            logger.warning("HTTP error fetching %s: %s", target.hostname, type(error).__name__)
            raise UpstreamError(
                f"Failed to fetch job posting: {type(error).__name__}",
            ) from error

    def validate_url(self, url: str) -> ValidatedTarget:
        """Parse URL, reject internal destinations and pin one resolved address."""

        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as error:
            raise InvalidUrlError("Invalid URL") from error

        scheme = parts.scheme.lower()
        if scheme not in {"http", "https"}:
            raise InvalidUrlError("Only http and https URLs are allowed")
        parts = parts._replace(scheme=scheme)

        hostname = parts.hostname
        if not hostname:
            raise InvalidUrlError("Invalid URL: missing host")

        literal = _literal_address(hostname)
        if literal is not None:
            addresses = [literal]
        else:
            try:
                hostname = hostname.encode("idna").decode("ascii")
            except UnicodeError as error:
                raise InvalidUrlError("Invalid URL: bad hostname") from error
            if is_blocked_hostname(hostname):
                raise BlockedUrlError("Internal URLs are not allowed")
            try:
                addresses = self._resolver(hostname)
            except (OSError, UnicodeError) as error:
                raise UpstreamError("Could not resolve host for job posting URL") from error

        if not addresses:
            raise UpstreamError("Could not resolve host for job posting URL")
        if any(is_blocked_address(address) for address in addresses):
            raise BlockedUrlError("Internal URLs are not allowed")

        if port is None:
            port = 443 if scheme == "https" else 80
        return ValidatedTarget(
            parts=parts,
            hostname=hostname,
            port=port,
            resolved_ip=addresses[0],
        )

    def _check_response(self, response: httpx.Response) -> str:
        status = response.status_code
        if 300 <= status < 400:  # noqa: PLR2004
            raise BlockedUrlError("URL redirects are not allowed")
        if not 200 <= status < 300:  # noqa: PLR2004
            raise UpstreamError(f"Failed to fetch job posting: HTTP {status}")

        content_type = response.headers.get("content-type", "")
        if not any(allowed in content_type.lower() for allowed in ALLOWED_CONTENT_TYPES):
            raise UpstreamError("URL does not point to an HTML or text page")

        declared = response.headers.get("content-length")
        if declared is not None and declared.strip().isdigit():
            if int(declared) > self._max_response_bytes:
                raise ResponseTooLargeError("Response too large")
        return content_type

    def _read_capped(
        self,
        response: httpx.Response,
        *,
        deadline: float,
        cancelled: threading.Event,
    ) -> tuple[bytes, bool]:
        chunks: list[bytes] = []
        total = 0
        for chunk in response.iter_bytes():
            if cancelled.is_set() or self._clock() > deadline:
                raise UpstreamError(TIMEOUT_MESSAGE)
            remaining = self._max_response_bytes - total
            if len(chunk) > remaining:
                chunks.append(chunk[:remaining])
                return b"".join(chunks), True
            chunks.append(chunk)
            total += len(chunk)
        return b"".join(chunks), False

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()

    def __enter__(self) -> SafeFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _literal_address(hostname: str) -> str | None:
    try:
        return str(ipaddress.ip_address(hostname))
    except ValueError:
        return None


def _decode(body: bytes, encoding: str) -> str:
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
