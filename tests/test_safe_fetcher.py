from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator

import allure
import httpx
import pytest

from kariro.http.safe_fetcher import (
    BlockedUrlError,
    InvalidUrlError,
    ResponseTooLargeError,
    SafeFetcher,
    UpstreamError,
)

pytestmark = [
    allure.epic("Outbound Fetcher"),
    allure.feature("SSRF Guard & Limits"),
]

PUBLIC_IP = "93.184.216.34"
POSTING_HTML = (
    "<html><body><h1>Senior Backend Engineer</h1>"
    "<p>We are hiring a Go developer.</p></body></html>"
)


def _fetcher(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    addresses: dict[str, list[str]] | None = None,
    max_response_bytes: int = 1_000_000,
    timeout_seconds: float = 5.0,
    clock: Callable[[], float] = time.monotonic,
) -> SafeFetcher:
    table = addresses if addresses is not None else {"jobs.example.com": [PUBLIC_IP]}

    def _resolve(hostname: str) -> list[str]:
        if hostname not in table:
            raise OSError(f"no such host: {hostname}")
        return table[hostname]

    return SafeFetcher(
        timeout_seconds=timeout_seconds,
        max_response_bytes=max_response_bytes,
        max_text_chars=1_000,
        resolver=_resolve,
        transport=httpx.MockTransport(handler),
        clock=clock,
    )


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"transport must not be called for {request.url}")


def test_fetch_connects_to_pinned_address_with_original_host_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            headers={"content-type": "text/html; charset=utf-8"},
            content=POSTING_HTML.encode("utf-8"),
        )

    with _fetcher(handler) as fetcher:
        page = fetcher.fetch("https://jobs.example.com/postings/42?ref=board")

    assert len(seen) == 1
    request = seen[0]
    assert request.url.host == PUBLIC_IP
    assert request.url.path == "/postings/42"
    assert request.url.query == b"ref=board"
    assert request.headers["host"] == "jobs.example.com"
    assert request.headers["user-agent"] == "Kariro/1.0 Job Analyzer"
    assert request.extensions["sni_hostname"] == "jobs.example.com"
    assert page.status_code == 200
    assert "Senior Backend Engineer" in page.text
    assert "<h1>" not in page.text
    assert page.body_truncated is False


def test_non_default_port_is_kept_in_host_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"Go role")

    with _fetcher(handler) as fetcher:
        text = fetcher.fetch_text("http://jobs.example.com:8080/job")

    assert text == "Go role"
    assert seen[0].headers["host"] == "jobs.example.com:8080"
    assert seen[0].url.port == 8080


def test_redirect_is_rejected_without_following() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(302, headers={"location": "http://169.254.169.254/latest/"})

    with _fetcher(handler) as fetcher, pytest.raises(BlockedUrlError, match="redirects"):
        fetcher.fetch("https://jobs.example.com/apply")

    assert len(calls) == 1


@pytest.mark.parametrize(
    "url",
    [
        "http://169.254.169.254/latest/meta-data/",
        "http://10.0.0.5/admin",
        "http://127.0.0.1:6379/",
        "http://[::1]/",
        "http://[::ffff:10.0.0.5]/",
        "http://localhost:3000/",
        "http://api.localhost/",
        "http://0.0.0.0/",
    ],
)
def test_internal_destinations_are_blocked_before_connecting(url: str) -> None:
    with _fetcher(_unreachable) as fetcher, pytest.raises(BlockedUrlError, match="Internal URLs"):
        fetcher.fetch(url)


def test_hostname_resolving_to_private_address_is_blocked() -> None:
    addresses = {"intranet.example.com": ["10.1.2.3"]}

    with _fetcher(_unreachable, addresses=addresses) as fetcher:
        with pytest.raises(BlockedUrlError):
            fetcher.fetch("https://intranet.example.com/")


def test_any_private_answer_in_dns_result_blocks_the_host() -> None:
    addresses = {"mixed.example.com": [PUBLIC_IP, "127.0.0.1"]}

    with _fetcher(_unreachable, addresses=addresses) as fetcher:
        with pytest.raises(BlockedUrlError):
            fetcher.fetch("https://mixed.example.com/")


@pytest.mark.parametrize(
    "url",
    ["ftp://jobs.example.com/file", "file:///etc/passwd", "javascript:alert(1)", "http://"],
)
def test_invalid_urls_are_rejected(url: str) -> None:
    with _fetcher(_unreachable) as fetcher, pytest.raises(InvalidUrlError):
        fetcher.fetch(url)


def test_unresolvable_host_is_an_upstream_error() -> None:
    with _fetcher(_unreachable, addresses={}) as fetcher:
        with pytest.raises(UpstreamError, match="Could not resolve host"):
            fetcher.fetch("https://missing.example.com/")


def test_non_success_status_is_an_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, headers={"content-type": "text/html"}, content=b"nope")

    with _fetcher(handler) as fetcher, pytest.raises(UpstreamError, match="HTTP 404"):
        fetcher.fetch("https://jobs.example.com/gone")


def test_non_text_content_type_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"%PDF")

    with _fetcher(handler) as fetcher, pytest.raises(UpstreamError, match="HTML or text"):
        fetcher.fetch("https://jobs.example.com/posting.pdf")


def test_declared_oversized_body_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/html", "content-length": "5000"},
            content=b"<p>small</p>",
        )

    fetcher = _fetcher(handler, max_response_bytes=100)
    with fetcher, pytest.raises(ResponseTooLargeError, match="Response too large"):
        fetcher.fetch("https://jobs.example.com/huge")


def test_streamed_body_is_truncated_at_byte_cap() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/plain"},
            content=iter([b"a" * 80, b"b" * 80]),
        )

    with _fetcher(handler, max_response_bytes=100) as fetcher:
        page = fetcher.fetch("https://jobs.example.com/stream")

    assert page.body_truncated is True
    assert page.text == "a" * 80 + "b" * 20


def test_timeout_is_reported_without_internal_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    with _fetcher(handler) as fetcher, pytest.raises(UpstreamError) as excinfo:
        fetcher.fetch("https://jobs.example.com/slow")

    assert str(excinfo.value) == "Request timeout while fetching job posting"
    assert PUBLIC_IP not in str(excinfo.value)


def test_slow_drip_body_is_cut_off_at_the_overall_deadline(fake_clock) -> None:  # noqa: ANN001
    delivered: list[int] = []

    def drip() -> Iterator[bytes]:
        for index in range(10):
            fake_clock.advance(2.0)
            delivered.append(index)
            yield b"x" * 10

    def handler(request: httpx.Request) -> httpx.Response:
        fake_clock.advance(2.0)
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=drip())

    with _fetcher(handler, clock=fake_clock) as fetcher, pytest.raises(UpstreamError) as excinfo:
        fetcher.fetch("https://jobs.example.com/drip")

    assert str(excinfo.value) == "Request timeout while fetching job posting"
    # headers at t=2, chunks at t=4 and t=6; the 5s budget is spent on the second chunk
    assert delivered == [0, 1]


def test_deadline_spent_before_connecting_skips_the_request(fake_clock) -> None:  # noqa: ANN001
    def slow_resolve(hostname: str) -> list[str]:
        fake_clock.advance(6.0)
        return [PUBLIC_IP]

    fetcher = SafeFetcher(
        timeout_seconds=5.0,
        resolver=slow_resolve,
        transport=httpx.MockTransport(_unreachable),
        clock=fake_clock,
    )

    with fetcher, pytest.raises(UpstreamError, match="Request timeout"):
        fetcher.fetch("https://jobs.example.com/posting")


def test_hanging_dns_lookup_is_bounded_by_the_fetch_timeout() -> None:
    release = threading.Event()

    def hanging_resolve(hostname: str) -> list[str]:
        release.wait(5.0)
        return [PUBLIC_IP]

    fetcher = SafeFetcher(
        timeout_seconds=0.1,
        resolver=hanging_resolve,
        transport=httpx.MockTransport(_unreachable),
    )

    started = time.monotonic()
    try:
        with fetcher, pytest.raises(UpstreamError, match="Request timeout"):
            fetcher.fetch("https://jobs.example.com/posting")
    finally:
        release.set()

    assert time.monotonic() - started < 2.0


def test_html_fragment_body_is_returned_as_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/html; charset=utf-8"},
            content=b"Senior <b>Go</b> engineer",
        )

    with _fetcher(handler) as fetcher:
        assert fetcher.fetch_text("https://jobs.example.com/fragment") == "Senior Go engineer"
