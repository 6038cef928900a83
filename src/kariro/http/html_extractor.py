"""Markup to plain text conversion for fetched job postings using trafilatura."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import trafilatura
from lxml import etree
from lxml import html as lxml_html

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_NON_TEXT_TAGS = ("script", "style", "noscript", "template")


@dataclass(slots=True)
class ExtractionResult:
    """Result of markup stripping."""

    text: str
    is_success: bool
    error: str | None = None


def extract_text(
    content: str,
    *,
    content_type: str = "text/html",
    url: str | None = None,
    max_chars: int = 0,
) -> ExtractionResult:
    """Strip tags, scripts and styles and return whitespace-collapsed text.

    The whole page body is kept (job postings have no single "main article"),
    falling back to trafilatura's recall-oriented extractor when the body is empty.
    """

    if not content or not content.strip():
        return ExtractionResult(text="", is_success=False, error="empty input")

    if "text/html" not in content_type.lower():
        return _finalize(_collapse(content), max_chars=max_chars)

    try:
        text = trafilatura.html2txt(content)
    except Exception as exc:  # noqa: BLE001
        logger.warning("trafilatura.html2txt failed for %s: %s", url or "<unknown>", exc)
        text = ""

    if not text:
        try:
            text = trafilatura.extract(
                content,
                url=url,
                include_tables=True,
                include_links=False,
                favor_recall=True,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("trafilatura fallback failed for %s: %s", url or "<unknown>", exc)
            return ExtractionResult(text="", is_success=False, error=f"extraction failed: {exc}")

    if not text:
        # trafilatura rejects fragments without an <html> root
        text = _strip_fragment(content, url=url)

    if not text:
        return ExtractionResult(text="", is_success=False, error="no content extracted")

    return _finalize(_collapse(text), max_chars=max_chars)


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _finalize(text: str, *, max_chars: int) -> ExtractionResult:
    if not text:
        return ExtractionResult(text="", is_success=False, error="no content extracted")
    if max_chars > 0 and len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return ExtractionResult(text=text, is_success=True)


def _strip_fragment(content: str, *, url: str | None) -> str:
    try:
        root = lxml_html.fragment_fromstring(content, create_parent="div")
    except (etree.ParserError, ValueError) as exc:
        logger.warning("lxml could not parse markup from %s: %s", url or "<unknown>", exc)
        return ""
    for element in list(root.iter(*_NON_TEXT_TAGS)):
        element.drop_tree()
    return root.text_content()
