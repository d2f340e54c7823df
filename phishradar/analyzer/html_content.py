"""HTML content parsing for feature extraction."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser

logger = logging.getLogger(__name__)

MAX_HTML_CHARS = 500_000
MAX_LOGO_IMAGES = 5

_SKIP_TAGS = {"script", "style", "noscript", "svg", "canvas"}
_SENSITIVE_INPUT_TYPES = {"password"}
_SENSITIVE_NAME = re.compile(r"(pass|pin|otp|cvv|ssn|card|mat.?khau)", re.IGNORECASE)
_LOGO_HINT = re.compile(r"(logo|brand|favicon|icon)", re.IGNORECASE)


@dataclass
class ContentCounts:
    """Counters and snippets collected from a page."""

    form_count: int = 0
    input_count: int = 0
    script_count: int = 0
    link_count: int = 0
    iframe_count: int = 0
    hidden_input_count: int = 0
    sensitive_input_count: int = 0
    form_actions: list[str] = field(default_factory=list)
    logo_images: list[str] = field(default_factory=list)
    visible_text: str = ""


class _ContentParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.counts = ContentCounts()
        self._chunks: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs) -> None:  # type: ignore[override]
        attributes = {k.lower(): (v or "") for k, v in attrs}
        counts = self.counts
        if tag in _SKIP_TAGS:
            self._skip_depth += 1
        if tag == "form":
            counts.form_count += 1
            counts.form_actions.append(attributes.get("action", "").strip())
        elif tag == "input":
            counts.input_count += 1
            input_type = attributes.get("type", "text").lower()
            if input_type == "hidden":
                counts.hidden_input_count += 1
            name = " ".join(attributes.get(k, "") for k in ("name", "id", "placeholder"))
            if input_type in _SENSITIVE_INPUT_TYPES or _SENSITIVE_NAME.search(name):
                counts.sensitive_input_count += 1
        elif tag == "script":
            counts.script_count += 1
        elif tag == "a":
            counts.link_count += 1
        elif tag == "iframe":
            counts.iframe_count += 1
        elif tag == "img":
            self._maybe_logo(attributes.get("src", ""), attributes)
        elif tag == "link":
            rel = attributes.get("rel", "").lower()
            if "icon" in rel:
                self._maybe_logo(attributes.get("href", ""), attributes, force=True)

    def handle_startendtag(self, tag: str, attrs) -> None:  # type: ignore[override]
        self.handle_starttag(tag, attrs)
        if tag in _SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_endtag(self, tag: str) -> None:  # type: ignore[override]
        if tag in _SKIP_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:  # type: ignore[override]
        if self._skip_depth:
            return
        if data and data.strip():
            self._chunks.append(data.strip())

    def _maybe_logo(self, src: str, attributes: dict, force: bool = False) -> None:
        src = (src or "").strip()
        if not src or src.startswith("data:"):
            return
        if len(self.counts.logo_images) >= MAX_LOGO_IMAGES or src in self.counts.logo_images:
            return
        hints = " ".join(attributes.get(k, "") for k in ("alt", "class", "id")) + " " + src
        if force or _LOGO_HINT.search(hints):
            self.counts.logo_images.append(src)

    def result(self) -> ContentCounts:
        self.counts.visible_text = " ".join(self._chunks)
        return self.counts


def _fallback_counts(html: str) -> ContentCounts:
    """Plain substring counting when the parser gives up."""
    lowered = html.lower()
    return ContentCounts(
        form_count=lowered.count("<form"),
        input_count=lowered.count("<input"),
        script_count=lowered.count("<script"),
        link_count=lowered.count("<a "),
        iframe_count=lowered.count("<iframe"),
        hidden_input_count=lowered.count('type="hidden"') + lowered.count("type='hidden'"),
    )


def parse_content(html: str | None) -> ContentCounts:
    """Parse ``html`` into content counters; never raises."""
    if not html:
        return ContentCounts()
    html = html[:MAX_HTML_CHARS]
    try:
        parser = _ContentParser()
        parser.feed(html)
        parser.close()
        return parser.result()
    except Exception as exc:
        logger.debug("HTML parse failed, using substring counts: %s", exc)
    try:
        return _fallback_counts(html)
    except Exception as exc:
        logger.debug("Substring counting failed: %s", exc)
        return ContentCounts()
