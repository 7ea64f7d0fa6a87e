"""Heuristic post-processing of free-text model output.

Everything here is pure: text in, text or plain structures out.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..ids import timestamp_id
from ..models.ai import NewsItem, SearchResult

SHORTEN_MIN_CHARS = 500
SHORTEN_MAX_CHARS = 1000
SHORTEN_SUFFIX = (
    "\n\n(Note: I've provided a concise summary. "
    "If you'd like more details on any specific point, please ask.)"
)
BULLET = "•"

DEFAULT_CATEGORY = "Legal Information"
DEFAULT_NEWS_DATE = "Recent"
DEFAULT_NEWS_SUMMARY = "No additional details available."

_SENTENCE_SPLIT_RE = re.compile(r"\.\s+")
_SECTION_SPLIT_RE = re.compile(r"\n\n|\r\n\r\n")
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_TITLE_LABEL_RE = re.compile(r"^(Title|Topic|Law):?\s*", re.IGNORECASE)
_SUMMARY_RE = re.compile(
    r"Summary:?\s*([\s\S]*?)(?=(?:Content|Key Provisions|References|Exceptions):?|\Z)",
    re.IGNORECASE,
)

_DATE_TOKEN = (
    r"\d{1,2}/\d{1,2}/\d{2,4}"
    r"|\d{1,2}\s+[A-Za-z]+\s+\d{2,4}"
    r"|[A-Za-z]+\s+\d{1,2},\s+\d{2,4}"
)
_TITLE_DATE_RE = re.compile(r"\(([^)]+)\)$|(" + _DATE_TOKEN + ")")
_LINE_DATE_RE = re.compile(r"Date:?\s*(.+)|(" + _DATE_TOKEN + ")")


# --------------------- Conciseness ---------------------
def shorten(text: str) -> str:
    """Make a long chat reply easier to read.

    Replies of 500+ chars without bullets and with more than three sentences
    are rewritten as one bullet per sentence (sentences of 10 chars or fewer
    are dropped) and returned as-is. Other replies longer than 1000 chars are
    cut at the last full stop before that point, with SHORTEN_SUFFIX appended.
    """
    if len(text) < SHORTEN_MIN_CHARS:
        return text

    if BULLET not in text and "- " not in text:
        sentences = _SENTENCE_SPLIT_RE.split(text)
        if len(sentences) > 3:
            return "\n".join(
                f"{BULLET} {s.strip()}" for s in sentences if len(s.strip()) > 10
            )

    if len(text) > SHORTEN_MAX_CHARS:
        cut = text[:SHORTEN_MAX_CHARS].rfind(".")
        if cut > 0:
            text = text[: cut + 1] + SHORTEN_SUFFIX
    return text


# --------------------- Search results ---------------------
@dataclass(frozen=True)
class Structured:
    """The model answered with a JSON object."""

    data: Dict[str, Any]


@dataclass(frozen=True)
class Unstructured:
    title: str
    summary: str
    content: str


@dataclass(frozen=True)
class Empty:
    pass


SearchParse = Union[Structured, Unstructured, Empty]


def _try_parse_json_span(raw: str) -> Optional[Dict[str, Any]]:
    match = _JSON_SPAN_RE.search(raw)
    if not match:
        return None
    try:
        obj = json.loads(match.group(0))
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _first_title(sections: List[str]) -> str:
    for section in sections:
        trimmed = section.strip()
        if trimmed and not trimmed.startswith(BULLET) and not trimmed.startswith("-"):
            return _TITLE_LABEL_RE.sub("", trimmed, count=1)
    return ""


def parse_search_text(raw: str) -> SearchParse:
    if not raw or not raw.strip():
        return Empty()

    if "{" in raw and "}" in raw:
        data = _try_parse_json_span(raw)
        if data is not None:
            return Structured(data)

    title = _first_title(_SECTION_SPLIT_RE.split(raw))

    summary = ""
    match = _SUMMARY_RE.search(raw)
    if match and match.group(1):
        summary = match.group(1).strip()

    content = raw.replace(title, "", 1).replace(summary, "", 1).strip()
    return Unstructured(title=title, summary=summary, content=content or raw)


def extract_search_result(raw: str, fallback_title: str, category: Optional[str] = None) -> Dict[str, Any]:
    parsed = parse_search_text(raw)
    if isinstance(parsed, Structured):
        return parsed.data

    title = summary = content = ""
    if isinstance(parsed, Unstructured):
        title, summary, content = parsed.title, parsed.summary, parsed.content
    return SearchResult(
        id=timestamp_id(),
        title=title or fallback_title,
        category=category or DEFAULT_CATEGORY,
        summary=summary or raw[:150] + "...",
        content=content or raw,
    ).dict()


# --------------------- News ---------------------
def _split_title_and_date(first_line: str):
    match = _TITLE_DATE_RE.search(first_line)
    if not match:
        return first_line, ""
    date = match.group(0).replace("(", "").replace(")", "").strip()
    return first_line.replace(match.group(0), "", 1).strip(), date


def extract_news_items(raw: str, category: Optional[str] = None) -> List[NewsItem]:
    stamp = timestamp_id()
    items: List[NewsItem] = []
    for section in _SECTION_SPLIT_RE.split(raw):
        if len(section.strip()) < 10:
            continue
        lines = section.split("\n")
        title, date = _split_title_and_date(lines[0].strip())

        if not date and len(lines) > 1:
            match = _LINE_DATE_RE.search(lines[1].strip())
            if match:
                date = (match.group(1) or match.group(2) or match.group(0)).strip()
                del lines[1]

        summary = "\n".join(lines[1:]).strip()
        if not title:
            continue
        items.append(
            NewsItem(
                id=f"{stamp}{len(items)}",
                title=title,
                date=date or DEFAULT_NEWS_DATE,
                summary=summary or DEFAULT_NEWS_SUMMARY,
            )
        )

    if not items:
        items.append(
            NewsItem(
                id=stamp,
                title=f"Recent {category} Updates" if category else "Recent Legal Updates",
                date=DEFAULT_NEWS_DATE,
                summary=raw,
            )
        )
    return items
