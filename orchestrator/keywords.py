"""Topic keyword, title and slug derivation from page URLs."""

from __future__ import annotations

from datetime import datetime
import re
from typing import List, Optional
from urllib.parse import unquote, urlsplit


_HEX_HASH = re.compile(r"^[a-f0-9]{6,}$", re.IGNORECASE)
_NUMERIC = re.compile(r"^[0-9]+$")
_SHORT_CODE = re.compile(r"^[a-z]{1,2}[0-9]+$", re.IGNORECASE)
_UUID_LIKE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}", re.IGNORECASE)
_SEPARATORS = re.compile(r"[-_+]+")
_TLD = re.compile(r"\.[a-z]{2,}$", re.IGNORECASE)
_SECOND_LEVEL = {"co", "com", "org", "net", "gov", "ac", "edu"}

_TITLE_TEMPLATES = (
    "The Complete Guide to {kw}",
    "{kw}: Everything You Need to Know",
    "How to Master {kw} in {year}",
    "{kw}: Expert Tips & Strategies",
    "The Ultimate {kw} Guide",
)


def _segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def _humanize(segment: str) -> str:
    decoded = unquote(segment)
    decoded = re.sub(r"\.(html?|php|aspx?)$", "", decoded, flags=re.IGNORECASE)
    return " ".join(_SEPARATORS.sub(" ", decoded).split())


def is_non_semantic(segment: str) -> bool:
    """True for hashes, numeric ids, short letter+digit codes and UUIDs."""
    return bool(
        _HEX_HASH.match(segment)
        or _NUMERIC.match(segment)
        or _SHORT_CODE.match(segment)
        or _UUID_LIKE.match(segment)
    )


def domain_keyword(host: str) -> str:
    """Registrable name of ``host`` without subdomains, ``www.`` and TLD."""
    name = (host or "").lower().split(":")[0]
    if name.startswith("www."):
        name = name[4:]
    labels = [label for label in _TLD.sub("", name).split(".") if label]
    if len(labels) > 1 and labels[-1] in _SECOND_LEVEL:
        labels = labels[:-1]
    if not labels:
        return ""
    return _SEPARATORS.sub(" ", labels[-1]).strip()


def extract_keyword(url: str) -> str:
    """Derive a human-readable topic from ``url``.

    Last path segment, then its parent, then the domain name.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        parts = None

    if parts is None or not parts.netloc:
        tail = _segments(str(url or ""))
        return _humanize(tail[-1]).lower() if tail else "content"

    segments = _segments(parts.path)

    last = segments[-1] if segments else ""
    last_text = _humanize(last)
    if last and not is_non_semantic(last) and len(last_text) > 3:
        return last_text.lower()

    if len(segments) >= 2:
        parent = segments[-2]
        parent_text = _humanize(parent)
        if not is_non_semantic(parent) and len(parent_text) > 3:
            return parent_text.lower()

    return domain_keyword(parts.hostname or parts.netloc) or "content"


def build_title(keyword: str, *, now: Optional[datetime] = None) -> str:
    """Pick a title template deterministically from the keyword's characters."""
    words = [word[:1].upper() + word[1:] for word in str(keyword or "").split()]
    capitalized = " ".join(words) or "Content"
    idx = sum(ord(ch) for ch in str(keyword or "")) % len(_TITLE_TEMPLATES)
    year = (now or datetime.now()).year
    return _TITLE_TEMPLATES[idx].format(kw=capitalized, year=year)


def slug_from_url(url: str) -> str:
    """Last path segment of ``url`` (the page's existing slug)."""
    try:
        path = urlsplit(url).path
    except ValueError:
        path = str(url or "")
    segments = _segments(path)
    if segments:
        return segments[-1]
    fallback = _segments(str(url or ""))
    return fallback[-1] if fallback else str(url or "")
