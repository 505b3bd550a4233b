# carpark_scraper/photos.py
# Purpose: Turn raw <img> candidates into a deduplicated, prioritized listing photo set.
#
# Pipeline per candidate:
#   absolute URL -> drop data: URIs -> photo host + image extension -> drop site chrome
#   -> canonical URL (resize segment stripped) -> variant tag from filename
# then dedupe on the canonical URL (first occurrence wins) and order by variant
# priority. The cover is the first photo in that same order.

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from .settings import BASE_URL, PHOTOS

VARIANT_PRIORITY = ("large", "desktop", "orig", "thumb")

PHOTO_HOST_RES = [re.compile(p, re.I) for p in PHOTOS.get("hosts", [])]
PHOTO_EXT_RE = re.compile(
    r"\.(?:%s)$" % "|".join(re.escape(e) for e in PHOTOS.get("extensions", ["jpg", "jpeg", "png", "webp", "gif"])),
    re.I,
)
CHROME_MARKERS = [m.lower() for m in PHOTOS.get("chrome_markers", [])]
CHROME_SUFFIXES = [m.lower() for m in PHOTOS.get("chrome_suffixes", [])]
PLACEHOLDER_MARKERS = [m.lower() for m in PHOTOS.get("placeholder_markers", [])]

RESIZE_SEGMENT_RE = re.compile(r"/resize/[^/]+", re.I)


@dataclass
class PhotoSet:
    photos: List[str] = field(default_factory=list)
    large: List[str] = field(default_factory=list)
    desktop: List[str] = field(default_factory=list)
    orig: List[str] = field(default_factory=list)
    thumb: List[str] = field(default_factory=list)
    cover: Optional[str] = None

    @property
    def image_full(self) -> List[str]:
        return list(self.large) if self.large else list(self.photos)

    @property
    def image_thumbs(self) -> List[str]:
        return list(self.thumb) if self.thumb else list(self.photos)


# ---------------- single-URL helpers ----------------

def abs_url(u: Optional[str], base: str = BASE_URL) -> Optional[str]:
    if not u or not isinstance(u, str):
        return None
    try:
        return urljoin(base, u.strip())
    except ValueError:
        return None

def is_placeholder(src: Optional[str]) -> bool:
    low = (src or "").lower()
    return any(m in low for m in PLACEHOLDER_MARKERS)

def upgrade_image_url(u: str) -> str:
    """Canonical form: drop the CDN resize segment (e.g. /resize/300x200)."""
    return RESIZE_SEGMENT_RE.sub("", u, count=1)

def is_photo_host(host: str) -> bool:
    host = (host or "").lower()
    return any(r.search(host) for r in PHOTO_HOST_RES)

def has_photo_ext(path: str) -> bool:
    return bool(PHOTO_EXT_RE.search(path or ""))

def is_chrome_path(path: str) -> bool:
    p = (path or "").lower()
    return any(m in p for m in CHROME_MARKERS) or any(p.endswith(s) for s in CHROME_SUFFIXES)

def classify_variant(url: str) -> str:
    p = urlparse(url).path.lower()
    if "_large." in p:
        return "large"
    if "_thumb." in p:
        return "thumb"
    if "desktop." in p:
        return "desktop"
    return "orig"

def _canonical_candidate(raw: str) -> Optional[str]:
    """Return the canonical URL for a listing photo, or None when it is filtered out."""
    if not raw or raw.strip().lower().startswith("data:"):
        return None
    absolute = abs_url(raw)
    if not absolute or absolute.lower().startswith("data:"):
        return None
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https"):
        return None
    if not is_photo_host(parsed.hostname or ""):
        return None
    if not has_photo_ext(parsed.path):
        return None
    if is_chrome_path(parsed.path):
        return None
    return upgrade_image_url(absolute)

# ---------------- set builder ----------------

def clean_photo_set(candidates: Iterable[Optional[str]]) -> PhotoSet:
    groups = {v: [] for v in VARIANT_PRIORITY}
    seen = set()
    for raw in candidates or []:
        canonical = _canonical_candidate(raw)
        if not canonical or canonical in seen:
            continue
        seen.add(canonical)
        groups[classify_variant(canonical)].append(canonical)

    photos = [u for v in VARIANT_PRIORITY for u in groups[v]]
    return PhotoSet(
        photos=photos,
        large=groups["large"],
        desktop=groups["desktop"],
        orig=groups["orig"],
        thumb=groups["thumb"],
        cover=photos[0] if photos else None,
    )
