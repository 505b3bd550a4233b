# carpark_scraper/parse_list.py
# Purpose: Parse one list (search-result) page into ListingSummary rows.

from __future__ import annotations
import re
import logging
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError

from .extractors import (
    clean_title,
    estate_after_district,
    extract_district_fallback,
    extract_posted,
    extract_price_basic,
    extract_types,
    join_texts,
)
from .schemas import ListingSummary
from .settings import DETAIL_ID_PATTERN, LIST_ROOTS
from .utils import pick_nonempty, squash_ws

log = logging.getLogger(__name__)

DETAIL_ID_RE = re.compile(DETAIL_ID_PATTERN)
DETAIL_ANCHOR_SEL = 'a[href*="/property-"]'

# list markup has changed over time; tried as one union, document order
CARD_SELECTORS = [
    ".property_box",
    ".property-box",
    ".property_row",
    ".property-row",
    ".list-row",
    ".row-property",
    "li[data-id]",
    "article[data-id]",
    ".property-item",
]
TITLE_SELECTORS = ["h1, h2, h3, h4, strong, b", ".title, .prop-title"]
LOCATION_LINK_SEL = ".location a, .property-location a, .list-loc a, .prop-loc a"
PRICE_SEL = '.price, .property-price, .list-price, [class*="price"]'
POSTED_SEL = '.posted, .list-posted, [class*="posted"]'
TAG_SEL = ".tag, .label, .badge, .prop-type"

# ---------------- helpers ----------------

def _text(el: Optional[Tag], sep: str = " ") -> str:
    if el is None:
        return ""
    return squash_ws(el.get_text(sep))

def _id_from_href(href: Optional[str], base: str) -> Optional[str]:
    if not href:
        return None
    m = DETAIL_ID_RE.search(urljoin(base, href))
    return m.group(1) if m else None

def _site_root(list_root: str) -> str:
    return re.sub(r"/buy/carpark.*$", "", list_root)

def select_cards(soup: BeautifulSoup) -> List[Tag]:
    cards = soup.select(", ".join(CARD_SELECTORS))
    if cards:
        return cards
    # fallback: the parent of every detail-page anchor
    parents: List[Tag] = []
    for a in soup.select(DETAIL_ANCHOR_SEL):
        p = a.parent
        if isinstance(p, Tag) and not any(p is q for q in parents):
            parents.append(p)
    return parents

def card_listing_id(card: Tag, base: str) -> Optional[str]:
    data_id = (card.get("data-id") or "").strip()
    if data_id:
        return data_id
    a = card.select_one(DETAIL_ANCHOR_SEL)
    if a is not None:
        lid = _id_from_href(a.get("href"), base)
        if lid:
            return lid
    return _id_from_href(card.get("href"), base)

def card_title(card: Tag, anchor: Optional[Tag]) -> Optional[str]:
    candidates = [_text(anchor)]
    for sel in TITLE_SELECTORS:
        candidates.append(_text(card.select_one(sel)))
    lines = [ln.strip() for ln in card.get_text("\n").split("\n") if ln.strip()]
    candidates.append(lines[0] if lines else None)
    return clean_title(pick_nonempty(*candidates))

def card_location(card: Tag, card_text: str):
    loc_texts = [t for t in (_text(a) for a in card.select(LOCATION_LINK_SEL)) if t]
    district = estate = None
    if len(loc_texts) >= 2:
        district, estate = loc_texts[-2], loc_texts[-1]
    elif len(loc_texts) == 1:
        district = loc_texts[0]

    district = district or extract_district_fallback(card_text)
    if not estate and district:
        estate = estate_after_district(card_text, district)
    return district, estate

# ---------------- public ----------------

def parse_listing_cards(html: str, lang: str) -> List[ListingSummary]:
    base = LIST_ROOTS[lang]
    soup = BeautifulSoup(html or "", "html.parser")
    listings: List[ListingSummary] = []
    seen_ids = set()

    for card in select_cards(soup):
        lid = card_listing_id(card, base)
        if not lid or lid in seen_ids:
            continue
        seen_ids.add(lid)

        anchor = card.select_one(DETAIL_ANCHOR_SEL)
        if anchor is not None and anchor.get("href"):
            detail_url = urljoin(base, anchor["href"])
        else:
            detail_url = f"{_site_root(base)}/property-{lid}"

        card_text = _text(card)
        district, estate = card_location(card, card_text)

        price_text = extract_price_basic(_text(card.select_one(PRICE_SEL))) or extract_price_basic(card_text)
        posted_ago = extract_posted(_text(card.select_one(POSTED_SEL))) or extract_posted(card_text)
        tag_text = join_texts(_text(t) for t in card.select(TAG_SEL))
        types = extract_types(join_texts([tag_text, card_text]))

        try:
            listings.append(ListingSummary(
                listing_id=lid,
                title=card_title(card, anchor),
                district=district,
                estate=estate,
                price_text=price_text,
                types=types,
                posted_ago=posted_ago,
                detail_url=detail_url,
                lang=lang,
            ))
        except ValidationError as e:
            log.debug(f"[cards] skip card id={lid!r}: {e}")

    return listings
