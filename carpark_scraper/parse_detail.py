# carpark_scraper/parse_detail.py
# Robust parser for carpark detail pages (one listing, one language), with layered fallbacks

from __future__ import annotations
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .extractors import (
    extract_address_from_blob,
    extract_building_age,
    extract_carpark_kinds,
    extract_dates,
    extract_license_no,
    extract_posted,
    extract_price_detailed,
)
from .photos import PhotoSet, abs_url, clean_photo_set, is_placeholder
from .schemas import DetailRecord
from .settings import BRAND, LEXICON, lexicon_list
from .utils import s_trim, squash_ws

SUMMARY_FALLBACK_CHARS = 800
DESCRIPTION_FALLBACK_CHARS = 300

HEADER_SELECTORS = [
    "#main_content .listing_header",
    ".listing_header",
    ".property_header",
    ".mproperty-header",
    ".prop-summary",
    ".prop-info",
    ".property-info",
    ".property_box",
    ".detail_header",
    ".propertyDetail_top",
    ".mySliderPictures",  # gallery container often adjacent
]
GALLERY_SELECTORS = [
    '[class*="gallery"] img',
    '[class*="photo"] img',
    '[class*="image"] img',
    '[class*="slider"] img',
    ".prop-image img",
    "img[data-src]",
    "img[src]",
]
IMG_SRC_ATTRS = ("data-src", "data-original", "src")
DESCRIPTION_SELECTORS = [".description", ".prop-desc", ".property-description", '[class*="desc"]']
ADDRESS_SELECTORS = [".prop-address", ".property-address"]
AGENCY_SELECTORS = [".prop-agency", ".property-agency"]
INFO_BLOCK_SELECTORS = [".property-info", ".prop-info"]

BLOCK_TAGS = ["tr", "div", "section", "li", "dd", "dt", "article"]
AGENCY_BLOCK_TAGS = ["tr", "div", "section", "li", "article"]

ADDRESS_LABELS = lexicon_list("address_labels")
AGENCY_LABELS = lexicon_list("agency_labels")
NAV_MARKERS = lexicon_list("nav_markers")
DESCRIPTION_KEYWORDS = lexicon_list("description_keywords")
BOILERPLATE_PREFIX: str = LEXICON.get("boilerplate_prefix") or ""

def _label_re(labels: List[str]) -> re.Pattern:
    return re.compile("|".join(re.escape(x) for x in labels) or r"(?!x)x")

ADDRESS_LABEL_RE = _label_re(ADDRESS_LABELS)
AGENCY_LABEL_RE = _label_re(AGENCY_LABELS)
LICENSE_LABEL_RE = re.compile(r"License\s+Number|牌照號碼", re.I)
DESCRIPTION_KEYWORD_RE = re.compile("|".join(re.escape(x) for x in DESCRIPTION_KEYWORDS) or r"(?!x)x", re.I)
INFO_ADDRESS_RES = [
    re.compile(r"Address(?:：|:)?\s*([^|]+?)(?:\s{2,}|$)", re.I),
    re.compile(r"地址[:：]\s*([^|]+?)(?:\s{2,}|$)"),
]

# ---------------- helpers ----------------

def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return squash_ws(el.get_text(" "))

def _lines(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return el.get_text("\n", strip=True)

def _closest(el: Tag, names: List[str]) -> Optional[Tag]:
    if el.name in names:
        return el
    return el.find_parent(names)

def _strip_label(text: str, label_re: re.Pattern) -> str:
    return label_re.sub("", text, count=1).strip(" \n:：")

def _soup(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html or "", "html.parser")
    for node in soup(["script", "style", "noscript", "template"]):
        node.decompose()
    return soup

# ---------------- field extractors ----------------

def extract_summary_text(soup: BeautifulSoup, body_text: str) -> str:
    node = soup.select_one(", ".join(HEADER_SELECTORS))
    if node is not None:
        text = _text(node)
        if text:
            return text
    return body_text[:SUMMARY_FALLBACK_CHARS]

def _address_from_label(soup: BeautifulSoup) -> Optional[str]:
    for el in soup.select(", ".join(ADDRESS_SELECTORS)):
        text = _strip_label(_lines(el), ADDRESS_LABEL_RE)
        if text:
            return text

    for s in soup.find_all(string=ADDRESS_LABEL_RE):
        el = s.parent
        if not isinstance(el, Tag):
            continue
        own = _strip_label(_lines(el), ADDRESS_LABEL_RE)
        if own:
            # label inline with other fields: "Lot 3  Address: 45 Hoi Bun Road  Floor: B2"
            if "\n" not in own:
                return _address_from_info_text(el.get_text(" ")) or own
            return own
        sib = el.find_next_sibling()
        if sib is not None and sib.get_text(strip=True):
            return _lines(sib)
        block = _closest(el, BLOCK_TAGS)
        if block is not None:
            text = _strip_label(_lines(block), ADDRESS_LABEL_RE)
            if text:
                return text
    return None

def _address_from_info_text(blob: str) -> Optional[str]:
    for rx in INFO_ADDRESS_RES:
        m = rx.search(blob or "")
        if m:
            return m.group(1).strip() or None
    return None

def _address_from_info_block(soup: BeautifulSoup) -> Optional[str]:
    blob = " ".join(el.get_text(" ") for el in soup.select(", ".join(INFO_BLOCK_SELECTORS)))
    return _address_from_info_text(blob)

def extract_address(soup: BeautifulSoup, summary_text: str, body_text: str) -> Optional[str]:
    raw = _address_from_label(soup) or _address_from_info_block(soup)
    return extract_address_from_blob(raw or summary_text or body_text)

def _agency_name_from(block: Tag) -> Optional[str]:
    for el in block.select("a, strong, b"):
        t = _text(el)
        if not t:
            continue
        if BRAND and BRAND.lower() in t.lower():
            continue
        if AGENCY_LABEL_RE.search(t) or LICENSE_LABEL_RE.search(t):
            continue
        return t
    return None

def extract_agency(soup: BeautifulSoup) -> Tuple[Optional[str], Optional[str]]:
    """Return (agency_name, license_no) from the agency blocks, first hit per field."""
    anchors: List[Tag] = list(soup.select(", ".join(AGENCY_SELECTORS)))
    for s in soup.find_all(string=AGENCY_LABEL_RE):
        if isinstance(s.parent, Tag):
            anchors.append(s.parent)

    agency_name = license_no = None
    for el in anchors:
        if agency_name and license_no:
            break
        block = _closest(el, AGENCY_BLOCK_TAGS) or el
        license_no = license_no or extract_license_no(_text(block))
        agency_name = agency_name or _agency_name_from(block)
    return agency_name, license_no

def _is_description(text: str) -> bool:
    if len(text) <= 30 or not DESCRIPTION_KEYWORD_RE.search(text):
        return False
    return not any(m in text for m in NAV_MARKERS)

def extract_description(soup: BeautifulSoup, summary_text: str) -> Optional[str]:
    for el in soup.select(", ".join(DESCRIPTION_SELECTORS)):
        text = _text(el)
        if len(text) > 30:
            return text
    for el in soup.find_all("p"):
        text = _text(el)
        if _is_description(text):
            return text
    # leaf blocks only, so page wrappers do not win
    for el in soup.find_all(["div", "section"]):
        if el.find(["div", "section", "p"]) is not None:
            continue
        text = _text(el)
        if _is_description(text):
            return text

    text = summary_text or ""
    if BOILERPLATE_PREFIX:
        text = re.sub(rf"{re.escape(BOILERPLATE_PREFIX)}.*?(Carpark|車位)", r"\1", text)
    return s_trim(text[:DESCRIPTION_FALLBACK_CHARS])

def collect_photo_candidates(soup: BeautifulSoup) -> List[str]:
    out = []
    for img in soup.select(", ".join(GALLERY_SELECTORS)):
        src = next((img.get(a) for a in IMG_SRC_ATTRS if img.get(a)), None)
        if not src or is_placeholder(src):
            continue
        out.append(src)
    return out

def extract_photos(soup: BeautifulSoup) -> PhotoSet:
    cleaned = clean_photo_set(collect_photo_candidates(soup))
    if cleaned.photos:
        return cleaned
    # no recognised photo host: fall back to desktop renditions as-is
    alt = []
    for img in soup.select("img[src]"):
        u = abs_url(img.get("src"))
        if u and "desktop." in u.lower() and u not in alt:
            alt.append(u)
    return PhotoSet(photos=alt, desktop=list(alt), cover=alt[0] if alt else None)

# ---------------- main ----------------

def parse_detail(html: str, lang: str) -> DetailRecord:
    soup = _soup(html)
    body = soup.body or soup
    body_text = _text(body)

    heading = s_trim(_text(soup.select_one("h1, h2, h3")))
    summary_text = extract_summary_text(soup, body_text)
    created, updated = extract_dates(body_text)
    agency_name, license_no = extract_agency(soup)
    photos = extract_photos(soup)

    return DetailRecord(
        lang=lang,
        detail_title=heading,
        summary_text=s_trim(summary_text),
        description=extract_description(soup, summary_text),
        created_date=created,
        updated_date=updated,
        building_age=extract_building_age(body_text),
        address=extract_address(soup, summary_text, body_text),
        agency_name=agency_name,
        license_no=license_no,
        carpark_kinds=extract_carpark_kinds(body_text),
        photos=photos.photos,
        image_full=photos.image_full,
        image_thumbs=photos.image_thumbs,
        cover_image=photos.cover,
        price_obj=extract_price_detailed(summary_text) or extract_price_detailed(body_text),
        posted_ago_detail=extract_posted(summary_text) or extract_posted(body_text),
    )
