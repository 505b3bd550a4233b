# carpark_scraper/merge.py
# Purpose: Combine crawl summary + per-language detail records into one MergedListing.

from __future__ import annotations
import re
from typing import Optional, Tuple

from .extractors import (
    DISTRICTS_EN,
    DISTRICTS_ZH,
    clean_detail_title,
    extract_district_fallback,
    extract_types,
    join_texts,
)
from .photos import clean_photo_set
from .schemas import DetailRecord, I18nBlock, ListingSummary, MergedListing
from .settings import other_lang
from .utils import pick_nonempty, unique


def _district_alternation(tokens) -> str:
    # longest first so "Kowloon Bay" wins over "Kowloon"
    return "|".join(re.escape(t) for t in sorted(set(tokens), key=len, reverse=True))


# "Kowloon Cheung Sha Wan …" / "九龍 長沙灣 …"; group 1 must be a known district token
SUMMARY_DISTRICT_RES = [
    re.compile(r"\b(%s)\s+([A-Z][A-Za-z'().\s-]{2,})" % _district_alternation(DISTRICTS_EN + ["Hong Kong"])),
    re.compile(r"(%s)\s+([一-龥A-Za-z0-9\s]{2,})" % _district_alternation(DISTRICTS_ZH + ["香港"])),
]
TITLE_HEAD_RE = re.compile(r"^[^#|｜]+")


def _district_in_title(title: str) -> Optional[str]:
    for d in DISTRICTS_EN:
        if re.search(rf"\b{re.escape(d)}\b", title, re.I):
            return d
    for d in DISTRICTS_ZH:
        if d in title:
            return d
    return None


def derive_district_estate(en: Optional[DetailRecord], zh: Optional[DetailRecord]) -> Tuple[Optional[str], Optional[str]]:
    """
    Fallback district/estate when the list card had none. Tried in order:
    summary "District Estate" patterns, title district tokens (estate = the title
    head before '#', minus the district), description district tokens.
    """
    records = [r for r in (en, zh) if r is not None]
    district = estate = None

    for rec in records:
        txt = rec.summary_text
        if not txt:
            continue
        for rx in SUMMARY_DISTRICT_RES:
            m = rx.search(txt)
            if m:
                district = district or m.group(1).strip()
                estate = estate or m.group(2).strip()

    for rec in records:
        title = rec.detail_title
        if not title:
            continue
        if not district:
            district = _district_in_title(title)
        if not estate:
            tt = title.replace(district, "", 1) if district else title
            m = TITLE_HEAD_RE.search(tt)
            if m:
                estate = clean_detail_title(m.group(0))

    if not district:
        district = extract_district_fallback(join_texts(r.description for r in records))

    estate = clean_detail_title(estate) if estate else None
    return district or None, estate or None


def merge_listing(
    summary: ListingSummary,
    primary: Optional[DetailRecord],
    alternate: Optional[DetailRecord],
    primary_lang: str,
) -> MergedListing:
    by_lang = {primary_lang: primary, other_lang(primary_lang): alternate}
    en, zh = by_lang.get("en"), by_lang.get("zh")
    details = [d for d in (primary, alternate) if d is not None]

    def first(attr: str):
        return pick_nonempty(*(getattr(d, attr) for d in details))

    d_district, d_estate = derive_district_estate(en, zh)

    carpark_kinds = unique(k for d in details for k in d.carpark_kinds)
    rescan = extract_types(join_texts(
        [d.description for d in details] + [d.summary_text for d in details]
    ))
    types = unique(list(summary.types) + carpark_kinds + rescan)

    price_obj = first("price_obj")
    price_text = (price_obj.raw if price_obj else None) or summary.price_text

    merged_photos = clean_photo_set(p for d in details for p in d.photos)
    photos = merged_photos.photos
    if not photos:
        # desktop-only fallback sets do not survive the host filter
        photos = unique(p for d in details for p in d.photos)
    cover = photos[0] if photos else first("cover_image")
    if cover and cover not in photos:
        photos = [cover] + photos

    title = pick_nonempty(
        clean_detail_title(first("detail_title")),
        summary.title,
        d_estate,
        f"Carpark #{summary.listing_id}",
    )

    return MergedListing(
        listing_id=summary.listing_id,
        title=title,
        district=summary.district or d_district,
        estate=summary.estate or d_estate,
        price_text=price_text,
        price_hkd=price_obj.hkd if price_obj else None,
        types=types,
        posted_ago=first("posted_ago_detail") or summary.posted_ago,
        detail_url=summary.detail_url,
        lang=summary.lang,
        detail_title=first("detail_title") or summary.title,
        description=first("description"),
        created_date=first("created_date"),
        updated_date=first("updated_date"),
        building_age=first("building_age"),
        address=first("address"),
        agency_name=first("agency_name"),
        license_no=first("license_no"),
        carpark_kinds=carpark_kinds,
        photos=photos,
        image_full=merged_photos.large or photos,
        image_thumbs=merged_photos.thumb or photos,
        cover_image=cover,
        i18n=I18nBlock(en=en, zh=zh),
        detail_fetched=True,
        error=None,
    )
