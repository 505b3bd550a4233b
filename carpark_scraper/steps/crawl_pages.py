# steps/crawl_pages.py
# Purpose: Sequential list-page crawl -> new ListingSummary rows.
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from ..debug_dump import DebugWriter
from ..extractors import extract_total_count
from ..parse_list import parse_listing_cards
from ..schemas import ListingSummary
from ..settings import LIST_ROOTS, PAGE_SUFFIX
from ..utils import polite_sleep

log = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100

STOP_FETCH_FAILED = "fetch_failed"
STOP_NO_CARDS = "no_cards"
STOP_MAX_REACHED = "max_reached"
STOP_TOTAL_REACHED = "total_reached"
STOP_PAGE_LIMIT = "page_limit"


@dataclass
class CrawlResult:
    summaries: List[ListingSummary] = field(default_factory=list)
    pages_fetched: int = 0
    total_count: Optional[int] = None
    stop_reason: Optional[str] = None


def list_page_url(lang: str, page: int) -> str:
    root = LIST_ROOTS[lang]
    return root if page == 1 else f"{root}{PAGE_SUFFIX}{page}"


def _cap_reached(known: Set[str], max_listings: Optional[int], total_count: Optional[int]) -> Optional[str]:
    if max_listings is not None and len(known) >= max_listings:
        return STOP_MAX_REACHED
    if total_count is not None and len(known) >= total_count:
        return STOP_TOTAL_REACHED
    return None


def crawl_list_pages(
    fetcher,
    lang: str,
    known_ids: Set[str],
    max_listings: Optional[int] = None,
    delay_sec: float = 0.0,
    max_pages: int = DEFAULT_MAX_PAGES,
    debug: Optional[DebugWriter] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlResult:
    """
    Walk list pages 1..N for `lang`, returning listings whose id is not yet in
    `known_ids` (the set is updated in place). Caps count every known id, so a
    resumed dataset already at `max_listings` adds nothing.
    """
    debug = debug or DebugWriter.disabled()
    result = CrawlResult()

    page = 1
    while True:
        url = list_page_url(lang, page)
        log.info(f"[crawl] page {page} {url}")
        html = fetcher.get_html(url, lang)
        if not html:
            result.stop_reason = STOP_FETCH_FAILED
            log.info(f"[crawl] page {page} fetch failed; end of pagination")
            break
        result.pages_fetched += 1
        debug.list_page(lang, page, html)

        if page == 1:
            result.total_count = extract_total_count(html, lang)
            log.info(f"[crawl] site reports total: {result.total_count if result.total_count is not None else 'unknown'}")

        cards = parse_listing_cards(html, lang)
        if not cards:
            result.stop_reason = STOP_NO_CARDS
            log.warning(f"[crawl] no cards parsed from non-empty page {page} ({url}); stopping")
            break

        added = 0
        for card in cards:
            # checked before each add: a seeded dataset may already sit at the cap
            result.stop_reason = _cap_reached(known_ids, max_listings, result.total_count)
            if result.stop_reason:
                break
            if card.listing_id in known_ids:
                continue
            result.summaries.append(card)
            known_ids.add(card.listing_id)
            added += 1
        log.info(f"[crawl] page {page}: {len(cards)} cards, {added} new, {len(known_ids)} known")

        result.stop_reason = result.stop_reason or _cap_reached(known_ids, max_listings, result.total_count)
        if result.stop_reason:
            break
        if page >= max_pages:
            result.stop_reason = STOP_PAGE_LIMIT
            log.warning(f"[crawl] page ceiling {max_pages} reached; stopping")
            break

        polite_sleep(delay_sec, sleep)
        page += 1

    log.info(f"[crawl] done: {len(result.summaries)} new listings over {result.pages_fetched} page(s), stop={result.stop_reason}")
    return result
