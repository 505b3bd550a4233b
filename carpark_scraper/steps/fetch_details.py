# steps/fetch_details.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from ..debug_dump import DebugWriter
from ..fetch import alt_detail_url
from ..merge import merge_listing
from ..parse_detail import parse_detail
from ..pool import TaskOutcome, run_with_limit
from ..schemas import DetailRecord, ListingSummary, MergedListing
from ..settings import other_lang

log = logging.getLogger(__name__)


class DetailFetchError(RuntimeError):
    """The primary-language detail page could not be fetched."""


# -------- helpers --------

def _fetch_alternate(fetcher, summary: ListingSummary, primary_lang: str, debug: DebugWriter, position: int) -> Optional[DetailRecord]:
    alt_url = alt_detail_url(summary.detail_url, primary_lang)
    if not alt_url:
        log.info(f"[detail] {summary.listing_id}: no alternate URL for {summary.detail_url}")
        return None
    alt_lang = other_lang(primary_lang)
    html = fetcher.get_html(alt_url, alt_lang)
    debug.detail_page(summary.listing_id, alt_lang, html, position)
    if not html:
        log.info(f"[detail] {summary.listing_id}: {alt_lang} page unavailable; i18n.{alt_lang} left empty")
        return None
    return parse_detail(html, alt_lang)


def build_detail_task(
    fetcher,
    summary: ListingSummary,
    primary_lang: str,
    dual_lang: bool,
    debug: DebugWriter,
    position: int,
) -> Callable[[], MergedListing]:
    """One listing: primary page (required), alternate page (optional), merge."""

    def task() -> MergedListing:
        log.debug(f"[detail] fetching {summary.listing_id} {summary.detail_url}")
        html = fetcher.get_html(summary.detail_url, primary_lang)
        debug.detail_page(summary.listing_id, primary_lang, html, position)
        if not html:
            raise DetailFetchError(f"detail fetch failed: {summary.detail_url}")
        primary = parse_detail(html, primary_lang)
        alternate = _fetch_alternate(fetcher, summary, primary_lang, debug, position) if dual_lang else None
        return merge_listing(summary, primary, alternate, primary_lang)

    return task

# -------- main --------

def fetch_and_merge_details(
    fetcher,
    summaries: Sequence[ListingSummary],
    primary_lang: str,
    dual_lang: bool = True,
    concurrency: int = 4,
    debug: Optional[DebugWriter] = None,
) -> List[TaskOutcome[MergedListing]]:
    """Outcome i belongs to summaries[i]; a failed listing carries the exception instead of a value."""
    debug = debug or DebugWriter.disabled()
    tasks = [
        build_detail_task(fetcher, s, primary_lang, dual_lang, debug, position)
        for position, s in enumerate(summaries)
    ]
    log.info(f"[detail] fetching {len(tasks)} listing(s), concurrency={concurrency}, dual_lang={dual_lang}")
    outcomes = run_with_limit(tasks, concurrency)
    for s, o in zip(summaries, outcomes):
        if not o.ok:
            log.warning(f"[detail] {s.listing_id} failed: {type(o.error).__name__}: {o.error}")
    return outcomes
