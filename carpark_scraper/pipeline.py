# carpark_scraper/pipeline.py
# Orchestrate: crawl list pages → fetch + merge details → persist (JSON, CSV) → optional images

from __future__ import annotations
import argparse
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .debug_dump import DebugWriter
from .fetch import PageFetcher
from .logging_setup import setup_logging
from .pool import count_failures
from .settings import LANGS, ScrapeOptions
from .steps.crawl_pages import crawl_list_pages
from .steps.download_images import download_images
from .steps.fetch_details import fetch_and_merge_details
from .store import ResumableStore

log = logging.getLogger(__name__)


@dataclass
class RunSummary:
    new_listings: int
    attempted: int
    failed: int
    total_records: int
    pages_fetched: int
    stop_reason: Optional[str]
    out: Path
    csv: Optional[Path] = None
    images_written: int = 0

# ---------------- core ----------------

def run(options: ScrapeOptions, fetcher=None, sleep: Callable[[float], None] = time.sleep) -> RunSummary:
    options.validate()
    store = ResumableStore(options.out, resume=options.resume)
    store.load()
    debug = DebugWriter(options.debug_html, options.debug_dir, options.debug_limit)

    own_fetcher = fetcher is None
    fetcher = fetcher or PageFetcher(lang=options.lang)
    try:
        log.info(f"[run] scraping carpark listings (primary={options.lang}, dual_lang={options.dual_lang})")
        crawl = crawl_list_pages(
            fetcher,
            options.lang,
            store.known_ids(),
            max_listings=options.max_listings,
            delay_sec=options.delay_sec,
            max_pages=options.max_pages,
            debug=debug,
            sleep=sleep,
        )
        for s in crawl.summaries:
            store.add_summary(s)

        pending = store.pending()
        outcomes = fetch_and_merge_details(
            fetcher, pending, options.lang,
            dual_lang=options.dual_lang, concurrency=options.concurrency, debug=debug,
        )
        for summary, outcome in zip(pending, outcomes):
            if outcome.ok:
                store.put_merged(outcome.value)
            else:
                store.mark_failed(summary.listing_id, str(outcome.error) or type(outcome.error).__name__)

        store.save()
        csv_path = store.write_csv(options.csv) if options.csv else None

        images = 0
        if options.download_images:
            images = download_images(fetcher, store.records(), options.images_dir, options.concurrency)
    finally:
        if own_fetcher:
            fetcher.close()

    summary = RunSummary(
        new_listings=len(crawl.summaries),
        attempted=len(pending),
        failed=count_failures(outcomes),
        total_records=len(store),
        pages_fetched=crawl.pages_fetched,
        stop_reason=crawl.stop_reason,
        out=options.out,
        csv=csv_path,
        images_written=images,
    )
    log.info(
        f"[run] done: {summary.new_listings} new, {summary.attempted - summary.failed}/{summary.attempted} detail ok, "
        f"{summary.total_records} records in {summary.out}"
    )
    return summary

# ---------------- CLI ----------------

def build_parser() -> argparse.ArgumentParser:
    d = ScrapeOptions()
    ap = argparse.ArgumentParser(prog="carpark-scraper", description="Crawl 28Hse carpark listings into a resumable JSON dataset.")
    ap.add_argument("--lang", choices=list(LANGS), default=d.lang, help="primary language")
    ap.add_argument("--dual-lang", action=argparse.BooleanOptionalAction, default=d.dual_lang,
                    help="also fetch the other language's detail page")
    ap.add_argument("--max", dest="max_listings", type=int, default=d.max_listings, help="max listings in the dataset")
    ap.add_argument("--delay", dest="delay_sec", type=float, default=d.delay_sec, help="seconds between list pages")
    ap.add_argument("--concurrency", type=int, default=d.concurrency, help="parallel detail fetches")
    ap.add_argument("--out", type=Path, default=d.out, help="JSON output path")
    ap.add_argument("--csv", type=Path, default=None, help="optional CSV projection path")
    ap.add_argument("--resume", action=argparse.BooleanOptionalAction, default=d.resume,
                    help="reuse prior output and skip listings already fetched")
    ap.add_argument("--download-images", action="store_true", help="download listing photos locally")
    ap.add_argument("--images-dir", type=Path, default=d.images_dir)
    ap.add_argument("--debug-html", action="store_true", help="dump raw list/detail HTML")
    ap.add_argument("--debug-limit", type=int, default=d.debug_limit, help="detail pages dumped per language")
    ap.add_argument("--debug-dir", type=Path, default=d.debug_dir)
    ap.add_argument("--max-pages", type=int, default=d.max_pages, help="list-page safeguard ceiling")
    ap.add_argument("--verbose", "-v", action="store_true")
    return ap


def options_from_args(args: argparse.Namespace) -> ScrapeOptions:
    return ScrapeOptions(
        lang=args.lang,
        dual_lang=args.dual_lang,
        max_listings=args.max_listings,
        delay_sec=args.delay_sec,
        concurrency=args.concurrency,
        out=args.out,
        csv=args.csv,
        resume=args.resume,
        download_images=args.download_images,
        images_dir=args.images_dir,
        debug_html=args.debug_html,
        debug_limit=args.debug_limit,
        debug_dir=args.debug_dir,
        max_pages=args.max_pages,
    )


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    setup_logging(args.verbose)
    options = options_from_args(args)
    try:
        options.validate()
    except ValueError as e:
        ap.error(str(e))
    summary = run(options)
    print(f"✅ wrote {summary.total_records} records to {summary.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
