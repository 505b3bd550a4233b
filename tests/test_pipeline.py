import json

import pytest

from carpark_scraper import pipeline
from carpark_scraper.schemas import MergedListingsFile
from carpark_scraper.settings import ScrapeOptions

from conftest import FakeFetcher


def _options(tmp_path, **kw):
    base = dict(out=tmp_path / "carparks.json", max_listings=10, delay_sec=0, concurrency=2)
    base.update(kw)
    return ScrapeOptions(**base)


def _load(path):
    return {r["listingId"]: r for r in json.loads(path.read_text(encoding="utf-8"))}


def test_end_to_end_two_listings(tmp_path, fake_fetcher, no_sleep):
    summary = pipeline.run(_options(tmp_path, csv=tmp_path / "carparks.csv"), fetcher=fake_fetcher, sleep=no_sleep)

    assert summary.new_listings == 2
    assert summary.failed == 0
    assert summary.stop_reason == "no_cards"

    data = json.loads((tmp_path / "carparks.json").read_text(encoding="utf-8"))
    MergedListingsFile.model_validate(data)
    assert [r["listingId"] for r in data] == ["1001", "1002"]
    for rec in data:
        assert rec["_detailFetched"] is True
        assert rec["coverImage"]
        assert rec["coverImage"] in rec["photos"]
        assert len(rec["photos"]) == len(set(rec["photos"]))
        assert rec["i18n"]["en"]["lang"] == "en"
        assert rec["i18n"]["zh"]["lang"] == "zh"
        assert rec["priceHkd"] == 925000

    by_id = {r["listingId"]: r for r in data}
    assert by_id["1002"]["photos"] == [
        "https://img.28hse.com/2024/06/1002_desktop.jpg",
        "https://img.28hse.com/2024/06/1002_interior.jpg",
    ]
    assert by_id["1002"]["types"] == ["Commercial"]
    assert (tmp_path / "carparks.csv").exists()


def test_resume_rerun_is_byte_identical_and_fetches_no_details(tmp_path, site_pages, no_sleep):
    first = FakeFetcher(site_pages)
    pipeline.run(_options(tmp_path), fetcher=first, sleep=no_sleep)
    before = (tmp_path / "carparks.json").read_bytes()

    second = FakeFetcher(site_pages)
    summary = pipeline.run(_options(tmp_path), fetcher=second, sleep=no_sleep)
    assert summary.new_listings == 0
    assert summary.attempted == 0
    assert second.detail_calls() == []
    assert (tmp_path / "carparks.json").read_bytes() == before


def test_max_caps_output(tmp_path, fake_fetcher, no_sleep):
    pipeline.run(_options(tmp_path, max_listings=1), fetcher=fake_fetcher, sleep=no_sleep)
    assert list(_load(tmp_path / "carparks.json")) == ["1001"]


def test_failed_listing_is_flagged_and_others_untouched(tmp_path, site_pages, no_sleep):
    pipeline.run(_options(tmp_path, max_listings=1), fetcher=FakeFetcher(site_pages), sleep=no_sleep)
    good_before = _load(tmp_path / "carparks.json")["1001"]

    broken = dict(site_pages)
    del broken["https://www.28hse.com/en/property-1002"]
    summary = pipeline.run(_options(tmp_path), fetcher=FakeFetcher(broken), sleep=no_sleep)
    assert summary.failed == 1

    data = _load(tmp_path / "carparks.json")
    assert data["1001"] == good_before
    failed = data["1002"]
    assert failed["_detailFetched"] is False
    assert "property-1002" in failed["_error"]
    assert failed["district"] == "Tsuen Wan"
    assert failed["priceText"] == "$925,000"


def test_failed_listing_is_retried_on_resume(tmp_path, site_pages, no_sleep):
    broken = dict(site_pages)
    del broken["https://www.28hse.com/en/property-1002"]
    pipeline.run(_options(tmp_path), fetcher=FakeFetcher(broken), sleep=no_sleep)

    again = FakeFetcher(site_pages)
    pipeline.run(_options(tmp_path), fetcher=again, sleep=no_sleep)
    assert again.detail_calls() == [
        "https://www.28hse.com/en/property-1002",
        "https://www.28hse.com/property-1002",
    ]
    rec = _load(tmp_path / "carparks.json")["1002"]
    assert rec["_detailFetched"] is True
    assert rec["_error"] is None


def test_missing_alternate_page_only_empties_that_language(tmp_path, site_pages, no_sleep):
    pages = dict(site_pages)
    del pages["https://www.28hse.com/property-1001"]
    pipeline.run(_options(tmp_path), fetcher=FakeFetcher(pages), sleep=no_sleep)

    rec = _load(tmp_path / "carparks.json")["1001"]
    assert rec["_detailFetched"] is True
    assert rec["i18n"]["zh"] is None
    assert rec["i18n"]["en"]["detailTitle"]


def test_single_language_run_skips_alternate(tmp_path, fake_fetcher, no_sleep):
    pipeline.run(_options(tmp_path, dual_lang=False), fetcher=fake_fetcher, sleep=no_sleep)
    assert all("/en/" in u for u in fake_fetcher.detail_calls())
    assert _load(tmp_path / "carparks.json")["1001"]["i18n"]["zh"] is None


def test_detail_concurrency_never_exceeds_limit(tmp_path, no_sleep):
    pages = {"https://www.28hse.com/en/buy/carpark": "<html><body>"
             + "".join(f'<div class="property_box" data-id="{i}"><a href="/en/property-{i}">L{i}</a></div>' for i in range(1, 11))
             + "</body></html>"}
    fetcher = FakeFetcher(pages, delay=0.02)
    summary = pipeline.run(_options(tmp_path, concurrency=3, dual_lang=False), fetcher=fetcher, sleep=no_sleep)
    assert summary.attempted == 10
    assert summary.failed == 10
    assert 1 <= fetcher.max_active <= 3


def test_debug_dumps_respect_per_language_limit(tmp_path, fake_fetcher, no_sleep):
    debug_dir = tmp_path / "debug"
    pipeline.run(
        _options(tmp_path, debug_html=True, debug_limit=1, debug_dir=debug_dir),
        fetcher=fake_fetcher, sleep=no_sleep,
    )
    assert sorted(p.name for p in debug_dir.iterdir()) == [
        "detail-1001-en.html",
        "detail-1001-zh.html",
        "list-en-page-1.html",
        "list-en-page-2.html",
    ]


def test_images_downloaded_per_listing(tmp_path, fake_fetcher, no_sleep):
    images = tmp_path / "imgs"
    summary = pipeline.run(
        _options(tmp_path, download_images=True, images_dir=images),
        fetcher=fake_fetcher, sleep=no_sleep,
    )
    assert summary.images_written == 5
    assert (images / "1001" / "0.jpg").exists()
    assert sorted(p.name for p in (images / "1002").iterdir()) == ["0.jpg", "1.jpg"]


def test_resumed_run_does_not_download_images_again(tmp_path, site_pages, no_sleep):
    images = tmp_path / "imgs"
    opts = _options(tmp_path, download_images=True, images_dir=images)
    pipeline.run(opts, fetcher=FakeFetcher(site_pages), sleep=no_sleep)

    (images / "1002" / "1.jpg").unlink()
    again = FakeFetcher(site_pages)
    summary = pipeline.run(opts, fetcher=again, sleep=no_sleep)

    assert again.detail_calls() == []
    assert again.downloads == ["https://img.28hse.com/2024/06/1002_interior.jpg"]
    assert summary.images_written == 1


def test_invalid_options_fail_before_network(tmp_path, fake_fetcher):
    with pytest.raises(ValueError):
        pipeline.run(_options(tmp_path, concurrency=0), fetcher=fake_fetcher)
    assert fake_fetcher.calls == []


def test_cli_flags_build_options(tmp_path):
    args = pipeline.build_parser().parse_args([
        "--lang", "zh", "--no-dual-lang", "--max", "5", "--delay", "0",
        "--out", str(tmp_path / "o.json"), "--no-resume", "--debug-html", "--max-pages", "7",
    ])
    opts = pipeline.options_from_args(args)
    assert opts.lang == "zh"
    assert opts.dual_lang is False
    assert opts.max_listings == 5
    assert opts.resume is False
    assert opts.debug_html is True
    assert opts.max_pages == 7
    assert opts.concurrency == 4


def test_cli_rejects_bad_concurrency(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline, "setup_logging", lambda verbose=False: 20)
    with pytest.raises(SystemExit):
        pipeline.main(["--concurrency", "0", "--out", str(tmp_path / "o.json")])
