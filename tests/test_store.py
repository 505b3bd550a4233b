import csv
import json

from carpark_scraper.schemas import ListingSummary, MergedListing
from carpark_scraper.store import CSV_FIELDS, ResumableStore


def _summary(lid, **kw):
    return ListingSummary(listing_id=lid, detail_url=f"https://www.28hse.com/en/property-{lid}", **kw)


def _merged(lid, **kw):
    return MergedListing(
        listing_id=lid,
        detail_url=f"https://www.28hse.com/en/property-{lid}",
        detail_fetched=True,
        **kw,
    )


def test_missing_file_starts_empty(tmp_path):
    store = ResumableStore(tmp_path / "out.json")
    assert store.load() == 0
    assert store.known_ids() == set()


def test_corrupt_prior_output_degrades_with_warning(tmp_path, caplog):
    path = tmp_path / "out.json"
    path.write_text("{not json", encoding="utf-8")
    store = ResumableStore(path)
    with caplog.at_level("WARNING"):
        assert store.load() == 0
    assert "starting fresh" in caplog.text

    path.write_text('{"listingId": "1"}', encoding="utf-8")
    assert ResumableStore(path).load() == 0

    path.write_bytes(b"\xff\xfe\x00garbage")
    with caplog.at_level("WARNING"):
        assert ResumableStore(path).load() == 0
    assert "UnicodeDecodeError" in caplog.text


def test_resume_disabled_ignores_existing_file(tmp_path):
    path = tmp_path / "out.json"
    path.write_text(json.dumps([{"listingId": "1", "_detailFetched": True}]), encoding="utf-8")
    store = ResumableStore(path, resume=False)
    assert store.load() == 0


def test_pending_covers_new_and_previously_failed(tmp_path):
    path = tmp_path / "out.json"
    path.write_text(json.dumps([
        {"listingId": "1", "detailUrl": "https://www.28hse.com/en/property-1", "_detailFetched": True},
        {"listingId": "2", "detailUrl": "https://www.28hse.com/en/property-2", "_detailFetched": False, "_error": "x"},
    ]), encoding="utf-8")
    store = ResumableStore(path)
    store.load()
    assert store.add_summary(_summary("3"))
    assert not store.add_summary(_summary("1"))

    assert store.is_fetched("1")
    assert not store.is_fetched("2")
    assert [s.listing_id for s in store.pending()] == ["2", "3"]


def test_mark_failed_keeps_known_fields(tmp_path):
    store = ResumableStore(tmp_path / "out.json")
    store.add_summary(_summary("7", title="Harbour", price_text="$1"))
    store.mark_failed("7", "detail fetch failed")
    rec = store.get("7")
    assert rec["title"] == "Harbour"
    assert rec["priceText"] == "$1"
    assert rec["_detailFetched"] is False
    assert rec["_error"] == "detail fetch failed"


def test_save_writes_prior_records_verbatim(tmp_path):
    path = tmp_path / "out.json"
    prior = [{"listingId": "1", "zExtra": {"kept": True}, "_detailFetched": True, "title": "渣華道"}]
    path.write_text(json.dumps(prior, indent=2, ensure_ascii=False), encoding="utf-8")
    before = path.read_bytes()

    store = ResumableStore(path)
    store.load()
    store.save()
    assert path.read_bytes() == before
    assert not list(tmp_path.glob(".out.json.*"))


def test_save_uses_json_aliases(tmp_path):
    path = tmp_path / "out.json"
    store = ResumableStore(path)
    store.put_merged(_merged("9", price_hkd=100, types=["Truck"]))
    store.save()
    (rec,) = json.loads(path.read_text(encoding="utf-8"))
    assert rec["listingId"] == "9"
    assert rec["priceHkd"] == 100
    assert rec["_detailFetched"] is True
    assert rec["i18n"] == {"en": None, "zh": None}


def test_csv_projection(tmp_path):
    store = ResumableStore(tmp_path / "out.json")
    store.put_merged(_merged("9", title='Say "hi"', types=["Residential", "Indoor"], price_hkd=925000))
    out = store.write_csv(tmp_path / "out.csv")

    raw = out.read_text(encoding="utf-8")
    assert raw.splitlines()[0] == ",".join(f'"{f}"' for f in CSV_FIELDS)

    rows = list(csv.DictReader(out.open(encoding="utf-8", newline="")))
    assert rows[0]["types"] == "Residential|Indoor"
    assert rows[0]["title"] == 'Say "hi"'
    assert rows[0]["priceHkd"] == "925000"
    assert rows[0]["district"] == ""
