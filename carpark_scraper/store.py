# carpark_scraper/store.py
# Purpose: Keyed, resumable dataset of MergedListing dicts (JSON of record + CSV projection).
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from .schemas import ListingSummary, MergedListing
from .utils import read_json, write_json_atomic

log = logging.getLogger(__name__)

CSV_FIELDS = [
    "listingId", "title", "district", "estate", "priceText", "priceHkd", "types", "postedAgo", "detailUrl",
    "createdDate", "updatedDate", "buildingAge", "address", "agencyName", "licenseNo", "carparkKinds", "coverImage",
]


def _csv_cell(v: Any) -> str:
    if isinstance(v, list):
        v = "|".join(str(x) for x in v)
    return "" if v is None else str(v)


class ResumableStore:
    """
    listingId -> record dict, in dataset order (prior records first, then new ones).

    Records are plain dicts in their JSON (camelCase) shape so that records loaded
    from a prior run and never touched are written back exactly as read.
    """

    def __init__(self, path: Path, resume: bool = True):
        self.path = Path(path)
        self.resume = resume
        self._records: Dict[str, Dict[str, Any]] = {}

    # ---- load ----

    def load(self) -> int:
        self._records = {}
        if not self.resume or not self.path.exists():
            return 0
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as e:
            log.warning(f"[store] could not read {self.path} ({type(e).__name__}: {e}); starting fresh")
            return 0
        if not isinstance(data, list):
            log.warning(f"[store] {self.path} is not a JSON array; starting fresh")
            return 0

        for rec in data:
            lid = str(rec.get("listingId") or "").strip() if isinstance(rec, dict) else ""
            if not lid:
                log.debug(f"[store] skipping record without listingId: {rec!r:.80}")
                continue
            self._records.setdefault(lid, rec)
        log.info(f"[store] resume: loaded {len(self._records)} records from {self.path}")
        return len(self._records)

    # ---- queries ----

    def __len__(self) -> int:
        return len(self._records)

    def get(self, listing_id: str) -> Optional[Dict[str, Any]]:
        return self._records.get(listing_id)

    def records(self) -> List[Dict[str, Any]]:
        return list(self._records.values())

    def known_ids(self) -> Set[str]:
        return set(self._records)

    def is_fetched(self, listing_id: str) -> bool:
        rec = self._records.get(listing_id)
        return bool(rec and rec.get("_detailFetched") is True)

    def pending(self) -> List[ListingSummary]:
        """Summaries for every record still needing a detail fetch, in dataset order."""
        out: List[ListingSummary] = []
        for lid, rec in self._records.items():
            if self.is_fetched(lid):
                continue
            try:
                out.append(ListingSummary.model_validate(rec))
            except ValidationError as e:
                log.warning(f"[store] listing {lid} cannot be re-fetched (bad summary fields): {e.error_count()} error(s)")
        return out

    # ---- mutations ----

    def add_summary(self, summary: ListingSummary) -> bool:
        if summary.listing_id in self._records:
            return False
        rec = summary.to_json_dict()
        rec["_detailFetched"] = False
        self._records[summary.listing_id] = rec
        return True

    def put_merged(self, listing: MergedListing) -> None:
        self._records[listing.listing_id] = listing.to_json_dict()

    def mark_failed(self, listing_id: str, error: str) -> None:
        rec = self._records.setdefault(listing_id, {"listingId": listing_id})
        rec["_detailFetched"] = False
        rec["_error"] = error

    # ---- output ----

    def save(self) -> Path:
        write_json_atomic(self.path, self.records())
        log.info(f"[store] wrote {len(self._records)} records to {self.path}")
        return self.path

    def write_csv(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            w = csv.writer(f, quoting=csv.QUOTE_ALL)
            w.writerow(CSV_FIELDS)
            for rec in self._records.values():
                w.writerow([_csv_cell(rec.get(k)) for k in CSV_FIELDS])
        log.info(f"[store] wrote CSV {path}")
        return path
