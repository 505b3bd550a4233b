# steps/download_images.py
# Purpose: Optional local copy of listing photos, one subdirectory per listing.
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Sequence
from urllib.parse import urlparse

from ..pool import run_with_limit

log = logging.getLogger(__name__)

DEFAULT_EXT = ".jpg"


def image_urls(rec: Dict[str, Any]) -> List[str]:
    return list(rec.get("photos") or rec.get("imageFull") or rec.get("imageThumbs") or [])


def image_dest(images_dir: Path, listing_id: str, idx: int, url: str) -> Path:
    ext = PurePosixPath(urlparse(url).path).suffix.lower() or DEFAULT_EXT
    return Path(images_dir) / listing_id / f"{idx}{ext}"


def _download_listing(fetcher, rec: Dict[str, Any], images_dir: Path) -> int:
    # sequential within a listing; files from earlier runs are kept as-is
    lid = str(rec["listingId"])
    ok = 0
    for idx, url in enumerate(image_urls(rec)):
        dest = image_dest(images_dir, lid, idx, url)
        if dest.exists():
            log.debug(f"[images] {lid} already has {dest.name}")
            continue
        if fetcher.download(url, dest):
            ok += 1
        else:
            log.warning(f"[images] {lid} failed: {url}")
    return ok


def download_images(fetcher, records: Sequence[Dict[str, Any]], images_dir: Path, concurrency: int = 4) -> int:
    """Download missing photos of successfully fetched records; returns the number of files written."""
    targets = [r for r in records if r.get("_detailFetched") and image_urls(r)]
    log.info(f"[images] downloading photos for {len(targets)} listing(s) into {images_dir}")
    outcomes = run_with_limit([lambda r=r: _download_listing(fetcher, r, images_dir) for r in targets], concurrency)
    total = 0
    for rec, o in zip(targets, outcomes):
        if o.ok:
            total += o.value or 0
        else:
            log.warning(f"[images] {rec.get('listingId')} aborted: {type(o.error).__name__}: {o.error}")
    log.info(f"[images] wrote {total} file(s)")
    return total
