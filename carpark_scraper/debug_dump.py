# carpark_scraper/debug_dump.py
# Purpose: Raw HTML snapshots for offline markup-drift diagnosis.
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)


class DebugWriter:
    """
    Writes list pages and the first `detail_limit` detail pages per language.
    Detail quota is decided by the caller-supplied position in the pending list,
    so concurrent detail tasks never share a counter.
    """

    def __init__(self, enabled: bool = False, directory: Path = Path("debug"), detail_limit: int = 3):
        self.enabled = enabled
        self.directory = Path(directory)
        self.detail_limit = detail_limit

    @classmethod
    def disabled(cls) -> "DebugWriter":
        return cls(enabled=False)

    def _write(self, name: str, content: Optional[str]) -> Optional[Path]:
        self.directory.mkdir(parents=True, exist_ok=True)
        out = self.directory / name
        out.write_text(content or "", encoding="utf-8")
        log.debug(f"[debug] wrote {out}")
        return out

    def list_page(self, lang: str, page: int, html: Optional[str]) -> Optional[Path]:
        if not self.enabled:
            return None
        return self._write(f"list-{lang}-page-{page}.html", html)

    def wants_detail(self, position: int) -> bool:
        return self.enabled and position < self.detail_limit

    def detail_page(self, listing_id: str, lang: str, html: Optional[str], position: int) -> Optional[Path]:
        if not self.wants_detail(position):
            return None
        return self._write(f"detail-{listing_id}-{lang}.html", html)
