import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

FIXTURES = Path(__file__).parent / "fixtures"

SITE_PAGES = {
    "https://www.28hse.com/en/buy/carpark": "list-en-page-1.html",
    "https://www.28hse.com/en/buy/carpark/page-2": "list-en-page-2.html",
    "https://www.28hse.com/en/property-1001": "detail-1001-en.html",
    "https://www.28hse.com/property-1001": "detail-1001-zh.html",
    "https://www.28hse.com/en/property-1002": "detail-1002-en.html",
    "https://www.28hse.com/property-1002": "detail-1002-zh.html",
}


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeFetcher:
    """Serves canned HTML by URL; unknown URLs behave like a failed fetch (None)."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, delay: float = 0.0):
        self.pages: Dict[str, str] = dict(pages or {})
        self.delay = delay
        self.calls: List[str] = []
        self.downloads: List[str] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def get_html(self, url: str, lang: Optional[str] = None) -> Optional[str]:
        with self._lock:
            self.calls.append(url)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self.pages.get(url)
        finally:
            with self._lock:
                self.active -= 1

    def download(self, url: str, dest: Path) -> bool:
        with self._lock:
            self.downloads.append(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"\xff\xd8fake")
        return True

    def close(self) -> None:
        pass

    def detail_calls(self) -> List[str]:
        return [u for u in self.calls if "/property-" in u]


@pytest.fixture
def site_pages() -> Dict[str, str]:
    return {url: read_fixture(name) for url, name in SITE_PAGES.items()}


@pytest.fixture
def fake_fetcher(site_pages) -> FakeFetcher:
    return FakeFetcher(site_pages)


@pytest.fixture
def no_sleep():
    slept: List[float] = []
    return slept.append
