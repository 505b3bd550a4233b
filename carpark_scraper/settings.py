# carpark_scraper/settings.py
# Purpose: Centralized settings & helpers (load config, lexicon tables, headers, run options).

from __future__ import annotations
import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv

load_dotenv()

# ---------- config loading ----------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = Path(os.getenv("CARPARKS_CONFIG") or PROJECT_ROOT / "config" / "carparks_config.json")

LANGS = ("en", "zh")

def load_config(path: Path = CONFIG_PATH) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found at {path}")
    return json.loads(path.read_text(encoding="utf-8"))

CFG = load_config()

# ---------- runtime knobs ----------
RUN: Dict[str, Any] = CFG.get("run", {})
REQUEST_TIMEOUT_SEC: float = float(os.getenv("CARPARKS_REQUEST_TIMEOUT") or RUN.get("request_timeout_sec", 30))
USER_AGENT: str = os.getenv("CARPARKS_USER_AGENT") or RUN.get("user_agent", "Mozilla/5.0")

# ---------- site ----------
SITE: Dict[str, Any] = CFG["site"]
BASE_URL: str = SITE["base_url"]
BRAND: str = SITE.get("brand", "")
LIST_ROOTS: Dict[str, str] = SITE["list_roots"]
PAGE_SUFFIX: str = SITE.get("page_suffix", "/page-")
DETAIL_ID_PATTERN: str = SITE.get("detail_id_pattern", r"property-(\d+)")

# ---------- photo filters ----------
PHOTOS: Dict[str, Any] = CFG.get("photos", {})

# ---------- bilingual lexicon ----------
LEXICON: Dict[str, Any] = CFG.get("lexicon", {})

def lexicon_list(key: str) -> List[str]:
    return list(LEXICON.get(key) or [])

def lexicon_table(key: str) -> Dict[str, Dict[str, List[str]]]:
    """Return a keyword table: tag -> {"en": [...], "zh": [...]}."""
    return dict(LEXICON.get(key) or {})

# ---------- HTTP headers ----------
def default_headers(lang: str = "en") -> Dict[str, str]:
    accept_language = SITE.get("accept_language", {})
    return {
        "User-Agent": USER_AGENT,
        "Accept-Language": accept_language.get(lang, "en-US,en;q=0.9"),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
    }

def other_lang(lang: str) -> str:
    return "zh" if lang == "en" else "en"

# ---------- run options ----------
@dataclass
class ScrapeOptions:
    """Process-level flags for one pipeline run."""
    lang: str = "en"
    dual_lang: bool = True
    max_listings: Optional[int] = None
    delay_sec: float = float(RUN.get("delay_sec", 0.75))
    concurrency: int = int(RUN.get("concurrency", 4))
    out: Path = Path(RUN.get("out", "28hse-carparks.json"))
    csv: Optional[Path] = None
    resume: bool = True
    download_images: bool = False
    images_dir: Path = Path(RUN.get("images_dir", "28hse-carpark-images"))
    debug_html: bool = False
    debug_limit: int = int(RUN.get("debug_limit", 3))
    debug_dir: Path = Path(RUN.get("debug_dir", "debug"))
    max_pages: int = int(RUN.get("max_pages", 100))

    def validate(self) -> None:
        if self.lang not in LANGS:
            raise ValueError(f"lang must be one of {LANGS}, got {self.lang!r}")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.max_listings is not None and self.max_listings < 1:
            raise ValueError("max_listings must be >= 1 when set")
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if self.delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")
