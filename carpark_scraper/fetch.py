# carpark_scraper/fetch.py
# Purpose: HTTP boundary: fetch list/detail HTML and image bytes; derive alternate-language URLs.
from __future__ import annotations
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse, urlunparse

import requests

from .settings import REQUEST_TIMEOUT_SEC, default_headers

log = logging.getLogger(__name__)

# ============================ alternate language ============================

_EN_PREFIX_RE = re.compile(r"^/en(?=/)")

def alt_detail_url(detail_url: str, primary_lang: str) -> Optional[str]:
    """
    Detail URL of the same listing in the other language.
      EN: https://www.28hse.com/en/property-123456
      ZH: https://www.28hse.com/property-123456
    """
    try:
        u = urlparse(detail_url)
    except ValueError:
        return None
    if not u.scheme or not u.netloc:
        return None
    path = u.path or "/"
    if primary_lang == "en":
        path = _EN_PREFIX_RE.sub("", path, count=1)
    elif not _EN_PREFIX_RE.match(path):
        path = "/en" + (path if path.startswith("/") else "/" + path)
    return urlunparse(u._replace(path=path))

# ============================ fetcher ============================

class PageFetcher:
    """
    Thin requests.Session wrapper. Every failure (network error or non-200)
    is logged and turned into None; nothing here raises or retries.

    Each thread gets its own Session (detail workers run in a pool); an
    injected ``session`` is shared by all threads instead.
    """

    def __init__(self, lang: str = "en", timeout: float = REQUEST_TIMEOUT_SEC, session: Optional[requests.Session] = None):
        self.lang = lang
        self.timeout = timeout
        self._shared = session
        if session is not None:
            session.headers.update(default_headers(lang))
        self._local = threading.local()
        self._lock = threading.Lock()
        self._sessions: List[requests.Session] = []

    @property
    def session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        s = getattr(self._local, "session", None)
        if s is None:
            s = requests.Session()
            s.headers.update(default_headers(self.lang))
            self._local.session = s
            with self._lock:
                self._sessions.append(s)
        return s

    def _headers_for(self, lang: Optional[str]) -> Dict[str, str]:
        if not lang or lang == self.lang:
            return {}
        return {"Accept-Language": default_headers(lang)["Accept-Language"]}

    def get_html(self, url: str, lang: Optional[str] = None) -> Optional[str]:
        try:
            r = self.session.get(url, headers=self._headers_for(lang), timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            log.warning(f"[fetch] ERROR {url} :: {type(e).__name__}: {e}")
            return None
        if r.status_code != 200:
            log.warning(f"[fetch] {r.status_code} {url}")
            return None
        if not r.encoding or r.encoding.lower() == "iso-8859-1":
            r.encoding = r.apparent_encoding or "utf-8"
        return r.text

    def download(self, url: str, dest: Path) -> bool:
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning(f"[fetch] image ERROR {url} :: {type(e).__name__}: {e}")
            return False
        if r.status_code != 200:
            log.warning(f"[fetch] image {r.status_code} {url}")
            return False
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(r.content)
        return True

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            return
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for s in sessions:
            s.close()
