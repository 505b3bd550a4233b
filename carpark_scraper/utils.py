# utils.py
from __future__ import annotations
import json
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

# -------- JSON helpers --------

def dumps_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)

def write_json_atomic(path: Path, obj: Any) -> None:
    """Write JSON to a temp file next to `path`, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dumps_json(obj))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise

def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

# -------- text helpers --------

_WS_RE = re.compile(r"\s+")

def squash_ws(s: Optional[str]) -> str:
    return _WS_RE.sub(" ", s or "").strip()

def s_trim(x) -> Optional[str]:
    if x is None:
        return None
    t = str(x).strip()
    return t or None

def pick_nonempty(*vals):
    """Return the first non-empty (non-blank string, non-None) value."""
    for v in vals:
        if v is None:
            continue
        if isinstance(v, str):
            s = v.strip()
            if s:
                return s
        else:
            return v
    return None

def unique(seq: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for x in seq:
        if x not in seen:
            out.append(x)
            seen.add(x)
    return out

# -------- timing --------

def polite_sleep(seconds: float, sleep: Callable[[float], None] = time.sleep) -> None:
    """Fixed delay between requests; zero or negative means no wait."""
    if seconds and seconds > 0:
        sleep(seconds)
