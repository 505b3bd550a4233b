# extractors.py
# Field extractors shared by the list-card and detail parsers.
# - Every extractor is a pure function over text and returns a value or None (never raises)
# - Bilingual patterns are ordered cascades; the first hit wins
# - Keyword / token tables come from the config lexicon (settings.LEXICON)

from __future__ import annotations
import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .schemas import PriceInfo
from .settings import lexicon_list, lexicon_table
from .utils import squash_ws, unique


# ========================= Lexicon-derived tables =========================

DISTRICTS_EN: List[str] = lexicon_list("districts_en")
DISTRICTS_ZH: List[str] = lexicon_list("districts_zh")
CARD_TYPES = lexicon_table("card_types")
DETAIL_KINDS = lexicon_table("detail_kinds")
TITLE_NOISE: List[str] = lexicon_list("title_noise")
ADDRESS_PREFIXES: List[str] = lexicon_list("address_prefixes")
ADDRESS_NOISE: List[str] = lexicon_list("address_noise")

_DISTRICT_EN_RES: List[Tuple[str, Pattern]] = [
    (d, re.compile(rf"\b{re.escape(d)}\b", re.I)) for d in DISTRICTS_EN
]

ROAD_EN_RE = re.compile(
    r"\b(?:%s)\b\.?" % "|".join(re.escape(s) for s in lexicon_list("road_suffixes_en")), re.I
)
ROAD_ZH_RE = re.compile("|".join(re.escape(s) for s in lexicon_list("road_suffixes_zh")) or r"(?!x)x")

# ========================= Regex constants =========================

PRICE_BASIC_RES = [
    re.compile(r"(?:HKD|HK\$|\$)\s*[\d,.]+(?:\s*M(?:illions?)?|Million|m)?", re.I),
    re.compile(r"[\d,.]+\s*萬"),
]

# (pattern, multiplier); group 1 is the number
PRICE_DETAILED_CASCADE: List[Tuple[Pattern, int]] = [
    (re.compile(r"(?:HKD|HK\$|\$)\s*([\d,.]+)\s*(?:M(?:illions?)?|Million|Millions)", re.I), 1_000_000),
    (re.compile(r"(?:HKD|HK\$|\$)?\s*([\d,.]+)\s*萬(?:元)?", re.I), 10_000),
    (re.compile(r"(?:HKD|HK\$|\$)\s*([\d,]+)", re.I), 1),
]

POSTED_RES = [
    re.compile(r"(\d+\s+(?:hours?|days?)\s+ago\s+posted)", re.I),
    re.compile(r"(\d+\s*(?:小時|日|天)前\s*刊登)"),
]

DATE = r"(\d{4}-\d{2}-\d{2})"
CREATED_UPDATED_RE = re.compile(rf"Created:{DATE}\s*\|\s*Updated:{DATE}", re.I)
CREATED_RES = [
    re.compile(rf"Created:\s*{DATE}", re.I),
    re.compile(rf"建立日期[:：]\s*{DATE}"),
    re.compile(rf"刊登(?:日期|:)?\s*{DATE}"),
    re.compile(rf"刊登[:：]{DATE}"),
    re.compile(rf"刊登\D*{DATE}"),
]
UPDATED_RES = [
    re.compile(rf"Updated:\s*{DATE}", re.I),
    re.compile(rf"更新日期[:：]\s*{DATE}"),
    re.compile(rf"最後更新[:：]?\s*{DATE}"),
    re.compile(rf"更新[:：]{DATE}"),
    re.compile(rf"更新\D*{DATE}"),
]

BUILDING_AGE_RES = [
    re.compile(r"Building age:\s*(\d+)\s*Year", re.I),
    re.compile(r"樓齡[:：]\s*(\d+)"),
]

LICENSE_RES = [
    re.compile(r"(?:Company\s+License\s+Number|License\s+Number)[:：]?\s*([A-Z0-9-]+)", re.I),
    re.compile(r"(?:公司牌照號碼|牌照號碼)[:：]?\s*([A-Z0-9-]+)", re.I),
    re.compile(r"\b([A-Z]-\d{5,})\b"),
]

TOTAL_COUNT_RES: Dict[str, Pattern] = {
    "en": re.compile(r"([\d,]+)\s+results of property for sale", re.I),
    "zh": re.compile(r"共有\s*([\d,]+)\s*個放售樓盤"),
}

DETAIL_TITLE_TAILS = [
    re.compile(r"\s*#\d+\s*For Sale.*$", re.I),
    re.compile(r"\s*(?:Carpark\s+)?For Sale\b.*$", re.I),
    re.compile(r"\s*Property Detail Page.*$", re.I),
    re.compile(r"\s*售盤樓盤詳細資料.*$"),
    re.compile(r"\s*買盤樓盤詳細資料.*$"),
    re.compile(r"\s*出售\s*$"),
    re.compile(r"\s*放售\s*$"),
    re.compile(r"\s*\|\s*.+$"),
]

# ========================= Cascade helper =========================

def first_group(text: Optional[str], patterns: Sequence[Pattern], group: int = 1) -> Optional[str]:
    """Run patterns in order against text; return the first captured group."""
    if not text:
        return None
    for rx in patterns:
        m = rx.search(text)
        if m:
            return (m.group(group) or "").strip() or None
    return None

# ========================= Price =========================

def extract_price_basic(text: Optional[str]) -> Optional[str]:
    """Raw price snippet as shown on a list card (no normalization)."""
    if not text:
        return None
    for rx in PRICE_BASIC_RES:
        m = rx.search(text)
        if m:
            return m.group(0).strip()
    return None

def _to_number(s: str) -> Optional[float]:
    try:
        return float(s.replace(",", ""))
    except ValueError:
        return None

def extract_price_detailed(text: Optional[str]) -> Optional[PriceInfo]:
    """
    Normalize a price to whole HKD. Forms, first match wins:
      Sell HKD$0.925 Millions -> 925000
      售 $92.5 萬元           -> 925000
      HKD$925,000            -> 925000
    """
    if not text:
        return None
    t = squash_ws(text)
    for rx, multiplier in PRICE_DETAILED_CASCADE:
        m = rx.search(t)
        if not m:
            continue
        num = _to_number(m.group(1))
        if num is None:
            continue
        return PriceInfo(raw=m.group(0).strip(), hkd=int(round(num * multiplier)), unit="HKD")
    return None

# ========================= Posted / dates / age =========================

def extract_posted(text: Optional[str]) -> Optional[str]:
    return first_group(text, POSTED_RES)

def extract_dates(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (created, updated) as YYYY-MM-DD strings."""
    if not text:
        return None, None
    m = CREATED_UPDATED_RE.search(text)
    if m:
        return m.group(1), m.group(2)
    return first_group(text, CREATED_RES), first_group(text, UPDATED_RES)

def extract_building_age(text: Optional[str]) -> Optional[int]:
    v = first_group(text, BUILDING_AGE_RES)
    return int(v) if v else None

# ========================= Category tags =========================

def match_keyword_table(text: Optional[str], table: Dict[str, Dict[str, List[str]]]) -> List[str]:
    """EN keywords match case-insensitively as substrings; ZH keywords as exact substrings."""
    if not text:
        return []
    low = text.lower()
    out = []
    for tag, words in table.items():
        if any(w.lower() in low for w in words.get("en", [])) or any(w in text for w in words.get("zh", [])):
            out.append(tag)
    return unique(out)

def extract_types(text: Optional[str]) -> List[str]:
    return match_keyword_table(text, CARD_TYPES)

def extract_carpark_kinds(text: Optional[str]) -> List[str]:
    return match_keyword_table(text, DETAIL_KINDS)

# ========================= District / estate =========================

def extract_district_fallback(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for name, rx in _DISTRICT_EN_RES:
        if rx.search(text):
            return name
    for name in DISTRICTS_ZH:
        if name in text:
            return name
    return None

_ESTATE_AFTER_RE = re.compile(r"^\s*[,:\-]\s*([^|]+)")

def estate_after_district(text: Optional[str], district: Optional[str]) -> Optional[str]:
    """Text right after the last occurrence of the district token, when introduced by , : or -."""
    if not text or not district or district not in text:
        return None
    rest = text.split(district)[-1]
    m = _ESTATE_AFTER_RE.match(rest)
    return m.group(1).strip() or None if m else None

# ========================= Titles =========================

_LEADING_ORDINAL_RE = re.compile(r"^\s*\d+\s+")

def clean_title(t: Optional[str]) -> Optional[str]:
    if not t:
        return None
    t = _LEADING_ORDINAL_RE.sub("", t)
    for word in TITLE_NOISE:
        t = re.sub(rf"\b{re.escape(word)}\b", "", t, flags=re.I)
    t = squash_ws(t)
    return t or None

def clean_detail_title(t: Optional[str]) -> Optional[str]:
    if not t:
        return None
    out = t
    for rx in DETAIL_TITLE_TAILS:
        out = rx.sub("", out)
    out = squash_ws(out)
    return out or t.strip() or None

# ========================= Address =========================

def _strip_address_prefixes(line: str) -> str:
    for prefix in ADDRESS_PREFIXES:
        if line.lower().startswith(prefix.lower()):
            line = line[len(prefix):].lstrip()
    for noise in ADDRESS_NOISE:
        line = line.replace(noise, "")
    return line.strip()

def extract_address_from_blob(blob: Optional[str]) -> Optional[str]:
    """
    Pick the address line out of a multi-line blob: the last line carrying a road
    suffix (Road/St/…, 道/街/…) wins; otherwise the first line longer than 6 chars.
    """
    if not blob:
        return None
    lines = [ln.strip() for ln in re.split(r"\n+", blob) if ln.strip()]
    cand = None
    for line in reversed(lines):
        if ROAD_EN_RE.search(line) or ROAD_ZH_RE.search(line):
            cand = line
            break
    if not cand:
        cand = next((ln for ln in lines if len(ln) > 6), None)
    if not cand:
        return None
    return _strip_address_prefixes(cand) or None

# ========================= Agency / license =========================

def extract_license_no(text: Optional[str]) -> Optional[str]:
    return first_group(text, LICENSE_RES)

# ========================= Site total =========================

def extract_total_count(html: Optional[str], lang: str) -> Optional[int]:
    if not html:
        return None
    rx = TOTAL_COUNT_RES.get(lang)
    m = rx.search(html) if rx else None
    if not m:
        return None
    try:
        return int(m.group(1).replace(",", ""))
    except ValueError:
        return None

def join_texts(parts: Iterable[Optional[str]]) -> str:
    return " ".join(p for p in parts if p)
