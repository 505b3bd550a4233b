# carpark_scraper/schemas.py
from __future__ import annotations
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

# -----------------------------
# Shared config: snake_case attributes, camelCase JSON keys
# -----------------------------

class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _dedupe(v):
    if v is None:
        return []
    out: List[str] = []
    for x in v:
        if x and x not in out:
            out.append(x)
    return out

# -----------------------------
# Crawl phase
# -----------------------------

class ListingSummary(_Record):
    listing_id: str = Field(alias="listingId")
    title: Optional[str] = None
    district: Optional[str] = None
    estate: Optional[str] = None
    price_text: Optional[str] = Field(None, alias="priceText")
    types: List[str] = Field(default_factory=list)
    posted_ago: Optional[str] = Field(None, alias="postedAgo")
    detail_url: str = Field(alias="detailUrl")
    lang: str = "en"

    @field_validator("listing_id")
    @classmethod
    def check_numeric_id(cls, v):
        v = str(v).strip()
        if not v.isdigit():
            raise ValueError(f"listingId must be numeric, got {v!r}")
        return v

    @field_validator("types", mode="before")
    @classmethod
    def dedupe_types(cls, v):
        return _dedupe(v)

# -----------------------------
# Detail phase
# -----------------------------

class PriceInfo(_Record):
    raw: str
    hkd: int
    unit: str = "HKD"

    @field_validator("hkd")
    @classmethod
    def check_non_negative(cls, v):
        if v < 0:
            raise ValueError("hkd must be >= 0")
        return v


class DetailRecord(_Record):
    lang: str
    detail_title: Optional[str] = Field(None, alias="detailTitle")
    summary_text: Optional[str] = Field(None, alias="summaryText")
    description: Optional[str] = None
    created_date: Optional[str] = Field(None, alias="createdDate")    # YYYY-MM-DD
    updated_date: Optional[str] = Field(None, alias="updatedDate")    # YYYY-MM-DD
    building_age: Optional[int] = Field(None, alias="buildingAge")
    address: Optional[str] = None
    agency_name: Optional[str] = Field(None, alias="agencyName")
    license_no: Optional[str] = Field(None, alias="licenseNo")
    carpark_kinds: List[str] = Field(default_factory=list, alias="carparkKinds")
    photos: List[str] = Field(default_factory=list)
    image_full: List[str] = Field(default_factory=list, alias="imageFull")
    image_thumbs: List[str] = Field(default_factory=list, alias="imageThumbs")
    cover_image: Optional[str] = Field(None, alias="coverImage")
    price_obj: Optional[PriceInfo] = Field(None, alias="priceObj")
    posted_ago_detail: Optional[str] = Field(None, alias="postedAgoDetail")

    @field_validator("carpark_kinds", mode="before")
    @classmethod
    def dedupe_kinds(cls, v):
        return _dedupe(v)

# -----------------------------
# Persisted unit
# -----------------------------

class I18nBlock(_Record):
    en: Optional[DetailRecord] = None
    zh: Optional[DetailRecord] = None


class MergedListing(_Record):
    listing_id: str = Field(alias="listingId")
    title: Optional[str] = None
    district: Optional[str] = None
    estate: Optional[str] = None
    price_text: Optional[str] = Field(None, alias="priceText")
    price_hkd: Optional[int] = Field(None, alias="priceHkd")
    types: List[str] = Field(default_factory=list)
    posted_ago: Optional[str] = Field(None, alias="postedAgo")
    detail_url: str = Field(alias="detailUrl")
    lang: str = "en"

    detail_title: Optional[str] = Field(None, alias="detailTitle")
    description: Optional[str] = None
    created_date: Optional[str] = Field(None, alias="createdDate")
    updated_date: Optional[str] = Field(None, alias="updatedDate")
    building_age: Optional[int] = Field(None, alias="buildingAge")
    address: Optional[str] = None
    agency_name: Optional[str] = Field(None, alias="agencyName")
    license_no: Optional[str] = Field(None, alias="licenseNo")
    carpark_kinds: List[str] = Field(default_factory=list, alias="carparkKinds")
    photos: List[str] = Field(default_factory=list)
    image_full: List[str] = Field(default_factory=list, alias="imageFull")
    image_thumbs: List[str] = Field(default_factory=list, alias="imageThumbs")
    cover_image: Optional[str] = Field(None, alias="coverImage")

    i18n: I18nBlock = Field(default_factory=I18nBlock)
    detail_fetched: bool = Field(False, alias="_detailFetched")
    error: Optional[str] = Field(None, alias="_error")

    @field_validator("types", "carpark_kinds", mode="before")
    @classmethod
    def dedupe_tags(cls, v):
        return _dedupe(v)

# -----------------------------
# File container (RootModel)
# -----------------------------

class MergedListingsFile(RootModel[List[MergedListing]]): ...
