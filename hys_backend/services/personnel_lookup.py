from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from hys_backend.services.personnel_normalizer import PersonRecord, pick_field

DEFAULT_PAGE_LIMIT = 200
MAX_PAGE_LIMIT = 2000

LOCATION_HEAD_OFFICE = "GENEL_MERKEZ"
LOCATION_STORE = "MAGAZA"
LOCATION_UNKNOWN = "BILINMIYOR"

_HEAD_OFFICE_MARKERS = ("genel", "merkez")
_STORE_MARKERS = ("magaza", "satis")
_TURKISH_FOLD = str.maketrans(
    {
        "İ": "i",
        "I": "i",
        "ı": "i",
        "ğ": "g",
        "Ğ": "g",
        "ü": "u",
        "Ü": "u",
        "ş": "s",
        "Ş": "s",
        "ö": "o",
        "Ö": "o",
        "ç": "c",
        "Ç": "c",
    }
)


@dataclass(frozen=True, slots=True)
class Page:
    page: int
    limit: int
    total: int
    items: list[PersonRecord]


def find_by_national_id(records: Iterable[PersonRecord], national_id: str) -> PersonRecord | None:
    wanted = (national_id or "").strip()
    if not wanted:
        return None
    for record in records:
        if record.tc == wanted:
            return record
    return None


def fold_turkish(value: str) -> str:
    return value.strip().translate(_TURKISH_FOLD).lower()


def search_records(records: Sequence[PersonRecord], query: str | None) -> list[PersonRecord]:
    needle = fold_turkish(query or "")
    if not needle:
        return list(records)
    matched: list[PersonRecord] = []
    for record in records:
        haystack = fold_turkish(
            " ".join((record.ad, record.soyad, record.gorev, record.unvan, record.sube, record.tc))
        )
        if needle in haystack:
            matched.append(record)
    return matched


def paginate(records: Sequence[PersonRecord], *, page: int | None = None, limit: int | None = None) -> Page:
    page_value = page if page is not None and page > 0 else 1
    limit_value = limit if limit is not None and limit > 0 else DEFAULT_PAGE_LIMIT
    limit_value = min(limit_value, MAX_PAGE_LIMIT)

    total = len(records)
    start = min((page_value - 1) * limit_value, total)
    end = min(start + limit_value, total)
    return Page(page=page_value, limit=limit_value, total=total, items=list(records[start:end]))


def classify_location(record: PersonRecord) -> str:
    """Classify a record as head office, store or unknown from its workplace names."""
    department = pick_field(record.raw, "ISYERI_TIPI", "BOLUM", "DEPARTMAN")
    haystack = fold_turkish(f"{record.sube} {department}")
    if any(marker in haystack for marker in _HEAD_OFFICE_MARKERS) or "gm" in haystack.split():
        return LOCATION_HEAD_OFFICE
    if any(marker in haystack for marker in _STORE_MARKERS):
        return LOCATION_STORE
    return LOCATION_UNKNOWN
