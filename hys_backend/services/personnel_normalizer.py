from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from hys_backend.errors import EnibraShapeError

BODY_PREVIEW_CHARS = 500

# Upstream key spellings per output field, highest priority first. Lookups
# fall back to a trimmed, case-insensitive match of the same spellings.
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "tc": ("TC_KIMLIK_NO", "TC", "TCKN", "TC_NO", "TCKIMLIK", "tc_kimlik_no", "tc", "tckn", "tc_no", "tckimlik"),
    "ad": ("ADI", "AD", "ISIM", "ad", "adi"),
    "soyad": ("SOYADI", "SOYAD", "soyad", "soyadi"),
    "unvan": ("UNVAN", "UNVANI", "unvan"),
    "gorev": ("GOREV", "GOREVI", "GOREV_ADI", "gorev"),
    "sube": ("SUBE", "GOREV_YERI", "ISYERI", "ISYERI_ADI", "sube"),
    "telefon": ("TELEFON", "CEP_TEL", "CEP_TELEFONU", "GSM", "telefon"),
    "insan_id": ("INSAN_ID", "INSANID", "ID", "insan_id"),
    "vardiya_baslangic": ("VARDIYA_BASLANGIC", "VARDIYA_BASLAMA", "VARDIYA_BAS", "vardiya_baslangic"),
    "giris_saati": ("GIRIS_SAATI", "GIRIS", "giris_saati"),
}

PERSON_FIELDS: tuple[str, ...] = tuple(FIELD_KEYS)


@dataclass(frozen=True, slots=True)
class PersonRecord:
    tc: str = ""
    ad: str = ""
    soyad: str = ""
    unvan: str = ""
    gorev: str = ""
    sube: str = ""
    telefon: str = ""
    insan_id: str = ""
    vardiya_baslangic: str = ""
    giris_saati: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in PERSON_FIELDS}


def stringify_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        # repr() is the shortest round-trip form; Decimal drops the exponent.
        return format(Decimal(repr(value)), "f")
    rendered = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return rendered.replace("\r", "").replace("\n", "").strip()


def _fold_key(key: Any) -> str:
    return str(key).strip().casefold()


def _fold_keys(row: Mapping[str, Any]) -> dict[str, Any]:
    folded: dict[str, Any] = {}
    for key, value in row.items():
        if value is None:
            continue
        folded.setdefault(_fold_key(key), value)
    return folded


def _pick(row: Mapping[str, Any], folded: Mapping[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = row.get(key)
        if value is None:
            value = folded.get(_fold_key(key))
        if value is not None:
            return stringify_value(value)
    return ""


def pick_field(row: Mapping[str, Any], *keys: str) -> str:
    return _pick(row, _fold_keys(row), keys)


def project_record(row: Mapping[str, Any]) -> PersonRecord:
    folded = _fold_keys(row)
    values = {name: _pick(row, folded, keys) for name, keys in FIELD_KEYS.items()}
    return PersonRecord(**values, raw=MappingProxyType(dict(row)))


def _sonuc_mesaji_list(payload: Any) -> list[Any] | None:
    if isinstance(payload, dict) and isinstance(payload.get("SONUC_MESAJI"), list):
        return payload["SONUC_MESAJI"]
    return None


def _bare_list(payload: Any) -> list[Any] | None:
    if isinstance(payload, list):
        return payload
    return None


def _items_list(payload: Any) -> list[Any] | None:
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        return payload["items"]
    return None


def _message_with_data(payload: Any) -> list[Any] | None:
    if not isinstance(payload, dict) or "SONUC_MESAJI" not in payload:
        return None
    if isinstance(payload["SONUC_MESAJI"], (list, dict)):
        return None
    if isinstance(payload.get("DATA"), list):
        return payload["DATA"]
    return None


SHAPES: tuple[tuple[str, Callable[[Any], list[Any] | None]], ...] = (
    ("sonuc_mesaji_list", _sonuc_mesaji_list),
    ("bare_list", _bare_list),
    ("items_list", _items_list),
    ("message_with_data", _message_with_data),
)


def body_preview(body: bytes | str) -> str:
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    return text.strip()[:BODY_PREVIEW_CHARS]


def upstream_message(payload: Any) -> str | None:
    """Return the scalar SONUC_KODU/SONUC_MESAJI pair of an envelope, if any."""
    if not isinstance(payload, dict):
        return None
    message = payload.get("SONUC_MESAJI")
    if message is None or isinstance(message, (list, dict)):
        return None
    code = payload.get("SONUC_KODU")
    if code is None:
        return stringify_value(message)
    return f"{stringify_value(code)}: {stringify_value(message)}"


def decode_payload(body: bytes | str) -> Any:
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EnibraShapeError(
            "invalid_json",
            f"Upstream body is not valid JSON: {exc}",
            body_preview=body_preview(body),
        ) from exc


def detect_shape(payload: Any) -> tuple[str, list[Any]] | None:
    for name, extract in SHAPES:
        rows = extract(payload)
        if rows is not None:
            return name, rows
    return None


def normalize_personnel(body: bytes | str) -> list[PersonRecord]:
    """Parse an upstream PersonelListesi body into ordered person records.

    Raises EnibraShapeError when the body is not JSON, matches none of the
    known envelopes, or yields no record.
    """
    payload = decode_payload(body)
    detected = detect_shape(payload)
    if detected is None:
        detail = "Upstream JSON matched no known personnel list shape."
        message = upstream_message(payload)
        if message:
            detail = f"{detail} Upstream message: {message}"
        raise EnibraShapeError("unrecognized_shape", detail, body_preview=body_preview(body))

    shape, rows = detected
    records = [project_record(row) for row in rows if isinstance(row, Mapping)]
    if not records:
        raise EnibraShapeError(
            "empty_result",
            f"Upstream personnel list is empty (shape={shape}).",
            body_preview=body_preview(body),
        )
    return records
