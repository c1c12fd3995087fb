from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from hys_backend.errors import InvalidInputError
from hys_backend.services.personnel_normalizer import PersonRecord

DEFAULT_GRACE_MINUTES = 20

CLOCK_FORMATS = ("%H:%M:%S", "%H:%M")
TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    *CLOCK_FORMATS,
)
CLOCK_PATTERN = re.compile(r"(\d{1,2})[:.](\d{2})")
# Minutes and seconds are always two digits; strptime alone would take "9:5".
SHORT_CLOCK_FIELD = re.compile(r":\d(?!\d)")


@dataclass(frozen=True, slots=True)
class ShiftWarning:
    tc: str
    ad: str
    soyad: str
    vardiya_baslangic: str
    giris_saati: str

    def to_dict(self) -> dict[str, str]:
        return {
            "tc": self.tc,
            "ad": self.ad,
            "soyad": self.soyad,
            "vardiya_baslangic": self.vardiya_baslangic,
            "giris_saati": self.giris_saati,
        }


def _parse_with_formats(value: str) -> tuple[datetime, bool] | None:
    if SHORT_CLOCK_FIELD.search(value):
        return None
    for time_format in TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, time_format)
        except ValueError:
            continue
        return parsed, time_format in CLOCK_FORMATS
    return None


def _match_clock(value: str) -> tuple[int, int] | None:
    match = CLOCK_PATTERN.search(value)
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if 0 <= hour < 24 and 0 <= minute < 60:
        return hour, minute
    return None


def extract_hour_minute(value: str | None) -> tuple[int, int] | None:
    normalized = (value or "").strip()
    if not normalized:
        return None
    parsed = _parse_with_formats(normalized)
    if parsed is not None:
        moment, _is_clock = parsed
        return moment.hour, moment.minute
    return _match_clock(normalized)


def parse_check_time(value: str | None, now: datetime) -> datetime:
    """Parse a caller check time; bare clock values land on ``now``'s date."""
    normalized = (value or "").strip()
    if not normalized:
        return now

    parsed = _parse_with_formats(normalized)
    if parsed is not None:
        moment, is_clock = parsed
        if is_clock:
            return now.replace(
                hour=moment.hour,
                minute=moment.minute,
                second=moment.second,
                microsecond=0,
            )
        if moment.tzinfo is None:
            return moment.replace(tzinfo=now.tzinfo)
        return moment

    clock = _match_clock(normalized)
    if clock is not None:
        return now.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)

    raise InvalidInputError("INVALID_CHECK_TIME", f"Cannot parse check time: {normalized!r}.")


def validate_grace_minutes(grace_minutes: int) -> int:
    if grace_minutes < 0:
        raise InvalidInputError("INVALID_GRACE_MINUTES", "Grace minutes must be zero or positive.")
    return grace_minutes


def parse_grace_minutes(value: str | None) -> int:
    normalized = (value or "").strip()
    if not normalized:
        return DEFAULT_GRACE_MINUTES
    try:
        grace_minutes = int(normalized)
    except ValueError as exc:
        raise InvalidInputError("INVALID_GRACE_MINUTES", "Grace minutes must be an integer.") from exc
    return validate_grace_minutes(grace_minutes)


def target_shift_start(check_at: datetime, grace_minutes: int) -> datetime:
    validate_grace_minutes(grace_minutes)
    delta = timedelta(minutes=grace_minutes)
    if check_at.tzinfo is None:
        return check_at - delta
    # Subtract on the absolute timeline so DST transitions are respected.
    return (check_at.astimezone(timezone.utc) - delta).astimezone(check_at.tzinfo)


def find_missing_checkins(
    records: Iterable[PersonRecord],
    check_at: datetime,
    grace_minutes: int,
) -> list[ShiftWarning]:
    """Records whose shift started at ``check_at - grace_minutes`` with no check-in.

    Only the time of day is compared; the shift date is ignored. Records
    whose shift start cannot be read are skipped.
    """
    target = target_shift_start(check_at, grace_minutes)
    wanted = (target.hour, target.minute)

    warnings: list[ShiftWarning] = []
    for record in records:
        shift_start = record.vardiya_baslangic.strip()
        if extract_hour_minute(shift_start) != wanted:
            continue
        check_in = record.giris_saati.strip()
        if check_in:
            continue
        warnings.append(
            ShiftWarning(
                tc=record.tc,
                ad=record.ad,
                soyad=record.soyad,
                vardiya_baslangic=shift_start,
                giris_saati=check_in,
            )
        )
    return warnings
