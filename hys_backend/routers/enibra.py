from __future__ import annotations

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response

from hys_backend.dependencies import get_enibra_client
from hys_backend.errors import ApiError, EnibraHtmlResponseError, EnibraShapeError, InvalidInputError
from hys_backend.schemas import (
    PersonDetailResponse,
    PersonListAllResponse,
    PersonListPageResponse,
    PersonRead,
    ShiftWarningRead,
    ShiftWarningsResponse,
)
from hys_backend.services.enibra_client import EnibraClient, require_json_payload
from hys_backend.services.personnel_lookup import (
    classify_location,
    find_by_national_id,
    paginate,
    search_records,
)
from hys_backend.services.personnel_normalizer import PersonRecord, normalize_personnel
from hys_backend.services.shift_gaps import (
    find_missing_checkins,
    parse_check_time,
    parse_grace_minutes,
    target_shift_start,
)
from hys_backend.settings import get_local_timezone, is_production

router = APIRouter(prefix="/api/enibra", tags=["enibra"])
logger = logging.getLogger("hys_backend.enibra")


def _deadline(client: EnibraClient) -> float:
    return time.monotonic() + client.config.timeout_seconds


def _query_params(request: Request) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)
    return params


def _require_tc(tc: str | None) -> str:
    national_id = (tc or "").strip()
    if not national_id:
        raise InvalidInputError("MISSING_TC", "Query parameter 'tc' is required.")
    return national_id


def _positive_int(raw: str | None) -> int | None:
    try:
        value = int((raw or "").strip())
    except ValueError:
        return None
    return value if value > 0 else None


def _load_records(client: EnibraClient) -> list[PersonRecord]:
    response = require_json_payload(client.fetch_personnel(deadline=_deadline(client)))
    try:
        return normalize_personnel(response.body)
    except EnibraShapeError as exc:
        logger.warning(
            "enibra_shape_error",
            extra={
                "kind": exc.kind,
                "upstream_status": response.status_code,
                "from_cache": response.from_cache,
                "body_preview": exc.body_preview,
            },
        )
        if not is_production():
            exc.details["body_preview"] = exc.body_preview
        raise


@router.get("/personeller")
def proxy_personnel_list(
    request: Request,
    client: EnibraClient = Depends(get_enibra_client),
) -> Response:
    response = client.fetch_personnel(_query_params(request), deadline=_deadline(client))
    if response.is_html:
        raise EnibraHtmlResponseError(response.status_code)
    request.state.flags = {"upstream_status": response.status_code, "from_cache": response.from_cache}
    return Response(
        content=response.body,
        status_code=response.status_code,
        media_type=response.content_type,
    )


@router.get("/liste", response_model=None)
def list_personnel(
    q: str | None = Query(default=None),
    all_items: str | None = Query(default=None, alias="all"),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    client: EnibraClient = Depends(get_enibra_client),
) -> PersonListPageResponse | PersonListAllResponse:
    filtered = search_records(_load_records(client), q)
    if (all_items or "").strip() == "1":
        return PersonListAllResponse(
            items=[PersonRead.model_validate(record) for record in filtered],
            total=len(filtered),
        )

    result = paginate(filtered, page=_positive_int(page), limit=_positive_int(limit))
    return PersonListPageResponse(
        page=result.page,
        limit=result.limit,
        total=result.total,
        items=[PersonRead.model_validate(record) for record in result.items],
    )


@router.get("/detay", response_model=PersonDetailResponse)
def personnel_detail(
    tc: str | None = Query(default=None),
    client: EnibraClient = Depends(get_enibra_client),
) -> PersonDetailResponse:
    national_id = _require_tc(tc)
    record = find_by_national_id(_load_records(client), national_id)
    if record is None:
        raise ApiError(status_code=404, code="NOT_FOUND", message="Personnel not found.")
    return PersonDetailResponse(
        tc=record.tc,
        ad=record.ad,
        soyad=record.soyad,
        sube_adi=record.sube,
        konum_tipi=classify_location(record),
    )


@router.get("/personel", response_model=PersonRead)
def personnel_by_tc(
    tc: str | None = Query(default=None),
    client: EnibraClient = Depends(get_enibra_client),
) -> PersonRead:
    national_id = _require_tc(tc)
    record = find_by_national_id(_load_records(client), national_id)
    if record is None:
        raise ApiError(status_code=404, code="NOT_FOUND", message="Personnel not found.")
    return PersonRead.model_validate(record)


@router.get("/vardiya-uyarilari", response_model=ShiftWarningsResponse)
def shift_warnings(
    request: Request,
    check_time: str | None = Query(default=None),
    grace_min: str | None = Query(default=None),
    client: EnibraClient = Depends(get_enibra_client),
) -> ShiftWarningsResponse:
    # Caller input is validated before the upstream is touched.
    check_at = parse_check_time(check_time, datetime.now(get_local_timezone()))
    grace_minutes = parse_grace_minutes(grace_min)
    target = target_shift_start(check_at, grace_minutes)

    warnings = find_missing_checkins(_load_records(client), check_at, grace_minutes)
    request.state.flags = {"missing_entry_count": len(warnings)}
    return ShiftWarningsResponse(
        check_time=check_at.isoformat(timespec="seconds"),
        grace_minutes=grace_minutes,
        target_shift_hour=f"{target.hour:02d}:{target.minute:02d}",
        missing_entry_count=len(warnings),
        items=[ShiftWarningRead.model_validate(warning) for warning in warnings],
    )
