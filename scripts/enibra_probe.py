#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone

from hys_backend.errors import ApiError
from hys_backend.services.enibra_client import EnibraClient, EnibraConfig
from hys_backend.services.personnel_normalizer import (
    body_preview,
    decode_payload,
    detect_shape,
    normalize_personnel,
    upstream_message,
)
from hys_backend.services.response_cache import ResponseCache
from hys_backend.settings import Settings


def parse_params(raw_params: list[str]) -> dict[str, list[str]]:
    params: dict[str, list[str]] = {}
    for raw in raw_params:
        key, _, value = raw.partition("=")
        if key.strip():
            params.setdefault(key.strip(), []).append(value)
    return params


def run(raw_params: list[str]) -> dict:
    config = EnibraConfig.from_settings(Settings())
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "base_url": config.base_url,
        "host_header": config.host_header,
        "insecure_tls": config.insecure_tls,
    }

    client = EnibraClient(config, ResponseCache())
    try:
        response = client.fetch_personnel(parse_params(raw_params))
    except ApiError as exc:
        report["ok"] = False
        report["error"] = {"code": exc.code, "message": exc.message, **exc.details}
        return report

    report["upstream_status"] = response.status_code
    report["content_type"] = response.content_type
    report["body_bytes"] = len(response.body)

    try:
        payload = decode_payload(response.body)
    except ApiError as exc:
        report["ok"] = False
        report["error"] = {"code": exc.code, "message": exc.message}
        report["body_preview"] = body_preview(response.body)
        return report

    detected = detect_shape(payload)
    report["shape"] = detected[0] if detected else None
    report["upstream_message"] = upstream_message(payload)
    try:
        records = normalize_personnel(response.body)
    except ApiError as exc:
        report["ok"] = False
        report["error"] = {"code": exc.code, "message": exc.message}
        report["body_preview"] = body_preview(response.body)
        return report

    report["ok"] = response.is_success and not response.is_html
    report["record_count"] = len(records)
    report["first_record_keys"] = sorted(str(key) for key in records[0].raw.keys())
    report["first_record"] = records[0].to_dict()
    return report


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch the Enibra personnel list once and describe its shape.")
    parser.add_argument("params", nargs="*", help="Extra query parameters as key=value.")
    args = parser.parse_args()

    report = run(args.params)
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0 if report.get("ok") else 1


if __name__ == "__main__":
    sys.exit(main())
