from __future__ import annotations

from fastapi import Depends, Request

from hys_backend.services.enibra_client import EnibraClient, EnibraConfig
from hys_backend.services.response_cache import ResponseCache
from hys_backend.settings import get_settings


def get_enibra_cache(request: Request) -> ResponseCache:
    return request.app.state.enibra_cache


def get_enibra_config() -> EnibraConfig:
    return EnibraConfig.from_settings(get_settings())


def get_enibra_client(
    config: EnibraConfig = Depends(get_enibra_config),
    cache: ResponseCache = Depends(get_enibra_cache),
) -> EnibraClient:
    return EnibraClient(config, cache)
