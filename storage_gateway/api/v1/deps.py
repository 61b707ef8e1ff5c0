from __future__ import annotations

import logging

from fastapi import Header, HTTPException, Request

from storage_gateway.common.config import get_settings
from storage_gateway.services.storage_service import StorageService

logger = logging.getLogger("http")


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.API_KEY_ENABLED:
        api_key_expected = getattr(settings, "API_KEY", None)
        if not x_api_key or (api_key_expected and x_api_key != api_key_expected):
            preview = f"{x_api_key[:4]}***" if x_api_key else "<missing>"
            logger.warning("api_key_mismatch api_key_preview=%s", preview)
            raise HTTPException(status_code=401, detail="Invalid API key")
