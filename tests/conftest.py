from __future__ import annotations

import pytest

from storage_gateway.common.config import get_settings

TEST_ENV = {
    "STORAGE_PROVIDER": "azure",
    "STORAGE_IDENTITY": "testaccount",
    "STORAGE_CREDENTIAL": "dGVzdC1rZXk=",
    "REPORTS_CONTAINER": "reports",
    "LABELS_CONTAINER": "labels",
    "UPLOAD_CONTAINER_NAME": "uploads",
}


@pytest.fixture(autouse=True)
def storage_environment(monkeypatch):
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    for key in ("API_KEY_ENABLED", "API_KEY", "CORS_ENABLED", "ENABLE_METRICS"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
