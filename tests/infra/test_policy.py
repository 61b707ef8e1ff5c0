from datetime import datetime, timedelta, timezone

import pytest

from storage_gateway.infra.storage.policy import (
    AccessPolicy,
    BlobReference,
    Permission,
    compute_access_policy,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_window_is_centred_on_now():
    policy = compute_access_policy(3600, now=NOW)

    assert policy.starts_on == NOW - timedelta(minutes=3600)
    assert policy.expires_on == NOW + timedelta(minutes=3600)
    assert policy.expires_on - policy.starts_on == timedelta(minutes=7200)
    assert policy.permission is Permission.READ


def test_lifetime_is_measured_from_issue_time():
    policy = compute_access_policy(30, now=NOW)

    assert policy.issued_at == NOW
    assert policy.lifetime_seconds == 1800


def test_naive_now_is_treated_as_utc():
    policy = compute_access_policy(1, now=datetime(2024, 6, 1, 12, 0))

    assert policy.issued_at == NOW


@pytest.mark.parametrize("width", [0, -5])
def test_non_positive_width_is_rejected(width):
    with pytest.raises(ValueError):
        compute_access_policy(width, now=NOW)


def test_policy_requires_expiry_after_start():
    with pytest.raises(ValueError):
        AccessPolicy(Permission.READ, NOW, NOW, NOW)


def test_blob_reference_requires_both_parts():
    with pytest.raises(ValueError):
        BlobReference("", "a")
    with pytest.raises(ValueError):
        BlobReference("c", "")
