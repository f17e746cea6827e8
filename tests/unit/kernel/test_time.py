from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fundflow.kernel.time import (
    UTC,
    coerce_utc,
    isoformat_z,
    is_tz_aware,
    parse_iso8601,
    utc_now,
)


@pytest.mark.unit
def test_utc_now_is_tz_aware_utc():
    now = utc_now()
    assert is_tz_aware(now)
    assert now.utcoffset() == timezone.utc.utcoffset(now)


@pytest.mark.unit
def test_isoformat_z_matches_javascript_to_iso_string():
    dt = datetime(2026, 2, 10, 12, 0, 0, 123456, tzinfo=UTC)
    assert isoformat_z(dt) == "2026-02-10T12:00:00.123Z"


@pytest.mark.unit
def test_isoformat_z_pads_whole_seconds():
    assert isoformat_z(datetime(2026, 2, 10, 12, 0, 0, tzinfo=UTC)) == "2026-02-10T12:00:00.000Z"


@pytest.mark.unit
def test_parse_iso8601_supports_z_suffix():
    parsed = parse_iso8601("2026-02-10T12:00:00.123Z")
    assert parsed == datetime(2026, 2, 10, 12, 0, 0, 123000, tzinfo=UTC)


@pytest.mark.unit
def test_parse_iso8601_rejects_naive_timestamps():
    with pytest.raises(ValueError):
        parse_iso8601("2026-02-10T12:00:00")


@pytest.mark.unit
def test_coerce_utc_converts_offsets():
    from datetime import timedelta

    paris = timezone(timedelta(hours=1))
    assert coerce_utc(datetime(2026, 2, 10, 13, 0, tzinfo=paris)) == datetime(2026, 2, 10, 12, 0, tzinfo=UTC)
    assert coerce_utc(datetime(2026, 2, 10, 12, 0)).tzinfo is UTC
