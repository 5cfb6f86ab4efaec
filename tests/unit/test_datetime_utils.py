"""Unit tests for timestamp helpers."""

from datetime import datetime, timedelta, timezone

import pytest
from libs.common.datetime_utils import as_utc, has_passed, utc_now


@pytest.mark.unit
def test_utc_now_is_timezone_aware():
    assert utc_now().tzinfo is timezone.utc


@pytest.mark.unit
def test_as_utc_treats_naive_values_as_utc():
    naive = datetime(2026, 5, 1, 12, 0)

    assert as_utc(naive) == datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_as_utc_converts_other_offsets():
    lagos = timezone(timedelta(hours=1))

    assert as_utc(datetime(2026, 5, 1, 13, 0, tzinfo=lagos)).hour == 12


@pytest.mark.unit
def test_has_passed():
    now = utc_now()

    assert has_passed(None) is False
    assert has_passed(now - timedelta(seconds=1), now) is True
    assert has_passed(now, now) is True
    assert has_passed((now + timedelta(hours=1)).replace(tzinfo=None), now) is False
