from datetime import datetime, timedelta, timezone

import pytest

from shopbuilder.utils.datetime_utils import age_seconds, from_iso_string, seconds_until, to_iso_string

NOW = datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc)


def test_iso_string_matches_javascript_format():
    assert to_iso_string(NOW) == "2025-01-15T10:30:45.000Z"
    assert to_iso_string(datetime(2025, 1, 15, 10, 30, 45)) == "2025-01-15T10:30:45.000Z"


def test_offsets_are_normalized_to_utc():
    parsed = from_iso_string("2025-01-15T12:30:45+02:00")
    assert parsed == NOW
    assert to_iso_string(parsed).endswith("Z")


def test_invalid_iso_string():
    with pytest.raises(ValueError):
        from_iso_string("next friday")


def test_seconds_until():
    assert seconds_until(NOW + timedelta(minutes=2), now=NOW) == 120
    assert seconds_until(NOW - timedelta(minutes=2), now=NOW) == 0
    assert age_seconds(NOW - timedelta(seconds=5), now=NOW) == 5
