from datetime import datetime, timedelta, timezone

import pytest

from modular_backend.modules.base.guid_factory import SequentialGuidType, _timestamp_bytes, new_guid
from modular_backend.modules.base.services import UUIDService

EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2024, 5, 17, 12, 30, 45, 123000, tzinfo=timezone.utc)


def test_timestamp_is_milliseconds_since_year_one():
    assert _timestamp_bytes(EPOCH + timedelta(milliseconds=258)) == b"\x00\x00\x00\x00\x01\x02"
    assert len(_timestamp_bytes(NOW)) == 6


def test_at_end_places_timestamp_in_last_six_bytes():
    g = new_guid(SequentialGuidType.SEQUENTIAL_AT_END, now=NOW)
    assert g.bytes[10:16] == _timestamp_bytes(NOW)


def test_as_binary_places_timestamp_first_in_raw_bytes():
    g = new_guid(SequentialGuidType.SEQUENTIAL_AS_BINARY, now=NOW)
    assert g.bytes_le[0:6] == _timestamp_bytes(NOW)


def test_as_string_places_timestamp_first_in_text():
    g = new_guid(SequentialGuidType.SEQUENTIAL_AS_STRING, now=NOW)
    text = str(g).replace("-", "")
    assert text[:12] == _timestamp_bytes(NOW).hex()


@pytest.mark.parametrize("kind", list(SequentialGuidType))
def test_guids_are_time_ordered(kind):
    earlier = new_guid(kind, now=NOW)
    later = new_guid(kind, now=NOW + timedelta(milliseconds=5))
    if kind is SequentialGuidType.SEQUENTIAL_AT_END:
        assert earlier.bytes[10:] < later.bytes[10:]
    elif kind is SequentialGuidType.SEQUENTIAL_AS_BINARY:
        assert earlier.bytes_le[:6] < later.bytes_le[:6]
    else:
        assert str(earlier) < str(later)


def test_guids_are_unique_within_the_same_millisecond():
    guids = {new_guid(now=NOW) for _ in range(500)}
    assert len(guids) == 500


def test_kind_accepts_enum_values_and_rejects_unknown():
    g = new_guid("sequential_as_binary", now=NOW)
    assert g.bytes_le[0:6] == _timestamp_bytes(NOW)
    with pytest.raises(ValueError):
        new_guid("random")


def test_uuid_service_defaults_to_at_end():
    service = UUIDService()
    before = _timestamp_bytes(datetime.now(timezone.utc))
    g = service.generate()
    assert g.bytes[10:16] >= before
