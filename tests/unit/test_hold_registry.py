import json
from datetime import datetime, timedelta, timezone

import pytest

from seating.domain.exceptions import SeatingInternalError
from seating.infrastructure.cache.hold_registry import Hold

EXPIRES_AT = datetime(2026, 3, 1, 20, 15, tzinfo=timezone.utc)


def test_hold_payload_uses_camel_case_keys():
    hold = Hold(user_id=7, event_id=1, seat_ids=[101, 102], expires_at=EXPIRES_AT)

    payload = json.loads(hold.to_json())

    assert payload == {
        "userId": 7,
        "eventId": 1,
        "seatIds": [101, 102],
        "expiresAt": "2026-03-01T20:15:00+00:00",
    }


def test_put_and_get(hold_registry, redis_client):
    hold = Hold(user_id=7, event_id=1, seat_ids=[3, 4], expires_at=EXPIRES_AT, order_id="O-1")

    hold_registry.put("abc", hold, ttl=timedelta(minutes=15))

    assert redis_client.ttls["hold:abc"] == timedelta(minutes=15)
    assert redis_client.values["hold-seat:3"] == "abc"
    assert redis_client.values["hold-seat:4"] == "abc"
    assert hold_registry.get("abc") == hold


def test_reservations_for_seats(hold_registry):
    hold_registry.put(
        "first",
        Hold(user_id=7, event_id=1, seat_ids=[1, 2], expires_at=EXPIRES_AT),
        ttl=timedelta(minutes=15),
    )
    hold_registry.put(
        "second",
        Hold(user_id=8, event_id=1, seat_ids=[3], expires_at=EXPIRES_AT),
        ttl=timedelta(minutes=15),
    )

    assert hold_registry.reservations_for_seats([2, 3, 9]) == {"first", "second"}
    assert hold_registry.reservations_for_seats([9]) == set()


def test_forget_keeps_index_entries_of_newer_holds(hold_registry, redis_client):
    ttl = timedelta(minutes=15)
    hold_registry.put(
        "old",
        Hold(user_id=7, event_id=1, seat_ids=[1, 2], expires_at=EXPIRES_AT),
        ttl=ttl,
    )
    hold_registry.put(
        "new",
        Hold(user_id=8, event_id=1, seat_ids=[2], expires_at=EXPIRES_AT),
        ttl=ttl,
    )

    assert hold_registry.forget("old") is True

    assert hold_registry.get("old") is None
    assert "hold-seat:1" not in redis_client.values
    assert redis_client.values["hold-seat:2"] == "new"
    assert hold_registry.forget("old") is False


def test_missing_hold(hold_registry):
    assert hold_registry.get("nope") is None
    assert hold_registry.forget("nope") is False


def test_expired_key_is_gone(hold_registry, redis_client):
    hold = Hold(user_id=7, event_id=1, seat_ids=[3], expires_at=EXPIRES_AT)
    hold_registry.put("abc", hold, ttl=timedelta(seconds=1))

    redis_client.expire_now("hold:abc")

    assert hold_registry.get("abc") is None


def test_redis_failures_become_internal_errors(hold_registry, redis_client):
    redis_client.fail = True
    hold = Hold(user_id=7, event_id=1, seat_ids=[3], expires_at=EXPIRES_AT)

    with pytest.raises(SeatingInternalError):
        hold_registry.put("abc", hold, ttl=timedelta(seconds=1))
    with pytest.raises(SeatingInternalError):
        hold_registry.get("abc")
    with pytest.raises(SeatingInternalError):
        hold_registry.reservations_for_seats([3])
    with pytest.raises(SeatingInternalError):
        hold_registry.forget("abc")

    assert hold_registry.ping() is False
