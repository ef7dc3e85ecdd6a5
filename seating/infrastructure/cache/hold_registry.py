"""
Redis-backed registry of live seat holds.

A hold is written after its reservation commits and lives under
``hold:<reservation_id>`` with a TTL. Each held seat also gets a
``hold-seat:<seat_id>`` key pointing back at the reservation, so allocation
and release can find the holds covering a seat set and remove them.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

import redis

from seating.domain.exceptions import SeatingInternalError

logger = logging.getLogger(__name__)


def create_redis_client(redis_url: str) -> redis.Redis:
    return redis.Redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )


@dataclass(frozen=True)
class Hold:
    user_id: int
    event_id: int
    seat_ids: list[int]
    expires_at: datetime
    order_id: Optional[str] = field(default=None)

    def to_json(self) -> str:
        payload = {
            "userId": self.user_id,
            "eventId": self.event_id,
            "seatIds": list(self.seat_ids),
            "expiresAt": self.expires_at.isoformat(),
        }
        if self.order_id is not None:
            payload["orderId"] = self.order_id
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: str) -> "Hold":
        data = json.loads(raw)
        return cls(
            user_id=data["userId"],
            event_id=data["eventId"],
            seat_ids=[int(seat_id) for seat_id in data["seatIds"]],
            expires_at=datetime.fromisoformat(data["expiresAt"]),
            order_id=data.get("orderId"),
        )


class HoldRegistry:
    """Thin wrapper over a synchronous Redis client."""

    KEY_PREFIX = "hold:"
    SEAT_KEY_PREFIX = "hold-seat:"

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def key_for(cls, reservation_id: str) -> str:
        return f"{cls.KEY_PREFIX}{reservation_id}"

    @classmethod
    def seat_key_for(cls, seat_id: int) -> str:
        return f"{cls.SEAT_KEY_PREFIX}{seat_id}"

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    def put(self, reservation_id: str, hold: Hold, ttl: timedelta) -> None:
        try:
            self.client.set(self.key_for(reservation_id), hold.to_json(), px=ttl)
            for seat_id in hold.seat_ids:
                self.client.set(self.seat_key_for(seat_id), reservation_id, px=ttl)
        except redis.RedisError as exc:
            raise SeatingInternalError(
                f"Could not register hold {reservation_id}"
            ) from exc

    def get(self, reservation_id: str) -> Hold | None:
        try:
            raw = self.client.get(self.key_for(reservation_id))
        except redis.RedisError as exc:
            raise SeatingInternalError(
                f"Could not read hold {reservation_id}"
            ) from exc
        if raw is None:
            return None
        return Hold.from_json(raw)

    def reservations_for_seats(self, seat_ids: Iterable[int]) -> set[str]:
        """Ids of the live holds covering any of `seat_ids`."""
        try:
            found = {
                self.client.get(self.seat_key_for(seat_id))
                for seat_id in set(seat_ids)
            }
        except redis.RedisError as exc:
            raise SeatingInternalError("Could not look up seat holds") from exc
        found.discard(None)
        return found

    def forget(self, reservation_id: str) -> bool:
        """
        Remove a hold and the seat index entries that still point at it.
        Returns False when the hold was already gone.
        """
        hold = self.get(reservation_id)
        try:
            if hold is not None:
                for seat_id in hold.seat_ids:
                    seat_key = self.seat_key_for(seat_id)
                    # The seat may already be held again under another id.
                    if self.client.get(seat_key) == reservation_id:
                        self.client.delete(seat_key)
            return self.client.delete(self.key_for(reservation_id)) > 0
        except redis.RedisError as exc:
            raise SeatingInternalError(
                f"Could not delete hold {reservation_id}"
            ) from exc

    def close(self) -> None:
        self.client.close()
        logger.info("Redis connection closed")
