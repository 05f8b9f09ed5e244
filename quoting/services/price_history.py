from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from quoting.services.money import money_str, to_decimal


class PriceChangeReason(str, Enum):
    PACKAGE_SELECTION = "package_selection"
    RECALCULATION = "recalculation"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True)
class PriceHistoryEntry:
    price: Decimal
    reason: PriceChangeReason
    timestamp: datetime
    user_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "price": money_str(self.price),
            "reason": self.reason.value,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PriceHistoryEntry":
        raw_timestamp = payload.get("timestamp")
        timestamp = raw_timestamp if isinstance(raw_timestamp, datetime) else parse_datetime(str(raw_timestamp or ""))
        return cls(
            price=to_decimal(payload["price"]),
            reason=PriceChangeReason(payload["reason"]),
            timestamp=timestamp or timezone.now(),
            user_id=str(payload.get("user_id") or ""),
        )


class PriceHistory:
    """Append-only audit trail of price changes on a quote.

    Entries can be read and appended; nothing replaces or removes them.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[PriceHistoryEntry] = ()) -> None:
        self._entries: list[PriceHistoryEntry] = list(entries)

    @classmethod
    def from_payload(cls, payload: Iterable[dict[str, Any]] | None) -> "PriceHistory":
        return cls(PriceHistoryEntry.from_payload(item) for item in payload or [])

    def append(
        self,
        price: Decimal,
        reason: PriceChangeReason,
        *,
        user_id: str,
        timestamp: datetime | None = None,
    ) -> PriceHistoryEntry:
        entry = PriceHistoryEntry(
            price=to_decimal(price),
            reason=PriceChangeReason(reason),
            timestamp=timestamp or timezone.now(),
            user_id=str(user_id),
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[PriceHistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> PriceHistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def to_payload(self) -> list[dict[str, Any]]:
        return [entry.to_payload() for entry in self._entries]

    def __iter__(self) -> Iterator[PriceHistoryEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
