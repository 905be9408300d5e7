"""
Off-chain mirror of the two on-chain logs the validator checks against:

  - commitment log: append-only, deduplicated by token id, chronological
  - bid event log:  append-only, deduplicated by event id; the active-bid
                    view is its fold (placed inserts/overwrites, withdrawn
                    deletes)

One writer at a time appends; readers get immutable point-in-time snapshots
and never see a half-applied batch. Timestamps are ordering hints only.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class BidEventType(str, Enum):
    PLACED = "placed"
    WITHDRAWN = "withdrawn"


@dataclass(frozen=True)
class CommitmentRecord:
    token_id: int
    commitment_hash: str
    timestamp: int


@dataclass(frozen=True)
class BidEvent:
    id: int
    type: BidEventType
    bid_nullifier: str
    amount: int
    timestamp: int


@dataclass(frozen=True)
class ActiveBid:
    amount: int
    timestamp: int


@dataclass(frozen=True)
class LedgerSnapshot:
    commitments: Tuple[CommitmentRecord, ...]
    active_bids: Mapping[str, ActiveBid]
    bid_event_count: int

    def has_commitment(self, commitment_hash: str) -> bool:
        commitment_hash = commitment_hash.lower()
        return any(r.commitment_hash == commitment_hash for r in self.commitments)

    def has_active_bid(self, bid_nullifier: str) -> bool:
        return bid_nullifier.lower() in self.active_bids


def apply_bid_event(active: Dict[str, ActiveBid], event: BidEvent) -> None:
    if event.type is BidEventType.PLACED:
        active[event.bid_nullifier] = ActiveBid(amount=event.amount, timestamp=event.timestamp)
    else:
        active.pop(event.bid_nullifier, None)


def fold_bid_events(events: Iterable[BidEvent]) -> Dict[str, ActiveBid]:
    active: Dict[str, ActiveBid] = {}
    for event in sorted(events, key=lambda e: e.id):
        apply_bid_event(active, event)
    return active


class LedgerState:
    def __init__(self):
        self._write_lock = threading.Lock()
        self._commitments: List[CommitmentRecord] = []
        self._token_ids = set()
        self._bid_events: List[BidEvent] = []
        self._bid_event_ids = set()
        self._active: Dict[str, ActiveBid] = {}
        self._snapshot = LedgerSnapshot((), MappingProxyType({}), 0)

    def snapshot(self) -> LedgerSnapshot:
        # swapped atomically under the write lock; a plain read is consistent
        return self._snapshot

    def commitment_log(self) -> Tuple[CommitmentRecord, ...]:
        return self._snapshot.commitments

    def active_bids(self) -> Mapping[str, ActiveBid]:
        return self._snapshot.active_bids

    def bid_events(self) -> Tuple[BidEvent, ...]:
        with self._write_lock:
            return tuple(self._bid_events)

    def add_commitments(self, records: Iterable[CommitmentRecord]) -> int:
        with self._write_lock:
            added = 0
            for record in records:
                if record.token_id in self._token_ids:
                    continue
                record = CommitmentRecord(record.token_id, record.commitment_hash.lower(), record.timestamp)
                self._token_ids.add(record.token_id)
                self._commitments.append(record)
                added += 1
            if added:
                self._commitments.sort(key=lambda r: (r.timestamp, r.token_id))
                self._publish()
                logger.debug("Appended %d commitment(s), log size %d", added, len(self._commitments))
            return added

    def add_bid_events(self, events: Iterable[BidEvent]) -> int:
        with self._write_lock:
            fresh = []
            for event in events:
                if event.id in self._bid_event_ids:
                    continue
                self._bid_event_ids.add(event.id)
                fresh.append(BidEvent(
                    id=event.id,
                    type=BidEventType(event.type),
                    bid_nullifier=event.bid_nullifier.lower(),
                    amount=event.amount,
                    timestamp=event.timestamp,
                ))
            if not fresh:
                return 0

            fresh.sort(key=lambda e: e.id)
            last_id = self._bid_events[-1].id if self._bid_events else 0
            self._bid_events.extend(fresh)
            if fresh[0].id > last_id:
                for event in fresh:
                    apply_bid_event(self._active, event)
            else:
                # late arrival below the high-water mark: refold from scratch
                self._bid_events.sort(key=lambda e: e.id)
                self._active = fold_bid_events(self._bid_events)
            self._publish()
            logger.debug("Appended %d bid event(s), %d active bid(s)", len(fresh), len(self._active))
            return len(fresh)

    def _publish(self) -> None:
        self._snapshot = LedgerSnapshot(
            commitments=tuple(self._commitments),
            active_bids=MappingProxyType(dict(self._active)),
            bid_event_count=len(self._bid_events),
        )

    def find_commitment(self, commitment_hash: str) -> Optional[CommitmentRecord]:
        commitment_hash = commitment_hash.lower()
        for record in self._snapshot.commitments:
            if record.commitment_hash == commitment_hash:
                return record
        return None
