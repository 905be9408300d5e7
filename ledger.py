"""
Ledger collaborator backed by the con_private_market contract.

Reads are served from a LedgerState cache that refresh() tops up from the
contract (the indexer role). Writes go straight to the contract. Every
contract call runs under one lock: the contracting client is not safe to
share between threads, and serialising transfers keeps the token-nullifier
test-and-set strictly ordered.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple

from client_helper import derive_commitment, normalize_address, normalize_digest
from errors import LedgerError
from ledger_state import ActiveBid, BidEvent, BidEventType, CommitmentRecord, LedgerState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    success: bool
    transaction_ref: int


@dataclass(frozen=True)
class MintResult:
    token_id: int
    commitment: str
    transaction_ref: int


class ContractLedger:
    # token-nullifier consumption happens inside a single contract call
    atomic_transfers = True

    def __init__(self,
                 contract,
                 operator: str = "operator",
                 state: LedgerState = None,
                 publish_block: int = 0,
                 block_source: Callable[[], int] = None):
        self.contract = contract
        self.operator = operator
        self.state = state if state is not None else LedgerState()
        self.publish_block = publish_block
        self._block_source = block_source or itertools.count(1).__next__
        self._lock = threading.RLock()
        self._next_token_cursor = 1
        self._next_event_cursor = 1

    def environment(self):
        return {"block_num": self._block_source()}

    def _call(self, method: str, **kwargs):
        fn = getattr(self.contract, method)
        try:
            return fn(**kwargs)
        except AssertionError as exc:
            logger.warning("Contract rejected %s: %s", method, exc)
            raise LedgerError(f"{method} rejected: {exc}") from exc
        except Exception as exc:
            logger.error("Contract call %s failed: %s", method, exc)
            raise LedgerError(f"{method} failed: {exc}") from exc

    # ---- Reads (cache) ------------------------------------------------------

    def get_commitment_log(self) -> Tuple[CommitmentRecord, ...]:
        return self.state.commitment_log()

    def get_active_bids(self) -> Mapping[str, ActiveBid]:
        return self.state.active_bids()

    # ---- Sync ---------------------------------------------------------------

    def refresh(self) -> Tuple[int, int]:
        """
        Pull commitments and bid events published since the last refresh.
        Returns (new commitments, new bid events).
        """
        with self._lock:
            commitments = []
            next_token_id = self._call("get_next_token_id")
            for token_id in range(self._next_token_cursor, next_token_id):
                data = self._call("get_commitment", token_id=token_id)
                if data["exists"] and data["minted_at"] >= self.publish_block:
                    commitments.append(CommitmentRecord(
                        token_id=token_id,
                        commitment_hash=data["commitment"],
                        timestamp=data["minted_at"],
                    ))
            self._next_token_cursor = max(self._next_token_cursor, next_token_id)

            events = []
            event_count = self._call("get_event_count")
            for event_id in range(self._next_event_cursor, event_count + 1):
                data = self._call("get_bid_event", event_id=event_id)
                if data["timestamp"] >= self.publish_block:
                    events.append(BidEvent(
                        id=event_id,
                        type=BidEventType(data["type"]),
                        bid_nullifier=data["bid_nullifier"],
                        amount=data["amount"],
                        timestamp=data["timestamp"],
                    ))
            self._next_event_cursor = max(self._next_event_cursor, event_count + 1)

        added = (self.state.add_commitments(commitments), self.state.add_bid_events(events))
        logger.info("Refreshed ledger: %d new commitment(s), %d new bid event(s)", *added)
        return added

    # ---- Writes -------------------------------------------------------------

    def execute_transfer(self, bid_nullifier: str, token_nullifier: str, funds_receiver_address: str) -> TransferResult:
        bid_nullifier = normalize_digest(bid_nullifier, "bid_nullifier")
        token_nullifier = normalize_digest(token_nullifier, "token_nullifier")
        funds_receiver_address = normalize_address(funds_receiver_address)

        with self._lock:
            tx_id = self._call(
                "transfer",
                bid_nullifier=bid_nullifier,
                token_nullifier=token_nullifier,
                funds_receiver=funds_receiver_address,
                signer=self.operator,
                environment=self.environment(),
            )
        logger.info("Transfer executed in tx %s", tx_id)
        return TransferResult(success=True, transaction_ref=tx_id)

    def mint(self, new_ownership_nullifier: str) -> MintResult:
        with self._lock:
            token_id = self._call("get_next_token_id")
            commitment = derive_commitment(new_ownership_nullifier, token_id)
            result = self._call(
                "mint",
                token_id=token_id,
                commitment=commitment,
                signer=self.operator,
                environment=self.environment(),
            )
        try:
            minted = MintResult(
                token_id=result["token_id"],
                commitment=result["commitment"],
                transaction_ref=result["tx_id"],
            )
        except (KeyError, TypeError) as exc:
            raise LedgerError(f"Unexpected mint result: {result!r}") from exc
        logger.info("Minted token %s in tx %s", minted.token_id, minted.transaction_ref)
        return minted

    def set_operator(self, new_operator: str) -> str:
        with self._lock:
            self._call(
                "set_operator",
                new_operator=new_operator,
                signer=self.operator,
                environment=self.environment(),
            )
            logger.info("Operator rotated from %s to %s", self.operator, new_operator)
            self.operator = new_operator
        return new_operator

    # ---- Direct contract views ----------------------------------------------

    def is_token_nullifier_spent(self, token_nullifier: str) -> bool:
        token_nullifier = normalize_digest(token_nullifier, "token_nullifier")
        with self._lock:
            return bool(self._call("is_token_nullifier_spent", token_nullifier=token_nullifier))

    def bid_of(self, bidder: str) -> Optional[str]:
        bidder = normalize_address(bidder)
        with self._lock:
            bid_nullifier = self._call("get_bid_of", bidder=bidder)
        return bid_nullifier or None

    def metadata(self):
        with self._lock:
            return self._call("get_metadata")

    def payout_of(self, address: str) -> int:
        address = normalize_address(address)
        with self._lock:
            return self._call("get_payout", address=address)
