"""
Transfer protocol validator.

Runs the admin-side checks before a transfer, in a fixed order where each
failure short-circuits the rest:

    recompute commitment -> commitment in log?  -> InvalidCommitment
    recompute bid nullifier -> bid active?      -> BidNotFound
    compute token nullifier
    ledger.execute_transfer                     -> LedgerError
    ledger.mint (replacement ownership)         -> ReconciliationRequired

Nothing before execute_transfer touches the ledger. The validator reads the
ledger's cached logs as they are; calling refresh() first is up to the caller.
"""

import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass

from client_helper import (
    TokenId,
    derive_bid_nullifier,
    derive_bid_secret,
    derive_commitment,
    derive_token_nullifier,
    normalize_address,
    normalize_digest,
    normalize_token_id,
)
from errors import BidNotFound, InvalidCommitment, LedgerError, ReconciliationRequired

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferPlan:
    token_id: int
    commitment: str
    bid_nullifier: str
    token_nullifier: str


@dataclass(frozen=True)
class TransferReceipt:
    plan: TransferPlan
    transaction_ref: int
    mint: object  # ledger MintResult

    @property
    def token_nullifier(self) -> str:
        return self.plan.token_nullifier


class TransferValidator:
    def __init__(self, ledger, serialize_transfers: bool = None):
        self.ledger = ledger
        if serialize_transfers is None:
            serialize_transfers = not getattr(ledger, "atomic_transfers", False)
        # ledgers without an atomic nullifier check get one global ordering
        self._execution_lock = threading.Lock() if serialize_transfers else None

    def validate(self,
                 sender_address: str,
                 sender_secret_phrase: str,
                 token_id: TokenId,
                 receiver_secret: str) -> TransferPlan:
        token_id = normalize_token_id(token_id)

        sender_binding = derive_bid_secret(sender_address, sender_secret_phrase)
        commitment = derive_commitment(sender_binding, token_id)
        known = {record.commitment_hash.lower() for record in self.ledger.get_commitment_log()}
        if commitment not in known:
            logger.warning("Rejected transfer of token %s: unknown commitment %s", token_id, commitment)
            raise InvalidCommitment(commitment)

        bid_nullifier = derive_bid_nullifier(receiver_secret, commitment)
        active = {key.lower() for key in self.ledger.get_active_bids()}
        if bid_nullifier not in active:
            logger.warning("Rejected transfer of token %s: no active bid %s", token_id, bid_nullifier)
            raise BidNotFound(bid_nullifier)

        token_nullifier = derive_token_nullifier(sender_address, sender_secret_phrase, commitment)
        return TransferPlan(
            token_id=token_id,
            commitment=commitment,
            bid_nullifier=bid_nullifier,
            token_nullifier=token_nullifier,
        )

    def validate_and_execute_transfer(self,
                                      sender_address: str,
                                      sender_secret_phrase: str,
                                      token_id: TokenId,
                                      receiver_secret: str,
                                      funds_receiver_address: str,
                                      new_ownership_nullifier: str) -> TransferReceipt:
        plan = self.validate(sender_address, sender_secret_phrase, token_id, receiver_secret)

        # both go to the ledger; reject them before the first mutation
        funds_receiver_address = normalize_address(funds_receiver_address)
        new_ownership_nullifier = normalize_digest(new_ownership_nullifier, "new_ownership_nullifier")

        with self._execution_lock or nullcontext():
            transfer = self.ledger.execute_transfer(plan.bid_nullifier, plan.token_nullifier, funds_receiver_address)
            if not transfer.success:
                raise LedgerError(f"Ledger refused transfer for bid {plan.bid_nullifier}")
            logger.info("Token %s transferred in tx %s", plan.token_id, transfer.transaction_ref)

            try:
                minted = self.ledger.mint(new_ownership_nullifier)
            except Exception as exc:
                logger.error(
                    "Transfer %s executed but replacement mint failed; manual reconciliation needed",
                    transfer.transaction_ref,
                )
                raise ReconciliationRequired(transfer, plan.token_nullifier, new_ownership_nullifier) from exc

        logger.info("Minted replacement token %s in tx %s", minted.token_id, minted.transaction_ref)
        return TransferReceipt(plan=plan, transaction_ref=transfer.transaction_ref, mint=minted)
