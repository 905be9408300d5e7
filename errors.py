"""
Error taxonomy shared by the engine, the ledger adapter and the validator.

  InvalidInput            malformed address / digest / token id, empty field
  InvalidCommitment       recomputed commitment not in the commitment log
  BidNotFound             recomputed bid nullifier not in the active-bid view
  LedgerError             the ledger rejected a call or the client failed
  ReconciliationRequired  transfer executed but the re-mint failed
"""


class MarketError(Exception):
    pass


class InvalidInput(MarketError, ValueError):
    pass


class ConfigError(MarketError, ValueError):
    pass


class InvalidCommitment(MarketError):
    def __init__(self, commitment: str):
        self.commitment = commitment
        super().__init__(f"Commitment {commitment} is not in the commitment log")


class BidNotFound(MarketError):
    def __init__(self, bid_nullifier: str):
        self.bid_nullifier = bid_nullifier
        super().__init__(f"Bid {bid_nullifier} is not an active bid")


class LedgerError(MarketError):
    pass


class ReconciliationRequired(LedgerError):
    """
    The transfer went through on the ledger but the replacement mint did not.
    The token nullifier is spent and the receiver holds no commitment yet;
    an operator has to mint for `new_ownership_nullifier` by hand.
    """
    def __init__(self, transfer, token_nullifier: str, new_ownership_nullifier: str):
        self.transfer = transfer
        self.token_nullifier = token_nullifier
        self.new_ownership_nullifier = new_ownership_nullifier
        super().__init__(
            f"Transfer {transfer.transaction_ref} executed but mint for "
            f"{new_ownership_nullifier} failed"
        )
