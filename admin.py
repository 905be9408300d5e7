"""
Operator-side service: deploys the market contract, mints admin-owned tokens,
lists commitments and runs validated transfers. It is the layer an HTTP
front end would call into.
"""

import logging
from pathlib import Path
from typing import Tuple

from client_helper import derive_ownership_nullifier
from config import MarketConfig, configure_logging
from errors import ConfigError
from ledger import ContractLedger, MintResult
from ledger_state import CommitmentRecord
from transfer_validator import TransferReceipt, TransferValidator

logger = logging.getLogger(__name__)

CONTRACT_PATH = Path(__file__).resolve().parent / "con_private_market.py"


class MarketAdmin:
    def __init__(self, client, config: MarketConfig = None):
        self.client = client
        self.config = config or MarketConfig()
        self.config.validate()
        configure_logging(self.config.log_level)
        self._ledger = None
        self._validator = None

    def deploy(self):
        """Returns the market contract, submitting it first if it is not deployed."""
        contract = self.client.get_contract(self.config.contract_name)
        if contract is None:
            logger.info("Deploying %s", self.config.contract_name)
            self.client.submit(CONTRACT_PATH.read_text(), name=self.config.contract_name, owner=None)
            contract = self.client.get_contract(self.config.contract_name)
        return contract

    @property
    def ledger(self) -> ContractLedger:
        if self._ledger is None:
            self._ledger = ContractLedger(
                self.deploy(),
                operator=self.config.operator,
                publish_block=self.config.publish_block,
            )
        return self._ledger

    @property
    def validator(self) -> TransferValidator:
        if self._validator is None:
            self._validator = TransferValidator(self.ledger)
        return self._validator

    def rotate_operator(self, new_operator: str) -> str:
        """Hands mint and transfer rights to another signer."""
        self.ledger.set_operator(new_operator)
        self.config.operator = new_operator
        return new_operator

    def health(self):
        metadata = self.ledger.metadata()
        self.ledger.refresh()
        return {
            'operator': metadata['operator'],
            'contract': self.config.contract_name,
            'tokens': metadata['next_token_id'] - 1,
            'active_bids': len(self.ledger.get_active_bids()),
        }

    def mint_with_admin_secret(self) -> MintResult:
        if not self.config.can_mint_as_admin:
            raise ConfigError("admin_address and mint_secret are required to mint")
        nullifier = derive_ownership_nullifier(self.config.admin_address, self.config.mint_secret)
        return self.ledger.mint(nullifier)

    def commitments(self) -> Tuple[CommitmentRecord, ...]:
        self.ledger.refresh()
        return self.ledger.get_commitment_log()

    def transfer(self,
                 sender_address: str,
                 sender_secret_phrase: str,
                 token_id,
                 receiver_secret: str,
                 funds_receiver_address: str,
                 new_ownership_nullifier: str) -> TransferReceipt:
        self.ledger.refresh()
        return self.validator.validate_and_execute_transfer(
            sender_address,
            sender_secret_phrase,
            token_id,
            receiver_secret,
            funds_receiver_address,
            new_ownership_nullifier,
        )
