from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

import dacite
import yaml

from errors import ConfigError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

ENV_PREFIX = "MARKET_"


@dataclass
class MarketConfig:
    # signer allowed to mint and transfer (the contract's operator)
    operator: str = "operator"
    contract_name: str = "con_private_market"
    # identity the admin mints its own tokens to
    admin_address: str = ""
    mint_secret: str = ""
    # events before this block are ignored when refreshing
    publish_block: int = 0
    log_level: str = "INFO"

    @classmethod
    def load(cls, yaml_path: str) -> MarketConfig:
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}
        try:
            config = dacite.from_dict(data_class=cls, data=data, config=dacite.Config(strict=True))
        except dacite.DaciteError as exc:
            raise ConfigError(f"Invalid config {yaml_path}: {exc}") from exc
        config.validate()
        return config

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> MarketConfig:
        environ = os.environ if environ is None else environ
        defaults = cls()
        try:
            publish_block = int(environ.get(ENV_PREFIX + "PUBLISH_BLOCK", defaults.publish_block))
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}PUBLISH_BLOCK must be an integer") from None
        config = cls(
            operator=environ.get(ENV_PREFIX + "OPERATOR", defaults.operator),
            contract_name=environ.get(ENV_PREFIX + "CONTRACT_NAME", defaults.contract_name),
            admin_address=environ.get(ENV_PREFIX + "ADMIN_ADDRESS", defaults.admin_address),
            mint_secret=environ.get(ENV_PREFIX + "MINT_SECRET", defaults.mint_secret),
            publish_block=publish_block,
            log_level=environ.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level),
        )
        config.validate()
        return config

    def validate(self):
        if not self.operator:
            raise ConfigError("operator is required")
        if not self.contract_name.startswith("con_"):
            raise ConfigError("contract_name must start with 'con_'")
        if self.publish_block < 0:
            raise ConfigError("publish_block must be non-negative")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            raise ConfigError(f"Unknown log level: {self.log_level}")
        # admin minting is optional but needs both halves
        if bool(self.admin_address) != bool(self.mint_secret):
            raise ConfigError("admin_address and mint_secret must be set together")

    @property
    def can_mint_as_admin(self) -> bool:
        return bool(self.admin_address and self.mint_secret)


def configure_logging(level: str = "INFO") -> logging.Logger:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(level.upper())
    return root
