import logging

import pytest

from config import MarketConfig, configure_logging
from errors import ConfigError

from conftest import ALICE


def test_defaults_are_valid():
    config = MarketConfig()
    config.validate()
    assert config.contract_name == "con_private_market"
    assert not config.can_mint_as_admin


def test_from_env_reads_prefixed_variables():
    config = MarketConfig.from_env({
        "MARKET_OPERATOR": "admin",
        "MARKET_ADMIN_ADDRESS": ALICE,
        "MARKET_MINT_SECRET": "mint phrase",
        "MARKET_PUBLISH_BLOCK": "42",
        "MARKET_LOG_LEVEL": "debug",
    })
    assert config.operator == "admin"
    assert config.publish_block == 42
    assert config.can_mint_as_admin
    assert config.log_level == "debug"


def test_from_env_rejects_bad_publish_block():
    with pytest.raises(ConfigError):
        MarketConfig.from_env({"MARKET_PUBLISH_BLOCK": "soon"})
    with pytest.raises(ConfigError):
        MarketConfig.from_env({"MARKET_PUBLISH_BLOCK": "-1"})


def test_admin_minting_needs_address_and_secret():
    with pytest.raises(ConfigError):
        MarketConfig.from_env({"MARKET_MINT_SECRET": "mint phrase"})


def test_validate_rejects_bad_values():
    with pytest.raises(ConfigError):
        MarketConfig(operator="").validate()
    with pytest.raises(ConfigError):
        MarketConfig(contract_name="private_market").validate()
    with pytest.raises(ConfigError):
        MarketConfig(log_level="LOUD").validate()


def test_load_from_yaml(tmp_path):
    path = tmp_path / "market.yaml"
    path.write_text(
        "operator: admin\n"
        "contract_name: con_market_test\n"
        f"admin_address: '{ALICE}'\n"
        "mint_secret: mint phrase\n"
        "publish_block: 7\n"
    )
    config = MarketConfig.load(str(path))
    assert config.operator == "admin"
    assert config.contract_name == "con_market_test"
    assert config.admin_address == ALICE
    assert config.publish_block == 7


def test_load_rejects_unknown_keys(tmp_path):
    path = tmp_path / "market.yaml"
    path.write_text("operator: admin\nrpc_url: http://localhost:8545\n")
    with pytest.raises(ConfigError):
        MarketConfig.load(str(path))


def test_load_rejects_wrong_types(tmp_path):
    path = tmp_path / "market.yaml"
    path.write_text("publish_block: soon\n")
    with pytest.raises(ConfigError):
        MarketConfig.load(str(path))


def test_configure_logging_sets_level():
    root = configure_logging("warning")
    assert root.level == logging.WARNING
    configure_logging("info")
