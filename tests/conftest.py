from pathlib import Path

import contracting
import pytest
from contracting.client import ContractingClient

import client_helper
from client_helper import OwnerIdentity
from ledger import ContractLedger
from transfer_validator import TransferValidator

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONTRACT_PATH = PROJECT_ROOT / "con_private_market.py"
SUBMISSION_PATH = (
    Path(contracting.__file__).resolve().parent / "contracts" / "submission.s.py"
)

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20


@pytest.fixture(scope="session")
def helper_module():
    return client_helper


@pytest.fixture
def client():
    client = ContractingClient(signer="operator", metering=False)
    client.flush()
    client.set_submission_contract(str(SUBMISSION_PATH))
    return client


@pytest.fixture
def contract(client):
    code = CONTRACT_PATH.read_text()
    client.submit(code, name="con_private_market", owner=None)
    return client.get_contract("con_private_market")


@pytest.fixture
def ledger(contract):
    return ContractLedger(contract, operator="operator")


@pytest.fixture
def validator(ledger):
    return TransferValidator(ledger)


@pytest.fixture
def alice():
    return OwnerIdentity(ALICE, "alpha")


@pytest.fixture
def bob():
    return OwnerIdentity(BOB, "beta")
