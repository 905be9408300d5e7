import pytest

from errors import InvalidInput, LedgerError
from ledger import ContractLedger

from conftest import CAROL


def place_bid(contract, helper, bidder, commitment, amount, *, block_num):
    params = helper.build_bid(bidder.address, bidder.secret, commitment, amount)
    contract.place_bid(
        bid_nullifier=params["bid_nullifier"],
        amount=params["amount"],
        signer=bidder.address,
        environment={"block_num": block_num},
    )
    return params


def test_mint_derives_commitment_for_next_token(ledger, helper_module, alice):
    first = ledger.mint(alice.ownership_nullifier)
    second = ledger.mint(helper_module.derive_ownership_nullifier(CAROL, "gamma"))

    assert first.token_id == 1
    assert first.commitment == alice.commitment_for(1)
    assert second.token_id == 2
    assert first.transaction_ref != second.transaction_ref


def test_mint_refuses_malformed_nullifier_before_contract_call(ledger, contract):
    with pytest.raises(InvalidInput):
        ledger.mint("0x1234")
    assert contract.get_next_token_id() == 1


def test_refresh_pulls_commitments_and_bids(ledger, contract, helper_module, alice, bob):
    minted = ledger.mint(alice.ownership_nullifier)
    bid = place_bid(contract, helper_module, bob, minted.commitment, 40, block_num=10)

    assert ledger.get_commitment_log() == ()
    assert ledger.refresh() == (1, 1)

    log = ledger.get_commitment_log()
    assert [r.commitment_hash for r in log] == [minted.commitment]
    active = ledger.get_active_bids()
    assert active[bid["bid_nullifier"]].amount == 40
    assert active[bid["bid_nullifier"]].timestamp == 10

    assert ledger.refresh() == (0, 0)


def test_refresh_folds_withdrawals(ledger, contract, helper_module, alice, bob):
    minted = ledger.mint(alice.ownership_nullifier)
    place_bid(contract, helper_module, bob, minted.commitment, 40, block_num=10)
    ledger.refresh()

    contract.withdraw_bid(signer=bob.address, environment={"block_num": 11})
    ledger.refresh()

    assert dict(ledger.get_active_bids()) == {}
    assert len(ledger.state.bid_events()) == 2


def test_refresh_skips_records_before_publish_block(contract, helper_module, alice, bob):
    blocks = iter([1, 50])
    ledger = ContractLedger(contract, publish_block=20, block_source=lambda: next(blocks))
    old = ledger.mint(alice.ownership_nullifier)
    new = ledger.mint(helper_module.derive_ownership_nullifier(CAROL, "gamma"))
    place_bid(contract, helper_module, bob, old.commitment, 5, block_num=3)

    assert ledger.refresh() == (1, 0)
    assert [r.token_id for r in ledger.get_commitment_log()] == [new.token_id]


def test_execute_transfer_wraps_contract_rejection(ledger, helper_module, alice, bob):
    ledger.mint(alice.ownership_nullifier)
    plan = helper_module.build_transfer(alice.address, alice.secret, 1, bob.bid_secret)

    with pytest.raises(LedgerError) as excinfo:
        ledger.execute_transfer(plan["bid_nullifier"], plan["token_nullifier"], CAROL)
    assert isinstance(excinfo.value.__cause__, AssertionError)
    assert not ledger.is_token_nullifier_spent(plan["token_nullifier"])


def test_execute_transfer_marks_nullifier_spent(ledger, contract, helper_module, alice, bob):
    minted = ledger.mint(alice.ownership_nullifier)
    place_bid(contract, helper_module, bob, minted.commitment, 90, block_num=4)
    plan = helper_module.build_transfer(alice.address, alice.secret, 1, bob.bid_secret)

    result = ledger.execute_transfer(plan["bid_nullifier"], plan["token_nullifier"], CAROL)

    assert result.success
    assert ledger.is_token_nullifier_spent(plan["token_nullifier"])
    assert ledger.payout_of(helper_module.normalize_address(CAROL)) == 90
    assert ledger.bid_of(bob.address) is None


def test_execute_transfer_refuses_bad_receiver(ledger, helper_module, alice, bob):
    plan = helper_module.build_transfer(alice.address, alice.secret, 1, bob.bid_secret)
    with pytest.raises(InvalidInput):
        ledger.execute_transfer(plan["bid_nullifier"], plan["token_nullifier"], "0xC")


def test_bid_of_reports_active_bid(ledger, contract, helper_module, alice, bob):
    minted = ledger.mint(alice.ownership_nullifier)
    assert ledger.bid_of(bob.address) is None
    bid = place_bid(contract, helper_module, bob, minted.commitment, 1, block_num=2)
    assert ledger.bid_of(bob.address) == bid["bid_nullifier"]


def test_metadata_passthrough(ledger):
    metadata = ledger.metadata()
    assert metadata["operator"] == "operator"
    assert metadata["next_token_id"] == 1


class UnreachableContract:
    def get_next_token_id(self, **kwargs):
        raise ConnectionError("node unreachable")


class MalformedMintContract:
    def get_next_token_id(self, **kwargs):
        return 1

    def mint(self, **kwargs):
        return {"token_id": 1}


def test_client_failures_surface_as_ledger_error(alice):
    ledger = ContractLedger(UnreachableContract())
    with pytest.raises(LedgerError) as excinfo:
        ledger.mint(alice.ownership_nullifier)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_malformed_mint_result_is_ledger_error(alice):
    ledger = ContractLedger(MalformedMintContract())
    with pytest.raises(LedgerError) as excinfo:
        ledger.mint(alice.ownership_nullifier)
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_bid_of_accepts_any_address_case(ledger, contract, helper_module, alice, bob):
    minted = ledger.mint(alice.ownership_nullifier)
    bid = place_bid(contract, helper_module, bob, minted.commitment, 1, block_num=2)
    assert ledger.bid_of(bob.address.lower()) == bid["bid_nullifier"]
    with pytest.raises(InvalidInput):
        ledger.bid_of("0xB")
