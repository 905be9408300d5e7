from typing import Iterable, Union

from eth_account.hdaccount.mnemonic import Mnemonic
from eth_utils import is_address, keccak, to_checksum_address

from errors import InvalidInput

# ---- Encoding parameters (mirror the on-chain identifiers) ----

DIGEST_SIZE = 32
TOKEN_ID_SIZE = 32
MAX_TOKEN_ID = 2**256 - 1
SECRET_PHRASE_WORDS = 12  # 128 bits of entropy

TokenId = Union[int, str]


def keccak_hex(data: bytes) -> str:
    return "0x" + keccak(data).hex()


def hash_words(parts: Iterable[str]) -> str:
    """
    keccak256(utf8(parts[0] + parts[1] + ...)).

    Every string-shaped identifier is built on this; the order of `parts`
    is part of each identifier's definition.
    """
    parts = list(parts)
    for part in parts:
        if not isinstance(part, str):
            raise InvalidInput(f"hash_words expects strings, got {type(part).__name__}")
    return keccak_hex("".join(parts).encode("utf-8"))


# ---- Input checks (fail closed before hashing) ----

def normalize_address(address: str) -> str:
    if not isinstance(address, str) or not address.startswith("0x") or not is_address(address):
        raise InvalidInput(f"Malformed address: {address!r}")
    return to_checksum_address(address)


def normalize_digest(value: Union[str, bytes], name: str = "digest") -> str:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != DIGEST_SIZE:
            raise InvalidInput(f"{name} must be {DIGEST_SIZE} bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str) or not value:
        raise InvalidInput(f"{name} is required")
    if not value.startswith("0x") or len(value) != 2 + 2 * DIGEST_SIZE:
        raise InvalidInput(f"{name} must be a 0x-prefixed {DIGEST_SIZE}-byte hex string")
    try:
        bytes.fromhex(value[2:])
    except ValueError:
        raise InvalidInput(f"{name} is not valid hex: {value!r}") from None
    return value.lower()


def normalize_token_id(token_id: TokenId) -> int:
    if isinstance(token_id, bool):
        raise InvalidInput("token_id must be an integer")
    if isinstance(token_id, str):
        if not token_id.isdigit():
            raise InvalidInput(f"token_id must be a decimal integer, got {token_id!r}")
        token_id = int(token_id)
    if not isinstance(token_id, int):
        raise InvalidInput(f"token_id must be an integer, got {type(token_id).__name__}")
    if token_id < 0 or token_id > MAX_TOKEN_ID:
        raise InvalidInput(f"token_id out of uint256 range: {token_id}")
    return token_id


def require_secret(secret: str, name: str = "secret") -> str:
    if not isinstance(secret, str) or not secret:
        raise InvalidInput(f"{name} is required")
    return secret


# ---- Derivations ----

def derive_identity_binding(address: str, secret: str) -> str:
    # H(address || secret): shared shape of ownership nullifiers and bid secrets
    return hash_words([normalize_address(address), require_secret(secret)])


def derive_ownership_nullifier(owner_address: str, owner_secret: str) -> str:
    return derive_identity_binding(owner_address, owner_secret)


def derive_bid_secret(bidder_address: str, bidder_secret: str) -> str:
    return derive_identity_binding(bidder_address, bidder_secret)


def derive_commitment(ownership_nullifier: Union[str, bytes], token_id: TokenId) -> str:
    """
    keccak256(nullifier_bytes32 || uint256(token_id)), the 64-byte packed
    encoding Solidity's abi.encodePacked(bytes32, uint256) produces.
    """
    nullifier = normalize_digest(ownership_nullifier, "ownership_nullifier")
    token_id = normalize_token_id(token_id)
    preimage = bytes.fromhex(nullifier[2:]) + token_id.to_bytes(TOKEN_ID_SIZE, "big")
    return keccak_hex(preimage)


def derive_bid_nullifier(bid_secret: str, commitment_hash: str) -> str:
    return hash_words([
        normalize_digest(bid_secret, "bid_secret"),
        normalize_digest(commitment_hash, "commitment_hash"),
    ])


def derive_token_nullifier(sender_address: str, sender_secret: str, commitment_hash: str) -> str:
    # order is fixed: address, secret, commitment
    return hash_words([
        normalize_address(sender_address),
        require_secret(sender_secret, "sender_secret"),
        normalize_digest(commitment_hash, "commitment_hash"),
    ])


# ---- Secret phrases ----

def generate_secret_phrase() -> str:
    return Mnemonic("english").generate(num_words=SECRET_PHRASE_WORDS)


def is_valid_secret_phrase(phrase: str) -> bool:
    if not isinstance(phrase, str) or not phrase.strip():
        return False
    return Mnemonic("english").is_mnemonic_valid(phrase)


# ---- High-level builders -----------------------------------------------------

def build_mint(ownership_nullifier: str, token_id: TokenId):
    """
    Returns args for contract.mint():
        (token_id, commitment)
    Operator-only on-chain; token_id must be the contract's next token id.
    """
    token_id = normalize_token_id(token_id)
    return {
        'token_id': token_id,
        'commitment': derive_commitment(ownership_nullifier, token_id),
    }


def build_bid(bidder_address: str, bidder_secret: str, commitment_hash: str, amount: int):
    """
    Returns args for contract.place_bid():
        (bid_nullifier, amount)
    plus the bid_secret the bidder later hands to the seller out of band.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInput("Bid amount must be a positive integer")

    bid_secret = derive_bid_secret(bidder_address, bidder_secret)
    return {
        'bid_secret': bid_secret,
        'bid_nullifier': derive_bid_nullifier(bid_secret, commitment_hash),
        'amount': amount,
    }


def build_transfer(sender_address: str, sender_secret: str, token_id: TokenId, receiver_secret: str):
    """
    Returns args for contract.transfer():
        (bid_nullifier, token_nullifier)
    You still supply funds_receiver when calling the chain method.
    """
    commitment = derive_commitment(derive_bid_secret(sender_address, sender_secret), token_id)
    return {
        'commitment': commitment,
        'bid_nullifier': derive_bid_nullifier(receiver_secret, commitment),
        'token_nullifier': derive_token_nullifier(sender_address, sender_secret, commitment),
    }


# ---- Convenience: wallet-side identity (optional) ----------------------------

class OwnerIdentity:
    """
    Local holder of an (address, secret phrase) pair. Nothing here is sent
    anywhere; it only derives the identifiers the owner publishes.
    """
    def __init__(self, address: str, secret: str = None):
        self.address = normalize_address(address)
        self.secret = require_secret(secret) if secret is not None else generate_secret_phrase()

    def __repr__(self):
        return f"OwnerIdentity(address={self.address!r})"

    @property
    def ownership_nullifier(self) -> str:
        return derive_ownership_nullifier(self.address, self.secret)

    @property
    def bid_secret(self) -> str:
        return derive_bid_secret(self.address, self.secret)

    def commitment_for(self, token_id: TokenId) -> str:
        return derive_commitment(self.ownership_nullifier, token_id)

    def bid_nullifier_for(self, commitment_hash: str) -> str:
        return derive_bid_nullifier(self.bid_secret, commitment_hash)

    def token_nullifier_for(self, commitment_hash: str) -> str:
        return derive_token_nullifier(self.address, self.secret, commitment_hash)
