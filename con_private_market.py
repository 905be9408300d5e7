"""
PRIVATE MARKET

NFT ownership, bids and transfers are stored only as 32-byte digests:
  - commitment     = H(ownership_nullifier || token_id)
  - bid nullifier  = H(bid_secret || commitment)
  - token nullifier spent exactly once per transfer

The contract never sees an owner's address next to the token it owns.
Digests are computed off-chain (keccak-256); the contract only enforces
uniqueness, ordering and single-use of token nullifiers.
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

DIGEST_HEX_LEN = 66  # '0x' + 64 hex chars

def assert_digest(value: str, name: str):
    assert isinstance(value, str), name + ' must be a string'
    assert len(value) == DIGEST_HEX_LEN and value.startswith('0x'), name + ' must be a 32-byte hex digest'
    int(value[2:], 16)

def normalize(value: str):
    return value.lower()

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# token_id -> {'commitment': str, 'minted_at': int, 'tx_id': int}
commitments = Hash()
# commitment -> token_id
commitment_index = Hash()

# bid_nullifier -> {'bidder': str, 'amount': int, 'placed_at': int}
bids = Hash()
# bidder -> bid_nullifier (one active bid per bidder)
bidder_bids = Hash()

# token_nullifier -> True once consumed
token_nullifiers = Hash(default_value=False)

# event_id -> {'type': 'placed' | 'withdrawn', 'bid_nullifier': str, 'amount': int, 'timestamp': int}
bid_events = Hash()

# address -> accrued amount (sale proceeds and refunds)
payouts = Hash(default_value=0)

metadata = Hash()

next_token_id = Variable()
next_event_id = Variable()
next_tx_id = Variable()

# Events
NftMintedEvent = LogEvent('NftMinted', {
    'token_id': {'type': int, 'idx': True},
    'commitment': {'type': str, 'idx': True},
    'tx_id': {'type': int, 'idx': True}
})

BidPlacedEvent = LogEvent('BidPlaced', {
    'bidder': {'type': str, 'idx': True},
    'bid_nullifier': {'type': str, 'idx': True},
    'amount': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

BidWithdrawnEvent = LogEvent('BidWithdrawn', {
    'bidder': {'type': str, 'idx': True},
    'bid_nullifier': {'type': str, 'idx': True},
    'amount': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

TokenTransferredEvent = LogEvent('TokenTransferred', {
    'bid_nullifier': {'type': str, 'idx': True},
    'token_nullifier': {'type': str, 'idx': True},
    'funds_receiver': {'type': str},
    'amount': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed():
    metadata['name'] = "Private Market"
    metadata['symbol'] = "PMKT"
    metadata['operator'] = ctx.caller

    next_token_id.set(1)
    next_event_id.set(1)
    next_tx_id.set(1)

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_metadata():
    return {
        'name': metadata['name'],
        'symbol': metadata['symbol'],
        'operator': metadata['operator'],
        'next_token_id': next_token_id.get(),
        'event_count': next_event_id.get() - 1
    }

@export
def set_operator(new_operator: str):
    assert ctx.caller == metadata['operator'], 'Only operator can rotate operator'
    assert isinstance(new_operator, str) and new_operator != '', 'Operator required'
    metadata['operator'] = new_operator
    return new_operator

@export
def get_next_token_id():
    return next_token_id.get()

@export
def get_commitment(token_id: int):
    data = commitments[token_id]
    if data is None:
        return {
            'exists': False,
            'token_id': token_id,
            'commitment': '',
            'minted_at': 0
        }
    return {
        'exists': True,
        'token_id': token_id,
        'commitment': data['commitment'],
        'minted_at': data['minted_at']
    }

@export
def get_event_count():
    return next_event_id.get() - 1

@export
def get_bid_event(event_id: int):
    data = bid_events[event_id]
    assert data is not None, 'Unknown bid event'
    return {
        'id': event_id,
        'type': data['type'],
        'bid_nullifier': data['bid_nullifier'],
        'amount': data['amount'],
        'timestamp': data['timestamp']
    }

@export
def get_bid(bid_nullifier: str):
    data = bids[normalize(bid_nullifier)]
    if data is None:
        return {'exists': False, 'amount': 0, 'placed_at': 0}
    return {'exists': True, 'amount': data['amount'], 'placed_at': data['placed_at']}

@export
def get_bid_of(bidder: str):
    bid_nullifier = bidder_bids[bidder]
    return bid_nullifier if bid_nullifier is not None else ''

@export
def is_token_nullifier_spent(token_nullifier: str):
    return token_nullifiers[normalize(token_nullifier)]

@export
def get_payout(address: str):
    return payouts[address]

# -----------------------------------------------------------------------------
# Internal bookkeeping
# -----------------------------------------------------------------------------

def next_tx():
    tid = next_tx_id.get()
    next_tx_id.set(tid + 1)
    return tid

def append_bid_event(event_type: str, bid_nullifier: str, amount: int):
    eid = next_event_id.get()
    next_event_id.set(eid + 1)
    bid_events[eid] = {
        'type': event_type,
        'bid_nullifier': bid_nullifier,
        'amount': amount,
        'timestamp': block_num
    }
    return eid

def remove_bid(bid_nullifier: str):
    data = bids[bid_nullifier]
    bids[bid_nullifier] = None
    bidder_bids[data['bidder']] = None
    append_bid_event('withdrawn', bid_nullifier, data['amount'])
    return data

# -----------------------------------------------------------------------------
# Core: minting
# -----------------------------------------------------------------------------

@export
def mint(token_id: int, commitment: str):
    assert ctx.caller == metadata['operator'], 'Only operator can mint'
    assert token_id == next_token_id.get(), 'Bad token id'

    assert_digest(commitment, 'commitment')
    commitment = normalize(commitment)
    assert commitment_index[commitment] is None, 'Commitment already minted'

    tx_id = next_tx()
    commitments[token_id] = {
        'commitment': commitment,
        'minted_at': block_num,
        'tx_id': tx_id
    }
    commitment_index[commitment] = token_id
    next_token_id.set(token_id + 1)

    NftMintedEvent({
        'token_id': token_id,
        'commitment': commitment,
        'tx_id': tx_id
    })
    return {'token_id': token_id, 'commitment': commitment, 'tx_id': tx_id}

# -----------------------------------------------------------------------------
# Core: bids
# -----------------------------------------------------------------------------

@export
def place_bid(bid_nullifier: str, amount: int):
    assert amount > 0, 'Bid amount must be positive'
    assert bidder_bids[ctx.caller] is None, 'Bidder already has an active bid'

    assert_digest(bid_nullifier, 'bid_nullifier')
    bid_nullifier = normalize(bid_nullifier)
    assert bids[bid_nullifier] is None, 'Bid nullifier already active'

    bids[bid_nullifier] = {
        'bidder': ctx.caller,
        'amount': amount,
        'placed_at': block_num
    }
    bidder_bids[ctx.caller] = bid_nullifier
    append_bid_event('placed', bid_nullifier, amount)

    tx_id = next_tx()
    BidPlacedEvent({
        'bidder': ctx.caller,
        'bid_nullifier': bid_nullifier,
        'amount': amount,
        'tx_id': tx_id
    })
    return tx_id

@export
def withdraw_bid():
    bid_nullifier = bidder_bids[ctx.caller]
    assert bid_nullifier is not None, 'No active bid'

    data = remove_bid(bid_nullifier)
    payouts[ctx.caller] += data['amount']

    tx_id = next_tx()
    BidWithdrawnEvent({
        'bidder': ctx.caller,
        'bid_nullifier': bid_nullifier,
        'amount': data['amount'],
        'tx_id': tx_id
    })
    return tx_id

# -----------------------------------------------------------------------------
# Core: transfer (single atomic test-and-set on the token nullifier)
# -----------------------------------------------------------------------------

@export
def transfer(bid_nullifier: str, token_nullifier: str, funds_receiver: str):
    assert ctx.caller == metadata['operator'], 'Only operator can transfer'

    assert_digest(bid_nullifier, 'bid_nullifier')
    assert_digest(token_nullifier, 'token_nullifier')
    bid_nullifier = normalize(bid_nullifier)
    token_nullifier = normalize(token_nullifier)

    # replay protection
    assert not token_nullifiers[token_nullifier], 'Token nullifier already spent'
    assert bids[bid_nullifier] is not None, 'Bid not found'

    token_nullifiers[token_nullifier] = True
    data = remove_bid(bid_nullifier)
    payouts[funds_receiver] += data['amount']

    tx_id = next_tx()
    TokenTransferredEvent({
        'bid_nullifier': bid_nullifier,
        'token_nullifier': token_nullifier,
        'funds_receiver': funds_receiver,
        'amount': data['amount'],
        'tx_id': tx_id
    })
    return tx_id
