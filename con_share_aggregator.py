"""
CONFIDENTIAL SHARE AGGREGATOR

Authorized contributors submit encrypted shares into capped batches.
On-chain only ever combines ciphertexts:
  - C_total_new == add(C_total_old, C_share)   (homomorphic, via the cipher)

Reveal is a two-step protocol against an external decryption oracle:
  - request_reveal() pins a commitment to the current C_total
  - handle_reveal_callback() accepts the cleartext only if the request is
    unconsumed, C_total has not moved since, and the proof verifies.

Trust boundary: handle_reveal_callback() accepts calls from the configured
oracle contract only (ctx.caller check).
"""

I = importlib

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

CLEARTEXT_WIDTH = 64  # 32-byte big-endian unsigned aggregate
HEX_DIGITS = '0123456789abcdef'
CONFIG_KEYS = ['name', 'oracle', 'verifier']

def domain_hash(*parts):
    s = "|".join(str(x) for x in parts)
    return hashlib.sha3("XAGG:commit|" + s)

def state_commitment(batch: dict, total_bytes: str):
    # Binds a reveal to this exact ciphertext, the number of shares in it,
    # and this deployment
    return domain_hash(total_bytes, batch['contribution_count'], ctx.this)

def is_fixed_hex(value: str, width: int):
    if len(value) != width:
        return False
    for ch in value:
        if ch not in HEX_DIGITS:
            return False
    return True

cipher_interface = [
    I.Func('add', args=('a', 'b')),
    I.Func('to_bytes', args=('handle',)),
    I.Func('is_initialized', args=('handle',)),
]

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# config: name, admin, cipher, oracle, verifier, paused, min_interval,
# model_version, current_batch_id
metadata = Hash()

# address -> bool
contributors = Hash(default_value=False)

# address -> Datetime of last stamped action
last_action_at = Hash()

# batch_id -> {'id', 'is_open', 'contribution_count', 'max_contributions',
#              'encrypted_total', 'opened_by'}
batches = Hash()

# (batch_id, index) -> {'batch_id', 'index', 'contributor', 'value',
#                       'initialized', 'submitted_at'}
contributions = Hash()

# request_id -> {'request_id', 'batch_id', 'model_version', 'state_commitment',
#                'ciphertext', 'processed', 'revealed_total'}
requests = Hash()

# Events
BatchOpenedEvent = LogEvent('BatchOpened', {
    'batch_id': {'type': int, 'idx': True},
    'max_contributions': {'type': int}
})

BatchClosedEvent = LogEvent('BatchClosed', {
    'batch_id': {'type': int, 'idx': True}
})

ContributionRecordedEvent = LogEvent('ContributionRecorded', {
    'contributor': {'type': str, 'idx': True},
    'batch_id': {'type': int, 'idx': True},
    'index': {'type': int},
    'value': {'type': str}
})

RevealRequestedEvent = LogEvent('RevealRequested', {
    'request_id': {'type': int, 'idx': True},
    'batch_id': {'type': int, 'idx': True}
})

RevealCompletedEvent = LogEvent('RevealCompleted', {
    'request_id': {'type': int, 'idx': True},
    'batch_id': {'type': int, 'idx': True},
    'revealed_total': {'type': int}
})

ContributorAddedEvent = LogEvent('ContributorAdded', {
    'address': {'type': str, 'idx': True}
})

ContributorRemovedEvent = LogEvent('ContributorRemoved', {
    'address': {'type': str, 'idx': True}
})

PauseChangedEvent = LogEvent('PauseChanged', {
    'status': {'type': str}
})

MinIntervalChangedEvent = LogEvent('MinIntervalChanged', {
    'seconds': {'type': int}
})

AdminTransferredEvent = LogEvent('AdminTransferred', {
    'previous': {'type': str, 'idx': True},
    'admin': {'type': str, 'idx': True}
})

ModelVersionChangedEvent = LogEvent('ModelVersionChanged', {
    'version': {'type': int}
})

MetadataChangedEvent = LogEvent('MetadataChanged', {
    'key': {'type': str, 'idx': True},
    'value': {'type': str}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(cipher: str, oracle: str, verifier: str, min_interval: int = 60, name: str = "Confidential Share Aggregator"):
    assert min_interval >= 0, 'InvalidArgument: min_interval must not be negative'
    assert I.enforce_interface(I.import_module(cipher), cipher_interface), 'InvalidArgument: cipher lacks homomorphic interface'

    metadata['name'] = name
    metadata['admin'] = ctx.caller
    metadata['cipher'] = cipher
    metadata['oracle'] = oracle
    metadata['verifier'] = verifier
    metadata['paused'] = False
    metadata['min_interval'] = min_interval
    metadata['model_version'] = 1
    metadata['current_batch_id'] = 0

# -----------------------------------------------------------------------------
# Access control
# -----------------------------------------------------------------------------

def require_admin():
    assert ctx.caller == metadata['admin'], 'Unauthorized: admin only'

def require_contributor():
    assert contributors[ctx.caller], 'Unauthorized: not a contributor'

def require_not_paused():
    assert not metadata['paused'], 'SystemPaused'

def check_and_stamp_cooldown(caller: str):
    last = last_action_at[caller]
    if last is not None:
        assert now >= last + datetime.SECONDS * metadata['min_interval'], 'RateLimited'
    last_action_at[caller] = now

@export
def add_contributor(address: str):
    require_admin()
    contributors[address] = True
    ContributorAddedEvent({'address': address})

@export
def remove_contributor(address: str):
    require_admin()
    contributors[address] = False
    ContributorRemovedEvent({'address': address})

@export
def set_paused(paused: bool):
    require_admin()
    metadata['paused'] = paused
    PauseChangedEvent({'status': 'paused' if paused else 'active'})

@export
def set_min_interval(seconds: int):
    require_admin()
    assert seconds >= 0, 'InvalidArgument: min_interval must not be negative'
    metadata['min_interval'] = seconds
    MinIntervalChangedEvent({'seconds': seconds})

@export
def transfer_admin(new_admin: str):
    require_admin()
    previous = metadata['admin']
    metadata['admin'] = new_admin
    AdminTransferredEvent({'previous': previous, 'admin': new_admin})

@export
def set_model_version(version: int):
    require_admin()
    assert version > metadata['model_version'], 'InvalidArgument: model version must increase'
    metadata['model_version'] = version
    ModelVersionChangedEvent({'version': version})

@export
def change_metadata(key: str, value: str):
    require_admin()
    assert key in CONFIG_KEYS, 'InvalidArgument: key is not configurable'
    metadata[key] = value
    MetadataChangedEvent({'key': key, 'value': value})

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_metadata():
    return {
        'name': metadata['name'],
        'admin': metadata['admin'],
        'cipher': metadata['cipher'],
        'oracle': metadata['oracle'],
        'verifier': metadata['verifier'],
        'paused': metadata['paused'],
        'min_interval': metadata['min_interval'],
        'model_version': metadata['model_version'],
        'current_batch_id': metadata['current_batch_id']
    }

@export
def is_available():
    return not metadata['paused']

@export
def is_contributor(address: str):
    return contributors[address]

@export
def get_current_batch_id():
    return metadata['current_batch_id']

@export
def get_batch(batch_id: int):
    return batches[batch_id]

@export
def get_contribution(batch_id: int, index: int):
    return contributions[batch_id, index]

@export
def get_request(request_id: int):
    return requests[request_id]

# -----------------------------------------------------------------------------
# Batch ledger
# -----------------------------------------------------------------------------

@export
def open_batch(max_contributions: int):
    require_admin()
    assert max_contributions > 0, 'InvalidArgument: max_contributions must be positive'

    cipher = I.import_module(metadata['cipher'])

    # Earlier batches are left as they are, open or not
    batch_id = metadata['current_batch_id'] + 1
    metadata['current_batch_id'] = batch_id

    batches[batch_id] = {
        'id': batch_id,
        'is_open': True,
        'contribution_count': 0,
        'max_contributions': max_contributions,
        'encrypted_total': cipher.identity(),
        'opened_by': ctx.caller
    }

    BatchOpenedEvent({
        'batch_id': batch_id,
        'max_contributions': max_contributions
    })
    return batch_id

@export
def close_batch(batch_id: int):
    require_admin()
    assert batch_id == metadata['current_batch_id'] and batch_id > 0, 'NotCurrentBatch'

    batch = batches[batch_id]
    batch['is_open'] = False
    batches[batch_id] = batch

    BatchClosedEvent({'batch_id': batch_id})

@export
def contribute(batch_id: int, value: int):
    require_contributor()
    require_not_paused()
    check_and_stamp_cooldown(ctx.caller)

    batch = batches[batch_id]
    assert batch is not None and batch['is_open'], 'BatchNotOpen'
    assert batch['contribution_count'] < batch['max_contributions'], 'BatchFull'

    cipher = I.import_module(metadata['cipher'])
    assert cipher.is_initialized(handle=value), 'InvalidArgument: malformed ciphertext handle'

    total = batch['encrypted_total']
    assert cipher.is_initialized(handle=total), 'InvalidArgument: batch total is not an initialized handle'

    index = batch['contribution_count']
    contributions[batch_id, index] = {
        'batch_id': batch_id,
        'index': index,
        'contributor': ctx.caller,
        'value': value,
        'initialized': True,
        'submitted_at': now
    }

    batch['encrypted_total'] = cipher.add(a=total, b=value)
    batch['contribution_count'] = index + 1
    batches[batch_id] = batch

    ContributionRecordedEvent({
        'contributor': ctx.caller,
        'batch_id': batch_id,
        'index': index,
        'value': cipher.to_bytes(handle=value)
    })
    return index

# -----------------------------------------------------------------------------
# Decryption oracle bridge
# -----------------------------------------------------------------------------

@export
def request_reveal(batch_id: int):
    require_admin()
    require_not_paused()

    batch = batches[batch_id]
    assert batch is not None, 'InvalidArgument: unknown batch'
    assert batch['contribution_count'] > 0, 'EmptyBatch'

    cipher = I.import_module(metadata['cipher'])
    total_bytes = cipher.to_bytes(handle=batch['encrypted_total'])
    commitment = state_commitment(batch, total_bytes)

    oracle = I.import_module(metadata['oracle'])
    request_id = oracle.request_decryption(handles=[total_bytes], callback=ctx.this)
    assert requests[request_id] is None, 'InvalidArgument: oracle reused a request id'

    requests[request_id] = {
        'request_id': request_id,
        'batch_id': batch_id,
        'model_version': metadata['model_version'],
        'state_commitment': commitment,
        'ciphertext': total_bytes,
        'processed': False,
        'revealed_total': None
    }

    RevealRequestedEvent({
        'request_id': request_id,
        'batch_id': batch_id
    })
    return request_id

@export
def handle_reveal_callback(request_id: int, cleartext: str, proof: str):
    assert ctx.caller == metadata['oracle'], 'Unauthorized: callback must come from the oracle'

    request = requests[request_id]
    assert request is not None, 'InvalidArgument: unknown request'
    assert not request['processed'], 'AlreadyProcessed'

    batch = batches[request['batch_id']]
    cipher = I.import_module(metadata['cipher'])
    current = state_commitment(batch, cipher.to_bytes(handle=batch['encrypted_total']))
    assert current == request['state_commitment'], 'StaleState'

    verifier = I.import_module(metadata['verifier'])
    assert is_fixed_hex(cleartext, CLEARTEXT_WIDTH) and verifier.verify(
        request_id=request_id,
        ciphertext=request['ciphertext'],
        cleartext=cleartext,
        proof=proof
    ), 'InvalidProof'

    revealed_total = int(cleartext, 16)

    request['processed'] = True
    request['revealed_total'] = revealed_total
    requests[request_id] = request

    RevealCompletedEvent({
        'request_id': request_id,
        'batch_id': request['batch_id'],
        'revealed_total': revealed_total
    })
