"""
DECRYPTION ORACLE

On-chain half of the threshold decryption service.
  - consumers queue ciphertext handles together with a callback contract
  - the off-chain relayer decrypts, then delivers (cleartext, proof) via fulfill()
Delivery is at-least-once; consumers must guard against replays themselves.
"""

I = importlib

# request_id -> {'requester', 'callback', 'handles', 'deliveries'}
requests = Hash()

metadata = Hash()

next_request_id = Variable()

callback_interface = [
    I.Func('handle_reveal_callback', args=('request_id', 'cleartext', 'proof')),
]

# Events
DecryptionRequestedEvent = LogEvent('DecryptionRequested', {
    'request_id': {'type': int, 'idx': True},
    'requester': {'type': str, 'idx': True},
    'callback': {'type': str}
})

DecryptionDeliveredEvent = LogEvent('DecryptionDelivered', {
    'request_id': {'type': int, 'idx': True},
    'callback': {'type': str, 'idx': True},
    'delivery': {'type': int}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(relayer: str):
    metadata['operator'] = ctx.caller
    metadata['relayer'] = relayer
    next_request_id.set(1)

@export
def set_relayer(relayer: str):
    assert ctx.caller == metadata['operator'], 'Only operator can set relayer'
    metadata['relayer'] = relayer

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_request(request_id: int):
    return requests[request_id]

# -----------------------------------------------------------------------------
# Request / fulfil
# -----------------------------------------------------------------------------

@export
def request_decryption(handles: list, callback: str):
    assert len(handles) > 0, 'Nothing to decrypt'

    callback_contract = I.import_module(callback)
    assert I.enforce_interface(callback_contract, callback_interface), 'Callback does not accept reveal results'

    request_id = next_request_id.get()
    next_request_id.set(request_id + 1)

    requests[request_id] = {
        'requester': ctx.caller,
        'callback': callback,
        'handles': handles,
        'deliveries': 0
    }

    DecryptionRequestedEvent({
        'request_id': request_id,
        'requester': ctx.caller,
        'callback': callback
    })
    return request_id

@export
def fulfill(request_id: int, cleartext: str, proof: str):
    assert ctx.caller == metadata['relayer'], 'Only relayer can fulfill'

    request = requests[request_id]
    assert request is not None, 'Unknown request'

    request['deliveries'] += 1
    requests[request_id] = request

    DecryptionDeliveredEvent({
        'request_id': request_id,
        'callback': request['callback'],
        'delivery': request['deliveries']
    })

    callback_contract = I.import_module(request['callback'])
    callback_contract.handle_reveal_callback(
        request_id=request_id,
        cleartext=cleartext,
        proof=proof
    )
