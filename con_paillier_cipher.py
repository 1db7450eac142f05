"""
PAILLIER CIPHER

Additively homomorphic ciphertext handles for confidential contributions.
Public key only (modulus n, generator n + 1); nothing here can decrypt.

  - add(a, b)      == Enc(m_a + m_b)      (a * b mod n^2)
  - identity()     == Enc(0) with r = 1
  - to_bytes(c)    fixed-width hex handle used for hashing and oracle submission
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

IDENTITY = 1

metadata = Hash()

def gcd(a: int, b: int):
    while b > 0:
        a, b = b, a % b
    return a

def is_valid_handle(handle: int):
    # Units of Z/n^2 only; products of units never collapse to 0
    if not isinstance(handle, int) or not 0 < handle < metadata['modulus_sq']:
        return False
    return gcd(handle, metadata['modulus']) == 1

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(n: int):
    assert n > 3, 'InvalidArgument: modulus too small'
    metadata['modulus'] = n
    metadata['modulus_sq'] = n * n
    metadata['handle_width'] = len(hex(n * n)) - 2

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_public_key():
    return {
        'modulus': metadata['modulus'],
        'handle_width': metadata['handle_width']
    }

@export
def identity():
    return IDENTITY

@export
def is_initialized(handle: int):
    return is_valid_handle(handle)

# -----------------------------------------------------------------------------
# Homomorphic ops
# -----------------------------------------------------------------------------

@export
def add(a: int, b: int):
    assert is_valid_handle(a), 'InvalidArgument: left operand is not an initialized handle'
    assert is_valid_handle(b), 'InvalidArgument: right operand is not an initialized handle'
    return (a * b) % metadata['modulus_sq']

@export
def to_bytes(handle: int):
    assert is_valid_handle(handle), 'InvalidArgument: handle is not initialized'
    return hex(handle)[2:].zfill(metadata['handle_width'])
