"""
REVEAL VERIFIER

Checks that a cleartext is the honest Paillier decryption of a ciphertext.

A proof is the envelope "<request_id>:<r hex>" where r is the encryption
randomness recovered by the decryptor. It is accepted iff

  (1 + m*n) * r^n == c  (mod n^2)

which has exactly one solution m in [0, n) for a given c.
Never raises on malformed input; it answers False instead.
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

HEX_DIGITS = '0123456789abcdef'

metadata = Hash()

def mod_exp(base: int, exponent: int, modulus: int):
    if exponent == 0:
        return 1
    result = 1
    base = base % modulus
    while exponent > 0:
        if exponent % 2 == 1:
            result = (result * base) % modulus
        exponent = exponent >> 1
        base = (base * base) % modulus
    return result

def is_hex(value: str):
    if len(value) == 0:
        return False
    for ch in value:
        if ch not in HEX_DIGITS:
            return False
    return True

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed(n: int):
    assert n > 3, 'Modulus too small'
    metadata['modulus'] = n
    metadata['modulus_sq'] = n * n

# -----------------------------------------------------------------------------
# Verification
# -----------------------------------------------------------------------------

@export
def verify(request_id: int, ciphertext: str, cleartext: str, proof: str):
    envelope = proof.split(':')
    if len(envelope) != 2 or envelope[0] != str(request_id):
        return False

    r_hex = envelope[1]
    if not is_hex(r_hex) or not is_hex(ciphertext) or not is_hex(cleartext):
        return False

    n = metadata['modulus']
    n_sq = metadata['modulus_sq']

    m = int(cleartext, 16)
    r = int(r_hex, 16)
    c = int(ciphertext, 16)

    if m >= n or r <= 0 or r >= n or c <= 0 or c >= n_sq:
        return False

    return ((1 + m * n) * mod_exp(r, n, n_sq)) % n_sq == c
