import hashlib
import secrets

# ---- Chain-constant parameters & helpers (mirror contracts) ----

CLEARTEXT_WIDTH = 64

def sha3_hex(s: str) -> str:
    # Matches Xian env semantics for non-hex input
    return hashlib.sha3_256(s.encode("utf-8")).hexdigest()

def mod_exp(base: int, exponent: int, modulus: int) -> int:
    if exponent == 0:
        return 1
    result = 1
    base = base % modulus
    e = exponent
    while e > 0:
        if e & 1:
            result = (result * base) % modulus
        e >>= 1
        base = (base * base) % modulus
    return result

def mod_inverse(x: int, modulus: int) -> int:
    # Extended Euclid; modulus need not be prime
    old_r, r = x % modulus, modulus
    old_s, s = 1, 0
    while r:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
    if old_r != 1:
        raise ValueError("Value has no inverse modulo the given modulus")
    return old_s % modulus

def gcd(a: int, b: int) -> int:
    while b:
        a, b = b, a % b
    return a

def handle_width(modulus: int) -> int:
    return len(hex(modulus * modulus)) - 2

def handle_to_bytes(handle: int, modulus: int) -> str:
    # Mirrors con_paillier_cipher.to_bytes
    return hex(handle)[2:].zfill(handle_width(modulus))

def encode_cleartext(value: int) -> str:
    if value < 0 or value >= 2 ** 256:
        raise ValueError("Aggregate does not fit the 32-byte cleartext schema")
    return hex(value)[2:].zfill(CLEARTEXT_WIDTH)

def state_commitment(total_bytes: str, contribution_count: int, system: str) -> str:
    # Mirrors con_share_aggregator.state_commitment
    return sha3_hex("XAGG:commit|" + total_bytes + "|" + str(contribution_count) + "|" + system)

# ---- Primes -----------------------------------------------------------------

def is_probable_prime(n: int, rounds: int = 40) -> bool:
    if n < 2:
        return False
    for small in (2, 3, 5, 7, 11, 13, 17, 19, 23, 29):
        if n % small == 0:
            return n == small

    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for _ in range(rounds):
        a = secrets.randbelow(n - 3) + 2
        x = mod_exp(a, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(s - 1):
            x = (x * x) % n
            if x == n - 1:
                break
        else:
            return False
    return True

def random_prime(bits: int) -> int:
    while True:
        candidate = secrets.randbits(bits) | (1 << (bits - 1)) | 1
        if is_probable_prime(candidate):
            return candidate

# ---- Keys -------------------------------------------------------------------

class PaillierKeypair:
    """
    Decryption key held by the oracle's off-chain decryptor.
    Contributors only ever need the public modulus `n`.
    """
    def __init__(self, p: int, q: int):
        if p == q:
            raise ValueError("Primes must be distinct")
        n = p * q
        phi = (p - 1) * (q - 1)
        if gcd(n, phi) != 1:
            raise ValueError("Primes are not suitable for Paillier")

        self.n = n
        self.n_sq = n * n
        self.phi = phi
        self.lam = phi // gcd(p - 1, q - 1)
        self.mu = mod_inverse(self.lam, n)

    def encrypt(self, value: int, randomness: int = None) -> int:
        return encrypt(self.n, value, randomness)

    def decrypt(self, handle: int) -> int:
        if not 0 < handle < self.n_sq:
            raise ValueError("Handle is not an initialized ciphertext")
        u = mod_exp(handle, self.lam, self.n_sq)
        return (((u - 1) // self.n) * self.mu) % self.n

    def recover_randomness(self, handle: int, value: int) -> int:
        """
        Returns r with (1 + value*n) * r^n == handle (mod n^2).
        """
        stripped = (handle * (1 - value * self.n)) % self.n_sq
        return mod_exp(stripped % self.n, mod_inverse(self.n, self.phi), self.n)

def keypair_from_primes(p: int, q: int) -> PaillierKeypair:
    for prime in (p, q):
        if not is_probable_prime(prime):
            raise ValueError("Both factors must be prime")
    return PaillierKeypair(p, q)

def generate_keypair(bits: int = 2048) -> PaillierKeypair:
    half = bits // 2
    while True:
        p = random_prime(half)
        q = random_prime(bits - half)
        if p != q and gcd(p * q, (p - 1) * (q - 1)) == 1:
            return PaillierKeypair(p, q)

def random_randomness(modulus: int) -> int:
    while True:
        r = secrets.randbelow(modulus - 1) + 1
        if gcd(r, modulus) == 1:
            return r

def encrypt(modulus: int, value: int, randomness: int = None) -> int:
    if value < 0 or value >= modulus:
        raise ValueError("Value out of plaintext range")
    if randomness is None:
        randomness = random_randomness(modulus)
    n_sq = modulus * modulus
    return ((1 + value * modulus) * mod_exp(randomness, modulus, n_sq)) % n_sq

# ---- High-level builders -----------------------------------------------------

def build_contribution(public_modulus: int,
                       amount: int,
                       randomness: int = None):
    """
    Returns args for contract.contribute():
        (batch_id, value)
    You still supply `batch_id` when calling the chain method.
    """
    value = encrypt(public_modulus, amount, randomness)
    return {
        'value': value,
        'value_bytes': handle_to_bytes(value, public_modulus)
    }

def build_reveal_fulfillment(keypair: PaillierKeypair,
                             request_id: int,
                             handle_hex: str):
    """
    Returns args for oracle.fulfill():
        (request_id, cleartext, proof)
    Operator-side only: needs the decryption key.
    """
    handle = int(handle_hex, 16)
    value = keypair.decrypt(handle)
    r = keypair.recover_randomness(handle, value)
    return {
        'request_id': request_id,
        'cleartext': encode_cleartext(value),
        'proof': f"{request_id}:{hex(r)[2:]}",
        'value': value
    }

# ---- Convenience: relayer-side tracker (optional) ---------------------------

class RevealRelayer:
    """
    Optional local helper for the oracle relayer.
    Answers each oracle request once; redelivery is an explicit decision.
    """
    def __init__(self, keypair: PaillierKeypair):
        self.keypair = keypair
        self.answered = set()

    def answer(self, request_id: int, oracle_request: dict):
        if oracle_request is None:
            raise ValueError("Unknown oracle request")
        if len(oracle_request['handles']) != 1:
            raise ValueError("Expected a single aggregate handle")
        if request_id in self.answered:
            raise ValueError("Request already answered")

        plan = build_reveal_fulfillment(self.keypair, request_id, oracle_request['handles'][0])
        self.answered.add(request_id)
        return plan
