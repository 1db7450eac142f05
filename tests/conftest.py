import hashlib
import importlib.util
from pathlib import Path

import contracting
import pytest
from contracting.client import ContractingClient
from contracting.compilation import whitelists
from contracting.stdlib.bridge.time import Datetime

PROJECT_ROOT = Path(__file__).resolve().parents[1]
AGGREGATOR_PATH = PROJECT_ROOT / "con_share_aggregator.py"
CIPHER_PATH = PROJECT_ROOT / "con_paillier_cipher.py"
ORACLE_PATH = PROJECT_ROOT / "con_decryption_oracle.py"
VERIFIER_PATH = PROJECT_ROOT / "con_reveal_verifier.py"
HELPER_PATH = PROJECT_ROOT / "client_helper.py"
SUBMISSION_PATH = (
    Path(contracting.__file__).resolve().parent / "contracts" / "submission.s.py"
)

# Mersenne primes: fixed, fast test keys
TEST_P = 2**61 - 1
TEST_Q = 2**89 - 1

MIN_INTERVAL = 60


@pytest.fixture(scope="session", autouse=True)
def enable_sha3_and_whitelist():
    whitelists.ALLOWED_BUILTINS.update({"hashlib", "decimal"})

    if not hasattr(hashlib, "sha3"):
        def _sha3(data):
            if isinstance(data, str):
                data = data.encode("utf-8")
            return hashlib.sha3_256(data).hexdigest()

        setattr(hashlib, "sha3", _sha3)


@pytest.fixture(scope="session")
def helper_module():
    spec = importlib.util.spec_from_file_location("client_helper_tests", HELPER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="session")
def at():
    def moment(seconds=0):
        minutes, second = divmod(seconds, 60)
        hours, minute = divmod(minutes, 60)
        return {"now": Datetime(2025, 1, 1, hour=hours, minute=minute, second=second)}

    return moment


@pytest.fixture(scope="session")
def keypair(helper_module):
    return helper_module.keypair_from_primes(TEST_P, TEST_Q)


@pytest.fixture
def client():
    client = ContractingClient(signer="admin", metering=False)
    client.flush()
    client.set_submission_contract(str(SUBMISSION_PATH))
    return client


@pytest.fixture
def cipher(client, keypair):
    client.submit(
        CIPHER_PATH.read_text(),
        name="con_paillier_cipher",
        owner=None,
        constructor_args={"n": keypair.n},
    )
    return client.get_contract("con_paillier_cipher")


@pytest.fixture
def oracle(client):
    client.submit(
        ORACLE_PATH.read_text(),
        name="con_decryption_oracle",
        owner=None,
        constructor_args={"relayer": "relayer"},
    )
    return client.get_contract("con_decryption_oracle")


@pytest.fixture
def verifier(client, keypair):
    client.submit(
        VERIFIER_PATH.read_text(),
        name="con_reveal_verifier",
        owner=None,
        constructor_args={"n": keypair.n},
    )
    return client.get_contract("con_reveal_verifier")


@pytest.fixture
def aggregator(client, cipher, oracle, verifier):
    client.submit(
        AGGREGATOR_PATH.read_text(),
        name="con_share_aggregator",
        owner=None,
        constructor_args={
            "cipher": "con_paillier_cipher",
            "oracle": "con_decryption_oracle",
            "verifier": "con_reveal_verifier",
            "min_interval": MIN_INTERVAL,
        },
    )
    contract = client.get_contract("con_share_aggregator")
    for contributor in ("alice", "bob", "carol"):
        contract.add_contributor(address=contributor)
    return contract
