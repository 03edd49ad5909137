"""
Pytest fixtures for the SignVault SDK tests.
"""
import pytest
from typing import List

from eth_keys import keys

from signvault_sdk._rate_limited_log import reset_rate_limits
from signvault_sdk.backends import LocalSigningOracle, SigningOracle, StubBridgeOracle, StubChainBackend
from signvault_sdk.config import NetworkConfig
from signvault_sdk.identity.subaccount import Subaccount
from signvault_sdk.ledger.ledger import ChainLedger
from signvault_sdk.vault import Vault

# Principal bytes of the vault owner
TEST_OWNER = bytes.fromhex("0a1b2c3d4e5f60718293a4b5c6d7e8f9000102030405060708090a0b02")
TEST_MASTER_SECRET = b"signvault-test-master-secret-0001"

# Private key 1; the Bitcoin address hashes the key with RIPEMD-160 alone
TEST_PRIVATE_KEY = keys.PrivateKey((1).to_bytes(32, "big"))
TEST_PUBLIC_KEY = TEST_PRIVATE_KEY.public_key.to_compressed_bytes()
TEST_EVM_ADDRESS = "0x7e5f4552091a69125d5dfcb7b8c2659029395bdf"
TEST_BTC_MAINNET_ADDRESS = "1MaqquWfQY23CRmfvoFsTkFTqkoAvwCMMi"

START_TIME_NS = 1_700_000_000 * 10**9


class FakeClock:
    """Manually advanced nanosecond clock"""

    def __init__(self, start: int = START_TIME_NS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1_000_000_000)


class FixedKeySigner(SigningOracle):
    """Signs every path with one private key"""

    def __init__(self, private_key: keys.PrivateKey = TEST_PRIVATE_KEY):
        self.private_key = private_key
        self.public_key_calls = 0

    async def get_public_key(self, derivation_path: List[bytes], key_id: str) -> bytes:
        self.public_key_calls += 1
        return self.private_key.public_key.to_compressed_bytes()

    async def sign(self, digest: bytes, derivation_path: List[bytes], key_id: str) -> bytes:
        return self.private_key.sign_msg_hash(digest).to_bytes()[:64]


@pytest.fixture(autouse=True)
def _reset_module_state():
    """Rate-limit and network caches are module globals"""
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    reset_rate_limits()
    NetworkConfig._networks_cache = None


@pytest.fixture
def owner():
    return TEST_OWNER


@pytest.fixture
def signer():
    return LocalSigningOracle(TEST_MASTER_SECRET)


@pytest.fixture
def fixed_signer():
    return FixedKeySigner()


@pytest.fixture
def bridge():
    return StubBridgeOracle()


@pytest.fixture
def backend():
    return StubChainBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(owner):
    return ChainLedger.for_subaccount(owner, Subaccount.default())


@pytest.fixture
def vault(owner, signer, bridge, backend, clock):
    return Vault(owner, signer, bridge, backend_resolver=lambda chain: backend, clock=clock)


@pytest.fixture
def fixed_vault(owner, fixed_signer, bridge, backend, clock):
    """Vault whose signer uses TEST_PRIVATE_KEY for every account"""
    return Vault(owner, fixed_signer, bridge, backend_resolver=lambda chain: backend, clock=clock)
