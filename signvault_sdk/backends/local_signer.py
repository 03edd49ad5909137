"""
Local signing oracle for development and tests.

Derives one secp256k1 key per (key id, derivation path) from a master
secret, and answers like a threshold signer: compressed public keys and
64-byte ``r || s`` signatures without a recovery id.
"""
import logging
from typing import Iterable, List, Optional

from eth_keys import keys

from ..exceptions import SignerError
from ..identity.crypto import sha256
from ..identity.ec_constants import SECP256K1_N
from .base import SigningOracle

logger = logging.getLogger(__name__)

MIN_SECRET_LEN = 16


class LocalSigningOracle(SigningOracle):
    """
    In-process signer. Not for production keys.

    Args:
        master_secret: Secret all keys are derived from (at least 16 bytes)
        key_ids: Key ids the signer accepts; any key id when None
    """

    def __init__(self, master_secret: bytes, key_ids: Optional[Iterable[str]] = None):
        if len(master_secret) < MIN_SECRET_LEN:
            raise ValueError(f"Master secret must be at least {MIN_SECRET_LEN} bytes")
        self._master_secret = bytes(master_secret)
        self.key_ids = set(key_ids) if key_ids is not None else None
        self.sign_calls = 0

    def _private_key(self, derivation_path: List[bytes], key_id: str) -> keys.PrivateKey:
        if self.key_ids is not None and key_id not in self.key_ids:
            raise SignerError(f"Unknown key id: {key_id}")

        material = self._master_secret + len(key_id).to_bytes(4, "big") + key_id.encode("utf-8")
        for element in derivation_path:
            material += len(element).to_bytes(4, "big") + bytes(element)

        # Reduce into the valid private key range [1, N-1]
        scalar = int.from_bytes(sha256(material), "big") % (SECP256K1_N - 1) + 1
        return keys.PrivateKey(scalar.to_bytes(32, "big"))

    async def get_public_key(self, derivation_path: List[bytes], key_id: str) -> bytes:
        return self._private_key(derivation_path, key_id).public_key.to_compressed_bytes()

    async def sign(self, digest: bytes, derivation_path: List[bytes], key_id: str) -> bytes:
        if len(digest) != 32:
            raise SignerError(f"Digest must be 32 bytes, got {len(digest)}")
        private_key = self._private_key(derivation_path, key_id)
        signature = private_key.sign_msg_hash(bytes(digest))
        self.sign_calls += 1
        logger.debug("Local signer produced signature %d with %s", self.sign_calls, key_id)
        return signature.to_bytes()[:64]
