"""
Hashing and key helpers shared by the address and transaction code.
"""
import hashlib
import logging

from Crypto.Hash import RIPEMD160
from eth_keys import keys
from eth_keys.exceptions import ValidationError as EthKeysValidationError
from eth_utils import keccak

from ..exceptions import InvalidKeyLengthError
from .ec_constants import COMPRESSED_PUBKEY_LEN

logger = logging.getLogger(__name__)


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest (the pre-standard SHA-3 used by Ethereum)"""
    return keccak(data)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def ripemd160(data: bytes) -> bytes:
    """RIPEMD-160 digest (via pycryptodome)"""
    return RIPEMD160.new(data).digest()


def decompress_public_key(public_key: bytes) -> bytes:
    """
    Expand a compressed secp256k1 public key.

    Args:
        public_key: 33-byte compressed SEC1 key

    Returns:
        64 bytes: the X and Y coordinates without the 0x04 prefix

    Raises:
        InvalidKeyLengthError: If the key is not 33 bytes or not on the curve
    """
    if len(public_key) != COMPRESSED_PUBKEY_LEN:
        raise InvalidKeyLengthError(
            f"Expected a {COMPRESSED_PUBKEY_LEN}-byte compressed public key, got {len(public_key)} bytes"
        )
    try:
        return keys.PublicKey.from_compressed_bytes(public_key).to_bytes()
    except (EthKeysValidationError, ValueError) as e:
        raise InvalidKeyLengthError(f"Invalid compressed public key: {e}") from e
