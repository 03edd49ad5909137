"""
Normalisation of signatures returned by the signing oracle.

Threshold signers return a bare 64-byte ``r || s`` signature without a
recovery id. Chains that verify by public key recovery need ``(r, s, v)``
with ``s`` in the lower half of the curve order, so the recovery id is
found by trying both candidates against the known public key.
"""
import logging

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as EthKeysValidationError
from pydantic import BaseModel

from ..exceptions import InvalidMessageLengthError, InvalidSignatureError
from ..identity.ec_constants import COMPRESSED_PUBKEY_LEN, SECP256K1_HALF_N, SECP256K1_N

logger = logging.getLogger(__name__)

DIGEST_LEN = 32


class RecoverableSignature(BaseModel):
    """A low-s secp256k1 signature with its recovery id (0 or 1)"""
    r: int
    s: int
    recovery_id: int

    class Config:
        frozen = True

    def to_bytes(self) -> bytes:
        """65 bytes: ``r || s || recovery_id``"""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.recovery_id])


def check_digest(digest: bytes) -> bytes:
    """
    Raises:
        InvalidMessageLengthError: If the digest is not 32 bytes
    """
    if len(digest) != DIGEST_LEN:
        raise InvalidMessageLengthError(f"Digest must be {DIGEST_LEN} bytes, got {len(digest)}")
    return bytes(digest)


def normalize_signature(digest: bytes, signature: bytes, public_key: bytes) -> RecoverableSignature:
    """
    Turn an oracle signature into a recoverable low-s signature.

    Args:
        digest: 32-byte message hash that was signed
        signature: 64-byte ``r || s``, or 65 bytes with a trailing recovery
            byte (which is ignored and recomputed)
        public_key: 33-byte compressed key expected to have signed

    Returns:
        The normalised signature

    Raises:
        InvalidMessageLengthError: If the digest is not 32 bytes
        InvalidSignatureError: If the signature has the wrong size, r or s
            is out of range, or it does not recover to ``public_key``
    """
    digest = check_digest(digest)

    signature = bytes(signature)
    if len(signature) not in (64, 65):
        raise InvalidSignatureError(f"Signature must be 64 or 65 bytes, got {len(signature)}")
    if len(public_key) != COMPRESSED_PUBKEY_LEN:
        raise InvalidSignatureError(f"Cannot verify against a {len(public_key)}-byte public key")

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    if not (1 <= r < SECP256K1_N) or not (1 <= s < SECP256K1_N):
        raise InvalidSignatureError("Signature r or s is out of range")
    if s > SECP256K1_HALF_N:
        s = SECP256K1_N - s

    expected = bytes(public_key)
    for recovery_id in (0, 1):
        try:
            candidate = keys.Signature(vrs=(recovery_id, r, s))
            recovered = candidate.recover_public_key_from_msg_hash(digest)
        except (BadSignature, EthKeysValidationError, ValueError) as e:
            logger.debug("Recovery id %d rejected: %s", recovery_id, e)
            continue
        if recovered.to_compressed_bytes() == expected:
            return RecoverableSignature(r=r, s=s, recovery_id=recovery_id)

    raise InvalidSignatureError("Signature does not match the account public key")
