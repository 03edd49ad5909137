"""
Signature embedding for native and EVM transactions.
"""
import logging
from typing import TYPE_CHECKING, Union

from pydantic import BaseModel

from ..exceptions import InvalidTransactionError
from ..identity.crypto import keccak256, sha256
from ..models import HexBytes
from .evm import EvmTransaction
from .native import NativeTransfer
from .signature import RecoverableSignature, check_digest, normalize_signature

if TYPE_CHECKING:
    from ..backends.base import SigningOracle
    from ..ledger.ledger import ChainLedger

logger = logging.getLogger(__name__)

UnsignedTransaction = Union[EvmTransaction, NativeTransfer]


class SignedTransaction(BaseModel):
    """
    A transaction with its signature embedded.

    Attributes:
        raw: Encoded signed transaction, ready for submission
        tx_hash: ``0x``-prefixed transaction hash
        digest: The 32-byte digest that was signed
        signature: The normalised signature
    """
    raw: HexBytes
    tx_hash: str
    digest: HexBytes
    signature: RecoverableSignature

    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()


def _tx_hash(transaction: UnsignedTransaction, raw: bytes) -> str:
    if isinstance(transaction, EvmTransaction):
        return "0x" + keccak256(raw).hex()
    return "0x" + sha256(raw).hex()


def sign(
    transaction: UnsignedTransaction,
    digest: bytes,
    signature: bytes,
    public_key: bytes
) -> SignedTransaction:
    """
    Embed an oracle signature into a transaction.

    Args:
        transaction: The unsigned transaction
        digest: Digest the oracle signed; must equal ``transaction.digest()``
        signature: Oracle signature (64-byte ``r || s``)
        public_key: Compressed key of the signing ledger

    Returns:
        SignedTransaction

    Raises:
        InvalidMessageLengthError: If the digest is not 32 bytes
        InvalidTransactionError: If the digest belongs to another transaction
        InvalidSignatureError: If the signature cannot be normalised
    """
    digest = check_digest(digest)
    if digest != transaction.digest():
        raise InvalidTransactionError("Digest does not match the transaction signing payload")

    normalized = normalize_signature(digest, signature, public_key)
    raw = transaction.encode_signed(normalized)
    return SignedTransaction(
        raw=raw,
        tx_hash=_tx_hash(transaction, raw),
        digest=digest,
        signature=normalized,
    )


async def sign_with_ledger(
    transaction: UnsignedTransaction,
    ledger: "ChainLedger",
    signer: "SigningOracle"
) -> SignedTransaction:
    """
    Have the signing oracle sign a transaction with a ledger's key.

    Raises:
        MissingPublicKeyError: If the ledger has no public key yet
        SignerError: If the oracle call fails
        InvalidSignatureError: If the oracle returns an unusable signature
    """
    public_key = ledger.public_key()
    digest = transaction.digest()
    signature = await ledger.sign_with_ecdsa(digest, signer)
    signed = sign(transaction, digest, signature, public_key)
    logger.info("Signed transaction %s", signed.tx_hash)
    return signed
