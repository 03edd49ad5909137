"""
Native ledger transfers.

A transfer is encoded with fixed-width fields behind a domain separator,
so the encoding is canonical and its SHA-256 is the signing digest.
"""
from typing import Optional

from pydantic import BaseModel, Field

from ..identity.crypto import sha256
from ..identity.identifier import AccountIdentifier
from .signature import RecoverableSignature

NATIVE_TRANSFER_DOMAIN = b"\x0fnative-transfer"

_U64_MAX = (1 << 64) - 1
_U128_MAX = (1 << 128) - 1


class NativeTransfer(BaseModel):
    """
    Transfer between two account identifiers on the native ledger.

    Attributes:
        source: Sending account identifier
        to: Receiving account identifier
        amount: Amount in the ledger's smallest unit
        fee: Fee paid to the ledger
        memo: Optional caller-chosen tag
        created_at: Creation time, nanoseconds since the epoch
    """
    source: AccountIdentifier
    to: AccountIdentifier
    amount: int = Field(ge=0, le=_U128_MAX)
    fee: int = Field(default=0, ge=0, le=_U128_MAX)
    memo: Optional[int] = Field(default=None, ge=0, le=_U64_MAX)
    created_at: int = Field(ge=0, le=_U64_MAX)

    def signing_payload(self) -> bytes:
        memo = b"\x00" + bytes(8) if self.memo is None else b"\x01" + self.memo.to_bytes(8, "big")
        return (
            NATIVE_TRANSFER_DOMAIN
            + bytes(self.source)
            + bytes(self.to)
            + self.amount.to_bytes(16, "big")
            + self.fee.to_bytes(16, "big")
            + memo
            + self.created_at.to_bytes(8, "big")
        )

    def digest(self) -> bytes:
        return sha256(self.signing_payload())

    def encode_signed(self, signature: RecoverableSignature) -> bytes:
        """Signing payload followed by the 65-byte recoverable signature"""
        return self.signing_payload() + signature.to_bytes()
