"""
Account identifiers for the native ledger.

An identifier is 32 bytes: a big-endian CRC32 of the remaining bytes,
followed by SHA-224(domain separator || owner || subaccount).
"""
import hashlib
import re
import zlib
from typing import TYPE_CHECKING

from pydantic import BaseModel, field_validator

from ..exceptions import InvalidAddressError
from ..models import HexBytes

if TYPE_CHECKING:
    from .subaccount import Subaccount

ACCOUNT_DOMAIN_SEPARATOR = b"\x0aaccount-id"
IDENTIFIER_LEN = 32

_TEXT_PATTERN = re.compile(r"[0-9a-f]{64}")


class AccountIdentifier(BaseModel):
    """Checksummed identifier of an (owner, subaccount) pair"""
    value: HexBytes

    class Config:
        frozen = True

    @field_validator("value")
    @classmethod
    def _check_length(cls, v: bytes) -> bytes:
        if len(v) != IDENTIFIER_LEN:
            raise ValueError(f"Account identifier must be {IDENTIFIER_LEN} bytes, got {len(v)}")
        return v

    @property
    def checksum(self) -> bytes:
        return self.value[:4]

    @property
    def hash(self) -> bytes:
        return self.value[4:]

    def is_checksum_valid(self) -> bool:
        return zlib.crc32(self.hash).to_bytes(4, "big") == self.checksum

    def to_text(self) -> str:
        return to_text(self)

    @classmethod
    def from_text(cls, text: str) -> "AccountIdentifier":
        return from_text(text)

    def __bytes__(self) -> bytes:
        return self.value

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"AccountIdentifier({self.to_text()})"


def account_identifier(owner: bytes, subaccount: "Subaccount") -> AccountIdentifier:
    """
    Compute the account identifier of a subaccount under an owner.

    Args:
        owner: Raw principal bytes of the owner
        subaccount: 32-byte subaccount

    Returns:
        AccountIdentifier (4-byte CRC32 || 28-byte SHA-224)
    """
    hasher = hashlib.sha224()
    hasher.update(ACCOUNT_DOMAIN_SEPARATOR)
    hasher.update(owner)
    hasher.update(bytes(subaccount))
    digest = hasher.digest()

    checksum = zlib.crc32(digest).to_bytes(4, "big")
    return AccountIdentifier(value=checksum + digest)


def to_text(identifier: AccountIdentifier) -> str:
    """Lowercase hex, exactly 64 characters"""
    return identifier.value.hex()


def from_text(text: str) -> AccountIdentifier:
    """
    Parse the textual form of an identifier.

    Raises:
        InvalidAddressError: If the text is not 64 lowercase hex characters
    """
    if not isinstance(text, str) or not _TEXT_PATTERN.fullmatch(text):
        shown = text if isinstance(text, str) and len(text) <= 80 else f"{str(text)[:80]}…"
        raise InvalidAddressError(f"Invalid account identifier: {shown!r}")
    return AccountIdentifier(value=bytes.fromhex(text))
