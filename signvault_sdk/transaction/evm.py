"""
EVM transaction encoding.

Supports legacy (EIP-155) and EIP-1559 transactions. Unsigned
transactions produce the keccak-256 signing digest; signed transactions
are the RLP encodings accepted by ``eth_sendRawTransaction``.
"""
import logging
from abc import ABC, abstractmethod
from typing import Annotated, Any, List, Literal, Optional, Union

import rlp
from pydantic import BaseModel, Field, ValidationError, field_validator
from rlp.exceptions import RLPException
from rlp.sedes import big_endian_int

from ..exceptions import InvalidAddressError, InvalidTransactionError
from ..identity.crypto import keccak256
from ..models import HexBytes
from .signature import RecoverableSignature

logger = logging.getLogger(__name__)

EIP1559_TX_TYPE = 0x02
ADDRESS_LEN = 20


def address_bytes(address: str) -> bytes:
    """
    Parse a ``0x``-prefixed 20-byte hex address.

    Raises:
        InvalidAddressError: If the text is not a 20-byte hex address
    """
    text = address[2:] if address.startswith("0x") else address
    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid EVM address: {address!r}") from e
    if len(raw) != ADDRESS_LEN:
        raise InvalidAddressError(f"EVM address must be {ADDRESS_LEN} bytes, got {len(raw)}")
    return raw


def contract_address(sender: str, nonce: int) -> str:
    """
    Address of a contract created by ``sender`` with account nonce ``nonce``.

    Computed as the last 20 bytes of ``keccak256(rlp([sender, nonce]))``.
    """
    return "0x" + keccak256(rlp.encode([address_bytes(sender), nonce]))[12:].hex()


class AccessListEntry(BaseModel):
    address: HexBytes
    storage_keys: List[HexBytes] = Field(default_factory=list)

    def to_rlp(self) -> list:
        return [self.address, list(self.storage_keys)]


class EvmTransaction(BaseModel, ABC):
    """
    Fields shared by every EVM transaction type.

    ``to`` is None for contract creation.
    """
    chain_id: int = Field(ge=0)
    nonce: int = Field(ge=0)
    gas_limit: int = Field(ge=0)
    to: Optional[HexBytes] = None
    value: int = Field(default=0, ge=0)
    data: HexBytes = b""

    @field_validator("to")
    @classmethod
    def _check_to(cls, v: Optional[bytes]) -> Optional[bytes]:
        if v is None or len(v) == 0:
            return None
        if len(v) != ADDRESS_LEN:
            raise ValueError(f"Recipient must be {ADDRESS_LEN} bytes, got {len(v)}")
        return v

    def is_contract_creation(self) -> bool:
        return self.to is None

    def _to_field(self) -> bytes:
        return self.to if self.to is not None else b""

    @abstractmethod
    def signing_payload(self) -> bytes:
        """Bytes hashed to obtain the signing digest"""
        pass

    @abstractmethod
    def encode_signed(self, signature: RecoverableSignature) -> bytes:
        """Raw signed transaction"""
        pass

    def digest(self) -> bytes:
        return keccak256(self.signing_payload())


class LegacyTransaction(EvmTransaction):
    """
    Legacy transaction. A non-zero chain id uses EIP-155 replay protection;
    chain id 0 produces a pre-EIP-155 transaction.
    """
    type: Literal["legacy"] = "legacy"
    gas_price: int = Field(ge=0)

    def _fields(self) -> list:
        return [self.nonce, self.gas_price, self.gas_limit, self._to_field(), self.value, self.data]

    def signing_payload(self) -> bytes:
        if self.chain_id:
            return rlp.encode(self._fields() + [self.chain_id, 0, 0])
        return rlp.encode(self._fields())

    def encode_signed(self, signature: RecoverableSignature) -> bytes:
        if self.chain_id:
            v = signature.recovery_id + 35 + 2 * self.chain_id
        else:
            v = signature.recovery_id + 27
        return rlp.encode(self._fields() + [v, signature.r, signature.s])


class Eip1559Transaction(EvmTransaction):
    """EIP-1559 (type 2) transaction"""
    type: Literal["eip1559"] = "eip1559"
    max_priority_fee_per_gas: int = Field(ge=0)
    max_fee_per_gas: int = Field(ge=0)
    access_list: List[AccessListEntry] = Field(default_factory=list)

    def _fields(self) -> list:
        return [
            self.chain_id,
            self.nonce,
            self.max_priority_fee_per_gas,
            self.max_fee_per_gas,
            self.gas_limit,
            self._to_field(),
            self.value,
            self.data,
            [entry.to_rlp() for entry in self.access_list],
        ]

    def signing_payload(self) -> bytes:
        return bytes([EIP1559_TX_TYPE]) + rlp.encode(self._fields())

    def encode_signed(self, signature: RecoverableSignature) -> bytes:
        fields = self._fields() + [signature.recovery_id, signature.r, signature.s]
        return bytes([EIP1559_TX_TYPE]) + rlp.encode(fields)


EvmTransactionKind = Annotated[
    Union[LegacyTransaction, Eip1559Transaction],
    Field(discriminator="type"),
]


def _int(item: Any) -> int:
    if not isinstance(item, bytes):
        raise InvalidTransactionError("Expected an integer field, got a list")
    return big_endian_int.deserialize(item)


def _bytes(item: Any) -> bytes:
    if not isinstance(item, bytes):
        raise InvalidTransactionError("Expected a byte string field, got a list")
    return item


def _access_list(item: Any) -> List[AccessListEntry]:
    if not isinstance(item, list):
        raise InvalidTransactionError("Access list must be a list")
    entries = []
    for entry in item:
        if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[1], list):
            raise InvalidTransactionError("Malformed access list entry")
        entries.append(AccessListEntry(
            address=_bytes(entry[0]),
            storage_keys=[_bytes(key) for key in entry[1]],
        ))
    return entries


def decode_unsigned(raw: bytes, chain_id: Optional[int] = None) -> EvmTransaction:
    """
    Decode a raw unsigned EVM transaction.

    Accepts EIP-1559 (``0x02 || rlp(...)`` with 9 fields), EIP-155 legacy
    (9 fields ending in ``chain_id, 0, 0``) and pre-EIP-155 legacy
    (6 fields, which take ``chain_id`` from the argument).

    Args:
        raw: Encoded unsigned transaction
        chain_id: Chain the transaction is meant for; a transaction that
            names a different chain is rejected

    Raises:
        InvalidTransactionError: If the bytes are not an unsigned transaction
            or target another chain
    """
    raw = bytes(raw)
    if not raw:
        raise InvalidTransactionError("Empty transaction")

    try:
        if raw[0] == EIP1559_TX_TYPE:
            items = rlp.decode(raw[1:])
            if not isinstance(items, list) or len(items) != 9:
                raise InvalidTransactionError("EIP-1559 transaction must have 9 unsigned fields")
            tx: EvmTransaction = Eip1559Transaction(
                chain_id=_int(items[0]),
                nonce=_int(items[1]),
                max_priority_fee_per_gas=_int(items[2]),
                max_fee_per_gas=_int(items[3]),
                gas_limit=_int(items[4]),
                to=_bytes(items[5]),
                value=_int(items[6]),
                data=_bytes(items[7]),
                access_list=_access_list(items[8]),
            )
        elif raw[0] >= 0xC0:
            items = rlp.decode(raw)
            if len(items) == 9:
                if _int(items[7]) != 0 or _int(items[8]) != 0:
                    raise InvalidTransactionError("Legacy transaction is already signed")
                tx_chain_id = _int(items[6])
            elif len(items) == 6:
                tx_chain_id = chain_id or 0
            else:
                raise InvalidTransactionError(f"Legacy transaction must have 6 or 9 fields, got {len(items)}")
            tx = LegacyTransaction(
                chain_id=tx_chain_id,
                nonce=_int(items[0]),
                gas_price=_int(items[1]),
                gas_limit=_int(items[2]),
                to=_bytes(items[3]),
                value=_int(items[4]),
                data=_bytes(items[5]),
            )
        else:
            raise InvalidTransactionError(f"Unsupported transaction type 0x{raw[0]:02x}")
    except RLPException as e:
        raise InvalidTransactionError(f"Malformed RLP: {e}") from e
    except ValidationError as e:
        raise InvalidTransactionError(f"Invalid transaction fields: {e}") from e

    if chain_id is not None and tx.chain_id != chain_id:
        raise InvalidTransactionError(f"Transaction is for chain {tx.chain_id}, expected {chain_id}")

    logger.debug("Decoded %s transaction for chain %d", tx.type, tx.chain_id)
    return tx
