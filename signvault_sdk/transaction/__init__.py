"""
Transaction construction and signature embedding.
"""
from .builder import SignedTransaction, UnsignedTransaction, sign, sign_with_ledger
from .evm import (
    AccessListEntry, Eip1559Transaction, EvmTransaction, EvmTransactionKind,
    LegacyTransaction, contract_address, decode_unsigned,
)
from .native import NativeTransfer
from .signature import RecoverableSignature, normalize_signature

__all__ = [
    "AccessListEntry",
    "Eip1559Transaction",
    "EvmTransaction",
    "EvmTransactionKind",
    "LegacyTransaction",
    "NativeTransfer",
    "RecoverableSignature",
    "SignedTransaction",
    "UnsignedTransaction",
    "contract_address",
    "decode_unsigned",
    "normalize_signature",
    "sign",
    "sign_with_ledger",
]
