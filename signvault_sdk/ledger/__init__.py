"""
Chain ledgers: chain kinds, address generation and bridge bookkeeping.
"""
from .address_book import AddressBook, btc_address, evm_address
from .chains import (
    EVM, Bitcoin, BitcoinNetwork, ChainKind, GenericToken, NamedToken, NativeLedger,
    WrappedBitcoin, chain_key, parse_chain_key, parse_chain_kind, requires_public_key,
)
from .ledger import ChainBinding, ChainLedger
from .pending import Direction, PendingTransfer, PendingTransfers

__all__ = [
    "EVM",
    "AddressBook",
    "Bitcoin",
    "BitcoinNetwork",
    "ChainBinding",
    "ChainKind",
    "ChainLedger",
    "Direction",
    "GenericToken",
    "NamedToken",
    "NativeLedger",
    "PendingTransfer",
    "PendingTransfers",
    "WrappedBitcoin",
    "btc_address",
    "chain_key",
    "evm_address",
    "parse_chain_key",
    "parse_chain_kind",
    "requires_public_key",
]
