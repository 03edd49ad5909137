"""
Per-ledger address generation.

The address book owns the ledger's compressed ECDSA public key, which can
be set exactly once, and caches every address derived from it or from the
ledger's account identifier.
"""
import logging
from typing import Dict, Optional

import base58
from pydantic import BaseModel, Field

from ..exceptions import InvalidKeyLengthError, MissingPublicKeyError, PublicKeyAlreadySetError
from ..identity.crypto import decompress_public_key, keccak256, ripemd160
from ..identity.ec_constants import COMPRESSED_PUBKEY_LEN
from ..identity.identifier import AccountIdentifier, account_identifier
from ..identity.subaccount import Subaccount
from ..models import HexBytes
from .chains import (
    EVM, Bitcoin, BitcoinNetwork, ChainKind, GenericToken, NamedToken,
    NativeLedger, WrappedBitcoin, chain_key,
)

logger = logging.getLogger(__name__)

BITCOIN_VERSION_BYTES = {
    BitcoinNetwork.MAINNET: 0x00,
    BitcoinNetwork.TESTNET: 0x6F,
    BitcoinNetwork.REGTEST: 0x6F,
}


def evm_address(public_key: bytes) -> str:
    """
    Derive the EVM address of a compressed public key.

    Returns:
        ``0x`` followed by 40 lowercase hex characters: the last 20 bytes of
        keccak-256 over the 64-byte uncompressed key (without its prefix)
    """
    uncompressed = decompress_public_key(public_key)
    return "0x" + keccak256(uncompressed)[-20:].hex()


def btc_address(public_key: bytes, network: BitcoinNetwork) -> str:
    """
    Derive a base58check Bitcoin address from a compressed public key.

    The payload is RIPEMD-160 of the key, prefixed with the network
    version byte; the checksum is the first four bytes of double SHA-256.
    """
    if len(public_key) != COMPRESSED_PUBKEY_LEN:
        raise InvalidKeyLengthError(
            f"Expected a {COMPRESSED_PUBKEY_LEN}-byte compressed public key, got {len(public_key)} bytes"
        )
    payload = bytes([BITCOIN_VERSION_BYTES[BitcoinNetwork(network)]]) + ripemd160(public_key)
    return base58.b58encode_check(payload).decode("ascii")


class AddressBook(BaseModel):
    """
    Public key and derived addresses of one ledger.

    Attributes:
        ecdsa: Compressed secp256k1 public key, None until first set
        identifier: Account identifier of the ledger's subaccount
        addresses: Derived addresses keyed by chain key
    """
    ecdsa: Optional[HexBytes] = None
    identifier: AccountIdentifier
    addresses: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def for_subaccount(cls, owner: bytes, subaccount: Subaccount) -> "AddressBook":
        identifier = account_identifier(owner, subaccount)
        return cls(
            identifier=identifier,
            addresses={chain_key(NativeLedger()): identifier.to_text()},
        )

    def is_public_key_set(self) -> bool:
        return self.ecdsa is not None and len(self.ecdsa) == COMPRESSED_PUBKEY_LEN

    def public_key(self) -> bytes:
        """
        Raises:
            MissingPublicKeyError: If no key has been set yet
        """
        if not self.is_public_key_set():
            raise MissingPublicKeyError("ECDSA public key is not set")
        return self.ecdsa

    def set_public_key(self, public_key: bytes) -> Dict[str, str]:
        """
        Set the ECDSA public key and derive the default addresses.

        Args:
            public_key: 33-byte compressed secp256k1 key

        Returns:
            The full address map, now including ``evm:0`` and ``btc:mainnet``

        Raises:
            PublicKeyAlreadySetError: If a key was set before
            InvalidKeyLengthError: If the key is not a valid 33-byte key
        """
        if self.is_public_key_set():
            raise PublicKeyAlreadySetError("ECDSA public key is already set")

        public_key = bytes(public_key)
        if len(public_key) != COMPRESSED_PUBKEY_LEN:
            raise InvalidKeyLengthError(
                f"Expected a {COMPRESSED_PUBKEY_LEN}-byte compressed public key, got {len(public_key)} bytes"
            )
        # Reject keys that are not on the curve before storing anything
        decompress_public_key(public_key)

        self.ecdsa = public_key
        self.generate_evm_address(0)
        self.generate_btc_address(BitcoinNetwork.MAINNET)

        logger.info("ECDSA public key set for %s…", self.identifier.to_text()[:8])
        return self.get_addresses()

    def get_addresses(self) -> Dict[str, str]:
        return dict(self.addresses)

    def address_for(self, chain: ChainKind) -> str:
        """
        Derive (and cache) the address of this ledger on a chain.

        Ledger-family chains use the account identifier and need no key;
        Bitcoin and EVM chains need the public key.

        Raises:
            MissingPublicKeyError: For Bitcoin/EVM chains without a key
        """
        if isinstance(chain, EVM):
            return self.generate_evm_address(chain.chain_id)
        if isinstance(chain, Bitcoin):
            return self.generate_btc_address(chain.network)
        if isinstance(chain, (NativeLedger, WrappedBitcoin, GenericToken, NamedToken)):
            address = self.identifier.to_text()
            self.addresses[chain_key(chain)] = address
            return address
        raise TypeError(f"Unsupported chain kind: {chain!r}")

    def generate_evm_address(self, chain_id: int) -> str:
        # The chain id is not part of the address, only of signed transactions
        address = evm_address(self.public_key())
        self.addresses[chain_key(EVM(chain_id=chain_id))] = address
        return address

    def generate_btc_address(self, network: BitcoinNetwork) -> str:
        address = btc_address(self.public_key(), network)
        self.addresses[chain_key(Bitcoin(network=network))] = address
        return address

    def remove_address(self, chain: ChainKind) -> None:
        self.addresses.pop(chain_key(chain), None)
