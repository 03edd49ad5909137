"""
Interfaces of the external collaborators used by the vault.

The signing oracle, chain backends and bridge oracle are all asynchronous;
a vault operation may suspend only while awaiting one of them.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel

from ..exceptions import UnsupportedOperationError

logger = logging.getLogger(__name__)


class Utxo(BaseModel):
    """An unspent Bitcoin output"""
    txid: str
    vout: int
    value: int  # satoshi
    height: Optional[int] = None


class SigningOracle(ABC):
    """
    Threshold ECDSA signer.

    Keys never leave the oracle; the vault only sees public keys and
    signatures for a (derivation path, key id) pair.
    """

    @abstractmethod
    async def get_public_key(self, derivation_path: List[bytes], key_id: str) -> bytes:
        """
        Get the public key for a derivation path.

        Args:
            derivation_path: Path elements, one subaccount per path
            key_id: Name of the master key

        Returns:
            33-byte compressed secp256k1 public key

        Raises:
            SignerError: If the oracle fails
        """
        pass

    @abstractmethod
    async def sign(self, digest: bytes, derivation_path: List[bytes], key_id: str) -> bytes:
        """
        Sign a 32-byte digest.

        Returns:
            64-byte ``r || s`` signature, optionally followed by a recovery byte

        Raises:
            SignerError: If the oracle fails
        """
        pass


class ChainBackend(ABC):
    """Access to one chain: balances, fees and transfer submission"""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Balance of an address in the chain's smallest unit"""
        pass

    @abstractmethod
    async def get_fee_rate(self) -> int:
        """Current fee rate (gas price in wei, sat/vB for Bitcoin)"""
        pass

    @abstractmethod
    async def submit_transfer(
        self,
        source: str,
        to: str,
        amount: int,
        signed: Optional[bytes] = None
    ) -> str:
        """
        Submit a transfer.

        Args:
            source: Address of the sending binding
            to: Destination address
            amount: Amount in the chain's smallest unit
            signed: Signed raw transaction, for chains that need one

        Returns:
            Chain-native handle (transaction hash, block index, ...)
        """
        pass

    async def get_utxos(self, address: str) -> List[Utxo]:
        """Unspent outputs of an address. Only UTXO chains support this."""
        raise UnsupportedOperationError(
            f"{type(self).__name__} does not support UTXO queries", source="chain_backend"
        )


class BridgeOracle(ABC):
    """Converts native Bitcoin into its wrapped form and back"""

    @abstractmethod
    async def initiate_bridge_in(self, network: str, account: str, amount: int) -> str:
        """
        Start a Bitcoin -> wrapped Bitcoin conversion.

        Returns:
            Opaque handle to poll for confirmation

        Raises:
            BridgeError: If the oracle rejects the request
        """
        pass

    @abstractmethod
    async def initiate_bridge_out(self, network: str, account: str, destination: str, amount: int) -> str:
        """
        Start a wrapped Bitcoin -> Bitcoin conversion.

        Returns:
            Opaque handle to poll for confirmation

        Raises:
            BridgeError: If the oracle rejects the request
        """
        pass

    @abstractmethod
    async def poll_confirmed(self, network: str, handles: List[str]) -> List[str]:
        """
        Check which handles have been confirmed.

        Returns:
            The confirmed subset of ``handles``. Unconfirmed handles are
            simply absent; that is not an error.
        """
        pass
