"""
External collaborators: signing oracle, chain backends and bridge oracle.
"""
import logging

from ..config import NetworkConfig
from ..exceptions import UnsupportedOperationError
from ..ledger.chains import EVM, Bitcoin, ChainKind, chain_key
from .base import BridgeOracle, ChainBackend, SigningOracle, Utxo
from .bitcoin import EsploraBitcoinBackend
from .evm import Web3EvmBackend
from .local_signer import LocalSigningOracle
from .stub import StubBridgeOracle, StubChainBackend

logger = logging.getLogger(__name__)


def get_chain_backend(chain: ChainKind) -> ChainBackend:
    """
    Get the network backend for a chain kind from the network configuration.

    Args:
        chain: Bitcoin or EVM chain kind

    Returns:
        Chain backend for the chain

    Raises:
        UnsupportedOperationError: If the chain has no network adapter or
            is not configured
    """
    try:
        if isinstance(chain, EVM):
            network = NetworkConfig.get_evm_network(chain.chain_id)
            logger.debug("Using %s for chain %d", network["name"], chain.chain_id)
            return Web3EvmBackend(network["rpc"], chain.chain_id)
        if isinstance(chain, Bitcoin):
            network = NetworkConfig.get_bitcoin_network(chain.network.value)
            return EsploraBitcoinBackend(network["esplora"])
    except KeyError as e:
        raise UnsupportedOperationError(f"No backend configured for {chain_key(chain)}: {e}", source="chain_backend") from e

    raise UnsupportedOperationError(f"No network backend for {chain_key(chain)}", source="chain_backend")


__all__ = [
    "BridgeOracle",
    "ChainBackend",
    "EsploraBitcoinBackend",
    "LocalSigningOracle",
    "SigningOracle",
    "StubBridgeOracle",
    "StubChainBackend",
    "Utxo",
    "Web3EvmBackend",
    "get_chain_backend",
]
