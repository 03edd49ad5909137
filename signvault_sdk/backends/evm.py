"""
EVM chain backend over JSON-RPC.
"""
import logging
from typing import Optional

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from ..exceptions import ChainBackendError, UnsupportedOperationError
from .base import ChainBackend

logger = logging.getLogger(__name__)


class Web3EvmBackend(ChainBackend):
    """
    Balances, gas price and raw transaction submission through web3.

    Args:
        rpc_url: JSON-RPC endpoint
        chain_id: Chain id the endpoint serves
        w3: Preconfigured AsyncWeb3 instance (mainly for tests)
    """

    def __init__(self, rpc_url: str, chain_id: int, w3: Optional[AsyncWeb3] = None):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))

    async def get_balance(self, address: str) -> int:
        try:
            return await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address))
        except (Web3Exception, ValueError, OSError) as e:
            raise ChainBackendError(f"Balance query on chain {self.chain_id} failed: {e}") from e

    async def get_fee_rate(self) -> int:
        try:
            return await self.w3.eth.gas_price
        except (Web3Exception, ValueError, OSError) as e:
            raise ChainBackendError(f"Gas price query on chain {self.chain_id} failed: {e}") from e

    async def submit_transfer(self, source: str, to: str, amount: int, signed: Optional[bytes] = None) -> str:
        """Submit a signed raw transaction; ``to`` and ``amount`` are informational"""
        if signed is None:
            raise UnsupportedOperationError(
                "EVM transfers must be submitted as signed raw transactions", source="chain_backend"
            )
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(signed)
        except (Web3Exception, ValueError, OSError) as e:
            raise ChainBackendError(f"Transaction submission on chain {self.chain_id} failed: {e}") from e

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info("Submitted transaction %s on chain %d", tx_hash_hex, self.chain_id)
        return tx_hash_hex
