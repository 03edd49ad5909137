"""
In-memory chain backend and bridge oracle.

Used for development and tests.
"""
import itertools
import logging
from typing import Dict, List, Optional, Set

from ..exceptions import BridgeError, ChainBackendError
from .base import BridgeOracle, ChainBackend, Utxo

logger = logging.getLogger(__name__)


class StubChainBackend(ChainBackend):
    """
    Chain backend backed by a balance dict.

    Args:
        balances: Initial balances keyed by address
        fee_rate: Fee rate returned by :meth:`get_fee_rate`
        utxos: UTXOs keyed by address; None means UTXO queries are unsupported
    """

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        fee_rate: int = 1,
        utxos: Optional[Dict[str, List[Utxo]]] = None
    ):
        self.balances: Dict[str, int] = dict(balances or {})
        self.fee_rate = fee_rate
        self.utxo_sets = utxos
        self.submitted: List[Dict] = []
        self.fail = False
        self._counter = itertools.count(1)

    def _check(self) -> None:
        if self.fail:
            raise ChainBackendError("Stub chain backend is failing")

    async def get_balance(self, address: str) -> int:
        self._check()
        return self.balances.get(address, 0)

    async def get_fee_rate(self) -> int:
        self._check()
        return self.fee_rate

    async def submit_transfer(self, source: str, to: str, amount: int, signed: Optional[bytes] = None) -> str:
        self._check()
        if self.balances.get(source, 0) < amount:
            raise ChainBackendError(f"Insufficient funds in {source}")
        self.balances[source] = self.balances.get(source, 0) - amount
        self.balances[to] = self.balances.get(to, 0) + amount

        handle = f"stub-tx-{next(self._counter)}"
        self.submitted.append({"handle": handle, "source": source, "to": to, "amount": amount, "signed": signed})
        logger.debug("Stub transfer %s: %d from %s to %s", handle, amount, source, to)
        return handle

    async def get_utxos(self, address: str) -> List[Utxo]:
        if self.utxo_sets is None:
            return await super().get_utxos(address)
        self._check()
        return list(self.utxo_sets.get(address, []))


class StubBridgeOracle(BridgeOracle):
    """
    Bridge oracle that issues sequential handles and confirms them only
    when told to with :meth:`confirm`.
    """

    def __init__(self):
        self.confirmed: Set[str] = set()
        self.requests: Dict[str, Dict] = {}
        self.fail = False
        self._counter = itertools.count(1)

    def _issue(self, direction: str, **details) -> str:
        if self.fail:
            raise BridgeError("Stub bridge is failing")
        handle = f"{direction}-{next(self._counter)}"
        self.requests[handle] = dict(direction=direction, **details)
        return handle

    async def initiate_bridge_in(self, network: str, account: str, amount: int) -> str:
        return self._issue("in", network=network, account=account, amount=amount)

    async def initiate_bridge_out(self, network: str, account: str, destination: str, amount: int) -> str:
        return self._issue("out", network=network, account=account, destination=destination, amount=amount)

    async def poll_confirmed(self, network: str, handles: List[str]) -> List[str]:
        if self.fail:
            raise BridgeError("Stub bridge is failing")
        return [handle for handle in handles if handle in self.confirmed]

    def confirm(self, handle: str) -> None:
        self.confirmed.add(handle)
