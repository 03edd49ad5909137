"""
Bitcoin chain backend over the Esplora REST API.

Requests are blocking, so each call runs in a worker thread.
"""
import asyncio
import logging
import math
from typing import Any, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import ChainBackendError, UnsupportedOperationError
from .base import ChainBackend, Utxo

logger = logging.getLogger(__name__)

# Confirmation target (in blocks) used for fee estimates
DEFAULT_FEE_TARGET = "6"


class EsploraBitcoinBackend(ChainBackend):
    """
    Args:
        base_url: Esplora API root, e.g. ``https://blockstream.info/api``
        timeout: Per-request timeout in seconds
        retry_count: Retries for connection errors and 5xx responses
    """

    def __init__(self, base_url: str, timeout: int = 10, retry_count: int = 3):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        # Setup HTTP session with retries
        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
            connect=retry_count,
            read=retry_count,
            other=retry_count
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def _request(self, method: str, path: str, data: Optional[str] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChainBackendError(f"Esplora request {method} {path} failed: {e}") from e
        if response.status_code >= 400:
            raise ChainBackendError(
                f"Esplora request {method} {path} returned {response.status_code}: {response.text[:200]}"
            )
        return response

    def _get_json(self, path: str) -> Any:
        response = self._request("GET", path)
        try:
            return response.json()
        except ValueError as e:
            raise ChainBackendError(f"Invalid JSON from Esplora {path}: {e}") from e

    def _balance(self, address: str) -> int:
        stats = self._get_json(f"/address/{address}").get("chain_stats", {})
        return int(stats.get("funded_txo_sum", 0)) - int(stats.get("spent_txo_sum", 0))

    def _fee_rate(self) -> int:
        estimates = self._get_json("/fee-estimates")
        if not estimates:
            raise ChainBackendError("Esplora returned no fee estimates")
        rate = estimates.get(DEFAULT_FEE_TARGET)
        if rate is None:
            rate = min(estimates.values())
        return max(1, math.ceil(float(rate)))

    def _utxos(self, address: str) -> List[Utxo]:
        return [
            Utxo(
                txid=entry["txid"],
                vout=entry["vout"],
                value=entry["value"],
                height=entry.get("status", {}).get("block_height"),
            )
            for entry in self._get_json(f"/address/{address}/utxo")
        ]

    def _broadcast(self, signed: bytes) -> str:
        return self._request("POST", "/tx", data=signed.hex()).text.strip()

    async def get_balance(self, address: str) -> int:
        return await asyncio.to_thread(self._balance, address)

    async def get_fee_rate(self) -> int:
        """Fee rate in sat/vB for confirmation within six blocks"""
        return await asyncio.to_thread(self._fee_rate)

    async def get_utxos(self, address: str) -> List[Utxo]:
        return await asyncio.to_thread(self._utxos, address)

    async def submit_transfer(self, source: str, to: str, amount: int, signed: Optional[bytes] = None) -> str:
        """Broadcast a signed raw transaction; ``to`` and ``amount`` are informational"""
        if signed is None:
            raise UnsupportedOperationError(
                "Bitcoin transfers must be submitted as signed raw transactions", source="chain_backend"
            )
        txid = await asyncio.to_thread(self._broadcast, bytes(signed))
        logger.info("Broadcast %s sending %d sat to %s", txid, amount, to)
        return txid
