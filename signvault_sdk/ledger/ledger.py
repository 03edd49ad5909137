"""
ChainLedger - the chains bound to one account and their bridge state.

Every operation that talks to an external collaborator follows the same
shape: validate locally, await the external call, then apply the mutation.
A failed call therefore never leaves partial state behind. Because another
operation may run while one is suspended, state is looked up again after
each await rather than reused from before it.
"""
import logging
import time
from typing import Awaitable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

from .._rate_limited_log import rate_limited_log
from ..backends.base import BridgeOracle, ChainBackend, SigningOracle, Utxo
from ..config import get_pending_stale_after
from ..exceptions import (
    BridgeError, BridgeNotInitializedError, ChainBackendError, ChainNotFoundError,
    ExternalCallError, InvalidMessageLengthError, MissingPublicKeyError,
    PublicKeyAlreadySetError, SignerError, UntrackedBridgeTransferError, VaultError,
)
from ..identity.identifier import AccountIdentifier
from ..identity.subaccount import Subaccount
from .address_book import AddressBook
from .chains import Bitcoin, BitcoinNetwork, ChainKind, WrappedBitcoin, chain_key, requires_public_key
from .pending import Direction, PendingTransfers

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _external(call: Awaitable[T], error_cls: Type[ExternalCallError], what: str) -> T:
    """Await a collaborator call, wrapping foreign exceptions in ``error_cls``"""
    try:
        return await call
    except VaultError:
        raise
    except Exception as e:
        raise error_cls(f"{what} failed: {e}") from e


class ChainBinding(BaseModel):
    """A chain bound to a ledger: its derived address and in-flight transfers"""
    chain: ChainKind
    address: str
    pending: PendingTransfers = Field(default_factory=PendingTransfers)


class ChainLedger(BaseModel):
    """
    Chains bound to one subaccount.

    Attributes:
        subaccount: Subaccount owning the ledger
        address_book: Public key, account identifier and derived addresses
        bindings: Chain bindings keyed by chain key
    """
    subaccount: Subaccount
    address_book: AddressBook
    bindings: Dict[str, ChainBinding] = Field(default_factory=dict)

    @classmethod
    def for_subaccount(cls, owner: bytes, subaccount: Subaccount) -> "ChainLedger":
        return cls(subaccount=subaccount, address_book=AddressBook.for_subaccount(owner, subaccount))

    # ------------------------------------------------------------------
    # Public key
    # ------------------------------------------------------------------

    @property
    def identifier(self) -> AccountIdentifier:
        return self.address_book.identifier

    def is_public_key_set(self) -> bool:
        return self.address_book.is_public_key_set()

    def public_key(self) -> bytes:
        return self.address_book.public_key()

    def set_public_key(self, public_key: bytes) -> Dict[str, str]:
        return self.address_book.set_public_key(public_key)

    def addresses(self) -> Dict[str, str]:
        return self.address_book.get_addresses()

    async def acquire_public_key(self, signer: SigningOracle) -> bytes:
        """
        Fetch the public key from the signing oracle and store it, unless a
        key is already set.

        If another operation stored a key while this one was waiting on the
        oracle, the stored key wins and this call returns it.

        Raises:
            SignerError: If the oracle call fails
        """
        if self.is_public_key_set():
            return self.public_key()

        key_id, _, path = self.subaccount.key_id_with_cycles_and_path()
        public_key = await _external(
            signer.get_public_key(path, key_id), SignerError, "Public key request"
        )

        try:
            self.set_public_key(public_key)
        except PublicKeyAlreadySetError:
            if bytes(public_key) != self.public_key():
                logger.warning(
                    "Discarding public key for %s…: a different key was stored concurrently",
                    self.identifier.to_text()[:8],
                )
            else:
                logger.debug("Public key for %s… was already stored", self.identifier.to_text()[:8])
        return self.public_key()

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    async def bind_chain(self, chain: ChainKind, signer: Optional[SigningOracle] = None) -> ChainBinding:
        """
        Bind a chain, deriving its address.

        Key-dependent chains (Bitcoin, EVM) fetch the public key from
        ``signer`` first if it is not set. Binding a chain that is already
        bound derives the address again and keeps its pending transfers.

        Raises:
            MissingPublicKeyError: If a key is needed and no signer was given
            SignerError: If fetching the key fails
        """
        if requires_public_key(chain) and not self.is_public_key_set():
            if signer is None:
                raise MissingPublicKeyError(f"Chain {chain_key(chain)} requires the ECDSA public key")
            await self.acquire_public_key(signer)

        return self.insert_binding(chain)

    def insert_binding(self, chain: ChainKind) -> ChainBinding:
        """
        Bind a chain without any external call.

        Raises:
            MissingPublicKeyError: For key-dependent chains without a key
        """
        address = self.address_book.address_for(chain)
        key = chain_key(chain)

        existing = self.bindings.get(key)
        pending = existing.pending if existing is not None else PendingTransfers()
        binding = ChainBinding(chain=chain, address=address, pending=pending)
        self.bindings[key] = binding

        if existing is None:
            logger.info("Bound %s for %s… at %s", key, self.identifier.to_text()[:8], address)
        return binding

    def get_binding(self, chain: ChainKind) -> Optional[ChainBinding]:
        return self.bindings.get(chain_key(chain))

    def binding(self, chain: ChainKind) -> ChainBinding:
        """
        Raises:
            ChainNotFoundError: If the chain is not bound
        """
        binding = self.get_binding(chain)
        if binding is None:
            raise ChainNotFoundError(f"Chain {chain_key(chain)} is not bound")
        return binding

    def remove_binding(self, chain: ChainKind) -> None:
        """
        Raises:
            ChainNotFoundError: If the chain is not bound
        """
        key = chain_key(chain)
        if key not in self.bindings:
            raise ChainNotFoundError(f"Chain {key} is not bound")
        del self.bindings[key]
        logger.info("Removed binding %s from %s…", key, self.identifier.to_text()[:8])

    def chains(self) -> List[ChainKind]:
        return [binding.chain for binding in self.bindings.values()]

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def sign_with_ecdsa(self, digest: bytes, signer: SigningOracle) -> bytes:
        """
        Ask the signing oracle to sign a digest with this ledger's key.

        Raises:
            InvalidMessageLengthError: If the digest is not 32 bytes
            SignerError: If the oracle call fails
        """
        if len(digest) != 32:
            raise InvalidMessageLengthError(f"Digest must be 32 bytes, got {len(digest)}")

        key_id, cycles, path = self.subaccount.key_id_with_cycles_and_path()
        logger.debug("Signing with %s (fee %d) for %s…", key_id, cycles, self.identifier.to_text()[:8])
        return await _external(signer.sign(bytes(digest), path, key_id), SignerError, "Signing request")

    # ------------------------------------------------------------------
    # Chain backends
    # ------------------------------------------------------------------

    async def balance(self, chain: ChainKind, backend: ChainBackend) -> int:
        address = self.binding(chain).address
        return await _external(backend.get_balance(address), ChainBackendError, f"Balance query on {chain_key(chain)}")

    async def fee_rate(self, chain: ChainKind, backend: ChainBackend) -> int:
        self.binding(chain)
        return await _external(backend.get_fee_rate(), ChainBackendError, f"Fee query on {chain_key(chain)}")

    async def utxos(self, network: BitcoinNetwork, backend: ChainBackend) -> List[Utxo]:
        address = self.binding(Bitcoin(network=network)).address
        return await _external(backend.get_utxos(address), ChainBackendError, f"UTXO query on {network.value}")

    async def transfer(
        self,
        chain: ChainKind,
        to: str,
        amount: int,
        backend: ChainBackend,
        signed: Optional[bytes] = None
    ) -> str:
        """
        Submit a transfer from the bound address through the chain backend.

        Returns:
            The backend's handle for the transfer
        """
        source = self.binding(chain).address
        handle = await _external(
            backend.submit_transfer(source, to, amount, signed),
            ChainBackendError,
            f"Transfer on {chain_key(chain)}",
        )
        logger.info("Submitted transfer of %d on %s: %s", amount, chain_key(chain), handle)
        return handle

    # ------------------------------------------------------------------
    # Bridge
    # ------------------------------------------------------------------

    def _bridge_binding(self, network: BitcoinNetwork) -> ChainBinding:
        binding = self.get_binding(WrappedBitcoin(network=network))
        if binding is None:
            raise BridgeNotInitializedError(
                f"Wrapped Bitcoin on {BitcoinNetwork(network).value} is not bound"
            )
        return binding

    async def initiate_receive(
        self,
        network: BitcoinNetwork,
        amount: int,
        bridge: BridgeOracle,
        now: Optional[int] = None
    ) -> str:
        """
        Start a bridge-in and track its handle in ``pending_receive``.

        Raises:
            BridgeNotInitializedError: If wrapped Bitcoin is not bound
            BridgeError: If the bridge rejects the request
            UntrackedBridgeTransferError: If the binding was removed while
                the bridge call was in flight; carries the accepted handle
        """
        network = BitcoinNetwork(network)
        account = self._bridge_binding(network).address
        handle = await _external(
            bridge.initiate_bridge_in(network.value, account, amount), BridgeError, "Bridge-in"
        )
        return self._track(network, Direction.RECEIVE, handle, now)

    async def initiate_send(
        self,
        network: BitcoinNetwork,
        destination: str,
        amount: int,
        bridge: BridgeOracle,
        now: Optional[int] = None
    ) -> str:
        """
        Start a bridge-out and track its handle in ``pending_send``.

        Raises:
            BridgeNotInitializedError: If wrapped Bitcoin is not bound
            BridgeError: If the bridge rejects the request
            UntrackedBridgeTransferError: If the binding was removed while
                the bridge call was in flight; carries the accepted handle
        """
        network = BitcoinNetwork(network)
        account = self._bridge_binding(network).address
        handle = await _external(
            bridge.initiate_bridge_out(network.value, account, destination, amount), BridgeError, "Bridge-out"
        )
        return self._track(network, Direction.SEND, handle, now)

    def _track(self, network: BitcoinNetwork, direction: Direction, handle: str, now: Optional[int]) -> str:
        binding = self.get_binding(WrappedBitcoin(network=network))
        if binding is None:
            raise UntrackedBridgeTransferError(
                f"Wrapped Bitcoin on {network.value} was unbound during the bridge call; "
                f"bridge {direction.value} {handle} is not tracked",
                handle,
            )
        binding.pending.add(direction, handle, now if now is not None else time.time_ns())
        logger.info("Tracking bridge %s %s on %s", direction.value, handle, network.value)
        return handle

    async def settle_receive(self, network: BitcoinNetwork, bridge: BridgeOracle, now: Optional[int] = None) -> List[str]:
        """
        Poll the bridge and drop confirmed bridge-in handles.

        Returns:
            Handles confirmed and removed by this call
        """
        return await self._settle(BitcoinNetwork(network), Direction.RECEIVE, bridge, now)

    async def settle_send(self, network: BitcoinNetwork, bridge: BridgeOracle, now: Optional[int] = None) -> List[str]:
        """
        Poll the bridge and drop confirmed bridge-out handles.

        Returns:
            Handles confirmed and removed by this call
        """
        return await self._settle(BitcoinNetwork(network), Direction.SEND, bridge, now)

    async def _settle(
        self,
        network: BitcoinNetwork,
        direction: Direction,
        bridge: BridgeOracle,
        now: Optional[int]
    ) -> List[str]:
        handles = self._bridge_binding(network).pending.handles(direction)
        if not handles:
            return []

        confirmed = await _external(
            bridge.poll_confirmed(network.value, handles), BridgeError, "Bridge confirmation poll"
        )

        binding = self.get_binding(WrappedBitcoin(network=network))
        if binding is None:
            logger.warning("Wrapped Bitcoin on %s was unbound during confirmation poll", network.value)
            return []

        settled = binding.pending.settle(direction, confirmed)
        if settled:
            logger.info("Settled %d bridge %s transfer(s) on %s", len(settled), direction.value, network.value)
        self._report_stale(binding, direction, now if now is not None else time.time_ns())
        return settled

    def _report_stale(self, binding: ChainBinding, direction: Direction, now: int) -> None:
        max_age = get_pending_stale_after() * 1_000_000_000
        for entry in binding.pending.stale(direction, now, max_age):
            age_hours = (now - entry.initiated_at) / 3_600_000_000_000
            rate_limited_log(
                f"Bridge {direction.value} {entry.handle} on {binding.chain.network.value} "
                f"unconfirmed for {age_hours:.1f}h",
                level="warning",
                logger_instance=logger,
            )

    def clear_pending_receive(self, network: BitcoinNetwork, handle: str) -> None:
        """
        Stop tracking a bridge-in handle. Succeeds whether or not the handle
        is tracked.

        Raises:
            BridgeNotInitializedError: If wrapped Bitcoin is not bound
        """
        if self._bridge_binding(BitcoinNetwork(network)).pending.remove(Direction.RECEIVE, handle):
            logger.info("Cleared pending bridge-in %s", handle)

    def clear_pending_send(self, network: BitcoinNetwork, handle: str) -> None:
        """
        Stop tracking a bridge-out handle. Succeeds whether or not the handle
        is tracked.

        Raises:
            BridgeNotInitializedError: If wrapped Bitcoin is not bound
        """
        if self._bridge_binding(BitcoinNetwork(network)).pending.remove(Direction.SEND, handle):
            logger.info("Cleared pending bridge-out %s", handle)

    def pending(self, network: BitcoinNetwork) -> PendingTransfers:
        return self._bridge_binding(BitcoinNetwork(network)).pending
