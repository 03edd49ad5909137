"""
Vault - the explicit store of accounts, settings and requests.

All state mutation goes through the methods of :class:`Vault`; the
request engine, command surface and tests hold a vault rather than
reaching into global state.
"""
import logging
import time
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .account import AccountView, WalletAccount
from .backends import get_chain_backend
from .backends.base import BridgeOracle, ChainBackend, SigningOracle, Utxo
from .exceptions import (
    AccountAlreadyExistsError, AccountNotFoundError, BridgeNotInitializedError,
    CorruptSnapshotError, DefaultAccountRemovalError, VaultInvariantError,
)
from .identity.identifier import from_text
from .identity.subaccount import Subaccount, derive
from .identity.types import Environment
from .ledger.chains import EVM, Bitcoin, BitcoinNetwork, ChainKind
from .ledger.ledger import ChainBinding, ChainLedger
from .models import HexBytes, WalletSettings
from .request.records import RequestQueue
from .transaction.builder import SignedTransaction, sign_with_ledger
from .transaction.evm import EvmTransaction, decode_unsigned
from .transaction.native import NativeTransfer
from .transaction.signature import RecoverableSignature, check_digest, normalize_signature

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_ID = "default"

BackendResolver = Callable[[ChainKind], ChainBackend]


class AccountNonces(BaseModel):
    """Next unused subaccount nonce per environment"""
    production: int = 0
    staging: int = 0
    development: int = 0

    def next(self, environment: Environment) -> int:
        return getattr(self, Environment(environment).name.lower())

    def advance(self, environment: Environment, used: int) -> None:
        field = Environment(environment).name.lower()
        if used >= getattr(self, field):
            setattr(self, field, used + 1)


class VaultState(BaseModel):
    """Everything a vault persists"""
    owner: HexBytes
    accounts: Dict[str, WalletAccount] = Field(default_factory=dict)
    counters: AccountNonces = Field(default_factory=AccountNonces)
    settings: WalletSettings = Field(default_factory=WalletSettings)
    requests: RequestQueue = Field(default_factory=RequestQueue)


class Vault:
    """
    A user-owned signing vault.

    Args:
        owner: Raw principal bytes of the vault owner
        signer: Signing oracle holding the threshold key
        bridge: Bridge oracle for wrapped Bitcoin, if available
        backend_resolver: Picks the ChainBackend for a chain kind;
            defaults to :func:`signvault_sdk.backends.get_chain_backend`
        state: Existing state to resume from; a fresh vault gets a
            default account
        clock: Current time in nanoseconds since the epoch
    """

    def __init__(
        self,
        owner: bytes,
        signer: SigningOracle,
        bridge: Optional[BridgeOracle] = None,
        backend_resolver: Optional[BackendResolver] = None,
        state: Optional[VaultState] = None,
        clock: Callable[[], int] = time.time_ns
    ):
        self.signer = signer
        self.bridge = bridge
        self.backend_resolver = backend_resolver or get_chain_backend
        self.clock = clock

        if state is None:
            state = VaultState(owner=bytes(owner))
            self._state = state
            self._add_account(Subaccount.default(), None)
        else:
            if bytes(state.owner) != bytes(owner):
                raise VaultInvariantError("Snapshot belongs to a different owner")
            self._state = state

        logger.debug("Vault ready with %d account(s)", len(self._state.accounts))

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def owner(self) -> bytes:
        return self._state.owner

    @property
    def settings(self) -> WalletSettings:
        return self._state.settings

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _add_account(self, subaccount: Subaccount, name: Optional[str]) -> WalletAccount:
        account = WalletAccount.create(self.owner, subaccount, name)
        self._state.accounts[account.id] = account
        self._state.counters.advance(subaccount.environment(), subaccount.nonce())
        logger.info("Created account %s (%s)", account.id, account.name)
        return account

    def get_account(self, account_id: str) -> WalletAccount:
        """
        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = self._state.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def ledger(self, account_id: str) -> ChainLedger:
        return self.get_account(account_id).ledger

    def create_account(
        self,
        environment: Environment = Environment.PRODUCTION,
        name: Optional[str] = None
    ) -> WalletAccount:
        """
        Create an account under the next unused nonce of an environment.

        Nonces already taken by restored accounts are skipped.
        """
        environment = Environment(environment)
        nonce = self._state.counters.next(environment)
        subaccount = derive(environment, nonce)
        while subaccount.id() in self._state.accounts:
            nonce += 1
            subaccount = derive(environment, nonce)
        return self._add_account(subaccount, name)

    def restore_account(
        self,
        environment: Environment,
        nonce: int,
        name: Optional[str] = None
    ) -> WalletAccount:
        """
        Recreate the account for a known (environment, nonce) pair.

        Raises:
            InvalidNonceError: If the nonce is out of range
            AccountAlreadyExistsError: If the account is already present
        """
        subaccount = derive(environment, nonce)
        if subaccount.id() in self._state.accounts:
            raise AccountAlreadyExistsError(f"Account {subaccount.id()} already exists")
        return self._add_account(subaccount, name)

    def rename_account(self, account_id: str, name: str) -> WalletAccount:
        account = self.get_account(account_id)
        account.name = name
        logger.info("Renamed account %s to %s", account_id, name)
        return account

    def hide_account(self, account_id: str) -> WalletAccount:
        account = self.get_account(account_id)
        account.hidden = True
        return account

    def unhide_account(self, account_id: str) -> WalletAccount:
        account = self.get_account(account_id)
        account.hidden = False
        return account

    def remove_account(self, account_id: str) -> None:
        """
        Raises:
            DefaultAccountRemovalError: For the default account
            AccountNotFoundError: If the account does not exist
        """
        if account_id == DEFAULT_ACCOUNT_ID:
            raise DefaultAccountRemovalError("The default account cannot be removed")
        self.get_account(account_id)
        del self._state.accounts[account_id]
        logger.info("Removed account %s", account_id)

    def set_account_metadata(self, account_id: str, key: str, value: str) -> None:
        self.get_account(account_id).metadata[key] = value

    def remove_account_metadata(self, account_id: str, key: str) -> None:
        self.get_account(account_id).metadata.pop(key, None)

    def account_views(self, include_hidden: bool = False) -> List[AccountView]:
        """Summaries of the accounts, default account first"""
        accounts = sorted(
            self._state.accounts.values(),
            key=lambda a: (a.id != DEFAULT_ACCOUNT_ID, a.subaccount.environment().value, a.subaccount.nonce()),
        )
        return [a.view() for a in accounts if include_hidden or not a.hidden]

    # ------------------------------------------------------------------
    # Keys and chains
    # ------------------------------------------------------------------

    async def acquire_public_key(self, account_id: str) -> Dict[str, str]:
        """
        Fetch and store the account's public key, if not set yet.

        Returns:
            The account's address map
        """
        ledger = self.ledger(account_id)
        await ledger.acquire_public_key(self.signer)
        return ledger.addresses()

    def set_public_key(self, account_id: str, public_key: bytes) -> Dict[str, str]:
        return self.ledger(account_id).set_public_key(public_key)

    def addresses(self, account_id: str) -> Dict[str, str]:
        return self.ledger(account_id).addresses()

    async def create_chain_binding(self, account_id: str, chain: ChainKind) -> ChainBinding:
        """Bind a chain to an account, fetching the public key if needed"""
        ledger = self.ledger(account_id)
        return await ledger.bind_chain(chain, self.signer)

    def remove_chain_binding(self, account_id: str, chain: ChainKind) -> None:
        self.ledger(account_id).remove_binding(chain)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def sign_message(self, account_id: str, digest: bytes) -> RecoverableSignature:
        """
        Sign a 32-byte digest with the account's key.

        Raises:
            InvalidMessageLengthError: If the digest is not 32 bytes
            MissingPublicKeyError: If the account has no public key yet
        """
        digest = check_digest(digest)
        ledger = self.ledger(account_id)
        public_key = ledger.public_key()
        signature = await ledger.sign_with_ecdsa(digest, self.signer)
        return normalize_signature(digest, signature, public_key)

    async def sign_evm(self, account_id: str, transaction: EvmTransaction) -> SignedTransaction:
        """
        Sign an EVM transaction from the account's binding on its chain.

        Raises:
            ChainNotFoundError: If the transaction's chain is not bound
        """
        ledger = self.ledger(account_id)
        ledger.binding(EVM(chain_id=transaction.chain_id))
        return await sign_with_ledger(transaction, ledger, self.signer)

    async def sign_evm_transaction(self, account_id: str, raw: bytes, chain_id: int) -> SignedTransaction:
        """
        Decode, sign and re-encode a raw unsigned EVM transaction.

        Raises:
            InvalidTransactionError: If the bytes are not an unsigned
                transaction for ``chain_id``
        """
        transaction = decode_unsigned(raw, chain_id)
        return await self.sign_evm(account_id, transaction)

    async def sign_native_transfer(
        self,
        account_id: str,
        to: str,
        amount: int,
        fee: int = 0,
        memo: Optional[int] = None
    ) -> SignedTransaction:
        """
        Sign a native ledger transfer to an account identifier.

        Raises:
            InvalidAddressError: If ``to`` is not an identifier text
        """
        ledger = self.ledger(account_id)
        transfer = NativeTransfer(
            source=ledger.identifier,
            to=from_text(to),
            amount=amount,
            fee=fee,
            memo=memo,
            created_at=self.clock(),
        )
        return await sign_with_ledger(transfer, ledger, self.signer)

    # ------------------------------------------------------------------
    # Chain backends
    # ------------------------------------------------------------------

    async def balance(self, account_id: str, chain: ChainKind) -> int:
        ledger = self.ledger(account_id)
        ledger.binding(chain)
        return await ledger.balance(chain, self.backend_resolver(chain))

    async def fee_rate(self, account_id: str, chain: ChainKind) -> int:
        ledger = self.ledger(account_id)
        ledger.binding(chain)
        return await ledger.fee_rate(chain, self.backend_resolver(chain))

    async def utxos(self, account_id: str, network: BitcoinNetwork) -> List[Utxo]:
        chain = Bitcoin(network=network)
        ledger = self.ledger(account_id)
        ledger.binding(chain)
        return await ledger.utxos(BitcoinNetwork(network), self.backend_resolver(chain))

    async def transfer(
        self,
        account_id: str,
        chain: ChainKind,
        to: str,
        amount: int,
        signed: Optional[bytes] = None
    ) -> str:
        ledger = self.ledger(account_id)
        ledger.binding(chain)
        return await ledger.transfer(chain, to, amount, self.backend_resolver(chain), signed)

    # ------------------------------------------------------------------
    # Bridge
    # ------------------------------------------------------------------

    def _require_bridge(self) -> BridgeOracle:
        if self.bridge is None:
            raise BridgeNotInitializedError("No bridge oracle configured")
        return self.bridge

    async def initiate_bridge_in(self, account_id: str, network: BitcoinNetwork, amount: int) -> str:
        return await self.ledger(account_id).initiate_receive(network, amount, self._require_bridge(), self.clock())

    async def initiate_bridge_out(
        self,
        account_id: str,
        network: BitcoinNetwork,
        destination: str,
        amount: int
    ) -> str:
        return await self.ledger(account_id).initiate_send(
            network, destination, amount, self._require_bridge(), self.clock()
        )

    async def settle_bridge_in(self, account_id: str, network: BitcoinNetwork) -> List[str]:
        return await self.ledger(account_id).settle_receive(network, self._require_bridge(), self.clock())

    async def settle_bridge_out(self, account_id: str, network: BitcoinNetwork) -> List[str]:
        return await self.ledger(account_id).settle_send(network, self._require_bridge(), self.clock())

    def clear_bridge_in(self, account_id: str, network: BitcoinNetwork, handle: str) -> None:
        self.ledger(account_id).clear_pending_receive(network, handle)

    def clear_bridge_out(self, account_id: str, network: BitcoinNetwork, handle: str) -> None:
        self.ledger(account_id).clear_pending_send(network, handle)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, settings: WalletSettings) -> WalletSettings:
        self._state.settings = settings.model_copy(deep=True)
        logger.info("Wallet settings updated (%d controller(s))", len(settings.controllers))
        return self._state.settings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bytes:
        """Serialize the whole vault state"""
        return self._state.model_dump_json().encode("utf-8")

    @classmethod
    def restore(
        cls,
        data: bytes,
        signer: SigningOracle,
        bridge: Optional[BridgeOracle] = None,
        backend_resolver: Optional[BackendResolver] = None,
        clock: Callable[[], int] = time.time_ns
    ) -> "Vault":
        """
        Rebuild a vault from :meth:`save` output.

        Raises:
            CorruptSnapshotError: If the data is not a valid snapshot
        """
        try:
            state = VaultState.model_validate_json(data)
        except ValidationError as e:
            raise CorruptSnapshotError(f"Invalid vault snapshot: {e}") from e

        for account_id, account in state.accounts.items():
            # Raises UnknownEnvironmentError for foreign subaccounts
            if account.subaccount.id() != account_id:
                raise CorruptSnapshotError(f"Account {account_id} does not match its subaccount")

        requeued = state.requests.requeue_interrupted()
        if requeued:
            logger.warning("Requeued %d request(s) interrupted mid-execution: %s", len(requeued), requeued)

        return cls(state.owner, signer, bridge, backend_resolver, state, clock)
