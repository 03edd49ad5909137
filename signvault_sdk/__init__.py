"""
SignVault SDK - a multi-chain custodial signing vault.
"""
from .account import AccountView, WalletAccount
from .backends import (
    BridgeOracle, ChainBackend, LocalSigningOracle, SigningOracle,
    StubBridgeOracle, StubChainBackend, get_chain_backend,
)
from .exceptions import (
    BridgeNotInitializedError, ExternalCallError, MissingPublicKeyError,
    PreconditionError, VaultError, VaultInvariantError, VaultValidationError,
)
from .identity import AccountIdentifier, Environment, Subaccount, account_identifier, derive
from .ledger import (
    EVM, Bitcoin, BitcoinNetwork, ChainKind, GenericToken, NamedToken,
    NativeLedger, WrappedBitcoin,
)
from .models import WalletController, WalletSettings
from .request import RequestEngine, RequestStatus
from .roles import Role, RoleAuthority, StaticRoleAuthority
from .storage import SnapshotStore
from .vault import Vault, VaultState
from .version import __version__

__all__ = [
    "EVM",
    "AccountIdentifier",
    "AccountView",
    "Bitcoin",
    "BitcoinNetwork",
    "BridgeNotInitializedError",
    "BridgeOracle",
    "ChainBackend",
    "ChainKind",
    "Environment",
    "ExternalCallError",
    "GenericToken",
    "LocalSigningOracle",
    "MissingPublicKeyError",
    "NamedToken",
    "NativeLedger",
    "PreconditionError",
    "RequestEngine",
    "RequestStatus",
    "Role",
    "RoleAuthority",
    "SigningOracle",
    "SnapshotStore",
    "StaticRoleAuthority",
    "StubBridgeOracle",
    "StubChainBackend",
    "Subaccount",
    "Vault",
    "VaultError",
    "VaultInvariantError",
    "VaultState",
    "VaultValidationError",
    "WalletAccount",
    "WalletController",
    "WalletSettings",
    "WrappedBitcoin",
    "__version__",
    "account_identifier",
    "derive",
    "get_chain_backend",
]
