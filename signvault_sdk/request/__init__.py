"""
Request/approval workflow for privileged vault operations.
"""
from .engine import RequestEngine
from .operations import (
    CreateAccount, CreateChainBinding, EvmDeployContract, EvmSignTransfer,
    HideAccount, Operation, RemoveAccount, RemoveChainBinding, RenameAccount,
    UnhideAccount, UpdateSettings, parse_operation,
)
from .records import RequestQueue, RequestRecord, RequestStatus
from .results import (
    AccountCreated, AccountRemoved, AccountUpdated, ChainBound, ChainUnbound,
    ContractDeployed, RequestResult, SettingsUpdated, TransactionSigned,
)

__all__ = [
    "AccountCreated",
    "AccountRemoved",
    "AccountUpdated",
    "ChainBound",
    "ChainUnbound",
    "ContractDeployed",
    "CreateAccount",
    "CreateChainBinding",
    "EvmDeployContract",
    "EvmSignTransfer",
    "HideAccount",
    "Operation",
    "RemoveAccount",
    "RemoveChainBinding",
    "RenameAccount",
    "RequestEngine",
    "RequestQueue",
    "RequestRecord",
    "RequestResult",
    "RequestStatus",
    "SettingsUpdated",
    "TransactionSigned",
    "UnhideAccount",
    "UpdateSettings",
    "parse_operation",
]
