"""
Results recorded for completed requests.
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from ..models import WalletSettings
from ..transaction.builder import SignedTransaction


class AccountCreated(BaseModel):
    kind: Literal["account_created"] = "account_created"
    account_id: str
    name: str


class AccountUpdated(BaseModel):
    kind: Literal["account_updated"] = "account_updated"
    account_id: str


class AccountRemoved(BaseModel):
    kind: Literal["account_removed"] = "account_removed"
    account_id: str


class ChainBound(BaseModel):
    kind: Literal["chain_bound"] = "chain_bound"
    account_id: str
    chain: str
    address: str


class ChainUnbound(BaseModel):
    kind: Literal["chain_unbound"] = "chain_unbound"
    account_id: str
    chain: str


class SettingsUpdated(BaseModel):
    kind: Literal["settings_updated"] = "settings_updated"
    settings: WalletSettings


class TransactionSigned(BaseModel):
    kind: Literal["transaction_signed"] = "transaction_signed"
    account_id: str
    transaction: SignedTransaction


class ContractDeployed(BaseModel):
    """Signed deployment and the address the contract will get"""
    kind: Literal["contract_deployed"] = "contract_deployed"
    account_id: str
    contract_address: str
    transaction: SignedTransaction


RequestResult = Annotated[
    Union[
        AccountCreated, AccountUpdated, AccountRemoved, ChainBound,
        ChainUnbound, SettingsUpdated, TransactionSigned, ContractDeployed,
    ],
    Field(discriminator="kind"),
]
