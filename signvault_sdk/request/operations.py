"""
Privileged operations executed through the request workflow.

Each operation validates its preconditions against the vault with
``check`` (at submission and again right before execution) and applies its
effect with ``execute``.
"""
import logging
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..exceptions import DefaultAccountRemovalError, InvalidRequestError
from ..identity.types import Environment
from ..ledger.chains import EVM, ChainKind, chain_key
from ..models import WalletSettings
from ..roles import Role
from ..transaction.evm import EvmTransactionKind, contract_address
from .results import (
    AccountCreated, AccountRemoved, AccountUpdated, ChainBound, ChainUnbound,
    ContractDeployed, RequestResult, SettingsUpdated, TransactionSigned,
)

if TYPE_CHECKING:
    from ..vault import Vault

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_ID = "default"


class BaseOperation(BaseModel):
    """Common interface of request operations"""
    default_role: ClassVar[Role] = Role.ADMIN

    class Config:
        frozen = True

    def check(self, vault: "Vault") -> None:
        """Raise if the operation cannot run against the current vault state"""
        pass

    async def execute(self, vault: "Vault") -> RequestResult:
        raise NotImplementedError


class CreateAccount(BaseOperation):
    kind: Literal["create_account"] = "create_account"
    environment: Environment = Environment.PRODUCTION
    name: Optional[str] = Field(default=None, min_length=1)

    async def execute(self, vault: "Vault") -> RequestResult:
        account = vault.create_account(self.environment, self.name)
        return AccountCreated(account_id=account.id, name=account.name)


class RenameAccount(BaseOperation):
    kind: Literal["rename_account"] = "rename_account"
    account_id: str
    name: str = Field(min_length=1)

    def check(self, vault: "Vault") -> None:
        vault.get_account(self.account_id)

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.rename_account(self.account_id, self.name)
        return AccountUpdated(account_id=self.account_id)


class HideAccount(BaseOperation):
    kind: Literal["hide_account"] = "hide_account"
    account_id: str

    def check(self, vault: "Vault") -> None:
        vault.get_account(self.account_id)

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.hide_account(self.account_id)
        return AccountUpdated(account_id=self.account_id)


class UnhideAccount(BaseOperation):
    kind: Literal["unhide_account"] = "unhide_account"
    account_id: str

    def check(self, vault: "Vault") -> None:
        vault.get_account(self.account_id)

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.unhide_account(self.account_id)
        return AccountUpdated(account_id=self.account_id)


class RemoveAccount(BaseOperation):
    kind: Literal["remove_account"] = "remove_account"
    account_id: str

    def check(self, vault: "Vault") -> None:
        if self.account_id == DEFAULT_ACCOUNT_ID:
            raise DefaultAccountRemovalError("The default account cannot be removed")
        vault.get_account(self.account_id)

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.remove_account(self.account_id)
        return AccountRemoved(account_id=self.account_id)


class CreateChainBinding(BaseOperation):
    kind: Literal["create_chain_binding"] = "create_chain_binding"
    account_id: str
    chain: ChainKind

    def check(self, vault: "Vault") -> None:
        vault.get_account(self.account_id)

    async def execute(self, vault: "Vault") -> RequestResult:
        binding = await vault.create_chain_binding(self.account_id, self.chain)
        return ChainBound(account_id=self.account_id, chain=chain_key(self.chain), address=binding.address)


class RemoveChainBinding(BaseOperation):
    kind: Literal["remove_chain_binding"] = "remove_chain_binding"
    account_id: str
    chain: ChainKind

    def check(self, vault: "Vault") -> None:
        vault.ledger(self.account_id).binding(self.chain)

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.remove_chain_binding(self.account_id, self.chain)
        return ChainUnbound(account_id=self.account_id, chain=chain_key(self.chain))


class UpdateSettings(BaseOperation):
    kind: Literal["update_settings"] = "update_settings"
    settings: WalletSettings

    async def execute(self, vault: "Vault") -> RequestResult:
        vault.update_settings(self.settings)
        return SettingsUpdated(settings=vault.settings)


class EvmSignTransfer(BaseOperation):
    """Sign an EVM transaction from an account's bound EVM chain"""
    default_role: ClassVar[Role] = Role.SIGNER

    kind: Literal["evm_sign_transfer"] = "evm_sign_transfer"
    account_id: str
    transaction: EvmTransactionKind

    def check(self, vault: "Vault") -> None:
        vault.ledger(self.account_id).binding(EVM(chain_id=self.transaction.chain_id))
        if self.transaction.is_contract_creation():
            raise InvalidRequestError("Transfer has no recipient; use a contract deployment request")

    async def execute(self, vault: "Vault") -> RequestResult:
        signed = await vault.sign_evm(self.account_id, self.transaction)
        return TransactionSigned(account_id=self.account_id, transaction=signed)


class EvmDeployContract(BaseOperation):
    """Sign a contract-creation transaction and report the new contract's address"""
    default_role: ClassVar[Role] = Role.SIGNER

    kind: Literal["evm_deploy_contract"] = "evm_deploy_contract"
    account_id: str
    transaction: EvmTransactionKind

    def check(self, vault: "Vault") -> None:
        vault.ledger(self.account_id).binding(EVM(chain_id=self.transaction.chain_id))
        if not self.transaction.is_contract_creation():
            raise InvalidRequestError("Contract deployment must not have a recipient")
        if not self.transaction.data:
            raise InvalidRequestError("Contract deployment requires init code")

    async def execute(self, vault: "Vault") -> RequestResult:
        binding = vault.ledger(self.account_id).binding(EVM(chain_id=self.transaction.chain_id))
        signed = await vault.sign_evm(self.account_id, self.transaction)
        return ContractDeployed(
            account_id=self.account_id,
            contract_address=contract_address(binding.address, self.transaction.nonce),
            transaction=signed,
        )


Operation = Annotated[
    Union[
        CreateAccount, RenameAccount, HideAccount, UnhideAccount, RemoveAccount,
        CreateChainBinding, RemoveChainBinding, UpdateSettings,
        EvmSignTransfer, EvmDeployContract,
    ],
    Field(discriminator="kind"),
]

_operation_adapter = TypeAdapter(Operation)


def parse_operation(data: Any) -> Operation:
    """
    Build an operation from a dict such as ``{"kind": "rename_account", ...}``.

    Raises:
        InvalidRequestError: If the payload is not a valid operation
    """
    if isinstance(data, BaseOperation):
        return data
    try:
        return _operation_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid request payload: {e}") from e
