"""
Wallet accounts held by a vault.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .identity.subaccount import Subaccount
from .identity.types import Environment
from .ledger.ledger import ChainLedger
from .models import Metadata


class AccountView(BaseModel):
    """Read-only summary of an account"""
    id: str
    name: str
    hidden: bool
    environment: Environment
    nonce: int
    metadata: Metadata
    addresses: Dict[str, str]
    chains: List[str]


class WalletAccount(BaseModel):
    """
    A named account backed by one subaccount and its chain ledger.

    Attributes:
        id: Stable id derived from the subaccount
        name: Display name
        hidden: Whether the account is hidden from default listings
        metadata: Free-form string metadata
        ledger: Chain bindings of the account
    """
    id: str
    name: str
    hidden: bool = False
    metadata: Metadata = Field(default_factory=dict)
    ledger: ChainLedger

    @classmethod
    def create(cls, owner: bytes, subaccount: Subaccount, name: Optional[str] = None) -> "WalletAccount":
        return cls(
            id=subaccount.id(),
            name=name or subaccount.name(),
            ledger=ChainLedger.for_subaccount(owner, subaccount),
        )

    @property
    def subaccount(self) -> Subaccount:
        return self.ledger.subaccount

    def view(self) -> AccountView:
        subaccount = self.subaccount
        return AccountView(
            id=self.id,
            name=self.name,
            hidden=self.hidden,
            environment=subaccount.environment(),
            nonce=subaccount.nonce(),
            metadata=dict(self.metadata),
            addresses=self.ledger.addresses(),
            chains=sorted(self.ledger.bindings),
        )
