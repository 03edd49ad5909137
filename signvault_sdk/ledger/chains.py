"""
Chain kinds a ledger can be bound to.

``ChainKind`` is a closed set of variants. Code that dispatches on a chain
kind handles every variant explicitly and raises ``TypeError`` otherwise.
"""
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class BitcoinNetwork(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"


class NativeLedger(BaseModel):
    """The native ledger, addressed by account identifier"""
    kind: Literal["native"] = "native"

    class Config:
        frozen = True


class Bitcoin(BaseModel):
    kind: Literal["btc"] = "btc"
    network: BitcoinNetwork

    class Config:
        frozen = True


class EVM(BaseModel):
    """An EVM chain; chain id 0 is the chain-agnostic default"""
    kind: Literal["evm"] = "evm"
    chain_id: int = Field(ge=0)

    class Config:
        frozen = True


class WrappedBitcoin(BaseModel):
    """Bridged Bitcoin held on the native ledger"""
    kind: Literal["wrapped_btc"] = "wrapped_btc"
    network: BitcoinNetwork

    class Config:
        frozen = True


class GenericToken(BaseModel):
    """A token ledger identified by its ledger id"""
    kind: Literal["token"] = "token"
    ledger_id: str = Field(min_length=1)

    class Config:
        frozen = True


class NamedToken(BaseModel):
    """A token ledger identified by its symbol"""
    kind: Literal["named_token"] = "named_token"
    token: str = Field(min_length=1)

    class Config:
        frozen = True


ChainKind = Annotated[
    Union[NativeLedger, Bitcoin, EVM, WrappedBitcoin, GenericToken, NamedToken],
    Field(discriminator="kind"),
]

_chain_kind_adapter = TypeAdapter(ChainKind)


def chain_key(chain: ChainKind) -> str:
    """
    Canonical string key of a chain kind, used in address maps and
    snapshots.

    Examples: ``native``, ``btc:mainnet``, ``evm:1``, ``token:<ledger id>``.
    """
    if isinstance(chain, NativeLedger):
        return "native"
    if isinstance(chain, Bitcoin):
        return f"btc:{chain.network.value}"
    if isinstance(chain, EVM):
        return f"evm:{chain.chain_id}"
    if isinstance(chain, WrappedBitcoin):
        return f"wrapped_btc:{chain.network.value}"
    if isinstance(chain, GenericToken):
        return f"token:{chain.ledger_id}"
    if isinstance(chain, NamedToken):
        return f"named_token:{chain.token}"
    raise TypeError(f"Unsupported chain kind: {chain!r}")


def parse_chain_key(key: str) -> ChainKind:
    """
    Inverse of :func:`chain_key`.

    Raises:
        ValueError: If the key does not name a chain kind
    """
    kind, _, arg = key.partition(":")
    if kind == "native" and not arg:
        return NativeLedger()
    if not arg:
        raise ValueError(f"Invalid chain key: {key!r}")
    if kind == "btc":
        return Bitcoin(network=BitcoinNetwork(arg))
    if kind == "evm":
        return EVM(chain_id=int(arg))
    if kind == "wrapped_btc":
        return WrappedBitcoin(network=BitcoinNetwork(arg))
    if kind == "token":
        return GenericToken(ledger_id=arg)
    if kind == "named_token":
        return NamedToken(token=arg)
    raise ValueError(f"Invalid chain key: {key!r}")


def parse_chain_kind(data) -> ChainKind:
    """Validate a chain kind from a dict such as ``{"kind": "evm", "chain_id": 1}``"""
    return _chain_kind_adapter.validate_python(data)


def requires_public_key(chain: ChainKind) -> bool:
    """Whether the chain's address is derived from the ECDSA public key"""
    if isinstance(chain, (Bitcoin, EVM)):
        return True
    if isinstance(chain, (NativeLedger, WrappedBitcoin, GenericToken, NamedToken)):
        return False
    raise TypeError(f"Unsupported chain kind: {chain!r}")
