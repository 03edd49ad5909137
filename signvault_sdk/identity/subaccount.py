"""
Subaccount derivation.

A subaccount is 32 bytes: byte 0 is the environment tag and bytes 1..31
hold the nonce as a big-endian unsigned integer. The mapping
(environment, nonce) -> subaccount is a bijection; (Production, 0) is the
default subaccount and is all zero bytes.
"""
import logging
from typing import TYPE_CHECKING, List, Tuple

from pydantic import BaseModel, field_validator

from ..exceptions import InvalidNonceError, UnknownEnvironmentError
from ..models import HexBytes
from .types import TAG_ENVIRONMENTS, Environment

if TYPE_CHECKING:
    from ..config import KeyConfig
    from .identifier import AccountIdentifier

logger = logging.getLogger(__name__)

SUBACCOUNT_LEN = 32
NONCE_LEN = SUBACCOUNT_LEN - 1
MAX_NONCE = (1 << (8 * NONCE_LEN)) - 1

_ID_PREFIXES = {
    Environment.PRODUCTION: "account",
    Environment.STAGING: "staging_account",
    Environment.DEVELOPMENT: "development_account",
}

_NAME_PREFIXES = {
    Environment.PRODUCTION: "Account",
    Environment.STAGING: "Staging Account",
    Environment.DEVELOPMENT: "Development Account",
}


class Subaccount(BaseModel):
    """32-byte derivation index of one signing identity"""
    value: HexBytes

    class Config:
        frozen = True

    @field_validator("value")
    @classmethod
    def _check_length(cls, v: bytes) -> bytes:
        if len(v) != SUBACCOUNT_LEN:
            raise ValueError(f"Subaccount must be {SUBACCOUNT_LEN} bytes, got {len(v)}")
        return v

    @classmethod
    def default(cls) -> "Subaccount":
        return derive(Environment.PRODUCTION, 0)

    @classmethod
    def new(cls, environment: Environment, nonce: int) -> "Subaccount":
        return derive(environment, nonce)

    def environment(self) -> Environment:
        return environment_of(self)

    def nonce(self) -> int:
        return nonce_of(self)

    def id(self) -> str:
        """
        Stable account id, e.g. ``default``, ``account_3`` or
        ``staging_account_1``.
        """
        environment, nonce = self.environment(), self.nonce()
        if environment is Environment.PRODUCTION and nonce == 0:
            return "default"
        return f"{_ID_PREFIXES[environment]}_{nonce}"

    def name(self) -> str:
        """Default display name; nonces are shown one-based"""
        environment, nonce = self.environment(), self.nonce()
        if environment is Environment.PRODUCTION and nonce == 0:
            return "Default"
        return f"{_NAME_PREFIXES[environment]} {nonce + 1}"

    def derivation_path(self) -> List[bytes]:
        return derivation_path(self)

    def key_config(self) -> "KeyConfig":
        return key_config(self.environment())

    def key_id_with_cycles_and_path(self) -> Tuple[str, int, List[bytes]]:
        config = self.key_config()
        return config.key_id, config.sign_cycles, self.derivation_path()

    def account_identifier(self, owner: bytes) -> "AccountIdentifier":
        from .identifier import account_identifier
        return account_identifier(owner, self)

    def __bytes__(self) -> bytes:
        return self.value

    def __repr__(self) -> str:
        return f"Subaccount({self.value.hex()})"


def derive(environment: Environment, nonce: int) -> Subaccount:
    """
    Build the subaccount for an (environment, nonce) pair.

    Args:
        environment: Deployment tier
        nonce: Account index, 0 <= nonce <= 2**248 - 1

    Returns:
        Subaccount with the environment tag in byte 0

    Raises:
        InvalidNonceError: If the nonce does not fit in 31 bytes
    """
    if nonce < 0 or nonce > MAX_NONCE:
        raise InvalidNonceError(f"Nonce must be between 0 and 2**{8 * NONCE_LEN} - 1, got {nonce}")
    try:
        environment = Environment(environment)
    except ValueError:
        raise UnknownEnvironmentError(f"Unknown environment {environment!r}")
    return Subaccount(value=bytes([environment.tag]) + nonce.to_bytes(NONCE_LEN, "big"))


def environment_of(subaccount: Subaccount) -> Environment:
    """
    Read the environment tag of a subaccount.

    Raises:
        UnknownEnvironmentError: If byte 0 is not a known tag. This means
            the subaccount was not produced by :func:`derive`.
    """
    tag = subaccount.value[0]
    try:
        return TAG_ENVIRONMENTS[tag]
    except KeyError:
        raise UnknownEnvironmentError(f"Unknown environment tag 0x{tag:02x} in subaccount")


def nonce_of(subaccount: Subaccount) -> int:
    return int.from_bytes(subaccount.value[1:], "big")


def derivation_path(subaccount: Subaccount) -> List[bytes]:
    """Single-element derivation path holding the raw subaccount bytes"""
    return [subaccount.value]


def key_config(environment: Environment) -> "KeyConfig":
    """Signing key id and fee for an environment"""
    from ..config import key_config as _key_config
    return _key_config(environment)
