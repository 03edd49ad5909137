"""
Identity module for the SignVault SDK.

Subaccount derivation, account identifiers and the hashing helpers used
to derive chain addresses.
"""
from .identifier import AccountIdentifier, account_identifier, from_text, to_text
from .subaccount import (
    MAX_NONCE, Subaccount, derivation_path, derive, environment_of, key_config, nonce_of,
)
from .types import Environment

__all__ = [
    "MAX_NONCE",
    "AccountIdentifier",
    "Environment",
    "Subaccount",
    "account_identifier",
    "derivation_path",
    "derive",
    "environment_of",
    "from_text",
    "key_config",
    "nonce_of",
    "to_text",
]
