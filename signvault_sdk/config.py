"""
Configuration for the SignVault SDK.

Signing-key selection per environment, packaged network endpoints and the
environment variables read by the persistence and reconciliation layers.
"""
import base64
import binascii
import importlib.resources
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import appdirs

from .exceptions import UnknownEnvironmentError
from .identity.types import Environment

logger = logging.getLogger(__name__)

DEFAULT_PENDING_STALE_AFTER = 86400  # one day, in seconds


@dataclass(frozen=True)
class KeyConfig:
    """
    Signing key selected by an environment.

    Attributes:
        key_id: Name of the threshold ECDSA key held by the signing oracle
        sign_cycles: Fee attached to each signing call
    """
    key_id: str
    sign_cycles: int


KEY_CONFIGS: Dict[Environment, KeyConfig] = {
    Environment.PRODUCTION: KeyConfig(key_id="key_1", sign_cycles=26_153_846_153),
    Environment.STAGING: KeyConfig(key_id="test_key_1", sign_cycles=10_000_000_000),
    Environment.DEVELOPMENT: KeyConfig(key_id="dfx_test_key", sign_cycles=10_000_000_000),
}


def key_config(environment: Environment) -> KeyConfig:
    """
    Get the signing key configuration for an environment.

    Raises:
        UnknownEnvironmentError: If the environment has no key configured
    """
    try:
        return KEY_CONFIGS[environment]
    except KeyError:
        raise UnknownEnvironmentError(f"No signing key configured for environment {environment!r}")


class NetworkConfig:
    """Endpoints for EVM chains and Bitcoin networks"""

    _networks_cache: Optional[Dict[str, Any]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Any]:
        """
        Load network definitions, caching them after the first read.

        The packaged ``networks.json`` is used unless SIGNVAULT_NETWORKS_PATH
        points at another file.
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        override = os.environ.get("SIGNVAULT_NETWORKS_PATH")
        if override:
            with open(override, "r") as f:
                networks = json.load(f)
        else:
            resource = importlib.resources.files("signvault_sdk").joinpath("networks.json")
            networks = json.loads(resource.read_text(encoding="utf-8"))

        cls._networks_cache = networks
        return networks

    @classmethod
    def get_evm_network(cls, chain_id: int) -> Dict[str, Any]:
        """
        Get the configuration of an EVM chain.

        Raises:
            KeyError: If the chain id is not configured
        """
        networks = cls.load_networks().get("evm", {})
        key = str(chain_id)
        if key not in networks:
            raise KeyError(f"EVM chain {chain_id} not configured. Available: {sorted(networks)}")
        return networks[key]

    @classmethod
    def get_bitcoin_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the configuration of a Bitcoin network.

        Raises:
            KeyError: If the network is not configured
        """
        networks = cls.load_networks().get("bitcoin", {})
        if network not in networks:
            raise KeyError(f"Bitcoin network '{network}' not configured. Available: {sorted(networks)}")
        return networks[network]


def get_snapshot_path() -> Path:
    """Location of the vault snapshot file"""
    path = os.environ.get("SIGNVAULT_SNAPSHOT_PATH")
    if path:
        return Path(path)
    return Path(appdirs.user_data_dir("signvault")) / "vault.snapshot"


def get_snapshot_key() -> Optional[bytes]:
    """
    Encryption key for snapshots, if one is configured.

    Returns:
        32-byte key decoded from SIGNVAULT_SNAPSHOT_KEY, or None

    Raises:
        ValueError: If the variable is set but not a base64 32-byte key
    """
    env_key = os.environ.get("SIGNVAULT_SNAPSHOT_KEY")
    if not env_key:
        return None
    try:
        key = base64.b64decode(env_key, validate=True)
    except binascii.Error as e:
        raise ValueError("SIGNVAULT_SNAPSHOT_KEY must be base64 encoded") from e
    if len(key) != 32:
        raise ValueError(f"SIGNVAULT_SNAPSHOT_KEY must decode to 32 bytes, got {len(key)}")
    return key


def get_pending_stale_after() -> int:
    """Age in seconds after which a pending transfer is reported as stale"""
    value = os.environ.get("SIGNVAULT_PENDING_STALE_AFTER")
    if not value:
        return DEFAULT_PENDING_STALE_AFTER
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid SIGNVAULT_PENDING_STALE_AFTER value %r, using default", value)
        return DEFAULT_PENDING_STALE_AFTER
