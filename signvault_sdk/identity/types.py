"""
Data types for the identity module.
"""
from enum import Enum


class Environment(str, Enum):
    """
    Deployment tier of a subaccount.

    The tier selects the signing key used for the subaccount and is encoded
    in the first byte of the subaccount.
    """
    PRODUCTION = "Production"
    STAGING = "Staging"
    DEVELOPMENT = "Development"

    @property
    def tag(self) -> int:
        """Byte value stored at position 0 of a subaccount"""
        return ENVIRONMENT_TAGS[self]


ENVIRONMENT_TAGS = {
    Environment.PRODUCTION: 0x00,
    Environment.DEVELOPMENT: 0x08,
    Environment.STAGING: 0x10,
}

TAG_ENVIRONMENTS = {tag: env for env, tag in ENVIRONMENT_TAGS.items()}
