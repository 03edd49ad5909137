"""
Exceptions for the SignVault SDK.

Errors fall into four families: validation errors (caller mistakes),
precondition errors (a setup step is missing), external-call failures
(signer, chain backend or bridge) and fatal invariant violations.
"""
from typing import Optional


class VaultError(Exception):
    """Base exception for all SignVault errors."""
    pass


# Validation -----------------------------------------------------------------

class VaultValidationError(VaultError):
    """Raised when the caller supplied invalid input."""
    pass


class InvalidAddressError(VaultValidationError):
    """Raised when an account identifier or address cannot be parsed."""
    pass


class InvalidKeyLengthError(VaultValidationError):
    """Raised when a public key is not a 33-byte compressed key."""
    pass


class PublicKeyAlreadySetError(VaultValidationError):
    """Raised when a ledger public key is set a second time."""
    pass


class ChainNotFoundError(VaultValidationError):
    """Raised when a chain binding does not exist on a ledger."""
    pass


class AccountNotFoundError(VaultValidationError):
    """Raised when an account id is unknown to the vault."""
    pass


class AccountAlreadyExistsError(VaultValidationError):
    """Raised when restoring an account that is already present."""
    pass


class DefaultAccountRemovalError(VaultValidationError):
    """Raised when trying to remove the default account."""
    pass


class InvalidSignatureError(VaultValidationError):
    """Raised when a signature cannot be normalized to (r, s, v)."""
    pass


class InvalidMessageLengthError(VaultValidationError):
    """Raised when a signing digest is not exactly 32 bytes."""
    pass


class InvalidTransactionError(VaultValidationError):
    """Raised when a raw transaction cannot be decoded."""
    pass


class InvalidNonceError(VaultValidationError):
    """Raised when a subaccount nonce is outside the encodable range."""
    pass


class ForbiddenError(VaultValidationError):
    """Raised when the caller's role does not satisfy the request's role."""
    pass


class RequestExpiredError(VaultValidationError):
    """Raised when a request is executed after its deadline."""
    pass


class AlreadyExecutedError(VaultValidationError):
    """Raised when a request that already ran is executed again."""
    pass


class RequestNotFoundError(VaultValidationError):
    """Raised when a request id is unknown."""
    pass


class InvalidRequestError(VaultValidationError):
    """Raised when a request payload fails its own validation."""
    pass


# Preconditions --------------------------------------------------------------

class PreconditionError(VaultError):
    """Raised when a required setup step has not been performed."""
    pass


class MissingPublicKeyError(PreconditionError):
    """Raised when a key-dependent chain is used before the key is set."""
    pass


class BridgeNotInitializedError(PreconditionError):
    """Raised when a bridge operation targets an unbound wrapped chain."""
    pass


class UntrackedBridgeTransferError(BridgeNotInitializedError):
    """Raised when the bridge accepted a transfer whose binding was removed meanwhile."""

    def __init__(self, message: str, handle: str):
        self.handle = handle
        super().__init__(message)


# External calls -------------------------------------------------------------

class ExternalCallError(VaultError):
    """Raised when an external collaborator fails or rejects a call."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


class SignerError(ExternalCallError):
    """Raised when the signing oracle fails."""

    def __init__(self, message: str):
        super().__init__(message, source="signer")


class ChainBackendError(ExternalCallError):
    """Raised when a chain backend fails."""

    def __init__(self, message: str):
        super().__init__(message, source="chain_backend")


class BridgeError(ExternalCallError):
    """Raised when the bridge oracle fails."""

    def __init__(self, message: str):
        super().__init__(message, source="bridge")


class UnsupportedOperationError(ExternalCallError):
    """Raised when a backend does not implement the requested call."""
    pass


# Fatal ----------------------------------------------------------------------

class VaultInvariantError(VaultError):
    """Raised on programming errors or corrupted state. Not recoverable."""
    pass


class UnknownEnvironmentError(VaultInvariantError):
    """Raised when a subaccount carries an unknown environment tag."""
    pass


class CorruptSnapshotError(VaultInvariantError):
    """Raised when a persisted snapshot cannot be restored."""
    pass
