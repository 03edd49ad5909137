"""
Shared data models for the SignVault SDK.
"""
from typing import Annotated, Any, Dict

from pydantic import BaseModel, Field, PlainSerializer, PlainValidator


def _coerce_bytes(value: Any) -> bytes:
    """Accept raw bytes or a (optionally 0x-prefixed) hex string."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"Invalid hex string: {value!r}") from e
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


# Bytes that serialize to lowercase hex in JSON snapshots
HexBytes = Annotated[
    bytes,
    PlainValidator(_coerce_bytes),
    PlainSerializer(lambda v: v.hex(), return_type=str, when_used="json"),
]

Metadata = Dict[str, str]


class WalletController(BaseModel):
    """A controller registered in the wallet settings"""
    name: str
    metadata: Metadata = Field(default_factory=dict)


class WalletSettings(BaseModel):
    """Vault-wide settings changed through the request workflow"""
    controllers: Dict[str, WalletController] = Field(default_factory=dict)
    metadata: Metadata = Field(default_factory=dict)
