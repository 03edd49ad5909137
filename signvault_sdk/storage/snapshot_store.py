"""
File persistence for vault snapshots.
"""
import base64
import json
import logging
import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import nacl.exceptions
import nacl.secret
import portalocker

from ..config import get_snapshot_key, get_snapshot_path
from ..exceptions import CorruptSnapshotError

if TYPE_CHECKING:
    from ..backends.base import BridgeOracle, SigningOracle
    from ..vault import Vault

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1
LOCK_TIMEOUT = 10


class SnapshotStore:
    """
    Process-safe snapshot file, optionally sealed with a SecretBox.

    Args:
        path: Snapshot file; defaults to SIGNVAULT_SNAPSHOT_PATH or the
            user data directory
        key: 32-byte encryption key; defaults to SIGNVAULT_SNAPSHOT_KEY.
            Snapshots are stored in clear when no key is configured.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, key: Optional[bytes] = None):
        self.path = Path(path) if path else get_snapshot_path()
        self.key = key if key is not None else get_snapshot_key()
        if self.key is not None and len(self.key) != nacl.secret.SecretBox.KEY_SIZE:
            raise ValueError(f"Snapshot key must be {nacl.secret.SecretBox.KEY_SIZE} bytes")
        self._ensure_dir()

    def _ensure_dir(self) -> None:
        directory = self.path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            if os.name == "posix":
                os.chmod(directory, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)  # 0700

    def _get_lock_path(self) -> str:
        return str(self.path) + ".lock"

    def _seal(self, data: bytes) -> Dict[str, Any]:
        if self.key is None:
            return {"version": SNAPSHOT_FORMAT_VERSION, "snapshot": base64.b64encode(data).decode("ascii")}
        box = nacl.secret.SecretBox(self.key)
        return {"version": SNAPSHOT_FORMAT_VERSION, "encrypted": base64.b64encode(box.encrypt(data)).decode("ascii")}

    def _unseal(self, envelope: Dict[str, Any]) -> bytes:
        if envelope.get("version") != SNAPSHOT_FORMAT_VERSION:
            raise CorruptSnapshotError(f"Unsupported snapshot format version: {envelope.get('version')!r}")

        try:
            if "encrypted" in envelope:
                if self.key is None:
                    raise CorruptSnapshotError("Snapshot is encrypted but no snapshot key is configured")
                box = nacl.secret.SecretBox(self.key)
                return box.decrypt(base64.b64decode(envelope["encrypted"]))
            if "snapshot" in envelope:
                return base64.b64decode(envelope["snapshot"])
        except nacl.exceptions.CryptoError as e:
            raise CorruptSnapshotError(f"Failed to decrypt snapshot: {e}") from e
        except (ValueError, TypeError) as e:
            raise CorruptSnapshotError(f"Malformed snapshot payload: {e}") from e

        raise CorruptSnapshotError("Snapshot file has no payload")

    def exists(self) -> bool:
        return self.path.exists()

    def write(self, data: bytes) -> None:
        """Replace the stored snapshot with ``data``"""
        envelope = self._seal(bytes(data))
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with portalocker.Lock(self._get_lock_path(), timeout=LOCK_TIMEOUT):
            with open(tmp_path, "w") as f:
                json.dump(envelope, f)
            if os.name == "posix":
                os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
            os.replace(tmp_path, self.path)
        logger.debug("Wrote %d byte snapshot to %s", len(data), self.path)

    def read(self) -> Optional[bytes]:
        """
        Returns:
            The stored snapshot, or None if nothing was stored yet

        Raises:
            CorruptSnapshotError: If the file cannot be decoded
        """
        with portalocker.Lock(self._get_lock_path(), timeout=LOCK_TIMEOUT):
            try:
                with open(self.path, "r") as f:
                    envelope = json.load(f)
            except FileNotFoundError:
                return None
            except json.JSONDecodeError as e:
                raise CorruptSnapshotError(f"Snapshot file is not valid JSON: {e}") from e

        if not isinstance(envelope, dict):
            raise CorruptSnapshotError("Snapshot file must contain a JSON object")
        return self._unseal(envelope)

    def delete(self) -> None:
        with portalocker.Lock(self._get_lock_path(), timeout=LOCK_TIMEOUT):
            if self.path.exists():
                self.path.unlink()
                logger.info("Deleted snapshot %s", self.path)

    # Vault helpers

    def save_vault(self, vault: "Vault") -> None:
        self.write(vault.save())

    def load_vault(
        self,
        signer: "SigningOracle",
        bridge: Optional["BridgeOracle"] = None,
        **kwargs
    ) -> Optional["Vault"]:
        """
        Restore the stored vault, or return None if there is no snapshot.

        Extra keyword arguments are passed to :meth:`Vault.restore`.
        """
        data = self.read()
        if data is None:
            return None
        from ..vault import Vault
        return Vault.restore(data, signer, bridge, **kwargs)
