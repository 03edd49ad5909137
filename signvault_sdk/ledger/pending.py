"""
In-flight bridge transfers of a chain binding.

Each handle moves through ``Initiated -> Confirmed | ManuallyCleared``.
Only ``Initiated`` handles are stored; confirming or clearing removes the
handle. Nothing expires on its own.
"""
from enum import Enum
from typing import Iterable, List

from pydantic import BaseModel, Field


class Direction(str, Enum):
    RECEIVE = "receive"
    SEND = "send"


class PendingTransfer(BaseModel):
    """A bridge operation accepted by the bridge oracle"""
    handle: str
    initiated_at: int  # nanoseconds since the epoch


class PendingTransfers(BaseModel):
    """
    Ordered sets of pending bridge handles.

    Attributes:
        receive: Bridge-in operations awaiting confirmation
        send: Bridge-out operations awaiting confirmation
    """
    receive: List[PendingTransfer] = Field(default_factory=list)
    send: List[PendingTransfer] = Field(default_factory=list)

    def _entries(self, direction: Direction) -> List[PendingTransfer]:
        return self.receive if Direction(direction) is Direction.RECEIVE else self.send

    def handles(self, direction: Direction) -> List[str]:
        """Handles in initiation order"""
        return [entry.handle for entry in self._entries(direction)]

    def add(self, direction: Direction, handle: str, initiated_at: int) -> bool:
        """
        Track a new handle.

        Returns:
            False if the handle was already tracked (it is left unchanged)
        """
        entries = self._entries(direction)
        if any(entry.handle == handle for entry in entries):
            return False
        entries.append(PendingTransfer(handle=handle, initiated_at=initiated_at))
        return True

    def remove(self, direction: Direction, handle: str) -> bool:
        """
        Stop tracking a handle.

        Returns:
            True if the handle was tracked
        """
        entries = self._entries(direction)
        for index, entry in enumerate(entries):
            if entry.handle == handle:
                del entries[index]
                return True
        return False

    def settle(self, direction: Direction, confirmed: Iterable[str]) -> List[str]:
        """
        Remove every confirmed handle that is still tracked.

        Unconfirmed handles stay for the next poll; confirmed handles that
        are not tracked are ignored.

        Returns:
            The removed handles, in initiation order
        """
        confirmed = set(confirmed)
        entries = self._entries(direction)
        settled = [entry.handle for entry in entries if entry.handle in confirmed]
        entries[:] = [entry for entry in entries if entry.handle not in confirmed]
        return settled

    def stale(self, direction: Direction, now: int, max_age: int) -> List[PendingTransfer]:
        """Entries initiated more than ``max_age`` nanoseconds before ``now``"""
        return [entry for entry in self._entries(direction) if now - entry.initiated_at > max_age]

    def is_empty(self) -> bool:
        return not self.receive and not self.send

    # Convenience accessors

    @property
    def pending_receive(self) -> List[str]:
        return self.handles(Direction.RECEIVE)

    @property
    def pending_send(self) -> List[str]:
        return self.handles(Direction.SEND)
