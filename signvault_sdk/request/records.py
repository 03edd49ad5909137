"""
Request records and the request queue.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..roles import Role
from .operations import Operation
from .results import RequestResult


class RequestStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.FAILED, RequestStatus.EXPIRED)


class RequestRecord(BaseModel):
    """
    A submitted operation and its lifecycle.

    Attributes:
        id: Request id, unique and increasing in submission order
        operation: The privileged operation
        role: Minimum role needed to execute the request
        submitted_by: Caller that submitted the request
        created_at: Submission time, nanoseconds since the epoch
        deadline: Time after which the request can no longer run, if any
        status: Lifecycle status
        result: Operation result once completed
        error: Error description once failed
        executed_at: Time execution started or expiry was detected
    """
    id: int
    operation: Operation
    role: Role
    submitted_by: str
    created_at: int
    deadline: Optional[int] = None
    status: RequestStatus = RequestStatus.PENDING
    result: Optional[RequestResult] = None
    error: Optional[str] = None
    executed_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        return self.deadline is not None and now > self.deadline


class RequestQueue(BaseModel):
    """
    Requests awaiting execution and the terminal records of processed ones.

    Ids are never reused, including ids of processed requests.
    """
    next_id: int = 1
    pending: Dict[int, RequestRecord] = Field(default_factory=dict)
    processed: Dict[int, RequestRecord] = Field(default_factory=dict)

    def allocate_id(self) -> int:
        request_id = self.next_id
        self.next_id += 1
        return request_id

    def enqueue(self, record: RequestRecord) -> None:
        self.pending[record.id] = record

    def get(self, request_id: int) -> Optional[RequestRecord]:
        return self.pending.get(request_id) or self.processed.get(request_id)

    def requeue_interrupted(self) -> List[int]:
        """
        Return requests caught mid-execution by a snapshot to ``Pending``.

        Effects apply their mutation only after their last external call,
        so a request saved while ``Executing`` has not taken effect.
        """
        interrupted = [record for record in self.pending.values() if record.status is RequestStatus.EXECUTING]
        for record in interrupted:
            record.status = RequestStatus.PENDING
            record.executed_at = None
        return sorted(record.id for record in interrupted)

    def finish(self, record: RequestRecord) -> None:
        """Move a terminal record out of the pending set"""
        self.pending.pop(record.id, None)
        self.processed[record.id] = record

    def list_pending(self) -> List[RequestRecord]:
        return [self.pending[request_id].model_copy(deep=True) for request_id in sorted(self.pending)]

    def list_processed(self) -> List[RequestRecord]:
        return [self.processed[request_id].model_copy(deep=True) for request_id in sorted(self.processed)]
