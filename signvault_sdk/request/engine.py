"""
RequestEngine - role-checked, deadline-bounded execution of privileged
operations.

Lifecycle of a request:

    Pending -> Executing -> Completed | Failed
    Pending -> Expired    (deadline passed when execution was attempted)

A request executes at most once. Deadlines are checked lazily when
execution is attempted; there is no background timer.
"""
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from ..exceptions import (
    AlreadyExecutedError, ForbiddenError, RequestExpiredError, RequestNotFoundError,
)
from ..roles import Role, RoleAuthority
from .operations import parse_operation
from .records import RequestQueue, RequestRecord, RequestStatus
from .results import RequestResult

if TYPE_CHECKING:
    from ..vault import Vault

logger = logging.getLogger(__name__)


class RequestEngine:
    """
    Submits and executes requests against a vault.

    Args:
        vault: Vault the operations act on; its state holds the queue
        authority: Maps callers to roles
        clock: Current time in nanoseconds since the epoch
    """

    def __init__(
        self,
        vault: "Vault",
        authority: RoleAuthority,
        clock: Callable[[], int] = time.time_ns
    ):
        self.vault = vault
        self.authority = authority
        self.clock = clock

    @property
    def queue(self) -> RequestQueue:
        return self.vault.state.requests

    def _role_of(self, caller: str) -> Role:
        role = self.authority.role_of(caller)
        if role is None:
            raise ForbiddenError(f"Caller {caller} has no role")
        return role

    def submit(
        self,
        caller: str,
        operation: Any,
        required_role: Optional[Role] = None,
        deadline: Optional[int] = None
    ) -> int:
        """
        Validate an operation and queue it.

        Args:
            caller: Submitting caller; must hold a role
            operation: Operation model, or a dict with a ``kind`` key
            required_role: Role needed to execute; defaults to the
                operation's own default role
            deadline: Optional expiry, nanoseconds since the epoch

        Returns:
            The new request id

        Raises:
            ForbiddenError: If the caller holds no role
            InvalidRequestError: If the payload is malformed
            RequestExpiredError: If the deadline has already passed
            VaultValidationError / PreconditionError: If the operation's
                preconditions do not hold
        """
        self._role_of(caller)
        operation = parse_operation(operation)
        role = Role(required_role) if required_role is not None else operation.default_role

        now = self.clock()
        if deadline is not None and now > deadline:
            raise RequestExpiredError("Request deadline is already in the past")

        operation.check(self.vault)

        record = RequestRecord(
            id=self.queue.allocate_id(),
            operation=operation,
            role=role,
            submitted_by=caller,
            created_at=now,
            deadline=deadline,
        )
        self.queue.enqueue(record)
        logger.info("Request %d (%s) submitted by %s", record.id, operation.kind, caller)
        return record.id

    async def execute(self, request_id: int, caller: str) -> RequestResult:
        """
        Execute a pending request.

        The request is marked ``Executing`` before its effect runs, so a
        concurrent attempt fails with AlreadyExecutedError. A failing effect
        is recorded as ``Failed`` and its error is re-raised.

        Raises:
            RequestNotFoundError: If the id is unknown
            ForbiddenError: If the caller's role does not satisfy the request
            RequestExpiredError: If the deadline has passed
            AlreadyExecutedError: If the request already ran or is running
        """
        record = self.queue.get(request_id)
        if record is None:
            raise RequestNotFoundError(f"Request {request_id} not found")

        role = self._role_of(caller)
        if not role.satisfies(record.role):
            raise ForbiddenError(
                f"Request {request_id} requires {record.role.value}, caller has {role.value}"
            )

        if record.status is RequestStatus.EXPIRED:
            raise RequestExpiredError(f"Request {request_id} has expired")
        if record.status is not RequestStatus.PENDING:
            raise AlreadyExecutedError(f"Request {request_id} is {record.status.value}")

        now = self.clock()
        if record.is_expired(now):
            record.status = RequestStatus.EXPIRED
            record.executed_at = now
            self.queue.finish(record)
            logger.info("Request %d expired before execution", request_id)
            raise RequestExpiredError(f"Request {request_id} has expired")

        record.status = RequestStatus.EXECUTING
        record.executed_at = now
        logger.debug("Executing request %d (%s)", request_id, record.operation.kind)

        try:
            record.operation.check(self.vault)
            result = await record.operation.execute(self.vault)
        except Exception as e:
            record.status = RequestStatus.FAILED
            record.error = f"{type(e).__name__}: {e}"
            self.queue.finish(record)
            logger.warning("Request %d failed: %s", request_id, record.error)
            raise

        record.status = RequestStatus.COMPLETED
        record.result = result
        self.queue.finish(record)
        logger.info("Request %d completed", request_id)
        return result

    def get(self, request_id: int) -> RequestRecord:
        """
        Raises:
            RequestNotFoundError: If the id is unknown
        """
        record = self.queue.get(request_id)
        if record is None:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return record.model_copy(deep=True)

    def list_pending(self) -> List[RequestRecord]:
        """Copies of the pending requests, ordered by id"""
        return self.queue.list_pending()

    def list_processed(self) -> List[RequestRecord]:
        return self.queue.list_processed()
