"""Bookkeeping for turns that are currently running.

A turn started through the HTTP API outlives the request that started it
only as an SSE stream, so cancellation and permission decisions arrive on
separate requests. The TurnRegistry connects those requests to the running
turn through its cancellation signal and its pending permission futures.
"""

import asyncio
import logging
import uuid

from delver_server.exceptions import TurnInProgressError

logger = logging.getLogger(__name__)


class ActiveTurn:
    """State shared between a running turn and the requests steering it.

    Attributes:
        session_id: Session the turn belongs to
        signal: Cancellation event checked by the chat loop
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.signal = asyncio.Event()
        self._pending: dict[str, asyncio.Future[bool]] = {}

    @property
    def cancelled(self) -> bool:
        return self.signal.is_set()

    def cancel(self) -> None:
        if not self.signal.is_set():
            logger.info(f"Cancelling turn for session {self.session_id}")
        self.signal.set()

    def create_permission_request(self) -> tuple[str, asyncio.Future[bool]]:
        """Register a pending permission decision.

        Returns:
            The request ID and the future that resolve_permission completes
        """
        request_id = uuid.uuid4().hex[:10]
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        return request_id, future

    def resolve_permission(self, request_id: str, approved: bool) -> None:
        """Deliver the user's decision for a pending request.

        Raises:
            KeyError: If no such request is pending
        """
        future = self._pending.pop(request_id)
        if not future.done():
            future.set_result(approved)

    def discard_permission_request(self, request_id: str) -> None:
        self._pending.pop(request_id, None)

    def pending_requests(self) -> list[str]:
        return list(self._pending)


class TurnRegistry:
    """Tracks at most one active turn per session."""

    def __init__(self) -> None:
        self._turns: dict[str, ActiveTurn] = {}

    def start(self, session_id: str) -> ActiveTurn:
        """Register a new turn.

        Raises:
            TurnInProgressError: If the session already has an active turn
        """
        if session_id in self._turns:
            raise TurnInProgressError(session_id)
        turn = ActiveTurn(session_id)
        self._turns[session_id] = turn
        return turn

    def get(self, session_id: str) -> ActiveTurn | None:
        return self._turns.get(session_id)

    def finish(self, turn: ActiveTurn) -> None:
        if self._turns.get(turn.session_id) is turn:
            del self._turns[turn.session_id]
