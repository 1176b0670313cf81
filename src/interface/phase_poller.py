# ABOUTME: Client-side phase poller that refreshes a session's phase while it is blocking.
# ABOUTME: Read-only cache over GET /sessions/{id}/phase; the server stays the single authority.

import asyncio
from collections.abc import Awaitable, Callable

import httpx
from loguru import logger
from pydantic import BaseModel

from src.models.game_phase import GamePhase
from src.orchestration.phase_table import accepts_alternate_input, is_blocking


class PhaseSnapshot(BaseModel):
    """Last phase the poller saw"""

    phase: GamePhase
    pending_action_id: str | None = None
    original_input: str | None = None
    is_in_meta_event: bool = False
    is_in_combat: bool = False

    @property
    def is_blocking(self) -> bool:
        return is_blocking(self.phase)

    @property
    def accepts_alternate_input(self) -> bool:
        return accepts_alternate_input(self.phase)


class PhasePoller:
    """
    Polls the phase endpoint at a fixed interval while the phase is blocking.

    Polling stops as soon as a non-blocking phase is seen; callers start it again
    (poll or refresh) after submitting new input.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        session_id: str,
        user_id: str,
        interval: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize phase poller.

        Args:
            client: HTTP client pointed at the API base URL
            session_id: Session to watch
            user_id: Caller identity sent as X-User-Id
            interval: Seconds between polls while blocking (default: 2.0)
            sleep: Awaitable used between polls (tests pass a no-op)
        """
        self.client = client
        self.session_id = session_id
        self.user_id = user_id
        self.interval = interval
        self._sleep = sleep
        self._snapshot: PhaseSnapshot | None = None

    @property
    def snapshot(self) -> PhaseSnapshot | None:
        return self._snapshot

    async def refresh(self) -> PhaseSnapshot:
        """
        Fetch the current phase once.

        Raises:
            httpx.HTTPStatusError: If the API answers with an error status
        """
        response = await self.client.get(
            f"/sessions/{self.session_id}/phase",
            headers={"X-User-Id": self.user_id},
        )
        response.raise_for_status()
        data = response.json()

        self._snapshot = PhaseSnapshot(
            phase=data["phase"],
            pending_action_id=data.get("pendingActionId"),
            original_input=data.get("originalInput"),
            is_in_meta_event=data.get("isInMetaEvent", False),
            is_in_combat=data.get("isInCombat", False),
        )
        return self._snapshot

    async def poll(
        self,
        on_change: Callable[[PhaseSnapshot], None] | None = None,
        max_polls: int | None = None,
    ) -> PhaseSnapshot:
        """
        Poll until the phase stops blocking.

        Args:
            on_change: Called whenever the phase differs from the previous poll
            max_polls: Optional cap on requests (None polls until non-blocking)

        Returns:
            The first non-blocking snapshot (or the last one seen when capped)
        """
        previous = self._snapshot.phase if self._snapshot else None
        polls = 0

        while True:
            snapshot = await self.refresh()
            polls += 1

            if snapshot.phase != previous:
                logger.debug(f"Session {self.session_id} phase: {previous} -> {snapshot.phase.value}")
                if on_change is not None:
                    on_change(snapshot)
                previous = snapshot.phase

            if not snapshot.is_blocking:
                return snapshot
            if max_polls is not None and polls >= max_polls:
                return snapshot

            await self._sleep(self.interval)
