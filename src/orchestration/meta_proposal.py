# ABOUTME: Proposes a meta-event batch for a pending action and moves it into meta_review.
# ABOUTME: Shared by the HTTP generate endpoint and the turn workflow so both follow the same rules.

from uuid import uuid4

from loguru import logger
from pydantic import BaseModel

from src.agents.meta_event_generator import MetaEventGenerator
from src.models.game_phase import GamePhase
from src.models.session import MetaEvent
from src.orchestration.exceptions import PhaseConflict
from src.orchestration.phase_machine import PhaseStateMachine
from src.storage.session_store import RedisSessionStore
from src.utils.logging import log_turn_event


class ProposalResult(BaseModel):
    """Stored batch plus the raw generator output"""

    events: list[MetaEvent]
    raw_output: str


class MetaEventProposer:
    """Generates, stores, and presents a batch of candidate meta events"""

    def __init__(
        self,
        store: RedisSessionStore,
        machine: PhaseStateMachine,
        generator: MetaEventGenerator,
    ):
        self.store = store
        self.machine = machine
        self.generator = generator

    async def propose(
        self,
        pending_action_id: str,
        regenerate: bool = False,
        location: str | None = None,
        time_of_day: str | None = None,
        recent_events: list[str] | None = None,
    ) -> ProposalResult:
        """
        Generate a batch for a pending action in meta_proposal and present it for review.

        Args:
            pending_action_id: Turn whose action the events complicate
            regenerate: Delete the previous batch before generating
            location: Optional scene location for the prompt
            time_of_day: Optional time of day for the prompt
            recent_events: Optional recent story events for the prompt

        Returns:
            ProposalResult with the stored events in sequence order

        Raises:
            PhaseConflict: If the pending action is not in meta_proposal
            GenerationFormatError: If the generator output is unusable
            LLMCallFailed: If the LLM call fails
        """
        pending_action = self.store.get_pending_action(pending_action_id)
        if pending_action.phase != GamePhase.META_PROPOSAL:
            raise PhaseConflict(
                f"Pending action {pending_action_id} is in {pending_action.phase.value}, "
                f"not {GamePhase.META_PROPOSAL.value}",
                current_phase=pending_action.phase,
            )

        if regenerate:
            deleted = self.store.delete_meta_events(pending_action_id)
            logger.info(f"Deleted {deleted} meta events for {pending_action_id} before regenerating")

        generation = await self.generator.generate(
            pending_action.original_input,
            time_estimate=pending_action.time_estimate,
            location=location,
            time_of_day=time_of_day,
            recent_events=recent_events,
        )

        events = [
            MetaEvent(
                id=str(uuid4()),
                pending_action_id=pending_action_id,
                sequence_num=index,
                **generated.model_dump(),
            )
            for index, generated in enumerate(generation.events)
        ]
        # Generation may be retried; only the final successful batch stays stored
        self.store.delete_meta_events(pending_action_id)
        self.store.save_meta_events(events)

        self.machine.transition(
            pending_action.session_id,
            GamePhase.META_REVIEW,
            expected_pending_action_id=pending_action_id,
        )

        log_turn_event(
            f"Proposed {len(events)} meta events",
            session_id=pending_action.session_id,
            turn_id=pending_action_id,
            phase=GamePhase.META_REVIEW.value,
            event_count=len(events),
            regenerated=regenerate,
        )
        return ProposalResult(events=events, raw_output=generation.raw_output)
