# ABOUTME: Pydantic models for session phase context, pending actions, meta events, and turn records.
# ABOUTME: These are the durable entities owned by the session store.

from datetime import UTC, datetime

from pydantic import BaseModel, Field, model_validator

from src.models.game_phase import GamePhase, MetaEventType, PlayerDecision, SeverityLevel

TITLE_MAX_LENGTH = 255


def utcnow() -> datetime:
    """Timezone-aware current time used for all persisted timestamps"""
    return datetime.now(UTC)


class SessionPhaseContext(BaseModel):
    """Per-session phase record; the single authority for which phase is active"""

    session_id: str
    current_phase: GamePhase = GamePhase.IDLE
    pending_action_id: str | None = Field(
        default=None,
        description="Action currently moving through the pipeline (null only when idle)"
    )
    is_in_meta_event: bool = False
    is_in_combat: bool = False

    # Optimistic concurrency: incremented on every successful write
    version: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _pending_action_matches_phase(self) -> "SessionPhaseContext":
        idle = self.current_phase == GamePhase.IDLE
        if idle and self.pending_action_id is not None:
            raise ValueError("pending_action_id must be null while idle")
        if not idle and self.pending_action_id is None:
            raise ValueError(
                f"pending_action_id is required in phase {self.current_phase.value}"
            )
        return self

    @property
    def is_idle(self) -> bool:
        return self.current_phase == GamePhase.IDLE


class PendingAction(BaseModel):
    """One in-flight player action; its id is also the turn id"""

    id: str
    session_id: str
    original_input: str
    time_estimate: str | None = None
    phase: GamePhase = GamePhase.VALIDATING  # Denormalized copy of the session phase

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class GeneratedEvent(BaseModel):
    """Normalized event produced by the generator, before it is stored"""

    type: MetaEventType
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str
    probability: float = Field(ge=0.0, le=1.0)
    severity: SeverityLevel
    triggers_combat: bool = False
    time_impact: str | None = None


class MetaEvent(BaseModel):
    """A stored candidate event attached to a pending action"""

    id: str
    pending_action_id: str
    sequence_num: int = Field(ge=0, description="Stable ordering within the batch")
    type: MetaEventType
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str
    probability: float = Field(ge=0.0, le=1.0)
    severity: SeverityLevel
    triggers_combat: bool = False
    time_impact: str | None = None
    player_decision: PlayerDecision | None = None

    # Filled in by the probability roll and event resolution
    roll_result: float | None = None
    triggered: bool | None = None
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_decided(self) -> bool:
        return self.player_decision is not None

    @property
    def is_accepted(self) -> bool:
        return self.player_decision == PlayerDecision.ACCEPTED


class TurnRecord(BaseModel):
    """Persisted result of a completed turn, written once per turn id"""

    turn_id: str
    session_id: str
    player_input: str
    narrative: str
    triggered_event_ids: list[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=utcnow)
