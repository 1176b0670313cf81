# ABOUTME: LangGraph turn state plus the pydantic results exchanged between workflow steps.
# ABOUTME: Also defines inbound/outbound turn events (PlayerActionSubmitted, TurnCompleted, TurnFailed).

from datetime import datetime
from typing import Literal, NotRequired, TypedDict

from pydantic import BaseModel, Field

from src.models.game_phase import Nesting
from src.models.session import utcnow


class TurnState(TypedDict):
    """Root state for one invocation of the turn graph"""

    # Identity
    turn_id: str  # Equal to the pending action id
    session_id: str
    user_id: str
    player_input: str

    # Phase the store reported when this invocation started
    entry_phase: str

    # Session flags captured when the turn began (drive the meta skip rule)
    started_in_meta_event: bool
    started_in_combat: bool

    # Step results (JSON-friendly dumps of the models below)
    validation: NotRequired[dict]
    constraints: NotRequired[dict]
    meta_skipped: NotRequired[bool]
    proposal_round: NotRequired[int]
    triggered_event_ids: NotRequired[list[str]]
    event_resolutions: NotRequired[list[dict]]
    interactions: NotRequired[dict]
    narration: NotRequired[dict]

    # Event loop routing
    active_event_id: NotRequired[str | None]
    event_route: NotRequired[Literal["event", "combat", "resolve"]]

    # Terminal markers
    rejected: NotRequired[bool]
    clarification: NotRequired[str | None]
    awaiting_review: NotRequired[bool]
    completed: NotRequired[bool]


class ValidationResult(BaseModel):
    """Validator verdict on raw player input"""

    valid: bool
    error_code: Literal[
        "IMPOSSIBLE_ACTION",
        "GIBBERISH_INPUT",
        "PROMPT_INJECTION",
        "OFF_TOPIC",
        "INAPPROPRIATE",
    ] | None = None
    time_estimate: str | None = None
    raw_output: str = ""


class ConstraintBundle(BaseModel):
    """Time, difficulty, and inventory constraints consumed by later steps"""

    time_estimate: str | None = None
    time_minutes: int = Field(default=0, ge=0)
    difficulty: int = Field(default=5, ge=1, le=10)
    inventory_space: int = Field(default=10, ge=0)
    notes: list[str] = Field(default_factory=list)


class EventResolution(BaseModel):
    """How a single triggered meta event played out"""

    event_id: str
    title: str
    summary: str
    via_combat: bool = False


class CombatOutcome(BaseModel):
    """Result reported by the combat sub-system"""

    combat_ended: bool = True
    summary: str = ""


class InteractionResult(BaseModel):
    """NPC and background reactions to the action"""

    npc_reactions: dict[str, str] = Field(default_factory=dict)
    background: list[str] = Field(default_factory=list)


class NarrationSignals(BaseModel):
    """Terminal state signals produced alongside the narrative"""

    action_resolved: bool = True
    nesting: Nesting = Nesting.CONTINUE
    combat_active: bool = False


class NarrationResult(BaseModel):
    """User-visible narrative for the turn"""

    narrative: str
    signals: NarrationSignals = Field(default_factory=NarrationSignals)
    raw_output: str = ""


class TurnOutcome(BaseModel):
    """What run_turn / resume_turn report back to the caller"""

    turn_id: str
    session_id: str
    status: Literal["completed", "awaiting_review", "rejected", "failed"]
    phase: str
    narrative: str | None = None
    message: str | None = None


# ============================================================================
# Turn events
# ============================================================================


class PlayerActionSubmitted(BaseModel):
    """Inbound trigger that starts a turn"""

    session_id: str
    user_id: str
    player_input: str


class TurnCompleted(BaseModel):
    """Emitted once a turn reaches idle with a narrative"""

    event: Literal["turn_completed"] = "turn_completed"
    session_id: str
    turn_id: str
    narrative: str
    timestamp: datetime = Field(default_factory=utcnow)


class TurnFailed(BaseModel):
    """Emitted (and recorded for audit) when a turn ends without a narrative"""

    event: Literal["turn_failed"] = "turn_failed"
    session_id: str
    user_id: str
    error: str
    turn_id: str | None = None
    failed_step: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
