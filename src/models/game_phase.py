# ABOUTME: Phase enumerations, the authoritative transition table, and phase-keyed completion signals.
# ABOUTME: Defines the closed set of turn phases plus meta-event type, severity, and decision enums.

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class GamePhase(str, Enum):
    """Turn pipeline phases for a single game session"""
    IDLE = "idle"
    VALIDATING = "validating"
    META_PROPOSAL = "meta_proposal"
    META_REVIEW = "meta_review"
    PROBABILITY_ROLL = "probability_roll"
    IN_META_EVENT = "in_meta_event"
    IN_COMBAT = "in_combat"
    RESOLVING_ACTION = "resolving_action"


class MetaEventType(str, Enum):
    """Kinds of complications the meta-event generator may propose"""
    ENCOUNTER = "encounter"  # Meeting someone or something
    DISCOVERY = "discovery"  # Finding something
    HAZARD = "hazard"  # Danger or obstacle
    OPPORTUNITY = "opportunity"  # Chance for benefit


class SeverityLevel(str, Enum):
    """How disruptive a proposed meta event is"""
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class PlayerDecision(str, Enum):
    """Player verdict on a proposed meta event"""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReviewOutcome(str, Enum):
    """How the player closed the meta_review phase"""
    CONFIRM = "confirm"
    REGENERATE = "regenerate"


class Nesting(str, Enum):
    """Narrator signal describing whether the scene stays inside an event"""
    PUSH = "push"
    POP = "pop"
    CONTINUE = "continue"


# Valid phase transitions (from -> allowed targets)
VALID_TRANSITIONS: dict[GamePhase, frozenset[GamePhase]] = {
    GamePhase.IDLE: frozenset({GamePhase.VALIDATING}),
    GamePhase.VALIDATING: frozenset({GamePhase.IDLE, GamePhase.META_PROPOSAL}),
    GamePhase.META_PROPOSAL: frozenset({GamePhase.META_REVIEW}),
    GamePhase.META_REVIEW: frozenset({GamePhase.META_PROPOSAL, GamePhase.PROBABILITY_ROLL}),
    GamePhase.PROBABILITY_ROLL: frozenset({GamePhase.IN_META_EVENT, GamePhase.RESOLVING_ACTION}),
    GamePhase.IN_META_EVENT: frozenset(
        {GamePhase.IN_META_EVENT, GamePhase.IN_COMBAT, GamePhase.RESOLVING_ACTION}
    ),
    GamePhase.IN_COMBAT: frozenset({GamePhase.IN_META_EVENT, GamePhase.RESOLVING_ACTION}),
    GamePhase.RESOLVING_ACTION: frozenset({GamePhase.IDLE}),
}

# Phases that reject new free-text player input
BLOCKING_PHASES: frozenset[GamePhase] = frozenset({
    GamePhase.VALIDATING,
    GamePhase.META_PROPOSAL,
    GamePhase.PROBABILITY_ROLL,
})

# Phases that take player input through decisions/buttons instead of free text
ALTERNATE_INPUT_PHASES: frozenset[GamePhase] = frozenset({
    GamePhase.META_REVIEW,
    GamePhase.IN_META_EVENT,
    GamePhase.IN_COMBAT,
    GamePhase.RESOLVING_ACTION,
})


# ============================================================================
# Phase completion signals (one type per phase that needs one)
# ============================================================================


class ValidationSignal(BaseModel):
    """Outcome of the validating phase"""
    kind: Literal["validation"] = "validation"
    validation_passed: bool

    model_config = {"frozen": True}


class ReviewSignal(BaseModel):
    """Outcome of the meta_review phase"""
    kind: Literal["review"] = "review"
    review_outcome: ReviewOutcome

    model_config = {"frozen": True}


class RollSignal(BaseModel):
    """Outcome of the probability_roll phase"""
    kind: Literal["roll"] = "roll"
    has_triggered_events: bool

    model_config = {"frozen": True}


class EventSignal(BaseModel):
    """Progress inside the in_meta_event loop"""
    kind: Literal["event"] = "event"
    all_events_resolved: bool

    model_config = {"frozen": True}


class CombatSignal(BaseModel):
    """Progress inside the in_combat phase"""
    kind: Literal["combat"] = "combat"
    combat_ended: bool
    all_events_resolved: bool = False

    model_config = {"frozen": True}


PhaseSignal = ValidationSignal | ReviewSignal | RollSignal | EventSignal | CombatSignal
