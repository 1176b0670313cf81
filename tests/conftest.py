# ABOUTME: Shared pytest fixtures for all test modules (unit and integration).
# ABOUTME: Provides a fakeredis-backed store, scripted LLM clients, and turn workflow wiring.

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest

from src.agents.llm_client import LLMClient
from src.agents.meta_event_generator import MetaEventGenerator
from src.agents.narrator import Narrator
from src.agents.validator import ActionValidator
from src.models.game_phase import GamePhase
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.event_publisher import TurnEventPublisher
from src.orchestration.meta_proposal import MetaEventProposer
from src.orchestration.phase_machine import PhaseStateMachine
from src.orchestration.probability import ProbabilityRoller
from src.orchestration.review_coordinator import ReviewCoordinator
from src.orchestration.step_runner import RetryPolicy, StepRunner
from src.storage.session_store import RedisSessionStore
from src.storage.step_ledger import StepLedger

# --- Canned LLM payloads ---

VALID_ACTION = {
    "input_validator": {"valid": "yes", "error_code": None},
    "time_estimator": {"time_estimate": "1 hour"},
}

INVALID_ACTION = {
    "input_validator": {"valid": "no", "error_code": "GIBBERISH_INPUT"},
    "time_estimator": {"time_estimate": None},
}

TWO_EVENTS = {
    "events": [
        {
            "type": "encounter",
            "title": "Wandering Merchant",
            "description": "A merchant with a heavy cart waves you down.",
            "probability": 0.4,
            "severity": "minor",
            "triggersCombat": False,
        },
        {
            "type": "hazard",
            "title": "Wolf Pack",
            "description": "Hungry wolves circle in the treeline.",
            "probability": 0.3,
            "severity": "moderate",
            "triggersCombat": True,
        },
    ]
}

NARRATION = {
    "narrative": "You walk the forest road as the light fades.",
    "signals": {"action_resolved": True, "nesting": "continue", "combat_active": False},
}


async def _no_sleep(_: float) -> None:
    return None


def scripted_rng(values: list[float]) -> Callable[[], float]:
    """Deterministic rng returning the given values in order"""
    iterator = iter(values)
    return lambda: next(iterator)


# --- Redis and storage fixtures ---

@pytest.fixture
def redis_client():
    """In-memory Redis double (same byte semantics as a real connection)"""
    return fakeredis.FakeRedis()


@pytest.fixture
def store(redis_client) -> RedisSessionStore:
    return RedisSessionStore(redis_client)


@pytest.fixture
def machine(store) -> PhaseStateMachine:
    return PhaseStateMachine(store)


@pytest.fixture
def ledger(redis_client) -> StepLedger:
    return StepLedger(redis_client)


@pytest.fixture
def session(store):
    """An idle session owned by user-1"""
    return store.create_session("session-1", "user-1")


@pytest.fixture
def coordinator(store, machine) -> ReviewCoordinator:
    return ReviewCoordinator(store, machine)


# --- LLM fixtures ---

@pytest.fixture
def mock_llm_client():
    """
    LLMClient stand-in whose call_json replies are routed by system prompt.

    Tests set replies via mock_llm_client.replies["validator" | "meta" | "narrator"],
    each a list consumed in order (the last entry repeats).
    """
    client = MagicMock(spec=LLMClient)
    client.replies = {
        "validator": [json.dumps(VALID_ACTION)],
        "meta": [json.dumps(TWO_EVENTS)],
        "narrator": [json.dumps(NARRATION)],
    }
    client.calls = []

    def _route(system_prompt: str) -> str:
        if "INPUT VALIDATOR" in system_prompt:
            return "validator"
        if "Meta Event Generator" in system_prompt:
            return "meta"
        return "narrator"

    async def call_json(system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        kind = _route(system_prompt)
        client.calls.append(kind)
        queue = client.replies[kind]
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    client.call_json = AsyncMock(side_effect=call_json)
    return client


@pytest.fixture
def mock_openai_client():
    """AsyncOpenAI stand-in returning a fixed JSON completion"""
    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = json.dumps(NARRATION)
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


# --- Workflow fixtures ---

@pytest.fixture
def proposer(store, machine, mock_llm_client) -> MetaEventProposer:
    return MetaEventProposer(store, machine, MetaEventGenerator(mock_llm_client))


@pytest.fixture
def rng_values() -> list[float]:
    """Rolls consumed by the probability roller (override per test)"""
    return [0.99] * 8


@pytest.fixture
def turn_deps(redis_client, store, machine, ledger, proposer, mock_llm_client, rng_values):
    """TurnDependencies over fakeredis with scripted LLM replies and no backoff delay"""
    return TurnDependencies(
        store=store,
        machine=machine,
        runner=StepRunner(ledger, RetryPolicy(max_attempts=3), sleep=_no_sleep),
        validator=ActionValidator(mock_llm_client),
        proposer=proposer,
        narrator=Narrator(mock_llm_client),
        publisher=TurnEventPublisher(redis_client),
        roller=ProbabilityRoller(scripted_rng(rng_values)),
    )


@pytest.fixture
def advance(machine) -> Callable[[str, GamePhase], str]:
    """Begin a turn and walk it along the main path up to the given phase; returns the turn id"""

    def _advance(session_id: str, phase: GamePhase) -> str:
        path = [
            GamePhase.META_PROPOSAL,
            GamePhase.META_REVIEW,
            GamePhase.PROBABILITY_ROLL,
            GamePhase.IN_META_EVENT,
            GamePhase.RESOLVING_ACTION,
        ]
        pending_action = machine.begin_turn(session_id, "walk to the village")
        if phase == GamePhase.VALIDATING:
            return pending_action.id
        for step in path:
            machine.transition(session_id, step, expected_pending_action_id=pending_action.id)
            if step == phase:
                break
        return pending_action.id

    return _advance
