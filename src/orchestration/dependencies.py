# ABOUTME: Collaborators the turn graph nodes close over, plus a factory that wires them from settings.
# ABOUTME: Everything a node needs is passed in here; nodes never look up clients on their own.

from dataclasses import dataclass, field

from openai import AsyncOpenAI
from redis import Redis

from src.agents.llm_client import LLMClient
from src.agents.meta_event_generator import MetaEventGenerator
from src.agents.narrator import Narrator
from src.agents.validator import ActionValidator
from src.config.settings import Settings, get_settings
from src.orchestration.event_publisher import TurnEventPublisher
from src.orchestration.meta_proposal import MetaEventProposer
from src.orchestration.modules import (
    CombatResolver,
    ConstraintEvaluator,
    DescriptiveEventResolver,
    InstantCombatResolver,
    InteractionModule,
    MetaEventResolver,
    QuietInteractionModule,
    TimeScaleConstraintEvaluator,
)
from src.orchestration.phase_machine import PhaseStateMachine
from src.orchestration.probability import ProbabilityRoller
from src.orchestration.step_runner import RetryPolicy, StepRunner
from src.storage.session_store import RedisSessionStore
from src.storage.step_ledger import StepLedger


@dataclass
class TurnDependencies:
    """Everything the turn workflow touches"""
    store: RedisSessionStore
    machine: PhaseStateMachine
    runner: StepRunner
    validator: ActionValidator
    proposer: MetaEventProposer
    narrator: Narrator
    publisher: TurnEventPublisher
    roller: ProbabilityRoller = field(default_factory=ProbabilityRoller)
    constraints: ConstraintEvaluator = field(default_factory=TimeScaleConstraintEvaluator)
    event_resolver: MetaEventResolver = field(default_factory=DescriptiveEventResolver)
    combat_resolver: CombatResolver = field(default_factory=InstantCombatResolver)
    interactions: InteractionModule = field(default_factory=QuietInteractionModule)

    @property
    def ledger(self) -> StepLedger:
        return self.runner.ledger


def create_turn_dependencies(
    redis_client: Redis,
    openai_client: AsyncOpenAI | None = None,
    settings: Settings | None = None,
) -> TurnDependencies:
    """
    Wire production collaborators from settings.

    Args:
        redis_client: Redis connection shared by the store, ledger, and publisher
        openai_client: OpenAI client (created from settings when omitted)
        settings: Application settings (default: get_settings())

    Returns:
        TurnDependencies with default sub-system modules
    """
    settings = settings or get_settings()
    openai_client = openai_client or AsyncOpenAI(api_key=settings.openai_api_key)
    llm_client = LLMClient(
        openai_client,
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
        transport_attempts=settings.llm_transport_attempts,
    )

    store = RedisSessionStore(redis_client)
    machine = PhaseStateMachine(store)
    policy = RetryPolicy.from_base(settings.step_max_attempts, settings.step_backoff_base)

    return TurnDependencies(
        store=store,
        machine=machine,
        runner=StepRunner(StepLedger(redis_client), policy),
        validator=ActionValidator(llm_client),
        proposer=MetaEventProposer(
            store,
            machine,
            MetaEventGenerator(llm_client, title_max_length=settings.meta_event_title_max_length),
        ),
        narrator=Narrator(llm_client),
        publisher=TurnEventPublisher(redis_client),
    )
