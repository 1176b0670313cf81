# ABOUTME: Unit tests for the probability roll over a reviewed meta-event batch.
# ABOUTME: Verifies that only accepted events roll and that rolls below probability trigger.

from src.models.game_phase import MetaEventType, PlayerDecision, SeverityLevel
from src.models.session import MetaEvent
from src.orchestration.probability import ProbabilityRoller, triggered_events


def make_event(sequence_num: int, probability: float, decision: PlayerDecision | None):
    return MetaEvent(
        id=f"e-{sequence_num}",
        pending_action_id="pa-1",
        sequence_num=sequence_num,
        type=MetaEventType.HAZARD,
        title=f"Hazard {sequence_num}",
        description="Loose rocks above the path.",
        probability=probability,
        severity=SeverityLevel.MODERATE,
        player_decision=decision,
    )


class TestProbabilityRoller:
    """Test suite for ProbabilityRoller"""

    def test_roll_below_probability_triggers(self):
        roller = ProbabilityRoller(rng=lambda: 0.1)
        [rolled] = roller.roll([make_event(0, 0.4, PlayerDecision.ACCEPTED)])

        assert rolled.roll_result == 0.1
        assert rolled.triggered is True

    def test_roll_equal_to_probability_misses(self):
        roller = ProbabilityRoller(rng=lambda: 0.4)
        [rolled] = roller.roll([make_event(0, 0.4, PlayerDecision.ACCEPTED)])

        assert rolled.triggered is False

    def test_rejected_events_never_roll(self):
        calls = []

        def rng():
            calls.append(1)
            return 0.0

        roller = ProbabilityRoller(rng=rng)
        [rolled] = roller.roll([make_event(0, 1.0, PlayerDecision.REJECTED)])

        assert rolled.triggered is False
        assert rolled.roll_result is None
        assert calls == []

    def test_rolls_in_sequence_order(self):
        values = iter([0.0, 0.9])
        roller = ProbabilityRoller(rng=lambda: next(values))
        events = [
            make_event(1, 0.5, PlayerDecision.ACCEPTED),
            make_event(0, 0.5, PlayerDecision.ACCEPTED),
        ]

        rolled = roller.roll(events)

        assert [e.sequence_num for e in rolled] == [0, 1]
        assert [e.triggered for e in rolled] == [True, False]

    def test_zero_probability_never_triggers(self):
        roller = ProbabilityRoller(rng=lambda: 0.0)
        [rolled] = roller.roll([make_event(0, 0.0, PlayerDecision.ACCEPTED)])
        assert rolled.triggered is False

    def test_input_events_not_mutated(self):
        event = make_event(0, 0.5, PlayerDecision.ACCEPTED)
        ProbabilityRoller(rng=lambda: 0.1).roll([event])
        assert event.triggered is None


def test_triggered_events_filters_and_orders():
    events = [
        make_event(2, 0.5, PlayerDecision.ACCEPTED).model_copy(update={"triggered": True}),
        make_event(0, 0.5, PlayerDecision.ACCEPTED).model_copy(update={"triggered": True}),
        make_event(1, 0.5, PlayerDecision.REJECTED).model_copy(update={"triggered": False}),
    ]

    assert [e.id for e in triggered_events(events)] == ["e-0", "e-2"]
