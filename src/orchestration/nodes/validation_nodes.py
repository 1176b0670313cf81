# ABOUTME: Validate and constraints node factories (the steps run while the session is in validating).
# ABOUTME: A rejected action raises ValidationRejected; a valid one moves the session to meta_proposal.

from loguru import logger

from src.agents.validator import clarification_for
from src.models.game_phase import GamePhase, ValidationSignal
from src.models.turn import TurnState, ValidationResult
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.exceptions import ValidationRejected
from src.orchestration.phase_table import next_phase


def make_validate_node(deps: TurnDependencies):
    async def validate_node(state: TurnState) -> TurnState:
        """
        Validate the player's input.

        Raises:
            ValidationRejected: If the validator judged the input invalid
        """
        turn_id = state["turn_id"]

        async def _validate() -> dict:
            result = await deps.validator.validate(state["player_input"])
            return result.model_dump()

        recorded = await deps.runner.run(turn_id, "validate", _validate)
        validation = ValidationResult.model_validate(recorded)

        if not validation.valid:
            logger.info(f"[VALIDATE] Turn {turn_id} rejected: {validation.error_code}")
            raise ValidationRejected(
                clarification_for(validation.error_code), validation.error_code
            )

        if validation.time_estimate:
            pending_action = deps.store.get_pending_action(turn_id)
            if pending_action.time_estimate != validation.time_estimate:
                deps.store.save_pending_action(
                    pending_action.model_copy(update={"time_estimate": validation.time_estimate})
                )

        return {**state, "validation": recorded}

    return validate_node


def make_constraints_node(deps: TurnDependencies):
    async def constraints_node(state: TurnState) -> TurnState:
        """Evaluate time/difficulty/inventory constraints, then leave validating"""
        turn_id = state["turn_id"]
        validation = ValidationResult.model_validate(state["validation"])

        async def _evaluate() -> dict:
            bundle = await deps.constraints.evaluate(state["player_input"], validation)
            return bundle.model_dump()

        constraints = await deps.runner.run(turn_id, "constraints", _evaluate)

        deps.machine.transition(
            state["session_id"],
            next_phase(GamePhase.VALIDATING, ValidationSignal(validation_passed=True)),
            expected_pending_action_id=turn_id,
        )
        return {**state, "constraints": constraints}

    return constraints_node
