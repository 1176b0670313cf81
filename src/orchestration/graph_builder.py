# ABOUTME: LangGraph StateGraph construction for the turn workflow.
# ABOUTME: The graph is entered at the node matching the stored phase, so a turn can resume after review or a crash.

from langgraph.graph import END, START, StateGraph
from loguru import logger

from src.models.turn import TurnState
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.nodes import (
    ENTRY_NODES,
    after_event_step,
    after_meta_proposal,
    make_combat_node,
    make_constraints_node,
    make_finalize_node,
    make_interaction_node,
    make_meta_event_node,
    make_meta_proposal_node,
    make_narrate_node,
    make_probability_roll_node,
    make_validate_node,
    route_entry,
)


def await_review_node(state: TurnState) -> TurnState:
    """Entered when the stored phase is meta_review: nothing to do until the player confirms"""
    return {**state, "awaiting_review": True}


def build_turn_graph(deps: TurnDependencies):
    """
    Build the turn workflow graph.

    Graph structure:
    1. validate -> constraints -> meta_proposal
    2. meta_proposal -> END (awaiting review) | probability_roll (proposal skipped)
    3. probability_roll -> meta_event | interaction
    4. meta_event -> meta_event | combat | interaction
    5. combat -> meta_event | interaction
    6. interaction -> narrate -> finalize -> END

    No checkpointer is used: each invocation starts from the store's phase and the
    step ledger, which are the only durable state.

    Args:
        deps: Collaborators the nodes close over

    Returns:
        Compiled graph application
    """
    workflow = StateGraph(TurnState)

    workflow.add_node("validate", make_validate_node(deps))
    workflow.add_node("constraints", make_constraints_node(deps))
    workflow.add_node("meta_proposal", make_meta_proposal_node(deps))
    workflow.add_node("await_review", await_review_node)
    workflow.add_node("probability_roll", make_probability_roll_node(deps))
    workflow.add_node("meta_event", make_meta_event_node(deps))
    workflow.add_node("combat", make_combat_node(deps))
    workflow.add_node("interaction", make_interaction_node(deps))
    workflow.add_node("narrate", make_narrate_node(deps))
    workflow.add_node("finalize", make_finalize_node(deps))

    # Entry depends on where the turn stopped last time
    workflow.add_conditional_edges(
        START,
        route_entry,
        {node: node for node in set(ENTRY_NODES.values())},
    )

    workflow.add_edge("validate", "constraints")
    workflow.add_edge("constraints", "meta_proposal")

    workflow.add_conditional_edges(
        "meta_proposal",
        after_meta_proposal,
        {"review": END, "roll": "probability_roll"},
    )
    workflow.add_edge("await_review", END)

    event_routes = {"event": "meta_event", "combat": "combat", "resolve": "interaction"}
    workflow.add_conditional_edges("probability_roll", after_event_step, event_routes)
    workflow.add_conditional_edges("meta_event", after_event_step, event_routes)
    workflow.add_conditional_edges("combat", after_event_step, event_routes)

    workflow.add_edge("interaction", "narrate")
    workflow.add_edge("narrate", "finalize")
    workflow.add_edge("finalize", END)

    app = workflow.compile()
    logger.info("Turn workflow graph built")
    return app
