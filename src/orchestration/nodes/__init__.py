# ABOUTME: Node factory exports for the turn graph.
# ABOUTME: Each factory closes over TurnDependencies and returns an async LangGraph node.

from src.orchestration.nodes.conditional_edges import (
    ENTRY_NODES,
    after_event_step,
    after_meta_proposal,
    route_entry,
)
from src.orchestration.nodes.meta_nodes import make_meta_proposal_node, make_probability_roll_node
from src.orchestration.nodes.outcome_nodes import (
    make_finalize_node,
    make_narrate_node,
    nesting_flags,
)
from src.orchestration.nodes.resolution_nodes import (
    collect_resolutions,
    make_combat_node,
    make_interaction_node,
    make_meta_event_node,
)
from src.orchestration.nodes.validation_nodes import make_constraints_node, make_validate_node

__all__ = [
    "ENTRY_NODES",
    "route_entry",
    "after_meta_proposal",
    "after_event_step",
    "make_validate_node",
    "make_constraints_node",
    "make_meta_proposal_node",
    "make_probability_roll_node",
    "make_meta_event_node",
    "make_combat_node",
    "make_interaction_node",
    "make_narrate_node",
    "make_finalize_node",
    "collect_resolutions",
    "nesting_flags",
]
