"""Narrative graph execution engine.

Three cooperating pieces, all synchronous and free of I/O:

  conditions   decide whether an edge may be taken (condition groups)
  operations   apply variable operations when a narrative node is entered
  resolver     pick the single next node among eligible outgoing edges

The engine never mutates its inputs. States are GameState snapshots and
every mutation returns a new one. The only shared resource is the random
source, injected with ``rng=`` wherever a draw can happen.

bootstrap builds a state from declared variables or stored documents for
callers that need one-off checks without a live session.
"""

# Re-export the public engine API so `from storyloom import engine` is enough.

from .bootstrap import (  # noqa: F401
    create_game_state_for_template,
    state_from_document,
    state_from_variables,
)

from .conditions import (  # noqa: F401
    GroupsEvaluation,
    evaluate_condition,
    evaluate_group,
    evaluate_groups,
    evaluate_transition_conditions,
    explain_groups,
    filter_nodes_by_conditions,
    get_valid_edges,
    is_node_available,
)

from .operations import (  # noqa: F401
    execute_node_operations,
    execute_operation,
)

from .resolver import (  # noqa: F401
    CandidateBuckets,
    ConnectionBuckets,
    categorize_candidates,
    categorize_connections,
    choose_continuation,
    find_start_node,
    get_choices,
    get_next_node,
    get_next_node_after_choice,
    group_outgoing_nodes_by_type,
    pick_candidate,
)

from .rng import RandomSource  # noqa: F401
