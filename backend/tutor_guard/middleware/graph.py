"""Post-process graph for the tutor middleware.

resolve_session -> validate_memory -> validate_math -> [apply_fallback] -> record_turn
"""

import logging

from langgraph.graph import END, StateGraph

from .nodes import PostProcessNodes, route_after_validation
from .state import PostProcessState

logger = logging.getLogger(__name__)


class PostProcessGraph:
    """
    Wrapper around the compiled post-process graph.

    No checkpointer is attached: session state lives in the middleware's
    in-memory session map, not in graph checkpoints.
    """

    def __init__(self, nodes: PostProcessNodes):
        self.nodes = nodes
        self.graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(PostProcessState)

        graph.add_node("resolve_session", self.nodes.resolve_session_node)
        graph.add_node("validate_memory", self.nodes.validate_memory_node)
        graph.add_node("validate_math", self.nodes.validate_math_node)
        graph.add_node("apply_fallback", self.nodes.apply_fallback_node)
        graph.add_node("record_turn", self.nodes.record_turn_node)

        graph.set_entry_point("resolve_session")

        graph.add_edge("resolve_session", "validate_memory")
        graph.add_edge("validate_memory", "validate_math")

        # Content-level circuit breaker: both validators failing discards partial fixes
        graph.add_conditional_edges(
            "validate_math",
            route_after_validation,
            {
                "apply_fallback": "apply_fallback",
                "record_turn": "record_turn",
            },
        )

        graph.add_edge("apply_fallback", "record_turn")
        graph.add_edge("record_turn", END)

        return graph.compile()

    async def invoke(self, state: PostProcessState) -> PostProcessState:
        """Run one post-process cycle and return the final state."""
        return await self.graph.ainvoke(state)
