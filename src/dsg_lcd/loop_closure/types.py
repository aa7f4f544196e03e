"""Inputs and results exchanged with the loop-closure verification stage."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..graph import SE3, LayerId, NodeId
from ..registration import Correspondence

AGENT_LEVEL: LayerId = -1


@dataclass
class DsgRegistrationInput:
    """A loop-closure candidate to verify.

    Attributes:
        query_nodes: Nodes around the query location
        match_nodes: Nodes around the matched location
        query_root: Anchor node of the query (e.g. a place or agent pose)
        match_root: Anchor node of the match
    """

    query_nodes: set[NodeId]
    match_nodes: set[NodeId]
    query_root: NodeId
    match_root: NodeId


@dataclass
class DsgRegistrationSolution:
    """Registration result for one loop-closure candidate.

    Attributes:
        valid: Whether the candidate was verified
        from_node: Anchor the transform maps from
        to_node: Anchor the transform maps to
        to_T_from: Transform from the ``from_node`` frame to the ``to_node`` frame
        level: Layer the registration ran on (AGENT_LEVEL for anchor-only solves)
        inliers: Supporting correspondences (query id, match id)
    """

    valid: bool = False
    from_node: NodeId = 0
    to_node: NodeId = 0
    to_T_from: SE3 | None = None
    level: LayerId = AGENT_LEVEL
    inliers: list[Correspondence] = field(default_factory=list)

    @classmethod
    def invalid(cls) -> DsgRegistrationSolution:
        """Canonical "no result" value."""
        return cls()
