"""Registration strategies used to verify loop-closure candidates.

Two strategies implement ``DsgRegistrationSolver``:

- DsgLayerSolver: registers the query and match node sets of one layer
  (objects, places, ...) via correspondence search and a robust solver
- DsgAgentSolver: compares the two anchor poses directly, without any
  correspondence search
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..graph import DsgLayers, DynamicSceneGraph, LayerId, NodeId
from ..registration import (
    DiagnosticsSink,
    LayerRegistrationConfig,
    LayerRegistrationProblem,
    MaxCliqueRegistrationSolver,
    NullDiagnostics,
    RegistrationProblemRecorder,
    RobustRegistrationSolver,
    RobustSolverParams,
    register_dsg_layer_pairwise,
    register_dsg_layer_semantic,
)
from .types import AGENT_LEVEL, DsgRegistrationInput, DsgRegistrationSolution


class DsgRegistrationSolver(ABC):
    """Verifies a loop-closure candidate against the scene graph."""

    @abstractmethod
    def solve(
        self,
        dsg: DynamicSceneGraph,
        match: DsgRegistrationInput,
        query_agent_id: NodeId,
    ) -> DsgRegistrationSolution:
        """Register a candidate.

        Args:
            dsg: Scene graph to read from (never modified)
            match: Candidate node sets and anchors
            query_agent_id: Agent node the result is associated with

        Returns:
            DsgRegistrationSolution (``invalid()`` if verification fails)
        """


class DsgLayerSolver(DsgRegistrationSolver):
    """Registers the candidate node sets of a single layer.

    The instance exclusively owns its robust solver, which keeps per-solve
    state. ``solve`` is therefore not reentrant: call it from one thread at
    a time. Separate instances (e.g. one per layer) are independent.
    """

    def __init__(
        self,
        layer_id: LayerId,
        config: LayerRegistrationConfig,
        params: RobustSolverParams | None = None,
        solver: RobustRegistrationSolver | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ) -> None:
        """Initialize layer solver.

        Args:
            layer_id: Layer to register on
            config: Registration settings
            params: Parameters for the default robust solver
            solver: Robust solver to own instead of the default one
            diagnostics: Sink for registration messages
        """
        self.layer_id = layer_id
        self.config = config
        self.log_prefix = f"[DSG LCD] layer {layer_id}:"
        self._solver = solver if solver is not None else MaxCliqueRegistrationSolver(params)
        self._diagnostics = diagnostics if diagnostics is not None else NullDiagnostics()
        self._recorder = (
            RegistrationProblemRecorder(config.registration_output_path)
            if config.dump_enabled
            else None
        )

    @property
    def solver(self) -> RobustRegistrationSolver:
        return self._solver

    @property
    def recorder(self) -> RegistrationProblemRecorder | None:
        return self._recorder

    def solve(
        self,
        dsg: DynamicSceneGraph,
        match: DsgRegistrationInput,
        query_agent_id: NodeId,
    ) -> DsgRegistrationSolution:
        layer = dsg.get_layer(self.layer_id)
        if layer is None:
            self._diagnostics.log(1, f"{self.log_prefix} layer missing from graph")
            return DsgRegistrationSolution.invalid()

        # Source and destination share the layer, so one guard covers both
        problem = LayerRegistrationProblem(
            src_nodes=match.query_nodes,
            dest_nodes=match.match_nodes,
            src_guard=layer.lock,
            min_correspondences=self.config.min_correspondences,
            min_inliers=self.config.min_inliers,
        )

        register = (
            register_dsg_layer_pairwise
            if self.config.use_pairwise_registration
            else register_dsg_layer_semantic
        )
        solution = register(
            self.config, self._solver, problem, layer, self._diagnostics, self._recorder
        )
        if not solution.valid:
            return DsgRegistrationSolution.invalid()

        return DsgRegistrationSolution(
            valid=True,
            from_node=query_agent_id,
            to_node=match.match_root,
            to_T_from=solution.dest_T_src,
            level=self.layer_id,
            inliers=solution.inliers,
        )


class DsgAgentSolver(DsgRegistrationSolver):
    """Relates the query and match anchors directly from their agent poses."""

    def __init__(self, diagnostics: DiagnosticsSink | None = None) -> None:
        self._diagnostics = diagnostics if diagnostics is not None else NullDiagnostics()

    def solve(
        self,
        dsg: DynamicSceneGraph,
        match: DsgRegistrationInput,
        query_agent_id: NodeId,
    ) -> DsgRegistrationSolution:
        agents = dsg.get_layer(DsgLayers.AGENTS)
        if agents is None:
            return DsgRegistrationSolution.invalid()

        with agents.lock:
            query = agents.get_node(match.query_root)
            target = agents.get_node(match.match_root)
            if query is None or target is None:
                self._diagnostics.log(1, "[DSG LCD] agent anchor missing from graph")
                return DsgRegistrationSolution.invalid()
            world_T_query = query.attributes.world_T_node
            world_T_match = target.attributes.world_T_node

        return DsgRegistrationSolution(
            valid=True,
            from_node=match.query_root,
            to_node=match.match_root,
            to_T_from=world_T_match.inverse() @ world_T_query,
            level=AGENT_LEVEL,
        )


def make_registration_solvers(
    layer_ids: list[LayerId],
    config: LayerRegistrationConfig,
    params: RobustSolverParams | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> dict[LayerId, DsgRegistrationSolver]:
    """Build one layer solver per layer plus the agent solver.

    Args:
        layer_ids: Layers to register on
        config: Registration settings shared by the layer solvers
        params: Robust solver parameters
        diagnostics: Sink shared by every solver

    Returns:
        Mapping of layer id to solver; the agent solver sits under DsgLayers.AGENTS
    """
    solvers: dict[LayerId, DsgRegistrationSolver] = {
        layer_id: DsgLayerSolver(layer_id, config, params, diagnostics=diagnostics)
        for layer_id in layer_ids
        if layer_id != DsgLayers.AGENTS
    }
    solvers[DsgLayers.AGENTS] = DsgAgentSolver(diagnostics)
    return solvers
