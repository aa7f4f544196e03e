"""Registration of two node sets within a scene graph layer.

Given candidate source and destination nodes (e.g. the objects around a
query pose and around a matched pose), registration:

1. Enumerates correspondences (source, destination) accepted by a
   compatibility predicate, holding the optional read-guards only for
   this step. Stale node ids are skipped.
2. Extracts the 3D positions of each correspondence into two 3xN
   matrices (column i belongs to correspondence i).
3. Hands the matrices to a robust solver and maps its inlier indices back
   to node id pairs.

Every failure branch returns ``LayerRegistrationSolution.invalid()``;
most candidates are expected to fail.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, ContextManager, Generic, Iterable, TypeVar

import numpy as np

from ..graph import SE3, NodeId, SceneGraphLayer, SceneGraphNode, node_label
from .config import LayerRegistrationConfig
from .diagnostics import DiagnosticsSink, NullDiagnostics, RegistrationProblemRecorder
from .robust_solver import RobustRegistrationSolver

Correspondence = tuple[NodeId, NodeId]
CorrespondenceFunc = Callable[[SceneGraphNode, SceneGraphNode], bool]

NodeSet = TypeVar("NodeSet", bound=Iterable[NodeId])


class InlierIndexError(AssertionError):
    """The robust solver returned an inlier index outside the correspondences."""


@dataclass
class LayerRegistrationProblem(Generic[NodeSet]):
    """A registration task between two node collections.

    Attributes:
        src_nodes: Source node ids (iterable, duplicate-free)
        dest_nodes: Destination node ids (iterable, duplicate-free)
        dest_layer: Layer holding destination nodes (defaults to the source layer)
        src_guard: Read-guard held while reading source nodes
        dest_guard: Read-guard held while reading destination nodes
        min_correspondences: Minimum correspondences before solving
        min_inliers: Minimum inliers for a valid solution
    """

    src_nodes: NodeSet
    dest_nodes: NodeSet
    dest_layer: SceneGraphLayer | None = None
    src_guard: ContextManager | None = None
    dest_guard: ContextManager | None = None
    min_correspondences: int = 5
    min_inliers: int = 5

    def __post_init__(self) -> None:
        if self.min_correspondences < 0 or self.min_inliers < 0:
            raise ValueError(
                "Registration thresholds must be non-negative, got "
                f"min_correspondences={self.min_correspondences}, "
                f"min_inliers={self.min_inliers}"
            )


@dataclass
class LayerRegistrationSolution:
    """Result of registering one layer.

    Attributes:
        valid: Whether registration succeeded
        dest_T_src: Transform from the source frame to the destination frame
        inliers: Inlier correspondences (source id, destination id)
    """

    valid: bool = False
    dest_T_src: SE3 | None = None
    inliers: list[Correspondence] = field(default_factory=list)

    @classmethod
    def invalid(cls) -> LayerRegistrationSolution:
        """Canonical "no result" value."""
        return cls()


@dataclass
class CorrespondenceSet:
    """Correspondences and their coordinates, extracted under the read-guards.

    Attributes:
        correspondences: Ordered (source id, destination id) pairs
        src_points: Source positions, shape (3, N)
        dest_points: Destination positions, shape (3, N)
        num_src: Number of source ids considered
        num_dest: Number of destination ids considered
    """

    correspondences: list[Correspondence]
    src_points: np.ndarray
    dest_points: np.ndarray
    num_src: int = 0
    num_dest: int = 0

    def __len__(self) -> int:
        return len(self.correspondences)


def pairwise_correspondence(src_node: SceneGraphNode, dest_node: SceneGraphNode) -> bool:
    """Accept every pair."""
    return True


def semantic_correspondence(src_node: SceneGraphNode, dest_node: SceneGraphNode) -> bool:
    """Accept pairs that share a semantic label.

    Nodes without a label never match.
    """
    src_label = src_node.attributes.semantic_label
    return src_label is not None and src_label == dest_node.attributes.semantic_label


def build_correspondences(
    problem: LayerRegistrationProblem,
    src: SceneGraphLayer,
    correspondence_func: CorrespondenceFunc,
    diagnostics: DiagnosticsSink | None = None,
) -> CorrespondenceSet:
    """Enumerate accepted node pairs and extract their positions.

    The source guard is acquired before the destination guard and both are
    released (in reverse order) as soon as enumeration ends, even if the
    predicate raises. Positions are copied while the guards are held, so
    later graph mutation cannot affect the returned matrices.

    Args:
        problem: Registration problem
        src: Layer holding the source nodes
        correspondence_func: Compatibility predicate
        diagnostics: Sink for stale-node messages

    Returns:
        CorrespondenceSet in source-major, destination-minor order
    """
    diagnostics = diagnostics or NullDiagnostics()
    dest = problem.dest_layer if problem.dest_layer is not None else src

    correspondences: list[Correspondence] = []
    num_src = 0
    num_dest = 0
    src_positions: list[np.ndarray] = []
    dest_positions: list[np.ndarray] = []

    with ExitStack() as guards:
        if problem.src_guard is not None:
            guards.enter_context(problem.src_guard)
        if problem.dest_guard is not None:
            guards.enter_context(problem.dest_guard)

        # Resolve destination nodes once; a stale id is reported a single time
        dest_nodes: list[SceneGraphNode] = []
        for dest_id in problem.dest_nodes:
            num_dest += 1
            dest_node = dest.get_node(dest_id)
            if dest_node is None:
                diagnostics.log(
                    1,
                    f"Missing destination node {node_label(dest_id)} from graph "
                    "during registration",
                )
                continue
            dest_nodes.append(dest_node)

        for src_id in problem.src_nodes:
            num_src += 1
            src_node = src.get_node(src_id)
            if src_node is None:
                diagnostics.log(
                    1,
                    f"Missing source node {node_label(src_id)} from graph "
                    "during registration",
                )
                continue

            for dest_node in dest_nodes:
                if correspondence_func(src_node, dest_node):
                    correspondences.append((src_id, dest_node.id))
                    src_positions.append(src_node.attributes.position.copy())
                    dest_positions.append(dest_node.attributes.position.copy())

    num = len(correspondences)
    src_points = np.array(src_positions, dtype=np.float64).reshape(num, 3).T
    dest_points = np.array(dest_positions, dtype=np.float64).reshape(num, 3).T
    return CorrespondenceSet(correspondences, src_points, dest_points, num_src, num_dest)


def register_dsg_layer(
    config: LayerRegistrationConfig,
    solver: RobustRegistrationSolver,
    problem: LayerRegistrationProblem,
    src: SceneGraphLayer,
    correspondence_func: CorrespondenceFunc,
    diagnostics: DiagnosticsSink | None = None,
    recorder: RegistrationProblemRecorder | None = None,
) -> LayerRegistrationSolution:
    """Register the destination nodes of a problem against its source nodes.

    ``solver`` is reset to its current parameters before solving, so state
    from a previous call on the same instance never leaks into this one.
    The solver is not thread-safe: callers must not share it between
    concurrent registrations.

    Args:
        config: Registration settings (diagnostic options)
        solver: Robust solver owned by the caller
        problem: Node sets, guards and thresholds
        src: Layer holding the source nodes
        correspondence_func: Compatibility predicate
        diagnostics: Sink for leveled messages
        recorder: Optional writer for problem dumps

    Returns:
        Valid solution with transform and inliers, or ``invalid()``

    Raises:
        InlierIndexError: If the solver reports an out-of-range inlier index
    """
    diagnostics = diagnostics or NullDiagnostics()
    matches = build_correspondences(problem, src, correspondence_func, diagnostics)

    if len(matches) == 0 or len(matches) < problem.min_correspondences:
        diagnostics.log(
            2,
            f"not enough correspondences for registration at layer {src.id}: "
            f"{len(matches)} / {problem.min_correspondences}",
        )
        return LayerRegistrationSolution.invalid()

    if config.log_registration_problem:
        diagnostics.log(3, f"Source:\n{matches.src_points}")
        diagnostics.log(3, f"Dest:\n{matches.dest_points}")
        if recorder is not None:
            recorder.record(
                src.id, matches.src_points, matches.dest_points, matches.correspondences
            )

    diagnostics.log(
        1,
        f"Registering layer {src.id} with {len(matches)} correspondences out of "
        f"{matches.num_src} source and {matches.num_dest} destination nodes",
    )

    solver.reset(solver.params)
    result = solver.solve(matches.src_points, matches.dest_points)
    if not result.valid:
        diagnostics.log(2, f"robust solver found no solution at layer {src.id}")
        return LayerRegistrationSolution.invalid()

    inlier_indices = solver.get_inlier_max_clique()
    if len(inlier_indices) < problem.min_inliers:
        diagnostics.log(
            2,
            f"not enough inliers for registration at layer {src.id}: "
            f"{len(inlier_indices)} / {problem.min_inliers}",
        )
        return LayerRegistrationSolution.invalid()

    inliers: list[Correspondence] = []
    for index in inlier_indices:
        if not 0 <= index < len(matches):
            raise InlierIndexError(
                f"Inlier index {index} out of range for {len(matches)} correspondences"
            )
        inliers.append(matches.correspondences[index])

    return LayerRegistrationSolution(
        valid=True,
        dest_T_src=SE3.from_Rt(result.rotation, result.translation),
        inliers=inliers,
    )


def register_dsg_layer_pairwise(
    config: LayerRegistrationConfig,
    solver: RobustRegistrationSolver,
    problem: LayerRegistrationProblem,
    src: SceneGraphLayer,
    diagnostics: DiagnosticsSink | None = None,
    recorder: RegistrationProblemRecorder | None = None,
) -> LayerRegistrationSolution:
    """Register using every (source, destination) pair as a candidate."""
    return register_dsg_layer(
        config, solver, problem, src, pairwise_correspondence, diagnostics, recorder
    )


def register_dsg_layer_semantic(
    config: LayerRegistrationConfig,
    solver: RobustRegistrationSolver,
    problem: LayerRegistrationProblem,
    src: SceneGraphLayer,
    diagnostics: DiagnosticsSink | None = None,
    recorder: RegistrationProblemRecorder | None = None,
) -> LayerRegistrationSolution:
    """Register using only pairs with matching semantic labels."""
    return register_dsg_layer(
        config, solver, problem, src, semantic_correspondence, diagnostics, recorder
    )

