"""Robust rigid registration from putative point correspondences.

Layer registration only depends on the ``RobustRegistrationSolver``
protocol. ``MaxCliqueRegistrationSolver`` is the bundled implementation:

1. Pairwise invariants: two correspondences are consistent if the distance
   between their source points matches the distance between their
   destination points up to the noise bound.
2. Maximum clique: the largest mutually consistent set of correspondences
   is taken as the inlier set (exact via networkx for small problems,
   greedy beyond ``max_clique_exact_size``).
3. Closed-form rotation and translation (SVD / Kabsch) over the inliers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Protocol

import networkx as nx
import numpy as np
from scipy.spatial.distance import pdist, squareform


@dataclass
class RobustSolverParams:
    """Parameters of the max-clique registration solver.

    Attributes:
        noise_bound: Maximum expected point noise in meters
        cbar2: Squared scale on the noise bound for consistency checks
        min_clique_size: Smallest inlier clique accepted as a solution
        max_clique_exact_size: Above this many correspondences, use the greedy clique
    """

    noise_bound: float = 0.1
    cbar2: float = 1.0
    min_clique_size: int = 3
    max_clique_exact_size: int = 200

    def __post_init__(self) -> None:
        if self.noise_bound <= 0:
            raise ValueError(f"noise_bound must be positive, got {self.noise_bound}")
        if self.cbar2 <= 0:
            raise ValueError(f"cbar2 must be positive, got {self.cbar2}")
        if self.min_clique_size < 3:
            raise ValueError(
                f"min_clique_size must be at least 3, got {self.min_clique_size}"
            )

    @property
    def consistency_threshold(self) -> float:
        """Largest allowed difference between paired distances."""
        return 2.0 * self.noise_bound * float(np.sqrt(self.cbar2))


@dataclass
class RobustSolution:
    """Raw output of a robust solve.

    Attributes:
        valid: Whether a transform was found
        rotation: 3x3 rotation mapping source to destination
        translation: 3D translation mapping source to destination
    """

    valid: bool = False
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))


class RobustRegistrationSolver(Protocol):
    """Capability required by layer registration.

    Implementations keep the result of the last ``solve`` (including the
    inlier set) as internal state, so a single instance must never be
    used from two threads at once.
    """

    @property
    def params(self) -> RobustSolverParams: ...

    def reset(self, params: RobustSolverParams) -> None: ...

    def solve(self, src: np.ndarray, dst: np.ndarray) -> RobustSolution: ...

    def get_inlier_max_clique(self) -> list[int]: ...


def estimate_rigid_transform(
    src: np.ndarray, dst: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Least-squares rigid transform between matched columns (Kabsch).

    Args:
        src: Source points, shape (3, N)
        dst: Destination points, shape (3, N)

    Returns:
        Tuple of (R, t) such that dst ~= R @ src + t
    """
    src_centroid = src.mean(axis=1, keepdims=True)
    dst_centroid = dst.mean(axis=1, keepdims=True)

    H = (src - src_centroid) @ (dst - dst_centroid).T
    U, _, Vt = np.linalg.svd(H)
    R = Vt.T @ U.T

    # Reflection case
    if np.linalg.det(R) < 0:
        Vt[-1, :] *= -1
        R = Vt.T @ U.T

    t = dst_centroid.flatten() - R @ src_centroid.flatten()
    return R, t


def greedy_clique(graph: nx.Graph) -> list[int]:
    """Grow a clique by visiting vertices in order of decreasing degree."""
    clique: list[int] = []
    for vertex in sorted(graph.nodes, key=lambda v: (-graph.degree[v], v)):
        if all(graph.has_edge(vertex, member) for member in clique):
            clique.append(vertex)
    return clique


class MaxCliqueRegistrationSolver:
    """Robust registration via maximum clique over pairwise-consistent matches."""

    def __init__(self, params: RobustSolverParams | None = None) -> None:
        """Initialize solver.

        Args:
            params: Solver parameters (defaults if omitted)
        """
        self._params = params if params is not None else RobustSolverParams()
        self._solution = RobustSolution()
        self._inliers: list[int] = []
        self._num_solves = 0

    @property
    def params(self) -> RobustSolverParams:
        """Copy of the configured parameters."""
        return replace(self._params)

    @property
    def solution(self) -> RobustSolution:
        """Result of the last solve."""
        return self._solution

    @property
    def num_solves(self) -> int:
        """Number of solve calls since construction."""
        return self._num_solves

    def reset(self, params: RobustSolverParams) -> None:
        """Drop state from the previous solve and adopt ``params``."""
        self._params = replace(params)
        self._solution = RobustSolution()
        self._inliers = []

    def get_inlier_max_clique(self) -> list[int]:
        """Correspondence indices of the inlier clique from the last solve."""
        return list(self._inliers)

    def solve(self, src: np.ndarray, dst: np.ndarray) -> RobustSolution:
        """Estimate the transform mapping ``src`` onto ``dst``.

        Args:
            src: Source points, shape (3, N)
            dst: Destination points, shape (3, N), same column order as src

        Returns:
            RobustSolution; invalid if no large enough consistent set exists
        """
        src = np.asarray(src, dtype=np.float64)
        dst = np.asarray(dst, dtype=np.float64)
        if src.ndim != 2 or src.shape[0] != 3:
            raise ValueError(f"Source points must be 3xN, got {src.shape}")
        if dst.shape != src.shape:
            raise ValueError(
                f"Destination points must match source shape {src.shape}, got {dst.shape}"
            )

        self._num_solves += 1
        self._solution = RobustSolution()
        self._inliers = []

        num_points = src.shape[1]
        if num_points < self._params.min_clique_size:
            return self._solution

        clique = self._max_clique(src, dst)
        if len(clique) < self._params.min_clique_size:
            return self._solution

        R, t = estimate_rigid_transform(src[:, clique], dst[:, clique])
        self._inliers = clique
        self._solution = RobustSolution(valid=True, rotation=R, translation=t)
        return self._solution

    def _max_clique(self, src: np.ndarray, dst: np.ndarray) -> list[int]:
        src_dist = squareform(pdist(src.T))
        dst_dist = squareform(pdist(dst.T))
        consistent = np.abs(src_dist - dst_dist) <= self._params.consistency_threshold
        np.fill_diagonal(consistent, False)

        graph = nx.Graph()
        graph.add_nodes_from(range(src.shape[1]))
        rows, cols = np.nonzero(np.triu(consistent))
        graph.add_edges_from(zip(rows.tolist(), cols.tolist()))

        if graph.number_of_nodes() > self._params.max_clique_exact_size:
            clique = greedy_clique(graph)
        else:
            clique, _ = nx.max_weight_clique(graph, weight=None)
        return sorted(int(i) for i in clique)
