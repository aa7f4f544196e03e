"""Tests for the loop-closure registration strategies."""

from pathlib import Path

import numpy as np
import pytest

from dsg_lcd.graph import SE3, DsgLayers, DynamicSceneGraph, NodeSymbol
from dsg_lcd.loop_closure import (
    AGENT_LEVEL,
    DsgAgentSolver,
    DsgLayerSolver,
    DsgRegistrationInput,
    DsgRegistrationSolution,
    DsgRegistrationSolver,
    make_registration_solvers,
)
from dsg_lcd.registration import (
    LayerRegistrationConfig,
    MaxCliqueRegistrationSolver,
    RobustSolverParams,
    load_problem,
)

QUERY_AGENT = NodeSymbol("a", 40).id
MATCH_AGENT = NodeSymbol("a", 3).id


@pytest.fixture
def match_T_query() -> SE3:
    return SE3.from_rvec_tvec(np.array([0.0, 0.0, 0.6]), np.array([0.8, -0.3, 0.1]))


@pytest.fixture
def dsg(match_T_query: SE3) -> DynamicSceneGraph:
    """Graph with seven objects seen around the query and around the match."""
    rng = np.random.default_rng(11)
    graph = DynamicSceneGraph.with_default_layers()
    for i in range(7):
        position = rng.uniform(-6.0, 6.0, size=3)
        graph.add_node(DsgLayers.OBJECTS, NodeSymbol("O", i).id, position, semantic_label=i)
        graph.add_node(
            DsgLayers.OBJECTS,
            NodeSymbol("O", 100 + i).id,
            match_T_query.transform_point(position),
            semantic_label=i,
        )

    graph.add_node(
        DsgLayers.AGENTS,
        QUERY_AGENT,
        [2.0, 1.0, 0.0],
        orientation=SE3.from_rvec_tvec(np.array([0.0, 0.0, 0.5]), np.zeros(3)).rotation,
    )
    graph.add_node(DsgLayers.AGENTS, MATCH_AGENT, [-1.0, 0.5, 0.2])
    return graph


@pytest.fixture
def match() -> DsgRegistrationInput:
    return DsgRegistrationInput(
        query_nodes={NodeSymbol("O", i).id for i in range(7)},
        match_nodes={NodeSymbol("O", 100 + i).id for i in range(7)},
        query_root=QUERY_AGENT,
        match_root=MATCH_AGENT,
    )


class TestDsgLayerSolver:
    """Test suite for the layer-bound registration strategy."""

    def test_registers_candidate(self, dsg, match, match_T_query):
        """Test a valid registration tagged with the query agent."""
        solver = DsgLayerSolver(DsgLayers.OBJECTS, LayerRegistrationConfig())

        solution = solver.solve(dsg, match, QUERY_AGENT)

        assert solution.valid
        assert solution.from_node == QUERY_AGENT
        assert solution.to_node == MATCH_AGENT
        assert solution.level == DsgLayers.OBJECTS
        assert solution.to_T_from.is_close(match_T_query, atol=1e-6)
        assert len(solution.inliers) == 7

    def test_missing_layer_is_invalid(self, match):
        """Test that a graph without the layer gives an invalid solution."""
        solver = DsgLayerSolver(DsgLayers.ROOMS, LayerRegistrationConfig())

        solution = solver.solve(DynamicSceneGraph(), match, QUERY_AGENT)

        assert solution == DsgRegistrationSolution.invalid()

    def test_semantic_mode_needs_labels(self, match_T_query):
        """Test that pairwise mode registers unlabeled objects semantic mode cannot."""
        rng = np.random.default_rng(5)
        graph = DynamicSceneGraph.with_default_layers()
        for i in range(6):
            position = rng.uniform(-6.0, 6.0, size=3)
            graph.add_node(DsgLayers.OBJECTS, i, position)
            graph.add_node(DsgLayers.OBJECTS, 100 + i, match_T_query.transform_point(position))
        candidate = DsgRegistrationInput(
            query_nodes=set(range(6)),
            match_nodes={100 + i for i in range(6)},
            query_root=QUERY_AGENT,
            match_root=MATCH_AGENT,
        )

        semantic = DsgLayerSolver(DsgLayers.OBJECTS, LayerRegistrationConfig())
        pairwise = DsgLayerSolver(
            DsgLayers.OBJECTS, LayerRegistrationConfig(use_pairwise_registration=True)
        )

        assert not semantic.solve(graph, candidate, QUERY_AGENT).valid
        solution = pairwise.solve(graph, candidate, QUERY_AGENT)
        assert solution.valid
        assert solution.to_T_from.is_close(match_T_query, atol=1e-6)

    def test_thresholds_come_from_config(self, dsg, match):
        """Test that the configured thresholds are applied."""
        solver = DsgLayerSolver(
            DsgLayers.OBJECTS, LayerRegistrationConfig(min_correspondences=8)
        )

        assert not solver.solve(dsg, match, QUERY_AGENT).valid

        solver = DsgLayerSolver(DsgLayers.OBJECTS, LayerRegistrationConfig(min_inliers=8))

        assert not solver.solve(dsg, match, QUERY_AGENT).valid

    def test_owns_injected_solver(self):
        """Test that an injected robust solver is used as-is."""
        robust = MaxCliqueRegistrationSolver(RobustSolverParams(noise_bound=0.3))
        solver = DsgLayerSolver(DsgLayers.PLACES, LayerRegistrationConfig(), solver=robust)

        assert solver.solver is robust

    def test_repeated_solves_are_independent(self, dsg, match):
        """Test that a failing call does not affect the next one."""
        solver = DsgLayerSolver(DsgLayers.OBJECTS, LayerRegistrationConfig())
        bad = DsgRegistrationInput(
            query_nodes=set(list(match.query_nodes)[:3]),
            match_nodes=match.match_nodes,
            query_root=QUERY_AGENT,
            match_root=MATCH_AGENT,
        )

        first = solver.solve(dsg, match, QUERY_AGENT)
        assert not solver.solve(dsg, bad, QUERY_AGENT).valid
        second = solver.solve(dsg, match, QUERY_AGENT)

        assert first.valid and second.valid
        assert sorted(first.inliers) == sorted(second.inliers)

    def test_writes_problem_dump(self, dsg, match, tmp_path: Path):
        """Test that problems are recorded when dumping is enabled."""
        config = LayerRegistrationConfig(
            log_registration_problem=True,
            registration_output_path=str(tmp_path / "problems"),
        )
        solver = DsgLayerSolver(DsgLayers.OBJECTS, config)

        solver.solve(dsg, match, QUERY_AGENT)

        files = sorted((tmp_path / "problems").glob("*.npz"))
        assert len(files) == 1
        problem = load_problem(files[0])
        assert problem["layer_id"] == DsgLayers.OBJECTS
        assert problem["src_points"].shape == (3, 7)
        assert problem["dest_points"].shape == (3, 7)
        assert problem["correspondences"].shape == (7, 2)

    def test_no_dump_without_output_path(self):
        """Test that dumping needs both the flag and a path."""
        solver = DsgLayerSolver(
            DsgLayers.OBJECTS, LayerRegistrationConfig(log_registration_problem=True)
        )

        assert solver.recorder is None


class TestDsgAgentSolver:
    """Test suite for the direct-anchor strategy."""

    def test_relates_anchor_poses(self, dsg, match):
        """Test that the transform relates the two agent poses."""
        solution = DsgAgentSolver().solve(dsg, match, QUERY_AGENT)

        agents = dsg.get_layer(DsgLayers.AGENTS)
        world_T_query = agents.get_node(QUERY_AGENT).attributes.world_T_node
        world_T_match = agents.get_node(MATCH_AGENT).attributes.world_T_node

        assert solution.valid
        assert solution.from_node == QUERY_AGENT
        assert solution.to_node == MATCH_AGENT
        assert solution.level == AGENT_LEVEL
        assert solution.inliers == []
        assert (world_T_match @ solution.to_T_from).is_close(world_T_query)

    def test_ignores_node_sets(self, dsg):
        """Test that empty node sets do not matter to the anchor comparison."""
        candidate = DsgRegistrationInput(set(), set(), QUERY_AGENT, MATCH_AGENT)

        assert DsgAgentSolver().solve(dsg, candidate, QUERY_AGENT).valid

    def test_missing_anchor_is_invalid(self, dsg, match):
        """Test that a stale anchor gives an invalid solution."""
        dsg.remove_node(MATCH_AGENT)

        solution = DsgAgentSolver().solve(dsg, match, QUERY_AGENT)

        assert not solution.valid
        assert solution.to_T_from is None


class TestMakeRegistrationSolvers:
    """Test suite for make_registration_solvers."""

    def test_builds_layer_and_agent_solvers(self):
        """Test one solver per layer plus the agent solver."""
        solvers = make_registration_solvers(
            [DsgLayers.OBJECTS, DsgLayers.PLACES], LayerRegistrationConfig()
        )

        assert set(solvers) == {DsgLayers.OBJECTS, DsgLayers.PLACES, DsgLayers.AGENTS}
        assert isinstance(solvers[DsgLayers.OBJECTS], DsgLayerSolver)
        assert isinstance(solvers[DsgLayers.AGENTS], DsgAgentSolver)
        assert all(isinstance(s, DsgRegistrationSolver) for s in solvers.values())

    def test_layer_solvers_own_distinct_robust_solvers(self):
        """Test that no robust solver is shared between layers."""
        solvers = make_registration_solvers(
            [DsgLayers.OBJECTS, DsgLayers.PLACES], LayerRegistrationConfig()
        )

        assert solvers[DsgLayers.OBJECTS].solver is not solvers[DsgLayers.PLACES].solver

    def test_interface_is_abstract(self):
        """Test that the interface cannot be instantiated."""
        with pytest.raises(TypeError):
            DsgRegistrationSolver()
