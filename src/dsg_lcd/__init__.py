"""DSG LCD - loop-closure registration for hierarchical scene graphs."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .graph import SE3, DsgLayers, DynamicSceneGraph, NodeSymbol, SceneGraphLayer
from .loop_closure import (
    DsgAgentSolver,
    DsgLayerSolver,
    DsgRegistrationInput,
    DsgRegistrationSolution,
    DsgRegistrationSolver,
    make_registration_solvers,
)
from .registration import (
    LayerRegistrationConfig,
    LayerRegistrationProblem,
    LayerRegistrationSolution,
    MaxCliqueRegistrationSolver,
    RobustSolverParams,
    load_registration_config,
    register_dsg_layer,
)

__all__ = [
    "__version__",
    # Graph
    "SE3",
    "DsgLayers",
    "DynamicSceneGraph",
    "NodeSymbol",
    "SceneGraphLayer",
    # Loop closure
    "DsgRegistrationSolver",
    "DsgLayerSolver",
    "DsgAgentSolver",
    "DsgRegistrationInput",
    "DsgRegistrationSolution",
    "make_registration_solvers",
    # Registration
    "LayerRegistrationConfig",
    "LayerRegistrationProblem",
    "LayerRegistrationSolution",
    "MaxCliqueRegistrationSolver",
    "RobustSolverParams",
    "load_registration_config",
    "register_dsg_layer",
]
