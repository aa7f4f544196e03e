"""Layer registration between scene graph node sets.

Key components:
- LayerRegistrationProblem: Node sets, read-guards and thresholds
- register_dsg_layer: Correspondence search + robust solve
- pairwise_correspondence / semantic_correspondence: Compatibility predicates
- MaxCliqueRegistrationSolver: Bundled robust solver
- LayerRegistrationConfig: Registration settings
"""

from .config import LayerRegistrationConfig, load_registration_config
from .diagnostics import (
    DiagnosticsSink,
    LoggerDiagnostics,
    NullDiagnostics,
    PrintDiagnostics,
    RegistrationProblemRecorder,
    load_problem,
)
from .layer_registration import (
    Correspondence,
    CorrespondenceFunc,
    CorrespondenceSet,
    InlierIndexError,
    LayerRegistrationProblem,
    LayerRegistrationSolution,
    build_correspondences,
    pairwise_correspondence,
    register_dsg_layer,
    register_dsg_layer_pairwise,
    register_dsg_layer_semantic,
    semantic_correspondence,
)
from .robust_solver import (
    MaxCliqueRegistrationSolver,
    RobustRegistrationSolver,
    RobustSolution,
    RobustSolverParams,
    estimate_rigid_transform,
)

__all__ = [
    # Config
    "LayerRegistrationConfig",
    "load_registration_config",
    # Diagnostics
    "DiagnosticsSink",
    "LoggerDiagnostics",
    "NullDiagnostics",
    "PrintDiagnostics",
    "RegistrationProblemRecorder",
    "load_problem",
    # Layer registration
    "Correspondence",
    "CorrespondenceFunc",
    "CorrespondenceSet",
    "InlierIndexError",
    "LayerRegistrationProblem",
    "LayerRegistrationSolution",
    "build_correspondences",
    "pairwise_correspondence",
    "register_dsg_layer",
    "register_dsg_layer_pairwise",
    "register_dsg_layer_semantic",
    "semantic_correspondence",
    # Robust solver
    "MaxCliqueRegistrationSolver",
    "RobustRegistrationSolver",
    "RobustSolution",
    "RobustSolverParams",
    "estimate_rigid_transform",
]
