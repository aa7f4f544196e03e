"""Loop-closure verification by scene graph registration.

Key components:
- DsgRegistrationSolver: Interface used by the verification stage
- DsgLayerSolver: Correspondence-based registration on one layer
- DsgAgentSolver: Direct comparison of the anchor poses
"""

from .registration_solvers import (
    DsgAgentSolver,
    DsgLayerSolver,
    DsgRegistrationSolver,
    make_registration_solvers,
)
from .types import AGENT_LEVEL, DsgRegistrationInput, DsgRegistrationSolution

__all__ = [
    # Interface
    "DsgRegistrationSolver",
    "DsgLayerSolver",
    "DsgAgentSolver",
    "make_registration_solvers",
    # Types
    "AGENT_LEVEL",
    "DsgRegistrationInput",
    "DsgRegistrationSolution",
]
