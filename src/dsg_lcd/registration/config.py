"""Configuration for scene graph layer registration.

Configuration can be built directly or loaded from a YAML file::

    registration:
      min_correspondences: 5
      min_inliers: 5
      log_registration_problem: false
      use_pairwise_registration: false
      registration_output_path: ""
    solver:
      noise_bound: 0.1
      cbar2: 1.0
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .robust_solver import RobustSolverParams


@dataclass
class LayerRegistrationConfig:
    """Settings shared by every layer registration call.

    Attributes:
        min_correspondences: Minimum candidate correspondences before solving
        min_inliers: Minimum inliers for a valid registration
        log_registration_problem: Emit the full problem to diagnostics
        use_pairwise_registration: Match all pairs instead of same-label pairs
        registration_output_path: Directory for problem dumps (empty disables)
    """

    min_correspondences: int = 5
    min_inliers: int = 5
    log_registration_problem: bool = False
    use_pairwise_registration: bool = False
    registration_output_path: str = ""

    def __post_init__(self) -> None:
        """Validate thresholds."""
        if self.min_correspondences < 0:
            raise ValueError(
                f"min_correspondences must be non-negative, got {self.min_correspondences}"
            )
        if self.min_inliers < 0:
            raise ValueError(f"min_inliers must be non-negative, got {self.min_inliers}")

    @property
    def dump_enabled(self) -> bool:
        """Whether registration problems should be written to disk."""
        return self.log_registration_problem and bool(self.registration_output_path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LayerRegistrationConfig:
        """Build a config from a mapping, rejecting unknown keys.

        Args:
            data: Mapping of option name to value

        Returns:
            Parsed configuration
        """
        return cls(**_checked_options(cls, data, "registration"))

    @classmethod
    def from_yaml(cls, path: str | Path) -> LayerRegistrationConfig:
        """Load a config from a YAML file holding a flat mapping of options."""
        return cls.from_dict(_read_yaml(path))


def _checked_options(cls: type, data: dict[str, Any], section: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping for '{section}', got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown {section} options: {', '.join(unknown)}")
    return dict(data)


def _read_yaml(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    return data


def load_registration_config(
    path: str | Path,
) -> tuple[LayerRegistrationConfig, RobustSolverParams]:
    """Load registration and solver settings from one YAML file.

    Both the ``registration`` and ``solver`` sections are optional; missing
    sections fall back to defaults.

    Args:
        path: Path to the YAML file

    Returns:
        Tuple of (registration config, robust solver parameters)
    """
    data = _read_yaml(path)
    unknown = sorted(set(data) - {"registration", "solver"})
    if unknown:
        raise ValueError(f"Unknown config sections in {path}: {', '.join(unknown)}")

    config = LayerRegistrationConfig.from_dict(data.get("registration") or {})
    params = RobustSolverParams(
        **_checked_options(RobustSolverParams, data.get("solver") or {}, "solver")
    )
    return config, params
