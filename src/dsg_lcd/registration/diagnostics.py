"""Diagnostics for layer registration.

Registration reports through an injected sink rather than process-wide
logging state. Messages carry a verbosity level:

- 1: stale node skips, problem summaries
- 2: threshold shortfalls and solver failures
- 3: full coordinate matrices
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import numpy as np


class DiagnosticsSink(Protocol):
    """Receives leveled registration messages."""

    def log(self, level: int, message: str) -> None: ...


class NullDiagnostics:
    """Discards every message."""

    def log(self, level: int, message: str) -> None:
        pass


class PrintDiagnostics:
    """Prints messages up to a verbosity level with a bracketed prefix."""

    def __init__(self, verbosity: int = 0, prefix: str = "[DSG LCD]") -> None:
        self.verbosity = verbosity
        self.prefix = prefix

    def log(self, level: int, message: str) -> None:
        if level <= self.verbosity:
            print(f"{self.prefix} {message}")


class LoggerDiagnostics:
    """Forwards messages to a ``logging.Logger``.

    Level 1 maps to INFO, deeper levels to DEBUG.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def log(self, level: int, message: str) -> None:
        self._logger.log(logging.INFO if level <= 1 else logging.DEBUG, message)


class RegistrationProblemRecorder:
    """Writes registration problems to ``.npz`` files for offline inspection.

    Each file holds ``src_points`` and ``dest_points`` (3xN),
    ``correspondences`` (Nx2 node ids, column i of the point matrices
    belongs to row i) and ``layer_id``.
    """

    def __init__(self, output_dir: str | Path) -> None:
        """Initialize recorder.

        Args:
            output_dir: Directory receiving the dumps (created on first write)
        """
        self.output_dir = Path(output_dir)
        self._count = 0

    @property
    def num_recorded(self) -> int:
        return self._count

    def record(
        self,
        layer_id: int,
        src_points: np.ndarray,
        dest_points: np.ndarray,
        correspondences: list[tuple[int, int]],
    ) -> Path:
        """Write one problem and return the file path.

        Args:
            layer_id: Layer the problem was built on
            src_points: Source coordinates, shape (3, N)
            dest_points: Destination coordinates, shape (3, N)
            correspondences: (source id, destination id) pairs

        Returns:
            Path of the written file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"registration_problem_{layer_id}_{self._count:05d}.npz"
        np.savez(
            path,
            src_points=src_points,
            dest_points=dest_points,
            correspondences=np.asarray(correspondences, dtype=np.uint64).reshape(-1, 2),
            layer_id=layer_id,
        )
        self._count += 1
        return path


def load_problem(path: str | Path) -> dict[str, np.ndarray]:
    """Load a problem written by ``RegistrationProblemRecorder``.

    Args:
        path: Path to the ``.npz`` file

    Returns:
        Dictionary with src_points, dest_points, correspondences and layer_id
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Registration problem not found: {path}")

    with np.load(path) as data:
        return {
            "src_points": data["src_points"],
            "dest_points": data["dest_points"],
            "correspondences": data["correspondences"],
            "layer_id": int(data["layer_id"]),
        }
