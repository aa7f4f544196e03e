#!/usr/bin/env python3
"""Re-run a recorded registration problem offline.

Layer solvers write registration problems to ``.npz`` files when
``log_registration_problem`` is enabled and ``registration_output_path``
is set. This script loads one of those files, re-runs the robust solver
and prints the result, which helps tune the noise bound and thresholds.

Usage:
    uv run python scripts/inspect_registration_problem.py output/registration_problem_2_00000.npz
    uv run python scripts/inspect_registration_problem.py problem.npz --noise-bound 0.2 --min-inliers 4
"""

import argparse
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dsg_lcd.graph import SE3, node_label
from dsg_lcd.registration import MaxCliqueRegistrationSolver, RobustSolverParams, load_problem


def main() -> None:
    """Load a problem, solve it and print the outcome."""
    parser = argparse.ArgumentParser(description="Inspect a recorded registration problem")
    parser.add_argument("problem", type=Path, help="Path to registration problem .npz")
    parser.add_argument("--noise-bound", type=float, default=0.1, help="Noise bound (m)")
    parser.add_argument("--cbar2", type=float, default=1.0, help="Noise bound scale")
    parser.add_argument("--min-inliers", type=int, default=5, help="Minimum inliers")
    args = parser.parse_args()

    problem = load_problem(args.problem)
    correspondences = problem["correspondences"]
    print(f"Layer {problem['layer_id']}: {len(correspondences)} correspondences")

    solver = MaxCliqueRegistrationSolver(
        RobustSolverParams(noise_bound=args.noise_bound, cbar2=args.cbar2)
    )
    result = solver.solve(problem["src_points"], problem["dest_points"])
    if not result.valid:
        print("Solver found no solution")
        return

    inliers = solver.get_inlier_max_clique()
    status = "VALID" if len(inliers) >= args.min_inliers else "TOO FEW INLIERS"
    print(f"{status}: {len(inliers)} / {args.min_inliers} inliers")

    dest_T_src = SE3.from_Rt(result.rotation, result.translation)
    rvec, tvec = dest_T_src.to_rvec_tvec()
    angle_deg = np.degrees(np.linalg.norm(rvec))
    print(f"  rotation:    {angle_deg:.2f} deg about {np.round(rvec, 4)}")
    print(f"  translation: {np.round(tvec, 4)}")

    residuals = np.linalg.norm(
        dest_T_src.transform_points(problem["src_points"].T) - problem["dest_points"].T,
        axis=1,
    )
    for index in inliers:
        src_id, dest_id = (int(i) for i in correspondences[index])
        print(
            f"  {node_label(src_id):>8} -> {node_label(dest_id):<8} "
            f"residual={residuals[index]:.4f}"
        )


if __name__ == "__main__":
    main()
