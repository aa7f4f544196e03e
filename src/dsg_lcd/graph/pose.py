"""SE(3) rigid transforms used for registration results and agent poses."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass
class SE3:
    """Rigid body transformation (rotation + translation) in SE(3).

    Registration results are expressed as ``dest_T_src``: the transform
    that maps a point expressed in the source frame into the destination
    frame:

        p_dest = R @ p_src + t

    Attributes:
        rotation: 3x3 orthonormal rotation matrix (det = +1)
        translation: 3D translation vector
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector

    def __post_init__(self) -> None:
        """Validate and normalize inputs."""
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Create the identity transformation."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_Rt(cls, R: np.ndarray, t: np.ndarray) -> SE3:
        """Create SE3 from a rotation matrix and a translation vector.

        This is the pose-composition step applied to raw solver output.

        Args:
            R: 3x3 rotation matrix
            t: 3D translation vector (any shape that flattens to 3)

        Returns:
            SE3 transformation
        """
        return cls(rotation=R, translation=t)

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from a 4x4 homogeneous transformation matrix."""
        T = np.asarray(T)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")
        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    @classmethod
    def from_rvec_tvec(cls, rvec: np.ndarray, tvec: np.ndarray) -> SE3:
        """Create SE3 from an axis-angle (Rodrigues) vector and a translation.

        Args:
            rvec: 3D rotation vector (axis * angle)
            tvec: 3D translation vector

        Returns:
            SE3 transformation
        """
        R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
        return cls(rotation=R, translation=np.asarray(tvec).flatten())

    def to_matrix(self) -> np.ndarray:
        """Convert to a 4x4 homogeneous transformation matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def to_rvec_tvec(self) -> tuple[np.ndarray, np.ndarray]:
        """Convert to a Rodrigues vector and translation."""
        rvec, _ = cv2.Rodrigues(self.rotation)
        return rvec.flatten(), self.translation.copy()

    def inverse(self) -> SE3:
        """Compute the inverse transformation.

        For T = [R, t], the inverse is [R^T, -R^T @ t].
        """
        R_inv = self.rotation.T
        return SE3(rotation=R_inv, translation=-R_inv @ self.translation)

    def compose(self, other: SE3) -> SE3:
        """Compose with another transformation: ``self @ other``.

        Example:
            world_T_match.inverse().compose(world_T_query) gives match_T_query

        Args:
            other: SE3 transformation applied first

        Returns:
            Composed SE3 transformation
        """
        R = self.rotation @ other.rotation
        t = self.rotation @ other.translation + self.translation
        return SE3(rotation=R, translation=t)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Transform an Nx3 array of points into the target frame."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, 3)

        if points.shape[1] != 3:
            raise ValueError(f"Points must be Nx3, got {points.shape}")

        return (self.rotation @ points.T).T + self.translation

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Transform a single 3D point into the target frame."""
        point = np.asarray(point, dtype=np.float64).flatten()
        return self.rotation @ point + self.translation

    def is_close(self, other: SE3, atol: float = 1e-6) -> bool:
        """Check whether two transforms agree within an absolute tolerance."""
        return bool(
            np.allclose(self.rotation, other.rotation, atol=atol)
            and np.allclose(self.translation, other.translation, atol=atol)
        )

    @property
    def position(self) -> np.ndarray:
        """Translation component (origin of the source frame in the target)."""
        return self.translation.copy()

    def __repr__(self) -> str:
        """Return string representation."""
        pos = self.position
        return f"SE3(position=[{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}])"

    def __matmul__(self, other: SE3) -> SE3:
        """Allow ``T_result = T1 @ T2`` as shorthand for composition."""
        return self.compose(other)
