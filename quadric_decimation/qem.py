"""
Quadric Error Metrics (QEM) Implementation
==========================================

Symmetric error quadrics used to price vertex placement during
edge collapse.

Based on: "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997)
"""

import numpy as np
from typing import Optional, Sequence, Tuple


# Row/column pairs of the 10 stored coefficients
QUADRIC_INDEX = ((0, 0), (0, 1), (0, 2), (0, 3), (1, 1),
                 (1, 2), (1, 3), (2, 2), (2, 3), (3, 3))


class QuadricMatrix:
    """
    Symmetric 4x4 error quadric stored as its 10 unique coefficients.

    The fundamental quadric Q for a plane ax + by + cz + d = 0 is:
    Q = p * p^T where p = [a, b, c, d]^T

    The error of a point v = [x, y, z, 1]^T with respect to Q is:
    error(v) = v^T * Q * v

    Quadrics are additive: merging two vertices sums their quadrics.
    """

    __slots__ = ("data",)

    def __init__(self, data: Optional[Sequence[float]] = None):
        if data is None:
            self.data = np.zeros(10)
        else:
            self.data = np.array(data, dtype=float)
            if self.data.shape != (10,):
                raise ValueError(f"Quadric needs 10 coefficients, got {self.data.shape}")

    @classmethod
    def from_plane(cls, a: float, b: float, c: float, d: float) -> "QuadricMatrix":
        """Fundamental quadric of the plane ax + by + cz + d = 0."""
        return cls([a * a, a * b, a * c, a * d,
                    b * b, b * c, b * d,
                    c * c, c * d,
                    d * d])

    def add_in_place(self, other: "QuadricMatrix") -> "QuadricMatrix":
        self.data += other.data
        return self

    def add(self, other: "QuadricMatrix") -> "QuadricMatrix":
        return QuadricMatrix(self.data + other.data)

    __add__ = add

    def copy(self) -> "QuadricMatrix":
        return QuadricMatrix(self.data)

    def det(self, a11: int, a12: int, a13: int,
            a21: int, a22: int, a23: int,
            a31: int, a32: int, a33: int) -> float:
        """
        Determinant of a 3x3 matrix picked out of the stored coefficients.

        Each argument is an index into the 10 coefficients, so the same
        routine serves both the upper-left block and the bordered
        columns used by Cramer's rule.
        """
        m = self.data
        return float(m[a11] * m[a22] * m[a33] + m[a13] * m[a21] * m[a32]
                     + m[a12] * m[a23] * m[a31] - m[a13] * m[a22] * m[a31]
                     - m[a11] * m[a23] * m[a32] - m[a12] * m[a21] * m[a33])

    def vertex_error(self, point: Sequence[float]) -> float:
        """
        Quadric error v^T * Q * v for v = [x, y, z, 1].

        Not clamped: callers compare raw values between candidates.
        """
        q = self.data
        x, y, z = float(point[0]), float(point[1]), float(point[2])
        return float(q[0] * x * x + 2 * q[1] * x * y + 2 * q[2] * x * z + 2 * q[3] * x
                     + q[4] * y * y + 2 * q[5] * y * z + 2 * q[6] * y
                     + q[7] * z * z + 2 * q[8] * z + q[9])

    def to_matrix(self) -> np.ndarray:
        """Expand to the dense symmetric 4x4 matrix."""
        matrix = np.zeros((4, 4))
        for value, (row, col) in zip(self.data, QUADRIC_INDEX):
            matrix[row, col] = value
            matrix[col, row] = value
        return matrix

    def __eq__(self, other) -> bool:
        if not isinstance(other, QuadricMatrix):
            return NotImplemented
        return bool(np.array_equal(self.data, other.data))

    def __repr__(self) -> str:
        return f"QuadricMatrix({self.data.tolist()})"


def normalized(vector: np.ndarray) -> np.ndarray:
    """Unit vector in the direction of `vector`; zero stays zero."""
    length = np.linalg.norm(vector)
    if length == 0.0:
        return np.zeros_like(vector, dtype=float)
    return vector / length


def face_plane(p0: np.ndarray, p1: np.ndarray,
               p2: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Compute the plane of a triangle face.

    Args:
        p0, p1, p2: Triangle corner positions

    Returns:
        Tuple of (unit normal, d) with d = -dot(normal, p0).
        Degenerate faces yield a zero normal.
    """
    normal = normalized(np.cross(p1 - p0, p2 - p0))
    return normal, -float(np.dot(normal, p0))


def face_quadric(normal: np.ndarray, d: float) -> QuadricMatrix:
    return QuadricMatrix.from_plane(normal[0], normal[1], normal[2], d)
