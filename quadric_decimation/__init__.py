"""
Quadric Mesh Decimation
=======================

Greedy edge-collapse mesh simplification using the quadric error
metric from "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997).
"""

from .qem import QuadricMatrix
from .model import MeshGraph, Reference, Triangle, Vertex
from .scheduler import CooperativeScheduler
from .mesh_decimator import (
    CollapseCandidate,
    CollapseRecord,
    DecimationError,
    DecimatorNotInitializedError,
    MeshDecimator,
)
from .evaluation import MeshEvaluator

__version__ = "1.1.0"
__all__ = [
    "QuadricMatrix",
    "MeshGraph",
    "Reference",
    "Triangle",
    "Vertex",
    "CooperativeScheduler",
    "CollapseCandidate",
    "CollapseRecord",
    "DecimationError",
    "DecimatorNotInitializedError",
    "MeshDecimator",
    "MeshEvaluator",
]
