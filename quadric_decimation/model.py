"""
Mesh Graph Model
================

Vertex and triangle records plus a flat reference table that stores,
for every vertex, the triangles it currently belongs to.

Adjacency is kept by index range, not by pointer: each vertex owns the
window [start, start + count) of the reference table. Windows go stale
as soon as triangles are collapsed and are rebuilt from scratch by
`MeshGraph.rebuild_adjacency`.
"""

import logging
from dataclasses import dataclass, field
from typing import List, NamedTuple, Tuple

import numpy as np

from .qem import QuadricMatrix, face_plane, face_quadric

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Vertex:
    """A mesh vertex with its accumulated error quadric."""
    position: np.ndarray
    normal: np.ndarray
    uv: np.ndarray
    quadric: QuadricMatrix = field(default_factory=QuadricMatrix)
    # Everything counts as border until the first classification pass
    is_border: bool = True
    start: int = 0
    count: int = 0


@dataclass(eq=False)
class Triangle:
    """A triangle; `vertices` is rewritten in place by collapses."""
    vertices: List[int]
    normal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    # Collapse cost of edges 0, 1, 2 and their minimum
    error: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    deleted: bool = False
    dirty: bool = False
    border_factor: int = 0


class Reference(NamedTuple):
    """One incidence of a vertex: its corner slot in a triangle."""
    slot: int
    triangle: int


class MeshGraph:
    """
    Vertex/triangle arena and the reference table linking them.

    Owned by exactly one decimator; nothing here is shared between runs.
    """

    def __init__(self, vertices: List[Vertex], triangles: List[Triangle]):
        self.vertices = vertices
        self.triangles = triangles
        self.references: List[Reference] = []

    @classmethod
    def from_buffers(cls, positions: np.ndarray, normals: np.ndarray,
                     uvs: np.ndarray, indices: np.ndarray) -> "MeshGraph":
        """Build vertex and triangle records in input order."""
        graph = cls([], [])
        for i in range(len(positions)):
            graph.add_vertex(positions[i], normals[i], uvs[i])
        flat = np.asarray(indices, dtype=np.int64).reshape(-1)
        for i in range(0, len(flat) - len(flat) % 3, 3):
            graph.add_triangle(flat[i], flat[i + 1], flat[i + 2])
        return graph

    def add_vertex(self, position, normal, uv) -> Vertex:
        vertex = Vertex(position=np.array(position, dtype=float),
                        normal=np.array(normal, dtype=float),
                        uv=np.array(uv, dtype=float))
        self.vertices.append(vertex)
        return vertex

    def add_triangle(self, i0: int, i1: int, i2: int) -> Triangle:
        for index in (i0, i1, i2):
            if not 0 <= index < len(self.vertices):
                raise IndexError(f"Triangle references missing vertex {index}")
        triangle = Triangle(vertices=[int(i0), int(i1), int(i2)])
        self.triangles.append(triangle)
        return triangle

    def window(self, vertex: Vertex) -> List[Reference]:
        """References currently listed for a vertex."""
        return self.references[vertex.start:vertex.start + vertex.count]

    def live_triangle_count(self) -> int:
        return sum(1 for t in self.triangles if not t.deleted)

    def accumulate_face_quadric(self, index: int) -> None:
        """Store the face normal of triangle `index` and add its plane to its corners."""
        t = self.triangles[index]
        p0, p1, p2 = (self.vertices[vi].position for vi in t.vertices)
        normal, d = face_plane(p0, p1, p2)
        t.normal = normal
        q = face_quadric(normal, d)
        for vi in t.vertices:
            self.vertices[vi].quadric.add_in_place(q)

    def rebuild_adjacency(self, compact_tombstones: bool) -> None:
        """
        Recompute every vertex window from the current triangles.

        Args:
            compact_tombstones: Drop deleted triangles first. Triangle
                ids change, so the whole table is rebuilt afterwards.
        """
        if compact_tombstones:
            self.triangles = [t for t in self.triangles if not t.deleted]

        for v in self.vertices:
            v.start = 0
            v.count = 0

        for t in self.triangles:
            for vi in t.vertices:
                self.vertices[vi].count += 1

        start = 0
        for v in self.vertices:
            v.start = start
            start += v.count
            v.count = 0

        references: List[Reference] = [None] * start
        for ti, t in enumerate(self.triangles):
            for slot, vi in enumerate(t.vertices):
                v = self.vertices[vi]
                references[v.start + v.count] = Reference(slot, ti)
                v.count += 1
        self.references = references

        logger.debug("Rebuilt adjacency: %d triangles, %d references",
                     len(self.triangles), len(references))

    def reconstruct(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Compact the mesh into fresh buffers.

        Drops deleted triangles, triangles whose corners merged into fewer
        than three distinct vertices, and vertices no triangle uses, then
        renumbers the indices.

        Returns:
            Tuple of (positions, normals, uvs, faces) arrays
        """
        kept = [t for t in self.triangles
                if not t.deleted and len(set(t.vertices)) == 3]

        used = np.zeros(len(self.vertices), dtype=bool)
        for t in kept:
            used[t.vertices] = True

        remap = np.full(len(self.vertices), -1, dtype=np.int64)
        order = np.flatnonzero(used)
        remap[order] = np.arange(len(order))

        positions = np.array([self.vertices[i].position for i in order]).reshape(-1, 3)
        normals = np.array([self.vertices[i].normal for i in order]).reshape(-1, 3)
        uvs = np.array([self.vertices[i].uv for i in order]).reshape(-1, 2)

        if kept:
            faces = remap[np.array([t.vertices for t in kept], dtype=np.int64)]
        else:
            faces = np.zeros((0, 3), dtype=np.int64)

        return positions, normals, uvs, faces
