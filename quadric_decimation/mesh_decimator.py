"""
Mesh Decimator
==============

Greedy edge-collapse simplification driven by quadric error metrics.

Each outer iteration sweeps the triangle list once and collapses any
edge whose error is below a threshold that grows with the iteration
number, so early sweeps only remove nearly free edges. Work is split
into chunks on a `CooperativeScheduler` so a host sharing the thread
stays responsive; `simplify` drives the whole run synchronously.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
import trimesh

from .adapter import export_mesh, import_mesh
from .border import identify_border, tally_border_factors
from .model import MeshGraph, Triangle, Vertex
from .qem import QuadricMatrix, normalized
from .scheduler import CooperativeScheduler

logger = logging.getLogger(__name__)

# Adjacency is rebuilt every this many iterations
REBUILD_INTERVAL = 5
# |cos| above this between the two remaining edges means a sliver
COLINEAR_LIMIT = 0.999
# New face normals must stay within ~78 degrees of the original
FLIP_LIMIT = 0.2


class DecimationError(Exception):
    """Base class for decimator misuse."""


class DecimatorNotInitializedError(DecimationError, RuntimeError):
    """Raised when decimation is requested before initialization completed."""


@dataclass
class CollapseCandidate:
    """Cost of merging two vertices and the attributes of the result."""
    error: float
    position: np.ndarray
    normal: np.ndarray
    uv: np.ndarray


@dataclass
class CollapseRecord:
    """An accepted collapse: `removed` was merged into `kept`."""
    kept: int
    removed: int
    error: float
    position: np.ndarray
    kept_border: bool
    removed_border: bool
    kept_quadric: QuadricMatrix
    removed_quadric: QuadricMatrix
    merged_quadric: QuadricMatrix


class MeshDecimator:
    """
    Mesh simplification using Quadric Error Metrics (QEM).

    Implements iterative edge collapse with:
    - A progressively relaxed error threshold instead of a priority queue
    - Flip and sliver rejection for every triangle touched by a collapse
    - Border vertices only merging with other border vertices
    - Periodic adjacency rebuilds over a flat reference table

    One instance owns one mesh graph; do not run two decimations on the
    same instance at once.
    """

    def __init__(self, scheduler: Optional[CooperativeScheduler] = None,
                 chunk_size: int = 1000,
                 border_bias: bool = False):
        """
        Initialize the mesh decimator.

        Args:
            scheduler: Scheduler the chunked passes run on (a private one
                       is created when omitted)
            chunk_size: Items processed per chunk of the linear passes
            border_bias: Count border corners per triangle and add half of
                         that count to its edge errors after each update
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.scheduler = scheduler if scheduler is not None else CooperativeScheduler()
        self.chunk_size = chunk_size
        self.border_bias = border_bias

        self._mesh: Optional[trimesh.Trimesh] = None
        self._graph = MeshGraph([], [])
        self._initialized = False
        self._running = False
        self._generation = 0
        self._live_triangles = 0
        self._collapse_history: List[CollapseRecord] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def vertices(self) -> List[Vertex]:
        return self._graph.vertices

    @property
    def triangles(self) -> List[Triangle]:
        return self._graph.triangles

    @property
    def live_triangle_count(self) -> int:
        return self._live_triangles

    def initialize(self, mesh: trimesh.Trimesh,
                   on_ready: Optional[Callable[[], None]] = None) -> None:
        """
        Build the mesh graph and prime quadrics and edge errors.

        Runs in chunks on the scheduler; `on_ready` is called once the
        decimator is ready for `decimate`. Calling it again before the
        previous run finished supersedes that run: its remaining chunks
        do nothing and its `on_ready` is never called.
        """
        if self._running:
            raise DecimationError("Cannot initialize while a decimation is running")

        self._mesh = mesh
        self._initialized = False
        self._graph = graph = MeshGraph([], [])
        self._collapse_history = []
        self._generation += 1
        generation = self._generation

        buffers = import_mesh(mesh)
        n_vertices = len(buffers.positions)
        n_triangles = len(buffers.indices) // 3

        def current(per_item):
            def run_item(i):
                if generation == self._generation:
                    per_item(i)
            return run_item

        def add_vertex(i):
            graph.add_vertex(buffers.positions[i], buffers.normals[i], buffers.uvs[i])

        def add_triangle(i):
            graph.add_triangle(*buffers.indices[3 * i:3 * i + 3])

        def init_errors(i):
            self._update_errors(graph.triangles[i], 0.0, graph)

        def ready():
            if generation != self._generation:
                logger.debug("Dropped superseded initialization")
                return
            self._live_triangles = graph.live_triangle_count()
            self._initialized = True
            logger.info("Initialized decimator: %d vertices, %d triangles",
                        len(graph.vertices), len(graph.triangles))
            if on_ready is not None:
                on_ready()

        run = self.scheduler.run_chunked
        chunk = self.chunk_size
        run(n_vertices, chunk, current(add_vertex),
            lambda: run(n_triangles, chunk, current(add_triangle),
                        lambda: run(n_triangles, chunk, current(graph.accumulate_face_quadric),
                                    lambda: run(n_triangles, chunk, current(init_errors),
                                                ready))))

    def reinitialize(self, on_ready: Optional[Callable[[], None]] = None) -> None:
        """Rebuild the graph from the mesh last passed to `initialize`."""
        if self._mesh is None:
            raise DecimatorNotInitializedError("No mesh to reinitialize from")
        self.initialize(self._mesh, on_ready)

    def _update_errors(self, t: Triangle, bias: float,
                       graph: Optional[MeshGraph] = None) -> None:
        vertices = (graph if graph is not None else self._graph).vertices
        for j in range(3):
            t.error[j] = self.calculate_error(
                vertices[t.vertices[j]], vertices[t.vertices[(j + 1) % 3]]).error + bias
        t.error[3] = min(t.error[0], t.error[1], t.error[2])

    def decimate(self, target_ratio: float,
                 on_complete: Optional[Callable[[trimesh.Trimesh], None]] = None,
                 aggressiveness: float = 7,
                 iterations: int = 100) -> None:
        """
        Collapse edges until the live triangle count reaches the target.

        Args:
            target_ratio: Ratio of triangles to keep, in (0, 1]
            on_complete: Called with the simplified trimesh
            aggressiveness: Exponent of the threshold growth per iteration
            iterations: Maximum number of sweeps

        Raises:
            DecimatorNotInitializedError: `initialize` has not completed.
                Nothing is scheduled in that case.
        """
        if not self._initialized:
            raise DecimatorNotInitializedError(
                "Decimator must be initialized before decimation")
        if self._running:
            raise DecimationError("A decimation run is already in progress")
        if not 0.0 < target_ratio <= 1.0:
            raise ValueError(f"target_ratio must be in (0, 1], got {target_ratio}")
        if iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {iterations}")

        graph = self._graph
        initial_triangles = self._live_triangles
        target_count = int(len(graph.triangles) * target_ratio)
        self._running = True

        logger.info("Starting decimation: %d -> %d triangles",
                    initial_triangles, target_count)

        def step(iteration, resume):
            try:
                self._run_iteration(iteration, aggressiveness, target_count)
            except Exception:
                # The graph is partially collapsed; only a fresh initialize recovers it
                self._running = False
                self._initialized = False
                logger.error("Decimation failed in iteration %d", iteration)
                raise
            resume()

        def target_reached():
            return self._live_triangles <= target_count

        def finish():
            self._running = False
            self._initialized = False
            result = export_mesh(self._mesh, *graph.reconstruct())
            logger.info("Decimation complete: %d faces, %d collapses",
                        len(result.faces), len(self._collapse_history))
            if on_complete is not None:
                on_complete(result)

        self.scheduler.run_bounded_loop(iterations, step, finish, target_reached)

    def simplify(self, mesh: trimesh.Trimesh, target_ratio: float,
                 aggressiveness: float = 7, iterations: int = 100) -> trimesh.Trimesh:
        """
        Initialize, decimate and return the simplified mesh in one call.

        Drains the scheduler, so any other work queued on it runs as well.
        """
        results: List[trimesh.Trimesh] = []
        self.initialize(mesh)
        self.scheduler.run_until_idle()
        self.decimate(target_ratio, results.append, aggressiveness, iterations)
        self.scheduler.run_until_idle()
        return results[0]

    def _run_iteration(self, iteration: int, aggressiveness: float,
                       target_count: int) -> None:
        graph = self._graph

        if iteration % REBUILD_INTERVAL == 0:
            graph.rebuild_adjacency(compact_tombstones=iteration != 0)
            if iteration == 0:
                identify_border(graph)
                if self.border_bias:
                    tally_border_factors(graph)

        for t in graph.triangles:
            t.dirty = False

        threshold = 1e-9 * (iteration + 3) ** aggressiveness
        logger.debug("Iteration %d: threshold %.3g, %d live triangles",
                     iteration, threshold, self._live_triangles)

        for t in graph.triangles:
            if t.error[3] > threshold or t.deleted or t.dirty:
                continue
            for j in range(3):
                if t.error[j] < threshold and self._try_collapse(t, j):
                    break
            if self._live_triangles <= target_count:
                break

    def _try_collapse(self, t: Triangle, j: int) -> bool:
        """Collapse edge j of `t` into its first corner if the result is valid."""
        graph = self._graph
        i0 = t.vertices[j]
        i1 = t.vertices[(j + 1) % 3]
        if i0 == i1:
            return False
        v0 = graph.vertices[i0]
        v1 = graph.vertices[i1]

        if v0.is_border != v1.is_border:
            return False

        candidate = self.calculate_error(v0, v1)

        deleted0 = [False] * v0.count
        deleted1 = [False] * v1.count
        if self._is_flipped(v0, i1, candidate.position, deleted0, t.border_factor):
            return False
        if self._is_flipped(v1, i0, candidate.position, deleted1, t.border_factor):
            return False

        kept_quadric = v0.quadric.copy()
        v0.position = candidate.position
        v0.normal = candidate.normal
        v0.uv = candidate.uv
        v0.quadric = v1.quadric.add(v0.quadric)

        references = graph.references
        start = len(references)
        self._update_triangles(i0, v0, deleted0)
        self._update_triangles(i0, v1, deleted1)
        count = len(references) - start

        if count <= v0.count:
            references[v0.start:v0.start + count] = references[start:start + count]
        else:
            v0.start = start
        v0.count = count

        self._collapse_history.append(CollapseRecord(
            kept=i0,
            removed=i1,
            error=candidate.error,
            position=candidate.position.copy(),
            kept_border=v0.is_border,
            removed_border=v1.is_border,
            kept_quadric=kept_quadric,
            removed_quadric=v1.quadric.copy(),
            merged_quadric=v0.quadric.copy(),
        ))
        return True

    def calculate_error(self, vertex1: Vertex, vertex2: Vertex) -> CollapseCandidate:
        """
        Price the collapse of the edge (vertex1, vertex2).

        Solves for the point minimizing the combined quadric with Cramer's
        rule. Singular quadrics and border-to-border edges instead pick the
        cheapest of the two endpoints and their midpoint.

        The normal and uv of an optimal point are copied from vertex1
        rather than interpolated.
        """
        q = vertex1.quadric.add(vertex2.quadric)
        border = vertex1.is_border and vertex2.is_border
        det = q.det(0, 1, 2, 1, 4, 5, 2, 5, 7)

        if det != 0 and not border:
            position = np.array([
                -1 / det * q.det(1, 2, 3, 4, 5, 6, 5, 7, 8),
                1 / det * q.det(0, 2, 3, 1, 5, 6, 2, 7, 8),
                -1 / det * q.det(0, 1, 3, 1, 4, 6, 2, 5, 8),
            ])
            return CollapseCandidate(q.vertex_error(position), position,
                                     vertex1.normal.copy(), vertex1.uv.copy())

        midpoint = (vertex1.position + vertex2.position) / 2
        error1 = q.vertex_error(vertex1.position)
        error2 = q.vertex_error(vertex2.position)
        error3 = q.vertex_error(midpoint)
        error = min(error1, error2, error3)

        if error == error1:
            return CollapseCandidate(error, vertex1.position.copy(),
                                     vertex1.normal.copy(), vertex1.uv.copy())
        if error == error2:
            return CollapseCandidate(error, vertex2.position.copy(),
                                     vertex2.normal.copy(), vertex2.uv.copy())
        return CollapseCandidate(error, midpoint,
                                 normalized((vertex1.normal + vertex2.normal) / 2),
                                 vertex1.uv.copy())

    def _is_flipped(self, vertex: Vertex, other_id: int, point: np.ndarray,
                    deleted: List[bool], border_factor: int) -> bool:
        """
        Check whether moving `vertex` to `point` folds any triangle around it.

        Triangles that also contain `other_id` collapse to nothing and are
        flagged in `deleted` instead of being tested.
        """
        graph = self._graph
        vertices = graph.vertices
        for i, ref in enumerate(graph.window(vertex)):
            t = graph.triangles[ref.triangle]
            if t.deleted:
                continue

            id1 = t.vertices[(ref.slot + 1) % 3]
            id2 = t.vertices[(ref.slot + 2) % 3]

            if (id1 == other_id or id2 == other_id) and border_factor < 2:
                deleted[i] = True
                continue

            d1 = normalized(vertices[id1].position - point)
            d2 = normalized(vertices[id2].position - point)
            if abs(np.dot(d1, d2)) > COLINEAR_LIMIT:
                return True
            normal = normalized(np.cross(d1, d2))
            deleted[i] = False
            if np.dot(normal, t.normal) < FLIP_LIMIT:
                return True

        return False

    def _update_triangles(self, vertex_id: int, vertex: Vertex,
                          deleted: List[bool]) -> None:
        """
        Point the triangles around `vertex` at `vertex_id` or tombstone them.

        A triangle left with a repeated corner is tombstoned as well. That
        only happens when a border factor kept it out of `deleted`.
        """
        graph = self._graph
        for i, ref in enumerate(graph.window(vertex)):
            t = graph.triangles[ref.triangle]
            if t.deleted:
                continue
            if deleted[i]:
                t.deleted = True
                self._live_triangles -= 1
                continue
            t.vertices[ref.slot] = vertex_id
            if len(set(t.vertices)) < 3:
                t.deleted = True
                self._live_triangles -= 1
                continue
            t.dirty = True
            self._update_errors(t, t.border_factor / 2)
            graph.references.append(ref)

    def get_collapse_history(self) -> List[CollapseRecord]:
        """Get the history of edge collapses performed."""
        return list(self._collapse_history)
