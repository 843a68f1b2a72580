"""
Mesh Evaluation Module
======================

Quality checks for a simplified mesh against its source:
- Hausdorff and Chamfer distance over surface samples
- Face orientation against the nearest source face
- Open-edge (border) statistics
- Per-vertex quadric error
"""

from collections import Counter
from typing import Dict, Optional, Set, Tuple

import numpy as np
import trimesh
from scipy.spatial import cKDTree

from .adapter import import_mesh
from .model import MeshGraph


def surface_points(mesh: trimesh.Trimesh, count: int, seed: int = 0) -> np.ndarray:
    """Sample `count` points on the surface, or use the vertices of an empty surface."""
    if len(mesh.faces) == 0 or mesh.area <= 0:
        return np.asarray(mesh.vertices, dtype=float)
    points, _ = trimesh.sample.sample_surface(mesh, count, seed=seed)
    return points


def border_edges(mesh: trimesh.Trimesh) -> Set[Tuple[int, int]]:
    """Edges used by exactly one face."""
    edge_count = Counter()
    for face in mesh.faces:
        for i in range(3):
            a, b = int(face[i]), int(face[(i + 1) % 3])
            edge_count[(min(a, b), max(a, b))] += 1
    return {edge for edge, count in edge_count.items() if count == 1}


def vertex_errors(mesh: trimesh.Trimesh,
                  reference: Optional[trimesh.Trimesh] = None) -> np.ndarray:
    """
    Quadric error of every vertex of `mesh`.

    Each vertex is measured against the face planes accumulated at the
    nearest vertex of `reference`. Without a reference the mesh is its
    own reference, which is zero wherever the faces pass through their
    vertices and so mostly flags numerically poor faces.
    """
    source = mesh if reference is None else reference
    graph = MeshGraph.from_buffers(*import_mesh(source))
    for i in range(len(graph.triangles)):
        graph.accumulate_face_quadric(i)

    points = np.asarray(mesh.vertices, dtype=float)
    if reference is None:
        nearest = np.arange(len(points))
    else:
        _, nearest = cKDTree(np.asarray(source.vertices)).query(points)
    return np.array([graph.vertices[j].quadric.vertex_error(p)
                     for j, p in zip(nearest, points)])


class MeshEvaluator:
    """
    Evaluation tools for assessing mesh simplification quality.
    """

    def __init__(self, sample_points: int = 10000, seed: int = 0):
        """
        Args:
            sample_points: Number of points to sample for distance metrics
            seed: Seed for surface sampling
        """
        self.sample_points = sample_points
        self.seed = seed

    def _samples(self, mesh1: trimesh.Trimesh,
                 mesh2: trimesh.Trimesh) -> Tuple[np.ndarray, np.ndarray]:
        return (surface_points(mesh1, self.sample_points, self.seed),
                surface_points(mesh2, self.sample_points, self.seed))

    def hausdorff_distance(self, mesh1: trimesh.Trimesh,
                           mesh2: trimesh.Trimesh) -> Tuple[float, float, float]:
        """
        Symmetric Hausdorff distance between two meshes.

        Returns:
            Tuple of (symmetric, forward, backward) distances
        """
        points1, points2 = self._samples(mesh1, mesh2)
        forward, _ = cKDTree(points2).query(points1)
        backward, _ = cKDTree(points1).query(points2)
        forward, backward = float(np.max(forward)), float(np.max(backward))
        return max(forward, backward), forward, backward

    def chamfer_distance(self, mesh1: trimesh.Trimesh,
                         mesh2: trimesh.Trimesh) -> float:
        """Sum of the mean squared nearest-neighbour distances in both directions."""
        points1, points2 = self._samples(mesh1, mesh2)
        forward, _ = cKDTree(points2).query(points1)
        backward, _ = cKDTree(points1).query(points2)
        return float(np.mean(forward ** 2) + np.mean(backward ** 2))

    def flipped_faces(self, original: trimesh.Trimesh,
                      simplified: trimesh.Trimesh) -> int:
        """
        Count simplified faces facing away from the nearest original face.

        Faces are matched through their centroids.
        """
        if len(simplified.faces) == 0 or len(original.faces) == 0:
            return 0
        tree = cKDTree(original.triangles_center)
        _, nearest = tree.query(simplified.triangles_center)
        dots = np.einsum("ij,ij->i", simplified.face_normals,
                         original.face_normals[nearest])
        return int(np.count_nonzero(dots < 0))

    def compute_all_metrics(self, original: trimesh.Trimesh,
                            simplified: trimesh.Trimesh) -> Dict[str, float]:
        """
        Compute all available metrics.

        Returns:
            Dictionary of metric names to values
        """
        metrics = {
            'original_faces': len(original.faces),
            'simplified_faces': len(simplified.faces),
            'original_vertices': len(original.vertices),
            'simplified_vertices': len(simplified.vertices),
            'face_reduction_ratio': len(simplified.faces) / max(len(original.faces), 1),
        }

        if len(simplified.faces):
            hausdorff, forward, backward = self.hausdorff_distance(original, simplified)
            metrics['hausdorff_distance'] = hausdorff
            metrics['hausdorff_forward'] = forward
            metrics['hausdorff_backward'] = backward
            metrics['chamfer_distance'] = self.chamfer_distance(original, simplified)
            metrics['mean_vertex_error'] = float(np.mean(vertex_errors(simplified, original)))
        else:
            for key in ('hausdorff_distance', 'hausdorff_forward',
                        'hausdorff_backward', 'chamfer_distance', 'mean_vertex_error'):
                metrics[key] = np.nan

        metrics['flipped_faces'] = self.flipped_faces(original, simplified)
        metrics['original_border_edges'] = len(border_edges(original))
        metrics['simplified_border_edges'] = len(border_edges(simplified))
        metrics['area_error'] = abs(float(simplified.area) - float(original.area)) / \
            max(float(original.area), 1e-10)
        return metrics

    def generate_report(self, metrics: Dict[str, float],
                        method_name: str = "QEM") -> str:
        """Human-readable report of `compute_all_metrics` output."""
        lines = [
            "=" * 60,
            f"Mesh Simplification Report - {method_name}",
            "=" * 60,
            f"  Original:    {metrics.get('original_faces', 'N/A'):>8} faces, "
            f"{metrics.get('original_vertices', 'N/A'):>8} vertices",
            f"  Simplified:  {metrics.get('simplified_faces', 'N/A'):>8} faces, "
            f"{metrics.get('simplified_vertices', 'N/A'):>8} vertices",
            f"  Kept:        {metrics.get('face_reduction_ratio', 0) * 100:>7.2f}% of original faces",
            "-" * 40,
            f"  Hausdorff Distance:    {metrics.get('hausdorff_distance', np.nan):>12.6f}",
            f"  Chamfer Distance:      {metrics.get('chamfer_distance', np.nan):>12.6f}",
            f"  Mean Vertex Error:     {metrics.get('mean_vertex_error', np.nan):>12.6g}",
            f"  Area Error:            {metrics.get('area_error', 0) * 100:>11.4f}%",
            f"  Flipped Faces:         {metrics.get('flipped_faces', 0):>8}",
            f"  Border Edges:          {metrics.get('original_border_edges', 0):>8} -> "
            f"{metrics.get('simplified_border_edges', 0)}",
        ]
        if 'runtime' in metrics:
            lines.append(f"  Runtime:               {metrics['runtime']:>11.4f} seconds")
        lines.append("=" * 60)
        return "\n".join(lines)
