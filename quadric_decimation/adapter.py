"""
Mesh Adapter
============

Converts trimesh meshes to flat buffers for the decimator and builds
the simplified trimesh afterwards.
"""

import copy
from typing import NamedTuple, Optional

import numpy as np
import trimesh


class MeshBuffers(NamedTuple):
    """Per-vertex attributes and the flat triangle index list."""
    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray


def _texture_uv(mesh: trimesh.Trimesh) -> Optional[np.ndarray]:
    visual = mesh.visual
    if isinstance(visual, trimesh.visual.TextureVisuals) and visual.uv is not None:
        uv = np.asarray(visual.uv, dtype=float)
        if len(uv) == len(mesh.vertices):
            return uv
    return None


def import_mesh(mesh: trimesh.Trimesh) -> MeshBuffers:
    """
    Read vertex attributes and indices in input order.

    Meshes without texture coordinates get zero uvs.

    Args:
        mesh: Input trimesh object

    Returns:
        MeshBuffers with (N, 3) positions and normals, (N, 2) uvs
        and a flat index array of length 3 * faces
    """
    positions = np.asarray(mesh.vertices, dtype=float).reshape(-1, 3)
    if len(positions):
        normals = np.asarray(mesh.vertex_normals, dtype=float).reshape(-1, 3)
    else:
        normals = np.zeros((0, 3))

    uvs = _texture_uv(mesh)
    if uvs is None:
        uvs = np.zeros((len(positions), 2))

    indices = np.asarray(mesh.faces, dtype=np.int64).reshape(-1)
    return MeshBuffers(positions, normals, uvs, indices)


def export_mesh(template: trimesh.Trimesh, positions: np.ndarray,
                normals: np.ndarray, uvs: np.ndarray,
                faces: np.ndarray) -> trimesh.Trimesh:
    """
    Build the output mesh with the same attribute layout as `template`.

    The template's material and metadata are passed through untouched.
    """
    result = trimesh.Trimesh(vertices=positions,
                             faces=faces,
                             vertex_normals=normals if len(positions) else None,
                             process=False)

    if _texture_uv(template) is not None:
        result.visual = trimesh.visual.TextureVisuals(
            uv=uvs, material=template.visual.material)

    result.metadata.update(copy.deepcopy(template.metadata))
    return result
