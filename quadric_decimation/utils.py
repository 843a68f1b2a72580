"""
Utility Functions
=================

Mesh loading, saving and sample mesh creation.
"""

import logging
from typing import Optional

import numpy as np
import trimesh

logger = logging.getLogger(__name__)

SAMPLE_MESHES = ("sphere", "torus", "grid", "quad", "cylinder")


def load_mesh(path: str) -> trimesh.Trimesh:
    """
    Load a mesh from file.

    Supports OBJ, PLY, STL, OFF, GLB and the other formats trimesh reads.
    Scenes are concatenated into a single mesh. Vertices are not merged,
    so per-vertex normals and uvs survive.

    Raises:
        ValueError: The file holds no triangle geometry
    """
    loaded = trimesh.load(path, process=False)

    if isinstance(loaded, trimesh.Scene):
        meshes = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not meshes:
            raise ValueError(f"No triangle meshes found in {path}")
        loaded = trimesh.util.concatenate(meshes)

    if not isinstance(loaded, trimesh.Trimesh):
        raise ValueError(f"{path} does not contain a triangle mesh")

    logger.info("Loaded %s: %d vertices, %d faces",
                path, len(loaded.vertices), len(loaded.faces))
    return loaded


def save_mesh(mesh: trimesh.Trimesh, path: str):
    mesh.export(path)
    logger.info("Saved mesh to %s", path)


def create_quad(size: float = 1.0) -> trimesh.Trimesh:
    """Flat square of two triangles sharing the (0, 2) diagonal."""
    vertices = np.array([[0, 0, 0], [size, 0, 0], [size, size, 0], [0, size, 0]], dtype=float)
    faces = np.array([[0, 1, 2], [0, 2, 3]])
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


def create_mesh_with_boundary(rows: int = 20, cols: int = 20,
                              noise: float = 0.01,
                              seed: Optional[int] = 0) -> trimesh.Trimesh:
    """
    Open wavy grid surface for exercising border preservation.

    Args:
        rows: Number of vertex rows
        cols: Number of vertex columns
        noise: Standard deviation of the random offset added to vertices
        seed: Seed for the noise
    """
    x = np.linspace(-1, 1, cols)
    y = np.linspace(-1, 1, rows)
    X, Y = np.meshgrid(x, y)
    Z = 0.2 * np.sin(3 * X) * np.cos(3 * Y)
    vertices = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])

    if noise:
        rng = np.random.default_rng(seed)
        vertices += rng.normal(scale=noise, size=vertices.shape)

    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            faces.append([idx, idx + 1, idx + cols])
            faces.append([idx + 1, idx + cols + 1, idx + cols])

    return trimesh.Trimesh(vertices=vertices, faces=np.array(faces), process=False)


def create_sample_mesh(mesh_type: str = "sphere") -> trimesh.Trimesh:
    """
    Create a sample mesh.

    Args:
        mesh_type: One of SAMPLE_MESHES

    Raises:
        ValueError: Unknown mesh type
    """
    if mesh_type == "sphere":
        mesh = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    elif mesh_type == "torus":
        mesh = trimesh.creation.torus(major_radius=1.0, minor_radius=0.3,
                                      major_sections=48, minor_sections=24)
    elif mesh_type == "grid":
        mesh = create_mesh_with_boundary()
    elif mesh_type == "quad":
        mesh = create_quad()
    elif mesh_type == "cylinder":
        mesh = trimesh.creation.cylinder(radius=0.5, height=2.0, sections=48)
    else:
        raise ValueError(f"Unknown sample mesh {mesh_type!r}, expected one of {SAMPLE_MESHES}")

    logger.info("Created %s mesh: %d vertices, %d faces",
                mesh_type, len(mesh.vertices), len(mesh.faces))
    return mesh


def get_mesh_info(mesh: trimesh.Trimesh) -> dict:
    """Basic counts and topology flags of a mesh."""
    info = {
        'vertices': len(mesh.vertices),
        'faces': len(mesh.faces),
        'is_watertight': mesh.is_watertight,
        'euler_number': mesh.euler_number,
        'area': float(mesh.area),
    }
    info['volume'] = float(mesh.volume) if mesh.is_watertight else None
    return info


def print_mesh_info(mesh: trimesh.Trimesh, name: str = "Mesh"):
    info = get_mesh_info(mesh)
    print(f"\n{name} Information:")
    print("-" * 40)
    print(f"  Vertices:        {info['vertices']}")
    print(f"  Faces:           {info['faces']}")
    print(f"  Watertight:      {info['is_watertight']}")
    print(f"  Euler Number:    {info['euler_number']}")
    print(f"  Surface Area:    {info['area']:.6f}")
    if info['volume'] is not None:
        print(f"  Volume:          {info['volume']:.6f}")
