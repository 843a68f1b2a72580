import pytest
import trimesh

from quadric_decimation.utils import create_mesh_with_boundary, create_quad


@pytest.fixture
def quad():
    return create_quad()


@pytest.fixture
def sphere():
    return trimesh.creation.icosphere(subdivisions=3, radius=1.0)


@pytest.fixture
def small_sphere():
    return trimesh.creation.icosphere(subdivisions=2, radius=1.0)


@pytest.fixture
def grid():
    return create_mesh_with_boundary(rows=8, cols=8, noise=0.0)
