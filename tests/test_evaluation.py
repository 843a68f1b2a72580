"""Tests for the evaluation helpers and the command line."""

import numpy as np
import pytest
import trimesh

from main import main
from quadric_decimation.evaluation import MeshEvaluator, border_edges, vertex_errors
from quadric_decimation.mesh_decimator import MeshDecimator


class TestMeshEvaluator:

    def test_identical_meshes_have_zero_distance(self, small_sphere):
        evaluator = MeshEvaluator(sample_points=500)
        hausdorff, forward, backward = evaluator.hausdorff_distance(small_sphere, small_sphere)
        assert hausdorff == forward == backward == 0.0
        assert evaluator.chamfer_distance(small_sphere, small_sphere) == 0.0

    def test_scaled_mesh_distance(self, small_sphere):
        larger = small_sphere.copy()
        larger.apply_scale(1.5)
        hausdorff, _, _ = MeshEvaluator(sample_points=500).hausdorff_distance(small_sphere, larger)
        assert hausdorff >= 0.4

    def test_flipped_faces(self, small_sphere):
        evaluator = MeshEvaluator()
        assert evaluator.flipped_faces(small_sphere, small_sphere) == 0

        inverted = trimesh.Trimesh(vertices=small_sphere.vertices,
                                   faces=small_sphere.faces[:, ::-1], process=False)
        assert evaluator.flipped_faces(small_sphere, inverted) == len(small_sphere.faces)

    def test_report(self, small_sphere):
        evaluator = MeshEvaluator(sample_points=200)
        metrics = evaluator.compute_all_metrics(small_sphere, small_sphere)
        metrics['runtime'] = 0.5

        assert metrics['face_reduction_ratio'] == 1.0
        assert metrics['flipped_faces'] == 0
        assert metrics['original_border_edges'] == 0
        report = evaluator.generate_report(metrics)
        assert "Hausdorff Distance" in report
        assert "Runtime" in report


class TestHelpers:

    def test_border_edges_of_quad(self, quad):
        assert border_edges(quad) == {(0, 1), (1, 2), (2, 3), (0, 3)}

    def test_vertex_errors_vanish_on_source_mesh(self, small_sphere):
        errors = vertex_errors(small_sphere)
        assert errors.shape == (len(small_sphere.vertices),)
        np.testing.assert_allclose(errors, 0.0, atol=1e-12)

    def test_vertex_errors_against_reference(self, small_sphere):
        larger = small_sphere.copy()
        larger.apply_scale(1.5)
        errors = vertex_errors(larger, small_sphere)
        assert errors.shape == (len(larger.vertices),)
        assert (errors > 0.1).all()

    def test_mean_vertex_error_metric(self, sphere):
        simplified = MeshDecimator().simplify(sphere, 0.3)
        evaluator = MeshEvaluator(sample_points=200)

        same = evaluator.compute_all_metrics(sphere, sphere)
        assert same['mean_vertex_error'] == pytest.approx(0.0, abs=1e-12)
        metrics = evaluator.compute_all_metrics(sphere, simplified)
        assert 0.0 < metrics['mean_vertex_error'] < 1.0
        assert "Mean Vertex Error" in evaluator.generate_report(metrics)


class TestCommandLine:

    def test_simplifies_sample(self, tmp_path, capsys):
        assert main(["--sample", "quad", "-r", "0.5", "-a", "3", "-o", str(tmp_path)]) == 0
        output = tmp_path / "quad_simplified_50pct.ply"
        assert output.exists()
        assert len(trimesh.load(str(output), process=False).faces) == 1
        assert "Faces: 2 -> 1" in capsys.readouterr().out

    def test_rejects_bad_ratio(self, tmp_path):
        assert main(["--sample", "quad", "-r", "2.0", "-o", str(tmp_path)]) == 2

    def test_missing_mesh_file(self, tmp_path):
        assert main(["--mesh", str(tmp_path / "missing.obj"), "-o", str(tmp_path)]) == 1
