"""Tests for scattered-point gridding and surface approximation guards."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock, patch

import numpy as np
import pytest

from kernel.surface import approximate_surface, continuity_for, grid_from_scattered


class TestGridFromScattered:
    """Binning of scattered points onto a regular grid."""

    def test_shape_and_cell_centres(self):
        points = np.array([[0, 0, 1], [10, 0, 1], [0, 10, 1], [10, 10, 1]], dtype=float)

        grid = grid_from_scattered(points, 2, 2)

        assert grid.shape == (2, 2, 3)
        np.testing.assert_allclose(grid[0, 0, :2], [2.5, 2.5])
        np.testing.assert_allclose(grid[1, 1, :2], [7.5, 7.5])

    def test_mean_z_per_cell(self):
        points = np.array([
            [0, 0, 1], [1, 1, 3],  # first cell
            [10, 10, 7],
            [10, 0, 5],
            [0, 10, 2],
        ], dtype=float)

        grid = grid_from_scattered(points, 2, 2)

        assert grid[0, 0, 2] == pytest.approx(2.0)
        assert grid[1, 1, 2] == pytest.approx(7.0)
        assert grid[1, 0, 2] == pytest.approx(5.0)
        assert grid[0, 1, 2] == pytest.approx(2.0)

    def test_empty_cell_takes_neighbour_mean(self):
        # Nothing falls in the centre cell of a 3x3 grid
        points = np.array([[x, y, 4.0] for x in (0, 9) for y in (0, 9)], dtype=float)

        grid = grid_from_scattered(points, 3, 3)

        assert grid[1, 1, 2] == pytest.approx(4.0)

    def test_isolated_empty_cell_takes_global_mean(self):
        # Two points in opposite corners of a 4x4 grid; cell (2, 0) has no populated neighbour
        points = np.array([[0, 0, 2.0], [12, 12, 6.0]], dtype=float)

        grid = grid_from_scattered(points, 4, 4)

        assert grid[2, 0, 2] == pytest.approx(4.0)
        assert grid[1, 1, 2] == pytest.approx(2.0)

    def test_flat_extent(self):
        points = np.array([[5, 0, 1], [5, 10, 3]], dtype=float)

        grid = grid_from_scattered(points, 2, 2)

        assert np.isfinite(grid).all()

    def test_no_points(self):
        with pytest.raises(ValueError, match="zero points"):
            grid_from_scattered(np.zeros((0, 3)), 4, 4)

    def test_grid_too_small(self):
        with pytest.raises(ValueError, match="at least 2x2"):
            grid_from_scattered(np.ones((3, 3)), 1, 4)


class TestApproximateSurfaceGuards:
    """Inputs rejected before any kernel call."""

    def test_single_row_is_not_done(self):
        fit = approximate_surface([[(0, 0, 0), (1, 0, 0)]])

        assert fit.is_done is False
        assert "smaller than 2x2" in fit.message

    def test_malformed_points_are_not_done(self):
        fit = approximate_surface([[(0, 0), (1, 0)], [(0, 1), (1, 1)]])

        assert fit.is_done is False
        assert "rows of XYZ" in fit.message

    @patch("kernel.surface.occ")
    def test_missing_array_class_is_not_done(self, mock_occ):
        modules = {"TColgp": SimpleNamespace()}
        mock_occ.side_effect = lambda name: modules.get(name, Mock())

        fit = approximate_surface([[(0, 0, 0), (1, 0, 0)], [(0, 1, 0), (1, 1, 1)]])

        assert fit.is_done is False
        assert "TColgp_Array2OfPnt" in fit.message

    @patch("kernel.surface.occ")
    def test_continuity_follows_degree(self, mock_occ):
        geom_api = Mock()
        modules = {"GeomAPI": geom_api, "GeomAbs": SimpleNamespace(GeomAbs_C0="C0", GeomAbs_C1="C1", GeomAbs_C2="C2")}
        mock_occ.side_effect = lambda name: modules.get(name, Mock())
        grid = [[(x, y, 0.0) for y in range(3)] for x in range(3)]

        approximate_surface(grid)

        points, deg_min, deg_max, continuity, _ = geom_api.GeomAPI_PointsToBSplineSurface.call_args.args
        assert (deg_min, deg_max, continuity) == (2, 2, "C1")


@pytest.mark.parametrize("degree,expected", [
    (1, "GeomAbs_C0"),
    (2, "GeomAbs_C1"),
    (3, "GeomAbs_C2"),
    (8, "GeomAbs_C2"),
])
def test_continuity_for(degree, expected):
    assert continuity_for(degree) == expected


@pytest.mark.occt
class TestRealApproximation:
    """Surface fitting against a real OCCT binding."""

    def test_four_point_patch(self, skip_if_no_occt):
        from bim2se.config import DEFAULT_SURFACE_POINTS

        fit = approximate_surface(DEFAULT_SURFACE_POINTS)

        assert fit.is_done
        assert fit.face is not None
        assert (fit.degree_min, fit.degree_max) == (1, 1)

    def test_gridded_terrain(self, skip_if_no_occt):
        xs, ys = np.meshgrid(np.linspace(0, 100, 20), np.linspace(0, 80, 20))
        zs = 5 + 0.05 * xs + 0.02 * ys
        points = np.stack([xs.ravel(), ys.ravel(), zs.ravel()], axis=1)

        fit = approximate_surface(grid_from_scattered(points, 6, 6))

        assert fit.is_done
        assert fit.degree_max == 5
