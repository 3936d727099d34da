# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import unittest

import astropy.units as u
import astropy.wcs
import numpy as np
from astropy.coordinates import SkyCoord

from astrofile import (
    XY,
    CoordinateSolution,
    Crop,
    Flip,
    InvalidArgumentError,
    KeywordStore,
    Rotate,
)


def make_solution() -> CoordinateSolution:
    return CoordinateSolution.from_linear(
        XY(50.0, 50.0),
        SkyCoord(ra=150.0 * u.deg, dec=20.0 * u.deg),
        1.5 * u.arcsec,
        rotation=10.0 * u.deg,
    )


class CoordinateSolutionTestCase(unittest.TestCase):
    """Tests for CoordinateSolution."""

    def assert_sky_close(self, a: SkyCoord, b: SkyCoord, tolerance: u.Quantity = 1e-3 * u.arcsec) -> None:
        self.assertLess(a.separation(b).to_value(u.arcsec), tolerance.to_value(u.arcsec))

    def test_linear(self) -> None:
        """Test the terms and round trips of a linear solution."""
        solution = make_solution()
        self.assertTrue(solution.is_present)
        self.assertFalse(solution.is_stale)
        self.assertFalse(solution.has_distortion)
        self.assertAlmostEqual(solution.scale.to_value(u.arcsec), 1.5)
        self.assertAlmostEqual(solution.rotation.to_value(u.deg), 10.0)
        self.assertEqual(solution.reference_pixel, XY(50.0, 50.0))
        self.assert_sky_close(solution.pixel_to_sky(50.0, 50.0), SkyCoord(ra=150.0 * u.deg, dec=20.0 * u.deg))
        sky = solution.pixel_to_sky(np.array([0.0, 10.0, 90.0]), np.array([5.0, 70.0, 99.0]))
        back = solution.sky_to_pixel(sky)
        np.testing.assert_allclose(back.x, [0.0, 10.0, 90.0], atol=1e-6)
        np.testing.assert_allclose(back.y, [5.0, 70.0, 99.0], atol=1e-6)
        with self.assertRaises(InvalidArgumentError):
            CoordinateSolution.from_linear(XY(0.0, 0.0), sky[0], 1.0 * u.arcsec, parity=0)
        with self.assertRaises(InvalidArgumentError):
            CoordinateSolution(astropy.wcs.WCS(naxis=2))

    def test_keywords(self) -> None:
        """Test writing a solution to keywords and deriving it back."""
        solution = make_solution()
        store = KeywordStore()
        store.write("OBJECT", "field")
        solution.to_keywords(store)
        self.assertEqual(store.read("CTYPE1"), "RA---TAN")
        self.assertAlmostEqual(store.read("CRPIX1"), 50.5)
        derived = CoordinateSolution.from_keywords(store)
        assert derived is not None
        for point in [XY(0.0, 0.0), XY(33.0, 81.0)]:
            self.assert_sky_close(derived.pixel_to_sky(*point), solution.pixel_to_sky(*point))
        self.assertIsNone(CoordinateSolution.from_keywords(KeywordStore()))
        solution.to_keywords(store)
        self.assertEqual(store.read("OBJECT"), "field")

    def test_translation(self) -> None:
        """Test that a translation keeps the solution exact and fresh."""
        solution = make_solution()
        shape = (100, 100)
        crop = Crop(XY(10, 20), XY(50, 50))
        moved = solution.transformed(*crop.matrix(shape))
        self.assertFalse(moved.is_stale)
        self.assert_sky_close(moved.pixel_to_sky(5.0, 5.0), solution.pixel_to_sky(15.0, 25.0))

    def test_rotation(self) -> None:
        """Test that a rotation follows the pixels but is flagged stale."""
        solution = make_solution()
        shape = (100, 100)
        for transform in [Rotate(90.0), Rotate(33.0), Flip()]:
            with self.subTest(transform=transform):
                moved = solution.transformed(*transform.matrix(shape))
                self.assertTrue(moved.is_stale)
                self.assertFalse(solution.is_stale)
                for x, y in [(10.0, 10.0), (70.0, 25.0)]:
                    new = transform.apply_to_points(x, y, shape)
                    self.assert_sky_close(moved.pixel_to_sky(new.x, new.y), solution.pixel_to_sky(x, y))
        flipped = solution.transformed(*Flip().matrix(shape))
        self.assertAlmostEqual(flipped.scale.to_value(u.arcsec), 1.5)
        explicit = solution.transformed(*Rotate(90.0).matrix(shape), stale=False)
        self.assertFalse(explicit.is_stale)
        solution.mark_stale()
        self.assertTrue(solution.is_stale)


if __name__ == "__main__":
    unittest.main()
