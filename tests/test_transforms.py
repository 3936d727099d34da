# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import unittest

import numpy as np

from astrofile import (
    XY,
    Affine,
    Bin,
    Box,
    Crop,
    Flip,
    Float,
    Flop,
    Interval,
    InvalidArgumentError,
    OutOfRangeError,
    Resample,
    Rotate,
    TransformOptions,
)


class GeomTestCase(unittest.TestCase):
    """Tests for Interval and Box."""

    def test_box(self) -> None:
        box = Box.from_shape((3, 4, 5))
        self.assertEqual(box.shape, (4, 5))
        self.assertEqual(box.center, XY(2.5, 2.0))
        inner = Box.from_origin_extent(XY(1, 2), XY(3, 2))
        self.assertEqual(inner.origin, XY(1, 2))
        self.assertEqual(inner.shape, (2, 3))
        self.assertTrue(box.contains(inner))
        self.assertFalse(inner.contains(box))
        self.assertEqual(inner.slice_within(box), (slice(2, 4), slice(1, 4)))
        with self.assertRaises(InvalidArgumentError):
            Interval(3, 3)


class TransformTestCase(unittest.TestCase):
    """Tests for the geometric transforms applied to arrays and points."""

    def setUp(self) -> None:
        self.rng = np.random.default_rng(5)
        self.array = self.rng.integers(0, 1000, size=(100, 100)).astype(np.uint16)

    def test_crop_bounds(self) -> None:
        """Test that crops outside the image fail and a full-size crop is a
        no-op.
        """
        with self.assertRaises(OutOfRangeError):
            Crop(XY(90, 90), XY(20, 20)).validate(self.array.shape)
        with self.assertRaises(InvalidArgumentError):
            Crop(XY(0, 0), XY(0, 10)).validate(self.array.shape)
        full = Crop(XY(0, 0), XY(100, 100))
        full.validate(self.array.shape)
        result, validity = full.apply_to_array(self.array)
        np.testing.assert_array_equal(result, self.array)
        self.assertIsNone(validity)
        part = Crop(XY(10, 20), XY(30, 40))
        result, _ = part.apply_to_array(self.array)
        np.testing.assert_array_equal(result, self.array[20:60, 10:40])
        self.assertEqual(part.apply_to_points(15.5, 25.5, self.array.shape), XY(5.5, 5.5))
        self.assertTrue(part.is_translation(self.array.shape))

    def test_flip_flop(self) -> None:
        """Test that flip and flop are their own inverses."""
        for transform in (Flip(), Flop()):
            with self.subTest(transform=transform):
                once, _ = transform.apply_to_array(self.array)
                self.assertFalse(np.array_equal(once, self.array))
                twice, _ = transform.apply_to_array(once)
                np.testing.assert_array_equal(twice, self.array)
                self.assertFalse(transform.is_translation(self.array.shape))
        self.assertEqual(Flip().apply_to_points(10.0, 10.0, self.array.shape), XY(10.0, 90.0))
        self.assertEqual(Flop().apply_to_points(10.0, 10.0, self.array.shape), XY(90.0, 10.0))
        planes = np.stack([self.array, self.array + 1])
        flipped, _ = Flip().apply_to_array(planes)
        np.testing.assert_array_equal(flipped[1], self.array[::-1, :] + 1)

    def test_rotate_quarter_turn(self) -> None:
        """Test that a quarter turn moves pixels and points consistently."""
        array = np.zeros((100, 100), dtype=np.float32)
        array[10, 10] = 1.0
        rotate = Rotate(90.0)
        result, validity = rotate.apply_to_array(array)
        self.assertIsNone(validity)
        point = rotate.apply_to_points(10.5, 10.5, array.shape)
        self.assertAlmostEqual(point.x, 89.5)
        self.assertAlmostEqual(point.y, 10.5)
        self.assertEqual(result[int(point.y), int(point.x)], 1.0)
        self.assertEqual(result.sum(), 1.0)
        corner = rotate.apply_to_points(10.0, 10.0, array.shape)
        self.assertAlmostEqual(corner.x, 90.0)
        self.assertAlmostEqual(corner.y, 10.0)
        full, _ = Rotate(360.0).apply_to_array(array)
        np.testing.assert_array_equal(full, array)

    def test_rotate_interpolated(self) -> None:
        """Test that an arbitrary rotation keeps a source registered with the
        transformed point.
        """
        yy, xx = np.mgrid[0:64, 0:64] + 0.5
        array = np.exp(-((xx - 20.0) ** 2 + (yy - 40.0) ** 2) / (2 * 2.0**2))
        rotate = Rotate(30.0)
        result, validity = rotate.apply_to_array(array, TransformOptions(order=3))
        assert validity is not None
        self.assertTrue(validity[32, 32])
        self.assertFalse(validity.all())
        expected = rotate.apply_to_points(20.0, 40.0, array.shape)
        total = result.sum()
        cx = (result * xx).sum() / total
        cy = (result * yy).sum() / total
        self.assertAlmostEqual(cx, expected.x, delta=0.05)
        self.assertAlmostEqual(cy, expected.y, delta=0.05)

    def test_resample(self) -> None:
        with self.assertRaises(OutOfRangeError):
            Resample(200, 50).validate(self.array.shape)
        with self.assertRaises(InvalidArgumentError):
            Resample(0, 50).validate(self.array.shape)
        constant = np.full((100, 100), 7.0)
        resample = Resample(50, 25)
        result, _ = resample.apply_to_array(constant)
        self.assertEqual(result.shape, (25, 50))
        np.testing.assert_allclose(result, 7.0)
        self.assertEqual(resample.apply_to_points(100.0, 100.0, constant.shape), XY(50.0, 25.0))

    def test_bin(self) -> None:
        array = np.arange(16, dtype=np.float64).reshape(4, 4)
        result, _ = Bin(2).apply_to_array(array)
        np.testing.assert_array_equal(result, [[2.5, 4.5], [10.5, 12.5]])
        result, _ = Bin(2).apply_to_array(array.astype(np.int32))
        self.assertEqual(result.dtype, np.int32)
        for factor in (0, -2, 3, 2.0):
            with self.subTest(factor=factor):
                with self.assertRaises(InvalidArgumentError):
                    Bin(factor).validate(array.shape)  # type: ignore[arg-type]

    def test_affine(self) -> None:
        """Test that an identity affine transform leaves pixels unchanged and
        a pure shift moves them by whole pixels.
        """
        array = self.array.astype(np.float64)
        identity = Affine(XY(50.0, 50.0))
        result, validity = identity.apply_to_array(array)
        np.testing.assert_allclose(result, array)
        assert validity is not None
        self.assertTrue(validity.all())
        shift = Affine(XY(50.0, 50.0), offset=XY(3.0, -2.0))
        result, validity = shift.apply_to_array(array, TransformOptions(order=0))
        np.testing.assert_allclose(result[10:90, 13:90], array[12:92, 10:87])
        assert validity is not None
        self.assertFalse(validity[:, :3].any())
        with self.assertRaises(InvalidArgumentError):
            Affine(XY(0.0, 0.0), scale=0.0).validate(array.shape)
        half = Affine(XY(50.0, 50.0), scale=0.5)
        self.assertEqual(half.apply_to_points(60.0, 50.0, array.shape), XY(55.0, 50.0))

    def test_float(self) -> None:
        array = np.ones((10, 20), dtype=np.int16)
        transform = Float(30, 14, background=-1)
        with self.assertRaises(OutOfRangeError):
            Float(10, 10).validate(array.shape)
        result, validity = transform.apply_to_array(array)
        assert validity is not None
        self.assertEqual(result.shape, (14, 30))
        self.assertEqual(result.dtype, np.int16)
        self.assertEqual(result[2:12, 5:25].sum(), 200)
        self.assertEqual(result[0, 0], -1)
        self.assertEqual(validity.sum(), 200)
        self.assertEqual(transform.apply_to_points(0.0, 0.0, array.shape), XY(5.0, 2.0))
        self.assertTrue(transform.is_translation(array.shape))


if __name__ == "__main__":
    unittest.main()
