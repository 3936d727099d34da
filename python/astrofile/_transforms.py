# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Stateless geometric transforms for image payloads.

Each transform describes a mapping of the continuous pixel frame,
``p' = A p + t``, together with the matching operation on pixel arrays.  The
same object is applied to the pixels, the coordinate solution, and any
observation positions registered to the image, so all three stay in step.

Pixel ``(i, j)`` covers ``[i, i + 1) x [j, j + 1)``; arrays are indexed
``[..., row, column]`` with row 0 at the bottom.
"""

from __future__ import annotations

__all__ = (
    "Affine",
    "Bin",
    "Crop",
    "Flip",
    "Float",
    "Flop",
    "GeometricTransform",
    "Resample",
    "Rotate",
)

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import final

import numpy as np
from scipy import ndimage

from ._errors import InvalidArgumentError, OutOfRangeError
from ._geom import XY, Box
from ._options import TransformOptions

_HALF = np.array([0.5, 0.5])


class GeometricTransform(ABC):
    """Base class for transforms that change pixel extents or orientation."""

    name: str = "transform"

    @abstractmethod
    def validate(self, shape: Sequence[int]) -> None:
        """Check that the transform can be applied to an array of the given
        ``(..., height, width)`` shape.

        Raises
        ------
        OutOfRangeError
            Raised if the requested region or size falls outside the image.
        InvalidArgumentError
            Raised if a parameter is malformed.
        """
        raise NotImplementedError()

    @abstractmethod
    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        """Return the ``(height, width)`` produced from an input shape."""
        raise NotImplementedError()

    @abstractmethod
    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(A, t)`` such that ``p' = A @ p + t`` maps input points
        ``(x, y)`` to output points.
        """
        raise NotImplementedError()

    def is_translation(self, shape: Sequence[int]) -> bool:
        """Whether the transform only shifts points (and so leaves a
        coordinate solution exact).
        """
        a, _ = self.matrix(shape)
        return bool(np.array_equal(a, np.identity(2)))

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        """Transform a ``(height, width)`` or ``(planes, height, width)``
        pixel array.

        Returns
        -------
        array
            New pixel array with the same dtype.
        validity
            Boolean ``(height, width)`` array that is `True` where output
            pixels were mapped from inside the input, or `None` if every
            output pixel is valid.
        """
        a, t = self.matrix(array.shape)
        return _interpolate(array, a, t, self.output_shape(array.shape), options)

    def apply_to_points[T: np.ndarray | float](self, x: T, y: T, shape: Sequence[int]) -> XY[T]:
        """Map points of the input frame to the output frame."""
        a, t = self.matrix(shape)
        x_arr = np.asarray(x, dtype=float)
        y_arr = np.asarray(y, dtype=float)
        new_x = a[0, 0] * x_arr + a[0, 1] * y_arr + t[0]
        new_y = a[1, 0] * x_arr + a[1, 1] * y_arr + t[1]
        if np.ndim(x) == 0:
            return XY(float(new_x), float(new_y))  # type: ignore[arg-type]
        return XY(new_x, new_y)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        params = ", ".join(f"{k.lstrip('_')}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({params})"


@final
class Crop(GeometricTransform):
    """Extract a rectangular region.

    Parameters
    ----------
    origin
        Lower-left pixel ``(x, y)`` of the region.
    extent
        ``(width, height)`` of the region.
    """

    name = "crop"

    def __init__(self, origin: XY[int], extent: XY[int]):
        self._origin = XY(int(origin[0]), int(origin[1]))
        self._extent = XY(int(extent[0]), int(extent[1]))

    def validate(self, shape: Sequence[int]) -> None:
        if self._extent.x <= 0 or self._extent.y <= 0:
            raise InvalidArgumentError(f"Crop extent must be positive; got {self._extent}.")
        region = Box.from_origin_extent(self._origin, self._extent)
        if not Box.from_shape(shape).contains(region):
            raise OutOfRangeError(f"Crop region {region} is outside the image (shape {tuple(shape)}).")

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (self._extent.y, self._extent.x)

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.identity(2), -np.array(self._origin, dtype=float)

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        region = Box.from_origin_extent(self._origin, self._extent)
        return array[(..., *region.slice_within(Box.from_shape(array.shape)))].copy(), None


@final
class Flip(GeometricTransform):
    """Mirror the image about its horizontal axis (top to bottom)."""

    name = "flip"

    def validate(self, shape: Sequence[int]) -> None:
        pass

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (shape[-2], shape[-1])

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.diag([1.0, -1.0]), np.array([0.0, shape[-2]])

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        return array[..., ::-1, :].copy(), None


@final
class Flop(GeometricTransform):
    """Mirror the image about its vertical axis (left to right)."""

    name = "flop"

    def validate(self, shape: Sequence[int]) -> None:
        pass

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (shape[-2], shape[-1])

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.diag([-1.0, 1.0]), np.array([shape[-1], 0.0])

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        return array[..., :, ::-1].copy(), None


@final
class Rotate(GeometricTransform):
    """Rotate the image counter-clockwise about its center, keeping its
    extents.

    Parameters
    ----------
    angle
        Rotation angle in degrees.
    """

    name = "rotate"

    def __init__(self, angle: float):
        if not math.isfinite(angle):
            raise InvalidArgumentError(f"Rotation angle must be finite; got {angle}.")
        self._angle = float(angle)

    @property
    def angle(self) -> float:
        """Rotation angle in degrees."""
        return self._angle

    def validate(self, shape: Sequence[int]) -> None:
        pass

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (shape[-2], shape[-1])

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        rotation = _rotation_matrix(self._angle)
        center = np.array([shape[-1] / 2.0, shape[-2] / 2.0])
        return rotation, center - rotation @ center

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        quarter_turns, remainder = divmod(self._angle, 90.0)
        if remainder == 0.0:
            k = int(quarter_turns) % 4
            if k % 2 == 0 or array.shape[-1] == array.shape[-2]:
                # Counter-clockwise with row 0 at the bottom is np.rot90's
                # clockwise direction.
                return np.rot90(array, k=-k, axes=(-2, -1)).copy(), None
        return super().apply_to_array(array, options)


@final
class Resample(GeometricTransform):
    """Resample the image onto a new pixel grid covering the same area.

    Parameters
    ----------
    width
        New width in pixels; may not exceed the current width.
    height
        New height in pixels; may not exceed the current height.
    """

    name = "resample"

    def __init__(self, width: int, height: int):
        self._width = int(width)
        self._height = int(height)

    def validate(self, shape: Sequence[int]) -> None:
        if self._width <= 0 or self._height <= 0:
            raise InvalidArgumentError(f"Resample size must be positive; got {self._width}x{self._height}.")
        if self._width > shape[-1] or self._height > shape[-2]:
            raise OutOfRangeError(
                f"Resample size {self._width}x{self._height} exceeds the image "
                f"({shape[-1]}x{shape[-2]})."
            )

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (self._height, self._width)

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.diag([self._width / shape[-1], self._height / shape[-2]]), np.zeros(2)


@final
class Bin(GeometricTransform):
    """Average square blocks of pixels.

    Parameters
    ----------
    factor
        Number of pixels along each side of a block; must divide both the
        width and height.
    """

    name = "bin"

    def __init__(self, factor: int):
        self._factor = factor

    def validate(self, shape: Sequence[int]) -> None:
        factor = self._factor
        if isinstance(factor, bool) or not isinstance(factor, int | np.integer) or factor <= 0:
            raise InvalidArgumentError(f"Bin factor must be a positive integer; got {factor!r}.")
        if shape[-1] % factor or shape[-2] % factor:
            raise InvalidArgumentError(
                f"Bin factor {factor} does not divide the image ({shape[-1]}x{shape[-2]})."
            )

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (shape[-2] // self._factor, shape[-1] // self._factor)

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.identity(2) / self._factor, np.zeros(2)

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        f = int(self._factor)
        height, width = self.output_shape(array.shape)
        blocks = array.reshape(*array.shape[:-2], height, f, width, f)
        return _restore_dtype(blocks.mean(axis=(-3, -1)), array.dtype), None


@final
class Affine(GeometricTransform):
    """Rotate, scale, and translate the image about a center point, keeping
    its extents.

    Parameters
    ----------
    center
        Point ``(x, y)`` that rotation and scaling are performed about.
    offset
        Translation ``(dx, dy)`` applied after rotation and scaling.
    angle
        Counter-clockwise rotation in degrees.
    scale
        Isotropic scale factor.
    pixel_size
        Additional per-axis ``(x, y)`` scale factors, used to correct for
        non-square pixels.
    """

    name = "affine"

    def __init__(
        self,
        center: XY[float],
        offset: XY[float] = XY(0.0, 0.0),
        angle: float = 0.0,
        scale: float = 1.0,
        pixel_size: XY[float] = XY(1.0, 1.0),
    ):
        self._center = XY(float(center[0]), float(center[1]))
        self._offset = XY(float(offset[0]), float(offset[1]))
        self._angle = float(angle)
        self._scale = float(scale)
        self._pixel_size = XY(float(pixel_size[0]), float(pixel_size[1]))

    def validate(self, shape: Sequence[int]) -> None:
        if not (self._scale > 0 and self._pixel_size.x > 0 and self._pixel_size.y > 0):
            raise InvalidArgumentError(
                f"Scale ({self._scale}) and pixel size {self._pixel_size} must be positive."
            )
        values = (*self._center, *self._offset, self._angle)
        if not all(math.isfinite(v) for v in values):
            raise InvalidArgumentError("Affine transform parameters must be finite.")

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (shape[-2], shape[-1])

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        a = _rotation_matrix(self._angle) @ np.diag(
            [self._scale * self._pixel_size.x, self._scale * self._pixel_size.y]
        )
        center = np.array(self._center)
        return a, center + np.array(self._offset) - a @ center


@final
class Float(GeometricTransform):
    """Place the image at the center of a larger canvas.

    Parameters
    ----------
    width
        Canvas width; may not be smaller than the current width.
    height
        Canvas height; may not be smaller than the current height.
    background
        Value for canvas pixels not covered by the image.
    """

    name = "float"

    def __init__(self, width: int, height: int, background: float = 0.0):
        self._width = int(width)
        self._height = int(height)
        self._background = background

    def validate(self, shape: Sequence[int]) -> None:
        if self._width < shape[-1] or self._height < shape[-2]:
            raise OutOfRangeError(
                f"Canvas {self._width}x{self._height} is smaller than the image ({shape[-1]}x{shape[-2]})."
            )

    def output_shape(self, shape: Sequence[int]) -> tuple[int, int]:
        return (self._height, self._width)

    def matrix(self, shape: Sequence[int]) -> tuple[np.ndarray, np.ndarray]:
        return np.identity(2), np.array(self._origin(shape), dtype=float)

    def apply_to_array(
        self, array: np.ndarray, options: TransformOptions = TransformOptions.DEFAULT
    ) -> tuple[np.ndarray, np.ndarray | None]:
        result = np.full((*array.shape[:-2], self._height, self._width), self._background, dtype=array.dtype)
        origin = self._origin(array.shape)
        region = Box.from_origin_extent(origin, XY(array.shape[-1], array.shape[-2]))
        result[(..., *region.slice_within(Box.from_shape(result.shape)))] = array
        validity = np.zeros((self._height, self._width), dtype=bool)
        validity[region.slice_within(Box.from_shape(result.shape))] = True
        return result, validity

    def _origin(self, shape: Sequence[int]) -> XY[int]:
        return XY((self._width - shape[-1]) // 2, (self._height - shape[-2]) // 2)


def _rotation_matrix(angle: float) -> np.ndarray:
    theta = math.radians(angle)
    # Snap exact quarter turns so registered points do not drift.
    c, s = round(math.cos(theta), 15), round(math.sin(theta), 15)
    return np.array([[c, -s], [s, c]])


def _restore_dtype(result: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(result), info.min, info.max).astype(dtype)
    return result.astype(dtype, copy=False)


def _interpolate(
    array: np.ndarray,
    a: np.ndarray,
    t: np.ndarray,
    output_shape: tuple[int, int],
    options: TransformOptions,
) -> tuple[np.ndarray, np.ndarray]:
    # scipy maps output array indices to input array indices, in (row, col)
    # order, with pixel centers at integer indices.
    a_inv = np.linalg.inv(a)
    b = a @ _HALF + t - _HALF
    matrix_rc = a_inv[::-1, ::-1]
    offset_rc = (-a_inv @ b)[::-1]
    planes = array.reshape(-1, *array.shape[-2:])
    result = np.stack(
        [
            ndimage.affine_transform(
                plane.astype(np.float64),
                matrix_rc,
                offset=offset_rc,
                output_shape=output_shape,
                order=options.order,
                mode="constant",
                cval=options.fill_value,
            )
            for plane in planes
        ]
    ).reshape(*array.shape[:-2], *output_shape)
    validity = (
        ndimage.affine_transform(
            np.ones(array.shape[-2:]),
            matrix_rc,
            offset=offset_rc,
            output_shape=output_shape,
            order=0,
            mode="constant",
            cval=0.0,
        )
        > 0.5
    )
    return _restore_dtype(result, array.dtype), validity
