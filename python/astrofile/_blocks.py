# This file is part of astrofile.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "AsciiTableBlock",
    "BinTableBlock",
    "Block",
    "BlockKind",
    "ImageBlock",
    "TableBlock",
)

import enum
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Any, ClassVar, Self, final

import astropy.table
import numpy as np
import numpy.typing as npt

from ._dtypes import KeywordValue, bitpix_for_dtype
from ._errors import (
    InconsistentStateError,
    InvalidArgumentError,
    NotFoundError,
    OutOfRangeError,
)
from ._geom import XY
from ._keywords import Keyword, KeywordStore, is_reserved
from ._options import CentroidOptions, TransformOptions
from ._render import PlaneRenderParameters, Renderer, RenderMode, TransferFunction
from ._solution import CoordinateSolution, clear_keywords
from ._transforms import Affine, Bin, Crop, Flip, Float, Flop, GeometricTransform, Resample, Rotate

if TYPE_CHECKING:
    from astropy.coordinates import SkyCoord

    from ._registry import DecodedRecord

_LOG = getLogger(__name__)

_SCALING_NAMES = ("BSCALE", "BZERO")


class BlockKind(enum.StrEnum):
    """Enumeration of the block variants a file may hold."""

    IMAGE = "IMAGE"
    ASCII_TABLE = "TABLE"
    BIN_TABLE = "BINTABLE"
    ASTROMETRY = "ASTROMETRY"
    PHOTOMETRY = "PHOTOMETRY"


class Block(ABC):
    """Base class for one self-contained unit of a file: a keyword store plus
    a kind-specific payload.

    Parameters
    ----------
    keywords, optional
        Keyword store or entries to take ownership of.

    Notes
    -----
    The set of kinds is closed (see `BlockKind`).  Operations that only make
    sense for some kinds live on those subclasses; `AstroFile` raises
    `UnsupportedOperationError` when they are requested of another kind.
    """

    kind: ClassVar[BlockKind]

    def __init__(self, keywords: KeywordStore | Iterable[Keyword] | None = None):
        if isinstance(keywords, KeywordStore):
            self._keywords = keywords
        else:
            self._keywords = KeywordStore(keywords or ())
        self._keywords.set_validator(self._validate_reserved)

    @property
    def keywords(self) -> KeywordStore:
        """The block's keyword store (`KeywordStore`)."""
        return self._keywords

    @property
    def name(self) -> str:
        """Value of the ``EXTNAME`` keyword, or an empty string."""
        return str(self._keywords.get("EXTNAME", ""))

    @abstractmethod
    def copy(self) -> Self:
        """Return a deep copy of the block."""
        raise NotImplementedError()

    @abstractmethod
    def _reserved_values(self) -> dict[str, int]:
        """Return the values the shape-describing keywords must have."""
        raise NotImplementedError()

    def _scaling_values(self) -> dict[str, float]:
        """Return the values ``BSCALE`` and ``BZERO`` must have if present,
        or an empty `dict` if the payload has no pixel scaling.
        """
        return {}

    def _validate_reserved(self, name: str, value: KeywordValue | None) -> None:
        if name in _SCALING_NAMES:
            if value is None:
                return
            scaling = self._scaling_values()
            if name not in scaling:
                raise InconsistentStateError(f"{name} has no meaning for a {self.kind} block.")
            try:
                matches = float(value) == scaling[name]  # type: ignore[arg-type]
            except (TypeError, ValueError):
                matches = False
            if not matches:
                raise InconsistentStateError(
                    f"{name}={value!r} does not match the pixel type of this {self.kind} block "
                    f"({scaling[name]:g})."
                )
            return
        expected = self._reserved_values()
        if value is None:
            if name in expected:
                raise InconsistentStateError(
                    f"{name} describes the payload of this block and cannot be deleted."
                )
            return
        if name not in expected:
            raise InconsistentStateError(
                f"{name}={value!r} does not describe any axis of this {self.kind} block."
            )
        if value != expected[name]:
            raise InconsistentStateError(
                f"{name}={value!r} does not match the payload of this {self.kind} block ({expected[name]})."
            )

    def _sync_reserved(self) -> None:
        expected = self._reserved_values()
        for name in self._keywords.names:
            if name.startswith("NAXIS") and name not in expected:
                self._keywords._delete_reserved(name)
        for name, value in expected.items():
            self._keywords._set_reserved(name, value)
        scaling = self._scaling_values()
        for name in _SCALING_NAMES:
            current = self._keywords.get(name)
            if current is None:
                continue
            if name not in scaling:
                self._keywords._delete_reserved(name)
            elif current != scaling[name]:
                self._keywords._set_reserved(name, scaling[name])

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, keywords={len(self._keywords)})"


@final
class ImageBlock(Block):
    """A block holding a 2-d, optionally multi-plane, image.

    Parameters
    ----------
    array
        Pixel values with shape ``(height, width)`` or
        ``(planes, height, width)``, in physical units (any ``BSCALE`` and
        ``BZERO`` scaling already applied).
    keywords, optional
        Keyword store or entries.  Shape keywords that are present must agree
        with ``array``; missing ones are added.
    solution, optional
        Coordinate solution.  If not provided, one is derived from the WCS
        keywords, if any.

    Raises
    ------
    InvalidArgumentError
        Raised if ``array`` does not have two or three dimensions.
    InconsistentStateError
        Raised if the keywords declare a different shape or pixel type.
    """

    kind = BlockKind.IMAGE

    def __init__(
        self,
        array: npt.ArrayLike,
        keywords: KeywordStore | Iterable[Keyword] | None = None,
        *,
        solution: CoordinateSolution | None = None,
    ):
        self._array = _check_image_array(array)
        super().__init__(keywords)
        for entry in self._keywords:
            if is_reserved(entry.name):
                self._validate_reserved(entry.name, entry.value)
        self._sync_reserved()
        self._render: list[PlaneRenderParameters | None] = [None] * self.plane_count
        if solution is None:
            self._solution = CoordinateSolution.from_keywords(self._keywords)
        else:
            self.set_solution(solution)

    @classmethod
    def from_record(cls, record: DecodedRecord) -> ImageBlock:
        """Construct from a decoded record whose payload is a pixel array."""
        if record.payload is None:
            raise InvalidArgumentError(f"Record {record.signature!r} has no pixel data.")
        return cls(record.payload, record.keywords)

    def copy(self) -> ImageBlock:
        result = ImageBlock(self._array.copy(), self._keywords.copy(), solution=None)
        result._solution = self._solution.copy() if self._solution is not None else None
        result._render = list(self._render)
        return result

    # Payload.

    @property
    def array(self) -> np.ndarray:
        """A read-only view of the pixel array."""
        view = self._array.view()
        view.flags.writeable = False
        return view

    @property
    def dtype(self) -> np.dtype:
        """Pixel type."""
        return self._array.dtype

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the pixel array."""
        return self._array.shape

    @property
    def width(self) -> int:
        """Number of columns."""
        return self._array.shape[-1]

    @property
    def height(self) -> int:
        """Number of rows."""
        return self._array.shape[-2]

    @property
    def plane_count(self) -> int:
        """Number of image planes (1 for a monochrome image)."""
        return 1 if self._array.ndim == 2 else self._array.shape[0]

    @property
    def is_mono(self) -> bool:
        """Whether the image has a single plane."""
        return self.plane_count == 1

    @property
    def is_poly(self) -> bool:
        """Whether the image has more than one plane."""
        return self.plane_count > 1

    def set_array(self, array: npt.ArrayLike) -> None:
        """Replace the pixel array wholesale, resynchronizing the shape
        keywords.

        The coordinate solution is kept if the width and height are
        unchanged, and dropped otherwise.
        """
        array = _check_image_array(array)
        if array.shape[-2:] != self._array.shape[-2:] and self._solution is not None:
            _LOG.debug("Dropping coordinate solution after payload replacement with new extents.")
            self.set_solution(None)
        if (1 if array.ndim == 2 else array.shape[0]) != self.plane_count:
            self._render = [None] * (1 if array.ndim == 2 else array.shape[0])
        self._array = array
        self._sync_reserved()

    def _reserved_values(self) -> dict[str, int]:
        result = {"BITPIX": bitpix_for_dtype(self._array.dtype)[0], "NAXIS": self._array.ndim}
        for n, size in enumerate(reversed(self._array.shape), start=1):
            result[f"NAXIS{n}"] = size
        return result

    def _scaling_values(self) -> dict[str, float]:
        return {"BSCALE": 1.0, "BZERO": float(bitpix_for_dtype(self._array.dtype)[1])}

    # Derived metadata.

    @property
    def pixel_size(self) -> XY[float] | None:
        """Physical pixel size in microns, from ``XPIXSZ`` and ``YPIXSZ``."""
        x = self._keywords.get("XPIXSZ")
        y = self._keywords.get("YPIXSZ")
        if x is None or y is None:
            return None
        return XY(float(x), float(y))

    @pixel_size.setter
    def pixel_size(self, value: XY[float] | None) -> None:
        if value is None:
            self._keywords.delete("XPIXSZ")
            self._keywords.delete("YPIXSZ")
        else:
            self._keywords.write("XPIXSZ", float(value[0]), "Pixel width in microns")
            self._keywords.write("YPIXSZ", float(value[1]), "Pixel height in microns")

    @property
    def exposure(self) -> float | None:
        """Exposure time in seconds, from ``EXPTIME`` or ``EXPOSURE``."""
        value = self._keywords.get("EXPTIME", self._keywords.get("EXPOSURE"))
        return float(value) if value is not None else None

    @property
    def filter_name(self) -> str | None:
        """Name of the filter, from ``FILTER``."""
        value = self._keywords.get("FILTER")
        return str(value).strip() if value is not None else None

    # Geometric transforms.

    def transformed(
        self,
        transform: GeometricTransform,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> tuple[np.ndarray, np.ndarray | None, CoordinateSolution | None]:
        """Compute the result of a transform without modifying the block.

        Parameters
        ----------
        transform
            Transform to apply.
        options, optional
            Interpolation options.
        solution, optional
            Replacement coordinate solution for the transformed image.  If not
            provided, the current solution (if any) is transformed and, unless
            the transform is a pure translation, marked stale.

        Returns
        -------
        array
            Transformed pixels.
        validity
            Mask of output pixels mapped from inside the input, or `None` if
            all are.
        solution
            Coordinate solution for the transformed pixels.

        Raises
        ------
        OutOfRangeError
            Raised if the transform reaches outside the image.
        InvalidArgumentError
            Raised if the transform's parameters are malformed.
        """
        transform.validate(self._array.shape)
        array, validity = transform.apply_to_array(self._array, options)
        if solution is not None:
            new_solution = solution.copy()
        elif self._solution is not None:
            new_solution = self._solution.transformed(*transform.matrix(self._array.shape))
        else:
            new_solution = None
        return array, validity, new_solution

    def commit(self, array: np.ndarray, solution: CoordinateSolution | None) -> None:
        """Install the result of `transformed`."""
        self._array = array
        self._sync_reserved()
        self.set_solution(solution)

    def apply(
        self,
        transform: GeometricTransform,
        options: TransformOptions = TransformOptions.DEFAULT,
        solution: CoordinateSolution | None = None,
    ) -> np.ndarray | None:
        """Apply a transform to this block alone.

        See `transformed` for parameters.  Returns the validity mask.
        """
        array, validity, new_solution = self.transformed(transform, options, solution)
        self.commit(array, new_solution)
        return validity

    def crop(self, origin: XY[int], extent: XY[int]) -> None:
        """Keep only the ``extent`` pixels starting at ``origin``."""
        self.apply(Crop(origin, extent))

    def flip(self) -> None:
        """Mirror the image top to bottom."""
        self.apply(Flip())

    def flop(self) -> None:
        """Mirror the image left to right."""
        self.apply(Flop())

    def rotate(self, angle: float, options: TransformOptions = TransformOptions.DEFAULT) -> None:
        """Rotate the image counter-clockwise by ``angle`` degrees about its
        center.
        """
        self.apply(Rotate(angle), options)

    def resample(self, width: int, height: int, options: TransformOptions = TransformOptions.DEFAULT) -> None:
        """Resample the image onto a smaller grid."""
        self.apply(Resample(width, height), options)

    def bin(self, factor: int) -> None:
        """Average ``factor`` x ``factor`` blocks of pixels."""
        self.apply(Bin(factor))

    def affine_transform(
        self,
        center: XY[float],
        offset: XY[float],
        angle: float,
        scale: float,
        pixel_size: XY[float] = XY(1.0, 1.0),
        options: TransformOptions = TransformOptions.DEFAULT,
    ) -> np.ndarray:
        """Rotate, scale, and translate the image; returns the validity
        mask.
        """
        validity = self.apply(Affine(center, offset, angle, scale, pixel_size), options)
        return validity if validity is not None else np.ones((self.height, self.width), dtype=bool)

    def float_image(self, width: int, height: int, background: float = 0.0) -> None:
        """Center the image on a larger canvas."""
        self.apply(Float(width, height, background))

    # Statistics.

    def plane_array(self, plane: int = 0) -> np.ndarray:
        """Return a read-only view of one image plane."""
        view = self._plane(plane).view()
        view.flags.writeable = False
        return view

    def _plane(self, plane: int) -> np.ndarray:
        if not (0 <= plane < self.plane_count):
            raise OutOfRangeError(f"Plane {plane} does not exist (image has {self.plane_count}).")
        return self._array if self._array.ndim == 2 else self._array[plane]

    def _values(self, plane: int | None) -> np.ndarray:
        return self._array if plane is None else self._plane(plane)

    def max(self, plane: int | None = None) -> float:
        """Maximum pixel value, ignoring NaNs."""
        return float(np.nanmax(self._values(plane)))

    def min(self, plane: int | None = None) -> float:
        """Minimum pixel value, ignoring NaNs."""
        return float(np.nanmin(self._values(plane)))

    def mean(self, plane: int | None = None) -> float:
        """Mean pixel value, ignoring NaNs."""
        return float(np.nanmean(self._values(plane), dtype=np.float64))

    def stddev(self, plane: int | None = None) -> float:
        """Population standard deviation of the pixel values, ignoring
        NaNs.
        """
        return float(np.nanstd(self._values(plane), dtype=np.float64))

    # Analysis.

    def centroid(
        self,
        seed: XY[float],
        radius: float,
        iterations: int,
        *,
        plane: int = 0,
        options: CentroidOptions = CentroidOptions.DEFAULT,
    ) -> XY[float] | None:
        """Find the intensity-weighted centroid of a source near ``seed``.

        Parameters
        ----------
        seed
            Starting position.
        radius
            Radius of the circular aperture, in pixels.
        iterations
            Maximum number of re-centering steps.
        plane, optional
            Image plane to measure.
        options, optional
            Convergence and background options.

        Returns
        -------
        `XY` [`float`] | `None`
            The centroid, or `None` if the seed is outside the image, the
            aperture holds no signal above background, or the position did
            not converge within ``iterations``.
        """
        if radius <= 0:
            raise InvalidArgumentError(f"Centroid radius must be positive; got {radius}.")
        if iterations <= 0:
            raise InvalidArgumentError(f"Centroid iterations must be positive; got {iterations}.")
        data = self._plane(plane)
        x, y = float(seed[0]), float(seed[1])
        for _ in range(iterations):
            if not (0.0 <= x < self.width and 0.0 <= y < self.height):
                return None
            xc, yc, values = _aperture(data, x, y, radius)
            if values.size == 0:
                return None
            if options.subtract_background:
                values = values - np.median(values)
            weights = np.clip(values, 0.0, None)
            total = weights.sum()
            if not total > 0:
                return None
            new_x = float((weights * xc).sum() / total)
            new_y = float((weights * yc).sum() / total)
            shift = math.hypot(new_x - x, new_y - y)
            x, y = new_x, new_y
            if shift < options.tolerance:
                return XY(x, y)
        return None

    def object_profile(
        self, center: XY[float], radius: float, *, plane: int = 0
    ) -> list[tuple[float, float]]:
        """Return ``(distance, value)`` pairs for every pixel whose center is
        within ``radius`` of ``center``, sorted by distance.
        """
        if radius <= 0:
            raise InvalidArgumentError(f"Profile radius must be positive; got {radius}.")
        xc, yc, values = _aperture(self._plane(plane), float(center[0]), float(center[1]), radius)
        distances = np.hypot(xc - center[0], yc - center[1])
        order = np.argsort(distances, kind="stable")
        return [(float(distances[i]), float(values[i])) for i in order]

    def fwhm(self, center: XY[float], radius: float = 10.0, *, plane: int = 0) -> float | None:
        """Estimate the full width at half maximum of a source from its
        radial profile.

        The background is the median of the outer quarter of the aperture;
        the half-maximum crossing is interpolated between one-pixel annuli.
        Returns `None` if the profile never falls below half maximum or has
        no peak above background.
        """
        profile = self.object_profile(center, radius, plane=plane)
        if not profile:
            return None
        distances = np.array([p[0] for p in profile])
        values = np.array([p[1] for p in profile])
        outer = values[distances >= 0.75 * radius]
        background = float(np.median(outer)) if outer.size else 0.0
        bins = np.floor(distances).astype(int)
        means = np.array([values[bins == b].mean() for b in range(bins.max() + 1) if (bins == b).any()])
        radii = np.array([distances[bins == b].mean() for b in range(bins.max() + 1) if (bins == b).any()])
        peak = means[0] - background
        if not peak > 0:
            return None
        half = background + 0.5 * peak
        for i in range(1, len(means)):
            if means[i] <= half:
                r0, r1 = radii[i - 1], radii[i]
                v0, v1 = means[i - 1], means[i]
                hwhm = r0 if v0 == v1 else r0 + (v0 - half) * (r1 - r0) / (v0 - v1)
                return 2.0 * float(hwhm)
        return None

    # Coordinate solution.

    @property
    def solution(self) -> CoordinateSolution | None:
        """The coordinate solution, or `None` if there is none."""
        return self._solution

    @property
    def has_solution(self) -> bool:
        """Whether a coordinate solution is attached."""
        return self._solution is not None

    def refresh_solution(self) -> None:
        """Re-derive the coordinate solution from the WCS keywords, after they
        have been edited directly.
        """
        self._solution = CoordinateSolution.from_keywords(self._keywords)

    def set_solution(self, solution: CoordinateSolution | None) -> None:
        """Attach (or remove) a coordinate solution, rewriting the WCS
        keywords to match.
        """
        self._solution = solution
        if solution is None:
            clear_keywords(self._keywords)
        else:
            solution.to_keywords(self._keywords)

    def pixel_to_sky(self, point: XY[float]) -> SkyCoord | None:
        """Map a pixel position to the sky, or return `None` if there is no
        solution or the position does not map to a finite coordinate.
        """
        if self._solution is None:
            return None
        coord = self._solution.pixel_to_sky(float(point[0]), float(point[1]))
        if not (np.isfinite(coord.ra.deg) and np.isfinite(coord.dec.deg)):
            return None
        return coord

    def sky_to_pixel(self, coord: SkyCoord) -> XY[float] | None:
        """Map a sky position to pixels, or return `None` if there is no
        solution or the position does not map to a finite point.
        """
        if self._solution is None:
            return None
        point = self._solution.sky_to_pixel(coord)
        if not (np.all(np.isfinite(point.x)) and np.all(np.isfinite(point.y))):
            return None
        return point

    # Rendering.

    def plane_render_parameters(self, plane: int = 0) -> PlaneRenderParameters:
        """Return the display parameters for a plane, defaulting to the full
        range of its pixel values.
        """
        data = self._plane(plane)
        if (params := self._render[plane]) is None:
            params = PlaneRenderParameters.from_array(data)
            self._render[plane] = params
        return params

    def set_plane_render_function(
        self,
        plane: int,
        black_point: float,
        white_point: float,
        invert: bool = False,
        transfer_function: TransferFunction = TransferFunction.LINEAR,
        transfer_parameter: float = 1.0,
    ) -> None:
        """Set the black and white points and transfer curve of a plane."""
        current = self.plane_render_parameters(plane)
        self._render[plane] = _updated(
            current,
            black_point=black_point,
            white_point=white_point,
            invert=invert,
            transfer_function=transfer_function,
            transfer_parameter=transfer_parameter,
        )

    def set_plane_colour_values(
        self, plane: int, colour: tuple[float, float, float], transparency: float = 1.0
    ) -> None:
        """Set the compositing colour and transparency of a plane."""
        current = self.plane_render_parameters(plane)
        self._render[plane] = _updated(current, colour=tuple(colour), transparency=transparency)

    def black_point(self, plane: int = 0) -> float:
        """Pixel value displayed as black."""
        return self.plane_render_parameters(plane).black_point

    def white_point(self, plane: int = 0) -> float:
        """Pixel value displayed as white."""
        return self.plane_render_parameters(plane).white_point

    def rendered_view(self, mode: RenderMode, renderer: Renderer) -> np.ndarray:
        """Produce a display raster using an external renderer."""
        parameters = [self.plane_render_parameters(p) for p in range(self.plane_count)]
        return renderer.render(self.array, parameters, mode)

    def __repr__(self) -> str:
        return (
            f"ImageBlock(shape={self._array.shape}, dtype={self._array.dtype!r}, "
            f"solution={self._solution!r})"
        )


class TableBlock(Block):
    """Base class for blocks holding a table of rows and named columns.

    Parameters
    ----------
    table, optional
        Table payload.  Defaults to an empty table.
    keywords, optional
        Keyword store or entries.
    """

    def __init__(
        self,
        table: astropy.table.Table | None = None,
        keywords: KeywordStore | Iterable[Keyword] | None = None,
    ):
        self._table = astropy.table.Table(table, copy=True) if table is not None else astropy.table.Table()
        super().__init__(keywords)
        self._sync_reserved()

    @classmethod
    def from_record(cls, record: DecodedRecord) -> Self:
        """Construct from a decoded record whose payload is a table."""
        return cls(record.payload, record.keywords)

    def copy(self) -> Self:
        return type(self)(self.table, self._keywords.copy())

    @property
    def table(self) -> astropy.table.Table:
        """A copy of the table payload."""
        return self._table.copy()

    @property
    def row_count(self) -> int:
        """Number of rows."""
        return len(self._table)

    @property
    def column_count(self) -> int:
        """Number of columns."""
        return len(self._table.colnames)

    @property
    def column_names(self) -> list[str]:
        """Names of the columns, in order."""
        return list(self._table.colnames)

    def column(self, name: str) -> np.ndarray:
        """Return a copy of a column's values."""
        if name not in self._table.colnames:
            raise NotFoundError(f"Column {name!r} not found.")
        return np.array(self._table[name])

    def row(self, index: int) -> dict[str, Any]:
        """Return a row as a mapping from column name to value."""
        self._check_row(index)
        row = self._table[index]
        return {name: _scalar(row[name]) for name in self._table.colnames}

    def cell(self, index: int, column: str) -> Any:
        """Return a single value."""
        self._check_row(index)
        if column not in self._table.colnames:
            raise NotFoundError(f"Column {column!r} not found.")
        return _scalar(self._table[column][index])

    def add_row(self, values: Mapping[str, Any] | Sequence[Any]) -> None:
        """Append a row."""
        try:
            self._table.add_row(values)
        except (ValueError, TypeError, KeyError) as err:
            raise InvalidArgumentError(f"Cannot add row {values!r}: {err}") from err
        self._sync_reserved()

    def _check_row(self, index: int) -> None:
        if not (0 <= index < len(self._table)):
            raise OutOfRangeError(f"Row {index} does not exist (table has {len(self._table)}).")

    def _reserved_values(self) -> dict[str, int]:
        width = self._table.as_array().dtype.itemsize if self._table.colnames else 0
        return {"BITPIX": 8, "NAXIS": 2, "NAXIS1": width, "NAXIS2": len(self._table)}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, rows={self.row_count}, "
            f"columns={self.column_names})"
        )


class AsciiTableBlock(TableBlock):
    """A block holding a table stored as text."""

    kind = BlockKind.ASCII_TABLE


@final
class BinTableBlock(TableBlock):
    """A block holding a table stored in binary form."""

    kind = BlockKind.BIN_TABLE


def _check_image_array(array: npt.ArrayLike) -> np.ndarray:
    array = np.asarray(array)
    if array.ndim not in (2, 3):
        raise InvalidArgumentError(f"Image arrays must have 2 or 3 dimensions; got shape {array.shape}.")
    if 0 in array.shape:
        raise InvalidArgumentError(f"Image arrays may not be empty; got shape {array.shape}.")
    bitpix_for_dtype(array.dtype)
    return array


def _aperture(
    data: np.ndarray, x: float, y: float, radius: float
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    # Pixel centers (continuous frame) and finite values within the circle.
    height, width = data.shape
    x0 = max(int(math.floor(x - radius)), 0)
    x1 = min(int(math.ceil(x + radius)) + 1, width)
    y0 = max(int(math.floor(y - radius)), 0)
    y1 = min(int(math.ceil(y + radius)) + 1, height)
    if x0 >= x1 or y0 >= y1:
        empty = np.empty(0)
        return empty, empty, empty
    rows, cols = np.mgrid[y0:y1, x0:x1]
    xc = cols + 0.5
    yc = rows + 0.5
    window = data[y0:y1, x0:x1].astype(np.float64)
    inside = ((xc - x) ** 2 + (yc - y) ** 2 <= radius**2) & np.isfinite(window)
    return xc[inside], yc[inside], window[inside]


def _updated(params: PlaneRenderParameters, **changes: Any) -> PlaneRenderParameters:
    try:
        return PlaneRenderParameters.model_validate(params.model_dump() | changes)
    except ValueError as err:
        raise InvalidArgumentError(str(err)) from err


def _scalar(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bytes):
        value = value.decode()
    return value
